"""Calibration storage interface."""

from typing import Dict, Protocol

from .state import CalibrationState


class CalibrationStore(Protocol):
    """Protocol for per-sensor calibration persistence."""

    def get(self, sensor_id: str) -> CalibrationState:
        """Return the stored state, or an empty state for unknown sensors."""
        ...

    def set(self, sensor_id: str, state: CalibrationState) -> None:
        """Persist the state for a sensor."""
        ...


class InMemoryCalibrationStore:
    """Calibration store kept in a dictionary."""

    def __init__(self, initial: Dict[str, CalibrationState] = None):
        self._states: Dict[str, CalibrationState] = dict(initial or {})

    def get(self, sensor_id: str) -> CalibrationState:
        return self._states.get(sensor_id, CalibrationState.empty())

    def set(self, sensor_id: str, state: CalibrationState) -> None:
        self._states[sensor_id] = state

    def sensor_ids(self) -> list:
        return sorted(self._states)
