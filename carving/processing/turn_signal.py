"""Per-side turn signal from boot-frame gyro data.

Each side keeps its own filter chain:
- validity gate (accel/gyro range, left/right imbalance)
- Hampel de-spike of the gyro magnitude
- first-order low-pass on sample timestamps
The filtered magnitude takes the sign of the yaw (z) rate.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional
import numpy as np

from ..core.config import Config
from ..core.types import BootFrameSample, SensorMode, SensorSide, TurnSignal
from ..core.validation import SampleValidator
from .filters import HampelFilter, LowPassFilter

logger = logging.getLogger(__name__)


@dataclass
class TurnSignalSideState:
    """Filter state owned by one sensor side."""
    hampel: HampelFilter
    lowpass: LowPassFilter
    last_timestamp: Optional[float] = None
    last_valid_gyro_magnitude: Optional[float] = None
    imbalance_count: int = 0
    accepted: int = 0
    rejected: int = 0


class TurnSignalProcessor:
    """Turns boot-frame samples into a validated, filtered turn signal.

    Sides are independent except for the imbalance check, which compares
    a side's gyro magnitude to the other side's last valid one in dual
    mode.
    """

    def __init__(self, config: Optional[Config] = None, mode: SensorMode = SensorMode.SINGLE):
        """Initialize processor.

        Args:
            config: System configuration. Defaults to Config().
            mode: Single or dual sensor mode.
        """
        self._config = config if config is not None else Config()
        self._cfg = self._config.turn_signal
        self._validator = SampleValidator(self._config)
        self.mode = mode
        self._sides: Dict[SensorSide, TurnSignalSideState] = {
            side: self._new_state() for side in SensorSide
        }

    def _new_state(self) -> TurnSignalSideState:
        return TurnSignalSideState(
            hampel=HampelFilter(
                window=self._cfg.hampel_window,
                min_samples=self._cfg.hampel_min_samples,
                threshold=self._cfg.hampel_threshold,
            ),
            lowpass=LowPassFilter(
                cutoff_hz=self._cfg.lowpass_cutoff_hz,
                min_dt_s=self._cfg.lowpass_min_dt_s,
            ),
        )

    def side_state(self, side: SensorSide) -> TurnSignalSideState:
        return self._sides[side]

    def process(
        self,
        sample: BootFrameSample,
        side: SensorSide,
        timestamp: float,
    ) -> Optional[TurnSignal]:
        """Process one boot-frame sample.

        Args:
            sample: Boot-frame sample.
            side: Side that produced it.
            timestamp: Sample timestamp in seconds.

        Returns:
            TurnSignal, or None if the timestamp repeats the previous one.
        """
        state = self._sides[side]
        if state.last_timestamp is not None and timestamp == state.last_timestamp:
            logger.debug("Duplicate timestamp %.6f on %s side", timestamp, side.value)
            return None
        state.last_timestamp = timestamp

        gyro_magnitude = sample.gyro_magnitude
        validation = self._validator.validate(sample)
        imbalanced = self._update_imbalance(state, side, gyro_magnitude)

        if not validation.is_valid or imbalanced:
            state.rejected += 1
            if imbalanced:
                # Count keeps running while the imbalance lasts.
                logger.debug("Imbalanced sample on %s side: %.1f deg/s", side.value, gyro_magnitude)
            else:
                state.imbalance_count = 0
                logger.debug("Invalid sample on %s side: %s", side.value, validation.errors)
            return TurnSignal(value=0.0, is_valid=False)

        state.accepted += 1
        state.last_valid_gyro_magnitude = gyro_magnitude

        despiked = state.hampel.update(gyro_magnitude)
        filtered = state.lowpass.update(despiked, timestamp)
        return TurnSignal(value=float(filtered * np.sign(sample.gyro[2])), is_valid=True)

    def _update_imbalance(
        self,
        state: TurnSignalSideState,
        side: SensorSide,
        gyro_magnitude: float,
    ) -> bool:
        """Count consecutive samples far above the other side's rate.

        Returns:
            True once the count reaches the configured limit.
        """
        other = side.counterpart
        if self.mode is not SensorMode.DUAL or other is None:
            state.imbalance_count = 0
            return False

        other_magnitude = self._sides[other].last_valid_gyro_magnitude
        if other_magnitude is None or gyro_magnitude <= self._cfg.imbalance_ratio * other_magnitude:
            state.imbalance_count = 0
            return False

        state.imbalance_count += 1
        return state.imbalance_count >= self._cfg.imbalance_count

    def reset(self) -> None:
        """Reset all side states."""
        self._sides = {side: self._new_state() for side in SensorSide}
