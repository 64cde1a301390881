"""Boot frame calibration."""

from .state import BootCalibration, CalibrationState, PendingCalibration
from .store import CalibrationStore, InMemoryCalibrationStore
from .errors import (
    CaptureError,
    ExcessiveMovement,
    WeakGravitySignal,
    NoPendingCalibration,
    InsufficientSamples,
    EdgeHoldsTooSimilar,
    AxisNearVertical,
    RollAxisTooCloseToGravity,
    StationaryCheckFailed,
    GyroBiasTooHigh,
)
from .boot_calibration import (
    CalibrationEngine,
    StationaryCaptureResult,
    EdgeCaptureResult,
)

__all__ = [
    'BootCalibration',
    'CalibrationState',
    'PendingCalibration',
    'CalibrationStore',
    'InMemoryCalibrationStore',
    'CaptureError',
    'ExcessiveMovement',
    'WeakGravitySignal',
    'NoPendingCalibration',
    'InsufficientSamples',
    'EdgeHoldsTooSimilar',
    'AxisNearVertical',
    'RollAxisTooCloseToGravity',
    'StationaryCheckFailed',
    'GyroBiasTooHigh',
    'CalibrationEngine',
    'StationaryCaptureResult',
    'EdgeCaptureResult',
]
