"""Signal processing from raw samples to turn events."""

from .frame_transform import FrameTransform, EdgeAngleSmoother, SmoothedEdge
from .filters import HampelFilter, LowPassFilter, BiquadFilter
from .turn_signal import TurnSignalProcessor, TurnSignalSideState
from .turn_detector import TurnDetector, Idle, InTurn

__all__ = [
    "FrameTransform",
    "EdgeAngleSmoother",
    "SmoothedEdge",
    "HampelFilter",
    "LowPassFilter",
    "BiquadFilter",
    "TurnSignalProcessor",
    "TurnSignalSideState",
    "TurnDetector",
    "Idle",
    "InTurn",
]
