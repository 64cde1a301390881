"""Core module for boot sensor processing."""

from .types import (
    SensorSample,
    SensorSide,
    SensorMode,
    TurnDirection,
    BootFrameSample,
    EdgeAngles,
    LocationSample,
    EdgeSample,
    BackgroundSample,
    TurnSample,
    TurnWindow,
    TurnSignal,
    RawSampleRecord,
    ValidationResult,
)
from .validation import SampleValidator
from .geometry import FrameOps
from .config import Config, load_config

__all__ = [
    "SensorSample",
    "SensorSide",
    "SensorMode",
    "TurnDirection",
    "BootFrameSample",
    "EdgeAngles",
    "LocationSample",
    "EdgeSample",
    "BackgroundSample",
    "TurnSample",
    "TurnWindow",
    "TurnSignal",
    "RawSampleRecord",
    "ValidationResult",
    "SampleValidator",
    "FrameOps",
    "Config",
    "load_config",
]
