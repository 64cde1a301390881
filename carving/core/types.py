"""Data types for boot sensor processing."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple
import math
import numpy as np
from numpy.typing import NDArray

STANDARD_GRAVITY = 9.80665


class SensorSide(str, Enum):
    """Boot a sensor is mounted on."""
    LEFT = "left"
    RIGHT = "right"
    SINGLE = "single"

    @property
    def counterpart(self) -> Optional["SensorSide"]:
        """Opposite boot in dual mode, None for a single sensor."""
        if self is SensorSide.LEFT:
            return SensorSide.RIGHT
        if self is SensorSide.RIGHT:
            return SensorSide.LEFT
        return None


class SensorMode(str, Enum):
    """Number of boot sensors in use."""
    SINGLE = "single"
    DUAL = "dual"


class TurnDirection(str, Enum):
    """Direction of a detected turn."""
    LEFT = "left"
    RIGHT = "right"
    UNKNOWN = "unknown"

    @classmethod
    def from_signal(cls, signal: float) -> "TurnDirection":
        """Classify a signed turn signal."""
        if signal > 0:
            return cls.RIGHT
        if signal < 0:
            return cls.LEFT
        return cls.UNKNOWN


@dataclass(frozen=True)
class SensorSample:
    """Single accelerometer/gyroscope measurement.

    Units:
    - Accelerometer: g
    - Gyroscope: deg/s
    """
    ax: float
    ay: float
    az: float
    gx: float
    gy: float
    gz: float

    @classmethod
    def from_si(cls, ax: float, ay: float, az: float,
                gx: float, gy: float, gz: float) -> "SensorSample":
        """Create from m/s^2 and rad/s values as sent by the sensor."""
        return cls(
            ax=ax / STANDARD_GRAVITY,
            ay=ay / STANDARD_GRAVITY,
            az=az / STANDARD_GRAVITY,
            gx=math.degrees(gx),
            gy=math.degrees(gy),
            gz=math.degrees(gz),
        )

    @property
    def accel(self) -> NDArray[np.float64]:
        """Accelerometer vector [ax, ay, az]."""
        return np.array([self.ax, self.ay, self.az], dtype=np.float64)

    @property
    def gyro(self) -> NDArray[np.float64]:
        """Gyroscope vector [gx, gy, gz]."""
        return np.array([self.gx, self.gy, self.gz], dtype=np.float64)

    @property
    def accel_magnitude(self) -> float:
        """Magnitude of acceleration vector."""
        return float(np.linalg.norm(self.accel))

    @property
    def gyro_magnitude(self) -> float:
        """Magnitude of angular rate vector."""
        return float(np.linalg.norm(self.gyro))

    def is_finite(self) -> bool:
        """Check all components are finite."""
        return all(np.isfinite([self.ax, self.ay, self.az,
                                self.gx, self.gy, self.gz]))

    def to_dict(self) -> dict:
        return {"ax": self.ax, "ay": self.ay, "az": self.az,
                "gx": self.gx, "gy": self.gy, "gz": self.gz}

    @classmethod
    def from_dict(cls, data: dict) -> "SensorSample":
        return cls(**{k: float(data[k]) for k in ("ax", "ay", "az", "gx", "gy", "gz")})


@dataclass(frozen=True)
class BootFrameSample:
    """Acceleration (g) and angular rate (deg/s) expressed in the boot frame."""
    accel: NDArray[np.float64]
    gyro: NDArray[np.float64]

    @classmethod
    def from_sample(cls, sample: SensorSample) -> "BootFrameSample":
        return cls(accel=sample.accel, gyro=sample.gyro)

    @property
    def accel_magnitude(self) -> float:
        return float(np.linalg.norm(self.accel))

    @property
    def gyro_magnitude(self) -> float:
        return float(np.linalg.norm(self.gyro))


@dataclass(frozen=True)
class EdgeAngles:
    """Edge, pitch and roll angles in degrees.

    Convention: roll folded into [-90, 90], signed edge clamped to
    [-90, 90], edge magnitude clamped to [0, 90].
    """
    signed: float
    magnitude: float
    pitch: float
    roll: float


@dataclass(frozen=True)
class LocationSample:
    """Location fix supplied by the host."""
    timestamp: float  # Unix timestamp in seconds
    latitude: float
    longitude: float
    altitude: float = 0.0
    speed: float = 0.0  # m/s
    horizontal_accuracy: float = 0.0  # meters


@dataclass(frozen=True)
class EdgeSample:
    """Edge angle per side at one instant. Either side may be missing."""
    timestamp: float
    left_angle: Optional[float] = None
    right_angle: Optional[float] = None

    @property
    def combined(self) -> Optional[float]:
        """Mean of the available sides."""
        return combine_edges(self.left_angle, self.right_angle)


@dataclass(frozen=True)
class BackgroundSample:
    """Edge angle recorded while no turn is in progress."""
    timestamp: float
    edge_angle: float


@dataclass(frozen=True)
class TurnSample:
    """One sample collected inside a turn window."""
    timestamp: float
    turn_signal: float
    left_angle: Optional[float] = None
    right_angle: Optional[float] = None

    @property
    def edge_angle(self) -> float:
        """Combined edge angle, 0 when neither side is known."""
        combined = combine_edges(self.left_angle, self.right_angle)
        return 0.0 if combined is None else combined


@dataclass(frozen=True)
class TurnWindow:
    """Completed turn event."""
    index: int
    start_time: float
    end_time: float
    direction: TurnDirection
    mean_turn_signal: float
    peak_edge_angle: float
    samples: Tuple[TurnSample, ...] = field(default_factory=tuple)
    location: Optional[LocationSample] = None

    @property
    def duration(self) -> float:
        """Turn duration in seconds."""
        return self.end_time - self.start_time


@dataclass(frozen=True)
class TurnSignal:
    """Output of the turn signal processor for one sample."""
    value: float
    is_valid: bool


@dataclass(frozen=True)
class RawSampleRecord:
    """Raw samples of both boots paired by timestamp."""
    timestamp: float
    left: Optional[SensorSample] = None
    right: Optional[SensorSample] = None


@dataclass
class ValidationResult:
    """Result of sensor data validation."""
    is_valid: bool
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def add_error(self, message: str) -> None:
        """Add validation error."""
        self.is_valid = False
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)


def combine_edges(left: Optional[float], right: Optional[float]) -> Optional[float]:
    """Mean of the edge angles that are present."""
    values = [v for v in (left, right) if v is not None]
    if not values:
        return None
    return sum(values) / len(values)
