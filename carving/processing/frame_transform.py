"""Boot frame transform and edge angle computation."""

import math
from dataclasses import dataclass
from typing import Dict, Optional
import numpy as np
from numpy.typing import NDArray

from ..calibration.state import CalibrationState
from ..core.config import Config
from ..core.types import BootFrameSample, EdgeAngles, SensorSample, SensorSide


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class FrameTransform:
    """Applies a calibration to raw samples and derives edge angles."""

    def __init__(self, config: Optional[Config] = None):
        self._config = config if config is not None else Config()
        self._epsilon = self._config.edge.identity_epsilon

    def to_boot_frame(
        self,
        sample: SensorSample,
        calibration: CalibrationState,
    ) -> BootFrameSample:
        """Rotate a raw sample into the boot frame.

        A calibration still at its default values returns the raw sample
        unchanged.

        Args:
            sample: Raw sensor sample.
            calibration: Calibration of the sensor that produced it.

        Returns:
            Boot-frame acceleration (g) and angular rate (deg/s).
        """
        if calibration.is_default(self._epsilon):
            return BootFrameSample.from_sample(sample)

        R = calibration.rotation_matrix
        accel = R @ (calibration.accel_scale * sample.accel)
        gyro = R @ (sample.gyro - calibration.gyro_bias)
        return BootFrameSample(accel=accel, gyro=gyro)

    @staticmethod
    def compute_edge_angles(accel: NDArray[np.float64]) -> EdgeAngles:
        """Edge, pitch and roll from boot-frame acceleration.

        Roll beyond +/-90 degrees is folded back by 180 so a sensor whose
        up axis reads -1 g still reports a level boot as 0.

        Args:
            accel: Boot-frame acceleration [ax, ay, az].

        Returns:
            EdgeAngles in degrees.
        """
        ax, ay, az = (float(v) for v in accel)
        roll = math.degrees(math.atan2(ay, az))
        if roll > 90.0:
            roll -= 180.0
        elif roll < -90.0:
            roll += 180.0

        pitch = math.degrees(math.atan2(-ax, math.sqrt(ay * ay + az * az)))

        return EdgeAngles(
            signed=_clamp(roll, -90.0, 90.0),
            magnitude=_clamp(abs(roll), 0.0, 90.0),
            pitch=pitch,
            roll=roll,
        )


@dataclass(frozen=True)
class SmoothedEdge:
    """Smoothed edge angle of one side."""
    signed: float
    magnitude: float


class EdgeAngleSmoother:
    """Per-side exponential smoothing of edge angles.

    new = prev + alpha * (raw - prev); the first sample of a side
    initializes its value directly.
    """

    def __init__(self, alpha: float = 0.18):
        self.alpha = alpha
        self._values: Dict[SensorSide, SmoothedEdge] = {}

    def update(self, side: SensorSide, angles: EdgeAngles) -> SmoothedEdge:
        """Smooth a new raw edge reading for a side."""
        previous = self._values.get(side)
        if previous is None:
            smoothed = SmoothedEdge(signed=angles.signed, magnitude=angles.magnitude)
        else:
            smoothed = SmoothedEdge(
                signed=previous.signed + self.alpha * (angles.signed - previous.signed),
                magnitude=previous.magnitude + self.alpha * (angles.magnitude - previous.magnitude),
            )
        self._values[side] = smoothed
        return smoothed

    def value(self, side: SensorSide) -> Optional[SmoothedEdge]:
        return self._values.get(side)

    def reset(self, side: Optional[SensorSide] = None) -> None:
        """Forget smoothed values of one side, or all sides."""
        if side is None:
            self._values.clear()
        else:
            self._values.pop(side, None)
