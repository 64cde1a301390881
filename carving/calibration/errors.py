"""Recoverable calibration capture failures."""

from typing import Optional


class CaptureError(Exception):
    """Base exception for calibration capture errors.

    Every capture error is recoverable: the caller repeats the failed
    capture step.
    """

    reason = "capture failed"
    unit = ""

    def __init__(self, measured: Optional[float] = None, threshold: Optional[float] = None):
        self.measured = measured
        self.threshold = threshold
        super().__init__(self._format())

    def _format(self) -> str:
        if self.measured is None:
            return self.reason
        message = f"{self.reason}: measured {self.measured:.4g}{self.unit}"
        if self.threshold is not None:
            message += f", threshold {self.threshold:.4g}{self.unit}"
        return message


class ExcessiveMovement(CaptureError):
    """Sensor moved during the stationary capture."""
    reason = "excessive movement"

    def __init__(self, measured: float, threshold: float, quantity: str = "accel"):
        self.quantity = quantity
        self.unit = " g" if quantity == "accel" else " deg/s"
        super().__init__(measured, threshold)

    def _format(self) -> str:
        return f"{self.quantity} {super()._format()}"


class WeakGravitySignal(CaptureError):
    reason = "mean acceleration too weak to find gravity"
    unit = " g"


class NoPendingCalibration(CaptureError):
    reason = "stationary capture must precede the edge holds"


class InsufficientSamples(CaptureError):
    reason = "not enough samples"
    unit = " samples"


class EdgeHoldsTooSimilar(CaptureError):
    reason = "edge holds too similar"
    unit = " deg"


class AxisNearVertical(CaptureError):
    reason = "forward axis is nearly vertical"


class RollAxisTooCloseToGravity(CaptureError):
    reason = "roll axis too close to gravity"


class StationaryCheckFailed(CaptureError):
    reason = "rotated stationary acceleration is not vertical"
    unit = " g"


class GyroBiasTooHigh(CaptureError):
    reason = "gyro bias too high"
    unit = " deg/s"
