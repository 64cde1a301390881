"""Calibration state for one boot sensor."""

from dataclasses import dataclass, field
from typing import Optional
import numpy as np
from numpy.typing import NDArray


@dataclass
class BootCalibration:
    """Persisted calibration subset handed to the storage collaborator."""
    rotation_matrix: NDArray[np.float64]  # 3x3, rows [x, y, z]
    gyro_bias: NDArray[np.float64]        # [bx, by, bz] in deg/s
    accel_scale: float

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "rotationMatrix": self.rotation_matrix.reshape(-1).tolist(),
            "gyroBias": self.gyro_bias.tolist(),
            "accelScale": self.accel_scale,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BootCalibration":
        """Create from dictionary; missing fields fall back to neutral values."""
        return cls(
            rotation_matrix=np.array(
                data.get("rotationMatrix", np.eye(3).reshape(-1).tolist()),
                dtype=np.float64,
            ).reshape(3, 3),
            gyro_bias=np.array(data.get("gyroBias", [0.0, 0.0, 0.0]), dtype=np.float64),
            accel_scale=float(data.get("accelScale", 1.0)),
        )


@dataclass
class CalibrationState:
    """Full calibration state of one sensor.

    Created empty (identity rotation, zero bias, unit scale, not
    calibrated) and mutated only by CalibrationEngine capture calls.
    """
    rotation_matrix: NDArray[np.float64] = field(default_factory=lambda: np.eye(3))
    gyro_bias: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    accel_scale: float = 1.0
    z_axis: NDArray[np.float64] = field(default_factory=lambda: np.array([0.0, 0.0, 1.0]))
    is_calibrated: bool = False

    @classmethod
    def empty(cls) -> "CalibrationState":
        """Return uncalibrated state."""
        return cls()

    @classmethod
    def from_boot_calibration(cls, calibration: BootCalibration) -> "CalibrationState":
        """Restore a calibrated state from its persisted subset."""
        R = np.asarray(calibration.rotation_matrix, dtype=np.float64)
        return cls(
            rotation_matrix=R.copy(),
            gyro_bias=np.asarray(calibration.gyro_bias, dtype=np.float64).copy(),
            accel_scale=float(calibration.accel_scale),
            z_axis=R[2].copy(),
            is_calibrated=True,
        )

    def is_default(self, epsilon: float = 1e-6) -> bool:
        """Check for no rotation, bias or scale deviation beyond epsilon."""
        return (
            float(np.max(np.abs(self.rotation_matrix - np.eye(3)))) <= epsilon
            and float(np.max(np.abs(self.gyro_bias))) <= epsilon
            and abs(self.accel_scale - 1.0) <= epsilon
        )

    def to_boot_calibration(self) -> Optional[BootCalibration]:
        """Export the persisted subset once calibrated."""
        if not self.is_calibrated:
            return None
        return BootCalibration(
            rotation_matrix=self.rotation_matrix.copy(),
            gyro_bias=self.gyro_bias.copy(),
            accel_scale=self.accel_scale,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "rotationMatrix": self.rotation_matrix.reshape(-1).tolist(),
            "gyroBias": self.gyro_bias.tolist(),
            "accelScale": self.accel_scale,
            "zAxis": self.z_axis.tolist(),
            "isCalibrated": self.is_calibrated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CalibrationState":
        """Create from dictionary; absent fields take empty-state values."""
        state = cls.empty()
        if "rotationMatrix" in data:
            state.rotation_matrix = np.array(data["rotationMatrix"], dtype=np.float64).reshape(3, 3)
        if "gyroBias" in data:
            state.gyro_bias = np.array(data["gyroBias"], dtype=np.float64)
        if "accelScale" in data:
            state.accel_scale = float(data["accelScale"])
        if "zAxis" in data:
            state.z_axis = np.array(data["zAxis"], dtype=np.float64)
        state.is_calibrated = bool(data.get("isCalibrated", False))
        return state


@dataclass
class PendingCalibration:
    """Result of the stationary phase, waiting for the edge holds."""
    z_axis: NDArray[np.float64]
    gyro_bias: NDArray[np.float64]
    accel_scale: float
    mean_accel: NDArray[np.float64]
    mean_gyro: NDArray[np.float64]
    level_rotation: NDArray[np.float64]
