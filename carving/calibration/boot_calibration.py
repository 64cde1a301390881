"""Two-phase boot frame calibration.

Phase one averages a stationary batch to find gravity, accelerometer
scale and gyro bias. Phase two uses two edge holds, one to each side,
whose gravity directions span the roll plane; their cross product gives
the boot's forward axis.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from ..core.config import Config
from ..core.geometry import FrameOps
from ..core.types import SensorSample
from .errors import (
    AxisNearVertical,
    EdgeHoldsTooSimilar,
    ExcessiveMovement,
    GyroBiasTooHigh,
    InsufficientSamples,
    NoPendingCalibration,
    RollAxisTooCloseToGravity,
    StationaryCheckFailed,
    WeakGravitySignal,
)
from .state import BootCalibration, CalibrationState, PendingCalibration
from .store import CalibrationStore

logger = logging.getLogger(__name__)


@dataclass
class StationaryCaptureResult:
    """Statistics of an accepted stationary capture."""
    num_samples: int
    accel_std: float        # std of accel magnitude, g
    gyro_std: float         # std of gyro magnitude, deg/s
    accel_scale: float
    z_axis: NDArray[np.float64]
    gyro_bias: NDArray[np.float64]


@dataclass
class EdgeCaptureResult:
    """Outcome of an accepted edge-hold capture."""
    separation_deg: float
    stationary_deviation: float
    rotated_gyro_bias: float
    calibration: BootCalibration


def _as_arrays(samples: Sequence[SensorSample]):
    accel = np.array([s.accel for s in samples], dtype=np.float64)
    gyro = np.array([s.gyro for s in samples], dtype=np.float64)
    return accel, gyro


class CalibrationEngine:
    """Computes per-sensor rotation, gyro bias and accel scale.

    State machine per sensor: uninitialized -> stationary captured
    (pending) -> calibrated. Either capture may be repeated at any time.
    """

    def __init__(self, store: CalibrationStore, config: Optional[Config] = None):
        """Initialize the engine.

        Args:
            store: Calibration persistence, keyed by sensor identity.
            config: System configuration. Defaults to Config().
        """
        self._store = store
        self._config = config if config is not None else Config()
        self._cfg = self._config.calibration
        self._pending: Dict[str, PendingCalibration] = {}

    def state(self, sensor_id: str) -> CalibrationState:
        """Current stored state for a sensor."""
        return self._store.get(sensor_id)

    def pending(self, sensor_id: str) -> Optional[PendingCalibration]:
        """Pending stationary result, if the edge holds are outstanding."""
        return self._pending.get(sensor_id)

    def boot_calibration(self, sensor_id: str) -> Optional[BootCalibration]:
        """Persistable calibration, once the sensor is calibrated."""
        return self._store.get(sensor_id).to_boot_calibration()

    def capture_stationary(
        self,
        sensor_id: str,
        samples: Sequence[SensorSample],
    ) -> StationaryCaptureResult:
        """Capture the stationary (boot flat) phase.

        Args:
            sensor_id: Sensor identity.
            samples: Samples recorded while the boot was still.

        Returns:
            StationaryCaptureResult with the accepted statistics.

        Raises:
            InsufficientSamples: If the batch is empty.
            ExcessiveMovement: If accel or gyro magnitude varies too much.
            WeakGravitySignal: If mean acceleration is near zero.
        """
        self._pending.pop(sensor_id, None)

        if len(samples) == 0:
            raise InsufficientSamples(measured=0, threshold=1)

        accel, gyro = _as_arrays(samples)
        mean_accel, accel_std = FrameOps.mean_and_magnitude_std(accel)
        mean_gyro, gyro_std = FrameOps.mean_and_magnitude_std(gyro)

        try:
            if accel_std > self._cfg.max_accel_std_g:
                raise ExcessiveMovement(accel_std, self._cfg.max_accel_std_g, quantity="accel")
            if gyro_std > self._cfg.max_gyro_std_dps:
                raise ExcessiveMovement(gyro_std, self._cfg.max_gyro_std_dps, quantity="gyro")

            gravity_norm = float(np.linalg.norm(mean_accel))
            if gravity_norm <= self._cfg.min_gravity_norm:
                raise WeakGravitySignal(gravity_norm, self._cfg.min_gravity_norm)
        except (ExcessiveMovement, WeakGravitySignal) as e:
            logger.warning("Stationary capture rejected for %s: %s", sensor_id, e)
            raise

        accel_scale = 1.0 / gravity_norm
        z_axis = -mean_accel / gravity_norm
        level_rotation = FrameOps.level_basis(z_axis, self._cfg.reference_parallel_cos)

        self._store.set(sensor_id, CalibrationState(
            rotation_matrix=level_rotation,
            gyro_bias=mean_gyro.copy(),
            accel_scale=accel_scale,
            z_axis=z_axis.copy(),
            is_calibrated=False,
        ))
        self._pending[sensor_id] = PendingCalibration(
            z_axis=z_axis,
            gyro_bias=mean_gyro,
            accel_scale=accel_scale,
            mean_accel=mean_accel,
            mean_gyro=mean_gyro,
            level_rotation=level_rotation,
        )

        logger.info(
            "Stationary capture for %s: %d samples, scale=%.4f, accel std=%.4f g, gyro std=%.3f deg/s",
            sensor_id, len(samples), accel_scale, accel_std, gyro_std,
        )

        return StationaryCaptureResult(
            num_samples=len(samples),
            accel_std=accel_std,
            gyro_std=gyro_std,
            accel_scale=accel_scale,
            z_axis=z_axis,
            gyro_bias=mean_gyro,
        )

    def capture_forward_edges(
        self,
        sensor_id: str,
        edge_one_samples: Sequence[SensorSample],
        edge_two_samples: Sequence[SensorSample],
    ) -> EdgeCaptureResult:
        """Capture the two edge holds and commit the calibration.

        Args:
            sensor_id: Sensor identity.
            edge_one_samples: Samples held on the first edge.
            edge_two_samples: Samples held on the opposite edge.

        Returns:
            EdgeCaptureResult with the committed calibration.

        Raises:
            NoPendingCalibration: If no stationary capture is pending.
            InsufficientSamples: If a hold has too few samples.
            EdgeHoldsTooSimilar: If the holds are not far enough apart.
            AxisNearVertical: If the forward axis has no horizontal part.
            RollAxisTooCloseToGravity: If the forward axis is near gravity.
            StationaryCheckFailed: If the stationary mean does not map to vertical.
            GyroBiasTooHigh: If the rotated gyro bias is too large.
        """
        pending = self._pending.get(sensor_id)
        if pending is None:
            raise NoPendingCalibration()

        try:
            R = self._solve_rotation(pending, edge_one_samples, edge_two_samples)
            deviation, bias_magnitude = self._check_rotation(pending, R)
        except (InsufficientSamples, EdgeHoldsTooSimilar, AxisNearVertical,
                RollAxisTooCloseToGravity, StationaryCheckFailed, GyroBiasTooHigh) as e:
            logger.warning("Edge capture rejected for %s: %s", sensor_id, e)
            raise

        state = CalibrationState(
            rotation_matrix=R,
            gyro_bias=pending.gyro_bias.copy(),
            accel_scale=pending.accel_scale,
            z_axis=pending.z_axis.copy(),
            is_calibrated=True,
        )
        self._store.set(sensor_id, state)
        del self._pending[sensor_id]

        separation = FrameOps.angle_between_deg(
            _as_arrays(edge_one_samples)[0].mean(axis=0),
            _as_arrays(edge_two_samples)[0].mean(axis=0),
        )
        logger.info(
            "Calibration committed for %s: edge separation=%.1f deg, stationary deviation=%.3f",
            sensor_id, separation, deviation,
        )

        return EdgeCaptureResult(
            separation_deg=separation,
            stationary_deviation=deviation,
            rotated_gyro_bias=bias_magnitude,
            calibration=state.to_boot_calibration(),
        )

    def _solve_rotation(
        self,
        pending: PendingCalibration,
        edge_one_samples: Sequence[SensorSample],
        edge_two_samples: Sequence[SensorSample],
    ) -> NDArray[np.float64]:
        """Build rows [x, y, z] from the edge holds."""
        cfg = self._cfg
        for batch in (edge_one_samples, edge_two_samples):
            if len(batch) < cfg.min_edge_samples:
                raise InsufficientSamples(measured=len(batch), threshold=cfg.min_edge_samples)

        g1 = FrameOps.normalize(_as_arrays(edge_one_samples)[0].mean(axis=0))
        g2 = FrameOps.normalize(_as_arrays(edge_two_samples)[0].mean(axis=0))

        separation = FrameOps.angle_between_deg(g1, g2)
        if separation < cfg.min_edge_separation_deg:
            raise EdgeHoldsTooSimilar(separation, cfg.min_edge_separation_deg)

        z_axis = pending.z_axis
        forward = FrameOps.reject(np.cross(g1, g2), z_axis)
        forward_norm = float(np.linalg.norm(forward))
        if forward_norm <= cfg.min_axis_norm:
            raise AxisNearVertical(forward_norm, cfg.min_axis_norm)
        x_axis = forward / forward_norm

        roll_cross = float(np.linalg.norm(np.cross(z_axis, x_axis)))
        if roll_cross <= cfg.min_roll_gravity_cross:
            raise RollAxisTooCloseToGravity(roll_cross, cfg.min_roll_gravity_cross)

        y_axis = FrameOps.normalize(np.cross(z_axis, x_axis))
        return np.vstack([x_axis, y_axis, z_axis])

    def _check_rotation(self, pending: PendingCalibration, R: NDArray[np.float64]):
        """Validate a candidate rotation against the stationary phase.

        Returns:
            (stationary deviation, rotated gyro bias magnitude) tuple.
        """
        cfg = self._cfg
        rotated = R @ (pending.accel_scale * pending.mean_accel)
        target = np.array([0.0, 0.0, 1.0 if rotated[2] >= 0 else -1.0])
        deviation = float(np.max(np.abs(rotated - target)))
        if deviation > cfg.stationary_tolerance:
            raise StationaryCheckFailed(deviation, cfg.stationary_tolerance)

        bias_magnitude = float(np.linalg.norm(R @ pending.gyro_bias))
        if bias_magnitude > cfg.max_gyro_bias_dps:
            raise GyroBiasTooHigh(bias_magnitude, cfg.max_gyro_bias_dps)

        return deviation, bias_magnitude
