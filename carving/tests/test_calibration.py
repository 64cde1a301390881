"""Tests for two-phase boot calibration."""

import pytest
import numpy as np
from scipy.spatial.transform import Rotation

from carving.calibration import (
    AxisNearVertical,
    BootCalibration,
    CalibrationEngine,
    CalibrationState,
    CaptureError,
    EdgeHoldsTooSimilar,
    ExcessiveMovement,
    GyroBiasTooHigh,
    InMemoryCalibrationStore,
    InsufficientSamples,
    NoPendingCalibration,
    RollAxisTooCloseToGravity,
    StationaryCheckFailed,
    WeakGravitySignal,
)
from carving.core.config import Config
from carving.core.geometry import FrameOps
from carving.core.types import SensorSample

from conftest import tilt_sample


class TestCaptureStationary:
    """Tests for the stationary phase."""

    def test_noise_free_level_batch(self, engine, stationary_samples):
        """Level still batch gives unit scale and z axis pointing down."""
        result = engine.capture_stationary("boot", stationary_samples)

        assert result.accel_scale == pytest.approx(1.0)
        np.testing.assert_allclose(result.z_axis, [0.0, 0.0, -1.0], atol=1e-12)
        np.testing.assert_allclose(result.gyro_bias, [0.0, 0.0, 0.0], atol=1e-12)

    def test_accel_scale_is_inverse_gravity_norm(self, engine, make_samples):
        """accelScale should be 1/|g| for a noisy batch."""
        gravity = np.array([0.1, -0.2, 0.97])
        samples = make_samples(gravity, accel_noise=0.005, gyro_noise=0.1)

        result = engine.capture_stationary("boot", samples)

        assert result.accel_scale == pytest.approx(1.0 / np.linalg.norm(gravity), rel=1e-3)
        np.testing.assert_allclose(result.z_axis, -gravity / np.linalg.norm(gravity), atol=3e-3)

    def test_stores_uncalibrated_state_and_pending(self, engine, store, stationary_samples):
        """Stationary capture persists a provisional, uncalibrated state."""
        engine.capture_stationary("boot", stationary_samples)

        state = store.get("boot")
        assert not state.is_calibrated
        assert FrameOps.is_orthonormal(state.rotation_matrix)
        assert engine.pending("boot") is not None
        assert engine.boot_calibration("boot") is None

    def test_accel_noise_rejected(self, engine, make_samples):
        """Accel magnitude spread above 0.05 g is excessive movement."""
        samples = make_samples((0.0, 0.0, 1.0), accel_noise=0.2)

        with pytest.raises(ExcessiveMovement) as exc_info:
            engine.capture_stationary("boot", samples)

        assert exc_info.value.quantity == "accel"
        assert exc_info.value.threshold == pytest.approx(0.05)
        assert exc_info.value.measured > 0.05

    def test_gyro_noise_rejected(self, engine, make_samples):
        """Gyro magnitude spread above 2 deg/s is excessive movement."""
        samples = make_samples((0.0, 0.0, 1.0), gyro_noise=5.0)

        with pytest.raises(ExcessiveMovement) as exc_info:
            engine.capture_stationary("boot", samples)

        assert exc_info.value.quantity == "gyro"
        assert exc_info.value.measured > 2.0

    def test_weak_gravity(self, engine):
        """Zero acceleration cannot define gravity."""
        samples = [SensorSample(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)] * 50

        with pytest.raises(WeakGravitySignal):
            engine.capture_stationary("boot", samples)

    def test_empty_batch(self, engine):
        """An empty batch is insufficient."""
        with pytest.raises(InsufficientSamples):
            engine.capture_stationary("boot", [])

    def test_failure_discards_pending_and_keeps_store(self, engine, store, stationary_samples, make_samples):
        """A rejected recapture drops pending state but leaves the store alone."""
        engine.capture_stationary("boot", stationary_samples)
        before = store.get("boot")

        with pytest.raises(ExcessiveMovement):
            engine.capture_stationary("boot", make_samples((0.0, 0.0, 1.0), accel_noise=0.2))

        assert engine.pending("boot") is None
        assert store.get("boot") is before

    def test_capture_errors_are_recoverable(self, engine):
        """Every capture failure derives from CaptureError."""
        with pytest.raises(CaptureError):
            engine.capture_stationary("boot", [])


class TestCaptureForwardEdges:
    """Tests for the edge-hold phase."""

    def test_level_mount_rotation(self, engine, store, stationary_samples, edge_holds):
        """Level mount with +/-30 degree holds about x."""
        engine.capture_stationary("boot", stationary_samples)
        result = engine.capture_forward_edges("boot", *edge_holds)

        expected = np.array([[1.0, 0.0, 0.0], [0.0, -1.0, 0.0], [0.0, 0.0, -1.0]])
        np.testing.assert_allclose(result.calibration.rotation_matrix, expected, atol=1e-12)
        assert result.separation_deg == pytest.approx(60.0)
        assert store.get("boot").is_calibrated
        assert engine.pending("boot") is None

    def test_rows_orthonormal_for_random_mounts(self, config):
        """Any successful capture yields orthonormal right-handed rows."""
        rng = np.random.default_rng(7)
        for _ in range(20):
            mount = Rotation.from_euler("xyz", rng.uniform(-180.0, 180.0, 3), degrees=True).as_matrix()
            engine = CalibrationEngine(InMemoryCalibrationStore(), config)

            def reading(vector):
                a = mount @ np.asarray(vector)
                return SensorSample(float(a[0]), float(a[1]), float(a[2]), 0.0, 0.0, 0.0)

            s, c = np.sin(np.radians(35.0)), np.cos(np.radians(35.0))
            engine.capture_stationary("boot", [reading([0.0, 0.0, 1.0])] * 100)
            result = engine.capture_forward_edges(
                "boot", [reading([0.0, s, c])] * 20, [reading([0.0, -s, c])] * 20
            )

            R = result.calibration.rotation_matrix
            np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-6)
            assert np.linalg.det(R) == pytest.approx(1.0, abs=1e-6)

    def test_calibrated_state_exports_boot_calibration(self, engine, stationary_samples, edge_holds):
        """Calibrated state exports the persisted subset."""
        engine.capture_stationary("boot", stationary_samples)
        engine.capture_forward_edges("boot", *edge_holds)

        exported = engine.boot_calibration("boot")
        assert isinstance(exported, BootCalibration)
        assert exported.accel_scale == pytest.approx(1.0)

    def test_requires_pending(self, engine, edge_holds):
        """Edge holds without a stationary capture are refused."""
        with pytest.raises(NoPendingCalibration):
            engine.capture_forward_edges("boot", *edge_holds)

    def test_pending_cleared_after_commit(self, engine, stationary_samples, edge_holds):
        """A second edge capture needs a new stationary capture."""
        engine.capture_stationary("boot", stationary_samples)
        engine.capture_forward_edges("boot", *edge_holds)

        with pytest.raises(NoPendingCalibration):
            engine.capture_forward_edges("boot", *edge_holds)

    def test_insufficient_edge_samples(self, engine, stationary_samples):
        """Each hold needs at least 10 samples."""
        engine.capture_stationary("boot", stationary_samples)

        with pytest.raises(InsufficientSamples) as exc_info:
            engine.capture_forward_edges("boot", [tilt_sample(30.0)] * 5, [tilt_sample(-30.0)] * 20)

        assert exc_info.value.measured == 5
        assert exc_info.value.threshold == 10

    def test_holds_too_similar(self, engine, stationary_samples):
        """Holds 20 degrees apart are too similar."""
        engine.capture_stationary("boot", stationary_samples)

        with pytest.raises(EdgeHoldsTooSimilar) as exc_info:
            engine.capture_forward_edges("boot", [tilt_sample(10.0)] * 20, [tilt_sample(-10.0)] * 20)

        assert exc_info.value.measured == pytest.approx(20.0)

    def test_axis_near_vertical(self, engine, stationary_samples):
        """Holds whose cross product is parallel to gravity give no forward axis."""
        engine.capture_stationary("boot", stationary_samples)
        hold_x = [SensorSample(1.0, 0.0, 0.0, 0.0, 0.0, 0.0)] * 20
        hold_y = [SensorSample(0.0, 1.0, 0.0, 0.0, 0.0, 0.0)] * 20

        with pytest.raises(AxisNearVertical):
            engine.capture_forward_edges("boot", hold_x, hold_y)

    def test_roll_axis_too_close_to_gravity(self, store, stationary_samples, edge_holds):
        """A cross-product limit above 1 can never be satisfied."""
        config = Config()
        config.calibration.min_roll_gravity_cross = 1.5
        engine = CalibrationEngine(store, config)
        engine.capture_stationary("boot", stationary_samples)

        with pytest.raises(RollAxisTooCloseToGravity):
            engine.capture_forward_edges("boot", *edge_holds)

    def test_stationary_check_failed(self, engine, stationary_samples, edge_holds):
        """A stationary mean that does not rotate onto vertical is rejected."""
        engine.capture_stationary("boot", stationary_samples)
        engine.pending("boot").mean_accel = np.array([0.5, 0.0, 0.8])

        with pytest.raises(StationaryCheckFailed) as exc_info:
            engine.capture_forward_edges("boot", *edge_holds)

        assert exc_info.value.measured == pytest.approx(0.5)

    def test_gyro_bias_too_high(self, engine, edge_holds):
        """A constant 4 deg/s bias is too large to commit."""
        samples = [SensorSample(0.0, 0.0, 1.0, 4.0, 0.0, 0.0)] * 100
        engine.capture_stationary("boot", samples)

        with pytest.raises(GyroBiasTooHigh) as exc_info:
            engine.capture_forward_edges("boot", *edge_holds)

        assert exc_info.value.measured == pytest.approx(4.0)

    def test_failed_edge_capture_keeps_pending(self, engine, store, stationary_samples, edge_holds):
        """Only the edge step needs repeating after a failure."""
        engine.capture_stationary("boot", stationary_samples)

        with pytest.raises(EdgeHoldsTooSimilar):
            engine.capture_forward_edges("boot", [tilt_sample(5.0)] * 20, [tilt_sample(-5.0)] * 20)

        assert engine.pending("boot") is not None
        assert not store.get("boot").is_calibrated

        engine.capture_forward_edges("boot", *edge_holds)
        assert store.get("boot").is_calibrated

    def test_recapture_resets_calibrated_flag(self, engine, store, stationary_samples, edge_holds):
        """Explicit recapture is the only way back to uncalibrated."""
        engine.capture_stationary("boot", stationary_samples)
        engine.capture_forward_edges("boot", *edge_holds)

        engine.capture_stationary("boot", stationary_samples)
        assert not store.get("boot").is_calibrated


class TestCalibrationState:
    """Tests for CalibrationState and BootCalibration."""

    def test_empty_is_default(self):
        """Empty state has no deviation from identity."""
        state = CalibrationState.empty()
        assert state.is_default()
        assert not state.is_calibrated
        assert state.to_boot_calibration() is None

    def test_restore_from_boot_calibration(self):
        """Restored state is calibrated with z axis from the last row."""
        R = np.array([[1.0, 0.0, 0.0], [0.0, -1.0, 0.0], [0.0, 0.0, -1.0]])
        state = CalibrationState.from_boot_calibration(
            BootCalibration(rotation_matrix=R, gyro_bias=np.zeros(3), accel_scale=1.0)
        )

        assert state.is_calibrated
        np.testing.assert_allclose(state.z_axis, [0.0, 0.0, -1.0])

    def test_dict_round_trip(self):
        """State survives to_dict/from_dict with camelCase keys."""
        state = CalibrationState(
            rotation_matrix=np.diag([1.0, -1.0, -1.0]),
            gyro_bias=np.array([0.1, 0.2, 0.3]),
            accel_scale=0.98,
            z_axis=np.array([0.0, 0.0, -1.0]),
            is_calibrated=True,
        )
        data = state.to_dict()
        restored = CalibrationState.from_dict(data)

        assert set(data) == {"rotationMatrix", "gyroBias", "accelScale", "zAxis", "isCalibrated"}
        np.testing.assert_allclose(restored.rotation_matrix, state.rotation_matrix)
        np.testing.assert_allclose(restored.gyro_bias, state.gyro_bias)
        assert restored.accel_scale == pytest.approx(0.98)
        assert restored.is_calibrated

    def test_boot_calibration_missing_fields(self):
        """Missing fields decode to neutral values."""
        calibration = BootCalibration.from_dict({"accelScale": 1.02})

        np.testing.assert_allclose(calibration.rotation_matrix, np.eye(3))
        np.testing.assert_allclose(calibration.gyro_bias, np.zeros(3))
        assert calibration.accel_scale == pytest.approx(1.02)


class TestStore:
    """Tests for the in-memory calibration store."""

    def test_unknown_sensor_is_empty(self, store):
        """Unknown identities read as empty state."""
        assert store.get("missing").is_default()

    def test_set_and_list(self, store):
        """Stored identities are listed sorted."""
        store.set("b", CalibrationState.empty())
        store.set("a", CalibrationState.empty())
        assert store.sensor_ids() == ["a", "b"]


class TestFrameOps:
    """Tests for geometry helpers."""

    def test_level_basis_switches_reference(self):
        """World Y is used when z is nearly parallel to world X."""
        basis = FrameOps.level_basis(np.array([1.0, 0.0, 0.0]))

        np.testing.assert_allclose(basis[0], [0.0, 1.0, 0.0], atol=1e-12)
        assert FrameOps.is_orthonormal(basis)

    def test_angle_between(self):
        """Angle between orthogonal vectors is 90 degrees."""
        assert FrameOps.angle_between_deg(np.array([2.0, 0, 0]), np.array([0, 3.0, 0])) == pytest.approx(90.0)
