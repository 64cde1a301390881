"""Pytest fixtures for boot sensor processing tests."""

import sys
from pathlib import Path
from typing import Callable, List
import math
import pytest
import numpy as np

repo_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(repo_root))

from carving.calibration import CalibrationEngine, InMemoryCalibrationStore
from carving.core.config import Config
from carving.core.types import SensorSample


def tilt_sample(angle_deg: float, gz: float = 0.0) -> SensorSample:
    """Sample of a sensor reading +1 g on z, rolled about x by angle_deg."""
    angle = math.radians(angle_deg)
    return SensorSample(ax=0.0, ay=math.sin(angle), az=math.cos(angle), gx=0.0, gy=0.0, gz=gz)


def sine_signal(t: float, amplitude: float = 40.0, period: float = 2.0) -> float:
    return amplitude * math.sin(2.0 * math.pi * t / period)


@pytest.fixture
def config() -> Config:
    """Create default configuration for tests."""
    return Config()


@pytest.fixture
def rng() -> np.random.Generator:
    """Deterministic random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def store() -> InMemoryCalibrationStore:
    return InMemoryCalibrationStore()


@pytest.fixture
def engine(store, config) -> CalibrationEngine:
    """Calibration engine backed by an in-memory store."""
    return CalibrationEngine(store, config)


@pytest.fixture
def stationary_samples() -> List[SensorSample]:
    """200 noise-free samples of a level, still sensor (gravity on +z)."""
    return [SensorSample(ax=0.0, ay=0.0, az=1.0, gx=0.0, gy=0.0, gz=0.0) for _ in range(200)]


@pytest.fixture
def make_samples(rng) -> Callable[..., List[SensorSample]]:
    """Factory for noisy batches around a fixed accel and gyro vector."""

    def _make(accel, gyro=(0.0, 0.0, 0.0), n=200, accel_noise=0.0, gyro_noise=0.0):
        accel_values = np.asarray(accel, dtype=np.float64) + rng.normal(0.0, accel_noise, (n, 3))
        gyro_values = np.asarray(gyro, dtype=np.float64) + rng.normal(0.0, gyro_noise, (n, 3))
        return [
            SensorSample(*(float(v) for v in a), *(float(v) for v in g))
            for a, g in zip(accel_values, gyro_values)
        ]

    return _make


@pytest.fixture
def edge_holds() -> tuple:
    """Two 20-sample holds rolled +30 and -30 degrees about x."""
    return [tilt_sample(30.0)] * 20, [tilt_sample(-30.0)] * 20
