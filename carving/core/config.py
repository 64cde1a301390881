"""Configuration management for boot sensor processing."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import math
import os

import yaml


@dataclass
class CalibrationConfig:
    """Two-phase boot calibration thresholds."""
    max_accel_std_g: float = 0.05
    max_gyro_std_dps: float = 2.0
    min_gravity_norm: float = 1e-6
    reference_parallel_cos: float = 0.9
    min_edge_samples: int = 10
    min_edge_separation_deg: float = 25.0
    min_axis_norm: float = 1e-6
    min_roll_gravity_cross: float = 0.1
    stationary_tolerance: float = 0.25
    max_gyro_bias_dps: float = 3.0


@dataclass
class EdgeAngleConfig:
    """Edge angle smoothing configuration."""
    smoothing_alpha: float = 0.18
    identity_epsilon: float = 1e-6


@dataclass
class TurnSignalConfig:
    """Per-side turn signal filtering configuration."""
    max_accel_g: float = 8.0
    max_gyro_dps: float = math.degrees(35.0)
    imbalance_ratio: float = 10.0
    imbalance_count: int = 3
    hampel_window: int = 31
    hampel_min_samples: int = 7
    hampel_threshold: float = 5.0
    lowpass_cutoff_hz: float = 6.0
    lowpass_min_dt_s: float = 0.01


@dataclass
class TurnDetectorConfig:
    """Turn detection hysteresis configuration."""
    min_on_threshold: float = 25.0
    adaptive_mad_factor: float = 2.5
    adaptive_capacity: int = 200
    adaptive_min_samples: int = 30
    start_hold_s: float = 0.15
    min_turn_spacing_s: float = 0.3
    min_off_threshold: float = 15.0
    off_peak_ratio: float = 0.35
    edge_exit_base_deg: float = 5.0
    edge_exit_margin_deg: float = 3.0
    end_hold_s: float = 0.2
    min_turn_duration_s: float = 0.4


@dataclass
class SessionConfig:
    """Ride session configuration supplied by the host."""
    sensor_mode: str = "single"
    primary_side: str = "left"
    record_raw: bool = False
    edge_history_s: float = 10.0
    raw_pair_tolerance_s: float = 0.02


@dataclass
class MonitoringConfig:
    """Ingest monitoring configuration."""
    window_size: int = 1000
    log_interval_s: float = 10.0


@dataclass
class Config:
    """Complete configuration for boot sensor processing."""
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    edge: EdgeAngleConfig = field(default_factory=EdgeAngleConfig)
    turn_signal: TurnSignalConfig = field(default_factory=TurnSignalConfig)
    detector: TurnDetectorConfig = field(default_factory=TurnDetectorConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file. If None, uses
            CARVING_CONFIG_PATH or the packaged default.

    Returns:
        Configuration object with all settings.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
    """
    if config_path is None:
        env_path = os.environ.get("CARVING_CONFIG_PATH")
        if env_path:
            config_path = env_path
        else:
            default_path = Path(__file__).parent.parent / "config" / "default.yaml"
            if default_path.exists():
                config_path = str(default_path)
            else:
                return Config()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return Config()

    return _build_config(data)


def _build_config(data: dict) -> Config:
    """Build Config object from dictionary."""
    session = SessionConfig(**data.get("session", {}))
    if session.sensor_mode not in ("single", "dual"):
        raise ValueError(f"Unknown sensor mode: {session.sensor_mode}")

    return Config(
        calibration=CalibrationConfig(**data.get("calibration", {})),
        edge=EdgeAngleConfig(**data.get("edge", {})),
        turn_signal=TurnSignalConfig(**data.get("turn_signal", {})),
        detector=TurnDetectorConfig(**data.get("detector", {})),
        session=session,
        monitoring=MonitoringConfig(**data.get("monitoring", {})),
    )
