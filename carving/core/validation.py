"""Per-sample plausibility checks for the turn signal."""

import numpy as np

from .types import BootFrameSample, ValidationResult
from .config import Config


class SampleValidator:
    """Validates boot-frame samples before they contribute to the turn signal."""

    def __init__(self, config: Config):
        """Initialize validator with configuration.

        Args:
            config: System configuration with validity thresholds.
        """
        self._config = config

    def validate(self, sample: BootFrameSample) -> ValidationResult:
        """Validate one boot-frame sample.

        Args:
            sample: Sample to check.

        Returns:
            ValidationResult with validation status and any errors.
        """
        result = ValidationResult(is_valid=True)

        values = np.concatenate([sample.accel, sample.gyro])
        if not np.all(np.isfinite(values)):
            result.add_error("Non-finite value in sample")
            return result

        self._check_accelerometer(sample, result)
        self._check_gyroscope(sample, result)
        return result

    def _check_accelerometer(self, sample: BootFrameSample, result: ValidationResult) -> None:
        limit = self._config.turn_signal.max_accel_g
        acc_mag = sample.accel_magnitude
        if acc_mag > limit:
            result.add_error(f"Acceleration out of range: {acc_mag:.2f} g > {limit:.2f} g")

    def _check_gyroscope(self, sample: BootFrameSample, result: ValidationResult) -> None:
        limit = self._config.turn_signal.max_gyro_dps
        gyr_mag = sample.gyro_magnitude
        if gyr_mag > limit:
            result.add_error(f"Angular rate out of range: {gyr_mag:.1f} deg/s > {limit:.1f} deg/s")
