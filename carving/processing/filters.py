"""Streaming filters for the turn signal and edge history."""

import math
from collections import deque
from typing import Deque, Optional, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray
from scipy import signal


class HampelFilter:
    """Rolling-window outlier rejection.

    A value further than threshold * MAD from the window median is
    replaced by that median. Inactive until min_samples are buffered.
    """

    def __init__(self, window: int = 31, min_samples: int = 7, threshold: float = 5.0):
        """Initialize filter.

        Args:
            window: Rolling window capacity.
            min_samples: Samples required before filtering starts.
            threshold: Rejection threshold in MAD units.
        """
        self.threshold = threshold
        self.min_samples = min_samples
        self._window: Deque[float] = deque(maxlen=window)

    def update(self, value: float) -> float:
        """Add a value and return it, or the local median if it is an outlier."""
        self._window.append(value)
        if len(self._window) < self.min_samples:
            return value

        values = np.fromiter(self._window, dtype=np.float64)
        median = float(np.median(values))
        mad = float(np.median(np.abs(values - median)))

        if abs(value - median) > self.threshold * mad:
            return median
        return value

    def __len__(self) -> int:
        return len(self._window)

    def reset(self) -> None:
        self._window.clear()


class LowPassFilter:
    """First-order low-pass filter driven by sample timestamps.

    alpha = dt / (RC + dt) with RC = 1 / (2 pi fc). dt is floored at
    min_dt_s so bursts of closely spaced samples stay stable.
    """

    def __init__(self, cutoff_hz: float = 6.0, min_dt_s: float = 0.01):
        self.rc = 1.0 / (2.0 * math.pi * cutoff_hz)
        self.min_dt_s = min_dt_s
        self._value: Optional[float] = None
        self._last_timestamp: Optional[float] = None

    def update(self, value: float, timestamp: float) -> float:
        """Filter one value observed at timestamp (seconds)."""
        if self._value is None or self._last_timestamp is None:
            self._value = value
        else:
            dt = max(timestamp - self._last_timestamp, self.min_dt_s)
            alpha = dt / (self.rc + dt)
            self._value = self._value + alpha * (value - self._value)
        self._last_timestamp = timestamp
        return self._value

    @property
    def value(self) -> Optional[float]:
        return self._value

    def reset(self) -> None:
        self._value = None
        self._last_timestamp = None


class BiquadFilter:
    """Second-order IIR section (transposed direct form II)."""

    def __init__(self, b0: float = 1.0, b1: float = 0.0, b2: float = 0.0,
                 a1: float = 0.0, a2: float = 0.0):
        self.b0 = b0
        self.b1 = b1
        self.b2 = b2
        self.a1 = a1
        self.a2 = a2
        self._z1 = 0.0
        self._z2 = 0.0

    @classmethod
    def lowpass(cls, cutoff_hz: float, sample_rate_hz: float, q: float = 0.707) -> "BiquadFilter":
        """Design a low-pass section with the RBJ cookbook formulas.

        Args:
            cutoff_hz: Cutoff frequency.
            sample_rate_hz: Sampling rate.
            q: Quality factor (0.707 for Butterworth response).

        Returns:
            Normalized filter with zeroed state.
        """
        omega = 2.0 * math.pi * (cutoff_hz / sample_rate_hz)
        sin_omega = math.sin(omega)
        cos_omega = math.cos(omega)
        alpha = sin_omega / (2.0 * q)

        a0 = 1.0 + alpha
        return cls(
            b0=(1.0 - cos_omega) * 0.5 / a0,
            b1=(1.0 - cos_omega) / a0,
            b2=(1.0 - cos_omega) * 0.5 / a0,
            a1=-2.0 * cos_omega / a0,
            a2=(1.0 - alpha) / a0,
        )

    def coefficients(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Return (b, a) arrays in scipy.signal convention."""
        b = np.array([self.b0, self.b1, self.b2])
        a = np.array([1.0, self.a1, self.a2])
        return b, a

    def update(self, sample: float) -> float:
        """Filter one sample."""
        result = sample * self.b0 + self._z1
        self._z1 = sample * self.b1 + self._z2 - self.a1 * result
        self._z2 = sample * self.b2 - self.a2 * result
        return result

    def filter_batch(self, samples: Sequence[float]) -> NDArray[np.float64]:
        """Filter a whole sequence from zero state without touching stream state."""
        b, a = self.coefficients()
        return signal.lfilter(b, a, np.asarray(samples, dtype=np.float64))

    def reset(self) -> None:
        self._z1 = 0.0
        self._z2 = 0.0
