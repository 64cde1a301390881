"""Tests for streaming signal filters."""

import math
import pytest
import numpy as np

from carving.processing import BiquadFilter, HampelFilter, LowPassFilter


class TestHampelFilter:
    """Tests for HampelFilter."""

    def test_single_outlier_replaced(self):
        """Only the outlier in a smooth window is replaced by the median."""
        values = np.arange(31) * 0.1
        values[20] = 1000.0
        hampel = HampelFilter(window=31, min_samples=7, threshold=5.0)

        outputs = np.array([hampel.update(v) for v in values])

        assert outputs[20] == pytest.approx(1.0)
        others = np.arange(31) != 20
        np.testing.assert_array_equal(outputs[others], values[others])

    def test_inactive_below_min_samples(self):
        """Fewer than min_samples buffered values pass through."""
        hampel = HampelFilter(window=31, min_samples=7)
        outputs = [hampel.update(v) for v in (1.0, 1.1, 1.2, 500.0)]

        assert outputs[-1] == 500.0

    def test_zero_mad_replaces_any_deviation(self):
        """A constant window has zero MAD, so any change counts as an outlier."""
        hampel = HampelFilter()
        for _ in range(10):
            hampel.update(5.0)

        assert hampel.update(5.1) == pytest.approx(5.0)

    def test_window_capacity(self):
        """The window holds at most its capacity."""
        hampel = HampelFilter(window=31)
        for i in range(100):
            hampel.update(float(i))
        assert len(hampel) == 31

        hampel.reset()
        assert len(hampel) == 0


class TestLowPassFilter:
    """Tests for the timestamp-driven first-order low-pass."""

    def test_first_value_initializes(self):
        """The first value is returned unchanged."""
        lowpass = LowPassFilter(cutoff_hz=6.0)
        assert lowpass.update(12.0, 0.0) == 12.0

    def test_alpha_from_elapsed_time(self):
        """alpha = dt / (RC + dt)."""
        lowpass = LowPassFilter(cutoff_hz=6.0)
        lowpass.update(0.0, 0.0)
        value = lowpass.update(1.0, 0.02)

        rc = 1.0 / (2.0 * math.pi * 6.0)
        assert value == pytest.approx(0.02 / (rc + 0.02))

    def test_dt_floor(self):
        """Intervals below 10 ms are treated as 10 ms."""
        fast = LowPassFilter(cutoff_hz=6.0)
        fast.update(0.0, 0.0)
        floored = LowPassFilter(cutoff_hz=6.0)
        floored.update(0.0, 0.0)

        assert fast.update(1.0, 0.001) == pytest.approx(floored.update(1.0, 0.01))

    def test_reset(self):
        """Reset clears the state."""
        lowpass = LowPassFilter()
        lowpass.update(3.0, 0.0)
        lowpass.reset()
        assert lowpass.value is None


class TestBiquadFilter:
    """Tests for the RBJ biquad low-pass."""

    def test_step_response_settles(self):
        """A unit step settles near 1."""
        biquad = BiquadFilter.lowpass(5.0, 100.0)
        output = 0.0
        for _ in range(200):
            output = biquad.update(1.0)

        assert 0.9 <= output <= 1.1

    def test_zero_input_stays_zero(self):
        """Zero in, zero out."""
        biquad = BiquadFilter.lowpass(5.0, 100.0)
        outputs = [biquad.update(0.0) for _ in range(50)]
        assert all(o == 0.0 for o in outputs)

    def test_batch_matches_streaming(self, rng):
        """filter_batch gives the same result as repeated update()."""
        samples = rng.normal(0.0, 1.0, 100)
        biquad = BiquadFilter.lowpass(2.0, 50.0)

        batch = biquad.filter_batch(samples)
        streamed = [biquad.update(s) for s in samples]

        np.testing.assert_allclose(batch, streamed, atol=1e-12)

    def test_unity_dc_gain(self):
        """Low-pass coefficients have unity gain at DC."""
        b, a = BiquadFilter.lowpass(3.0, 100.0).coefficients()
        assert np.sum(b) / np.sum(a) == pytest.approx(1.0)
