"""Tests for run summary metrics."""

from datetime import datetime, timezone
import pytest

from carving.core.types import (
    EdgeSample,
    LocationSample,
    TurnDirection,
    TurnSample,
    TurnWindow,
)
from carving.session import RunRecord, haversine_distance, summarize_run, turn_profile


def make_record(**fields) -> RunRecord:
    return RunRecord(date=datetime(2024, 1, 5, tzinfo=timezone.utc), run_number=1, **fields)


def window(index, direction, peak, start=0.0, end=1.0, samples=()) -> TurnWindow:
    return TurnWindow(
        index=index,
        start_time=start,
        end_time=end,
        direction=direction,
        mean_turn_signal=0.0,
        peak_edge_angle=peak,
        samples=tuple(samples),
    )


class TestDistance:
    """Tests for haversine_distance."""

    def test_one_degree_of_longitude(self):
        """One degree on the equator is about 111.2 km."""
        track = [LocationSample(0.0, 0.0, 0.0), LocationSample(1.0, 0.0, 1.0)]
        assert haversine_distance(track) == pytest.approx(111195.0, rel=1e-3)

    def test_short_track(self):
        """Fewer than two fixes cover no distance."""
        assert haversine_distance([]) == 0.0
        assert haversine_distance([LocationSample(0.0, 46.0, 7.0)]) == 0.0


class TestSummarizeRun:
    """Tests for summarize_run."""

    def test_empty_record(self):
        """An empty run summarizes to zeros."""
        summary = summarize_run(make_record())

        assert summary.turn_count == 0
        assert summary.run_duration == 0.0
        assert summary.edge_rate == 0.0
        assert summary.turn_symmetry is None
        assert summary.balance_score is None

    def test_speed_and_duration_from_track(self):
        """Without edge samples the track gives the duration."""
        track = [
            LocationSample(0.0, 46.0, 7.0, speed=10.0),
            LocationSample(30.0, 46.001, 7.0, speed=20.0),
        ]
        summary = summarize_run(make_record(location_track=track))

        assert summary.max_speed == pytest.approx(20.0)
        assert summary.average_speed == pytest.approx(15.0)
        assert summary.run_duration == pytest.approx(30.0)
        assert summary.distance == pytest.approx(111.2, rel=1e-2)

    def test_turn_symmetry(self):
        """Symmetry compares mean peak edge of left and right turns."""
        windows = [
            window(1, TurnDirection.LEFT, 20.0),
            window(2, TurnDirection.RIGHT, 40.0),
            window(3, TurnDirection.RIGHT, 40.0, end=2.0),
        ]
        summary = summarize_run(make_record(turn_windows=windows))

        assert summary.turn_count == 3
        assert summary.turn_symmetry == pytest.approx(50.0)
        assert summary.average_turn_duration == pytest.approx(4.0 / 3.0)

    def test_one_sided_turns_have_no_symmetry(self):
        """Symmetry needs turns in both directions."""
        summary = summarize_run(make_record(turn_windows=[window(1, TurnDirection.LEFT, 20.0)]))
        assert summary.turn_symmetry is None

    def test_balance_score(self):
        """Balance drops by the mean left/right difference."""
        samples = [EdgeSample(i * 0.01, 10.0, 14.0) for i in range(50)]
        summary = summarize_run(make_record(edge_samples=samples))

        assert summary.balance_score == pytest.approx(96.0)
        assert summary.peak_left_edge == pytest.approx(10.0)
        assert summary.peak_right_edge == pytest.approx(14.0)
        assert summary.average_edge == pytest.approx(12.0)

    def test_edge_rate_of_ramp(self):
        """A 10 deg/s ramp gives an edge rate near 10 after smoothing."""
        samples = [EdgeSample(i / 100, left_angle=10.0 * i / 100) for i in range(1000)]
        summary = summarize_run(make_record(edge_samples=samples))

        assert summary.edge_rate == pytest.approx(10.0, rel=0.05)
        assert summary.edge_sample_count == 1000
        assert summary.edge_sample_rate == pytest.approx(100.0, rel=0.01)
        assert summary.max_edge == pytest.approx(99.9)

    def test_to_dict(self):
        """The summary serializes to plain values."""
        data = summarize_run(make_record()).to_dict()
        assert data["turn_count"] == 0
        assert "balance_score" in data


def test_turn_profile():
    """Samples map to progress through the turn."""
    samples = [
        TurnSample(1.0, 30.0, left_angle=10.0),
        TurnSample(1.5, 40.0, left_angle=20.0, right_angle=30.0),
        TurnSample(2.0, 30.0),
    ]
    profile = turn_profile(window(1, TurnDirection.RIGHT, 25.0, start=1.0, end=2.0, samples=samples))

    assert profile == [(0.0, 10.0), (50.0, 25.0), (100.0, 0.0)]
