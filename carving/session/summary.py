"""Recording metrics computed from a finished run."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import numpy as np

from ..core.types import LocationSample, TurnDirection, TurnWindow
from ..processing.filters import BiquadFilter
from .records import RunRecord

EARTH_RADIUS_M = 6371000.0
EDGE_RATE_CUTOFF_HZ = 2.0


@dataclass
class RunSummary:
    """Metrics shown after a run."""
    max_speed: float                 # m/s
    average_speed: float             # m/s
    run_duration: float              # s
    distance: float                  # m
    turn_count: int
    average_turn_duration: float     # s
    max_edge: float                  # deg
    average_edge: float              # deg
    peak_left_edge: Optional[float]
    peak_right_edge: Optional[float]
    edge_sample_count: int
    edge_sample_rate: float          # Hz
    edge_rate: float                 # deg/s
    turn_symmetry: Optional[float]   # percent
    balance_score: Optional[float]   # 0..100

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return dict(self.__dict__)


def haversine_distance(track: Sequence[LocationSample]) -> float:
    """Great-circle length of a location track in meters."""
    if len(track) < 2:
        return 0.0
    lat = np.radians([p.latitude for p in track])
    lon = np.radians([p.longitude for p in track])
    dlat = np.diff(lat)
    dlon = np.diff(lon)
    a = np.sin(dlat / 2) ** 2 + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(dlon / 2) ** 2
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return float(np.sum(EARTH_RADIUS_M * c))


def smoothed_edge_rate(times: np.ndarray, edges: np.ndarray) -> float:
    """Mean |d edge / dt| of the biquad-smoothed edge history."""
    if len(times) < 3:
        return 0.0
    span = times[-1] - times[0]
    if span <= 0:
        return 0.0
    rate_hz = (len(times) - 1) / span
    cutoff = min(EDGE_RATE_CUTOFF_HZ, 0.45 * rate_hz)
    smoothed = BiquadFilter.lowpass(cutoff, rate_hz).filter_batch(edges - edges[0]) + edges[0]

    dt = np.diff(times)
    moving = dt > 0
    if not np.any(moving):
        return 0.0
    return float(np.mean(np.abs(np.diff(smoothed)[moving] / dt[moving])))


def _turn_symmetry(windows: List[TurnWindow]) -> Optional[float]:
    left = [w.peak_edge_angle for w in windows if w.direction is TurnDirection.LEFT]
    right = [w.peak_edge_angle for w in windows if w.direction is TurnDirection.RIGHT]
    if not left or not right:
        return None
    left_mean = float(np.mean(left))
    right_mean = float(np.mean(right))
    larger = max(left_mean, right_mean)
    if larger <= 0:
        return 100.0
    return 100.0 * min(left_mean, right_mean) / larger


def summarize_run(record: RunRecord) -> RunSummary:
    """Compute recording metrics for a run.

    Args:
        record: Finished run record.

    Returns:
        RunSummary. Symmetry needs turns in both directions and the
        balance score needs samples with both sides; otherwise they are
        None.
    """
    speeds = [p.speed for p in record.location_track if p.speed >= 0]
    edge_points = [(s.timestamp, s.combined) for s in record.edge_samples if s.combined is not None]

    if edge_points:
        times, edges = (np.array(column, dtype=np.float64) for column in zip(*edge_points))
    else:
        times = edges = np.zeros(0)

    if len(record.edge_samples) >= 2:
        duration = record.edge_samples[-1].timestamp - record.edge_samples[0].timestamp
    elif len(record.location_track) >= 2:
        duration = record.location_track[-1].timestamp - record.location_track[0].timestamp
    else:
        duration = 0.0

    left_angles = [s.left_angle for s in record.edge_samples if s.left_angle is not None]
    right_angles = [s.right_angle for s in record.edge_samples if s.right_angle is not None]
    paired = [
        abs(s.left_angle - s.right_angle)
        for s in record.edge_samples
        if s.left_angle is not None and s.right_angle is not None
    ]

    windows = record.turn_windows
    return RunSummary(
        max_speed=max(speeds, default=0.0),
        average_speed=float(np.mean(speeds)) if speeds else 0.0,
        run_duration=duration,
        distance=haversine_distance(record.location_track),
        turn_count=len(windows),
        average_turn_duration=float(np.mean([w.duration for w in windows])) if windows else 0.0,
        max_edge=float(np.max(edges)) if len(edges) else 0.0,
        average_edge=float(np.mean(edges)) if len(edges) else 0.0,
        peak_left_edge=max(left_angles, default=None),
        peak_right_edge=max(right_angles, default=None),
        edge_sample_count=len(record.edge_samples),
        edge_sample_rate=len(record.edge_samples) / duration if duration > 0 else 0.0,
        edge_rate=smoothed_edge_rate(times, edges),
        turn_symmetry=_turn_symmetry(windows),
        balance_score=max(0.0, 100.0 - float(np.mean(paired))) if paired else None,
    )


def turn_profile(window: TurnWindow) -> List[Tuple[float, float]]:
    """(progress percent, edge angle) pairs across a turn, for plotting."""
    duration = window.duration
    profile = []
    for sample in window.samples:
        if duration > 0:
            progress = (sample.timestamp - window.start_time) / duration * 100.0
        else:
            progress = 0.0
        profile.append((min(max(progress, 0.0), 100.0), sample.edge_angle))
    return profile
