"""Session-level aggregation of one or two boot sensors."""

import logging
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

import numpy as np

from ..calibration.state import BootCalibration
from ..core.config import Config
from ..core.types import (
    BackgroundSample,
    BootFrameSample,
    EdgeSample,
    LocationSample,
    RawSampleRecord,
    SensorMode,
    SensorSample,
    SensorSide,
    TurnSignal,
    TurnWindow,
    combine_edges,
)
from ..processing.frame_transform import FrameTransform
from ..processing.turn_detector import TurnDetector
from ..processing.turn_signal import TurnSignalProcessor
from .records import RunRecord

logger = logging.getLogger(__name__)


def slot_for(side: SensorSide) -> SensorSide:
    """Left/right slot of a side; a single sensor is stored as left."""
    return SensorSide.LEFT if side is SensorSide.SINGLE else side


@dataclass(frozen=True)
class LiveTelemetry:
    """Snapshot of the values shown while riding."""
    left_edge: Optional[float]
    right_edge: Optional[float]
    left_signed_edge: Optional[float]
    right_signed_edge: Optional[float]
    combined_edge: Optional[float]
    peak_edge: float            # over the live history, deg
    edge_rate: float            # deg/s over the live history
    edge_delta: Optional[float]  # left - right, deg
    speed: float                # m/s
    turn_count: int
    turn_signal: float
    pitch: float
    roll: float
    accel_g: float

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "left_edge": self.left_edge,
            "right_edge": self.right_edge,
            "left_signed_edge": self.left_signed_edge,
            "right_signed_edge": self.right_signed_edge,
            "combined_edge": self.combined_edge,
            "peak_edge": self.peak_edge,
            "edge_rate": self.edge_rate,
            "edge_delta": self.edge_delta,
            "speed": self.speed,
            "turn_count": self.turn_count,
            "turn_signal": self.turn_signal,
            "pitch": self.pitch,
            "roll": self.roll,
            "accel_g": self.accel_g,
        }


class RawSampleLog:
    """Full-resolution raw samples with left and right paired by timestamp.

    Records still missing one side stay open for pairing. A sample fills
    the open record whose timestamp is closest to its own, if that is
    within tolerance_s; otherwise it starts a new open record. At most
    max_open records are kept open, so sides arriving in bursts still
    pair up.
    """

    def __init__(self, tolerance_s: float = 0.02, max_open: int = 64):
        self.tolerance_s = tolerance_s
        self._records: List[RawSampleRecord] = []
        self._open: Deque[int] = deque(maxlen=max_open)

    def add(self, side: SensorSide, timestamp: float, sample: SensorSample) -> None:
        slot = slot_for(side).value
        best = None
        best_gap = 0.0
        for index in self._open:
            record = self._records[index]
            if getattr(record, slot) is not None:
                continue
            gap = abs(timestamp - record.timestamp)
            if gap <= self.tolerance_s and (best is None or gap < best_gap):
                best = index
                best_gap = gap

        if best is not None:
            self._records[best] = replace(self._records[best], **{slot: sample})
            self._open.remove(best)
            return

        self._records.append(RawSampleRecord(timestamp=timestamp, **{slot: sample}))
        self._open.append(len(self._records) - 1)

    @property
    def records(self) -> List[RawSampleRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)


class SessionAggregator:
    """Merges per-side samples into live state, turn events and a run record.

    Every side passes through its own TurnSignalProcessor state; only the
    primary side drives the shared TurnDetector. Calls must be serialized
    by the host.
    """

    def __init__(self, config: Optional[Config] = None):
        """Initialize aggregator.

        Args:
            config: System configuration. Defaults to Config().
        """
        self._config = config if config is not None else Config()
        self._cfg = self._config.session
        self.mode = SensorMode(self._cfg.sensor_mode)
        self.primary_side = slot_for(SensorSide(self._cfg.primary_side))

        self.processor = TurnSignalProcessor(self._config, mode=self.mode)
        self.detector = TurnDetector(self._config)

        self._edges: Dict[SensorSide, float] = {}
        self._signed_edges: Dict[SensorSide, float] = {}
        self._live_history: Deque[EdgeSample] = deque()
        self._edge_samples: List[EdgeSample] = []
        self._background: List[BackgroundSample] = []
        self._location_track: List[LocationSample] = []
        self._raw_log: Optional[RawSampleLog] = (
            RawSampleLog(self._cfg.raw_pair_tolerance_s) if self._cfg.record_raw else None
        )

        self.speed = 0.0
        self.pitch = 0.0
        self.roll = 0.0
        self.accel_g = 0.0
        self.last_signal: Optional[TurnSignal] = None

    def ingest(
        self,
        sample: BootFrameSample,
        timestamp: float,
        edge_angle: float,
        side: SensorSide,
        speed_mps: Optional[float] = None,
        location: Optional[LocationSample] = None,
        signed_edge_angle: Optional[float] = None,
        raw_sample: Optional[SensorSample] = None,
    ) -> Optional[TurnWindow]:
        """Ingest one boot-frame sample of one side.

        Args:
            sample: Boot-frame sample.
            timestamp: Sample timestamp in seconds.
            edge_angle: Smoothed edge angle magnitude of this side, deg.
            side: Side that produced the sample.
            speed_mps: Current speed, if known.
            location: Location fix received with the sample, if any.
            signed_edge_angle: Smoothed signed edge angle, deg.
            raw_sample: Raw sample for the raw log.

        Returns:
            The TurnWindow completed by this sample, if any.
        """
        slot = slot_for(side)
        self._edges[slot] = edge_angle
        if signed_edge_angle is not None:
            self._signed_edges[slot] = signed_edge_angle

        edge_sample = EdgeSample(
            timestamp=timestamp,
            left_angle=self._edges.get(SensorSide.LEFT),
            right_angle=self._edges.get(SensorSide.RIGHT),
        )
        self._edge_samples.append(edge_sample)
        self._live_history.append(edge_sample)
        self._prune_history(timestamp)

        if speed_mps is not None:
            self.speed = speed_mps
        if location is not None:
            self.ingest_location(location)
        if self._raw_log is not None and raw_sample is not None:
            self._raw_log.add(side, timestamp, raw_sample)

        is_primary = slot is self.primary_side
        if is_primary:
            angles = FrameTransform.compute_edge_angles(sample.accel)
            self.pitch = angles.pitch
            self.roll = angles.roll
            self.accel_g = sample.accel_magnitude

        signal = self.processor.process(sample, side, timestamp)
        self.last_signal = signal
        if signal is None or not is_primary:
            return None

        window = None
        if signal.is_valid:
            window = self.detector.update(
                timestamp,
                signal.value,
                left_angle=edge_sample.left_angle,
                right_angle=edge_sample.right_angle,
            )
            self._background.extend(
                BackgroundSample(timestamp=s.timestamp, edge_angle=s.edge_angle)
                for s in self.detector.take_released()
            )

        if not self.detector.in_turn:
            combined = edge_sample.combined
            self._background.append(BackgroundSample(
                timestamp=timestamp,
                edge_angle=0.0 if combined is None else combined,
            ))
        return window

    def _prune_history(self, now: float) -> None:
        horizon = self._cfg.edge_history_s
        while self._live_history and now - self._live_history[0].timestamp > horizon:
            self._live_history.popleft()

    def ingest_location(self, location: LocationSample) -> None:
        """Append a location fix to the track."""
        self._location_track.append(location)
        self.detector.note_location(location)
        if location.speed >= 0:
            self.speed = location.speed

    @property
    def combined_edge(self) -> Optional[float]:
        return combine_edges(self._edges.get(SensorSide.LEFT), self._edges.get(SensorSide.RIGHT))

    @property
    def live_history(self) -> List[EdgeSample]:
        return list(self._live_history)

    @property
    def edge_samples(self) -> List[EdgeSample]:
        return list(self._edge_samples)

    @property
    def background_samples(self) -> List[BackgroundSample]:
        return list(self._background)

    @property
    def location_track(self) -> List[LocationSample]:
        return list(self._location_track)

    @property
    def raw_samples(self) -> List[RawSampleRecord]:
        return [] if self._raw_log is None else self._raw_log.records

    @property
    def turn_windows(self) -> List[TurnWindow]:
        return self.detector.windows

    def _live_edge_rate(self) -> float:
        points = [(s.timestamp, s.combined) for s in self._live_history if s.combined is not None]
        if len(points) < 2:
            return 0.0
        times, edges = np.array(points, dtype=np.float64).T
        dt = np.diff(times)
        moving = dt > 0
        if not np.any(moving):
            return 0.0
        return float(np.mean(np.abs(np.diff(edges)[moving] / dt[moving])))

    def telemetry(self) -> LiveTelemetry:
        """Current live values."""
        left = self._edges.get(SensorSide.LEFT)
        right = self._edges.get(SensorSide.RIGHT)
        history = [s.combined for s in self._live_history if s.combined is not None]
        return LiveTelemetry(
            left_edge=left,
            right_edge=right,
            left_signed_edge=self._signed_edges.get(SensorSide.LEFT),
            right_signed_edge=self._signed_edges.get(SensorSide.RIGHT),
            combined_edge=combine_edges(left, right),
            peak_edge=max(history, default=0.0),
            edge_rate=self._live_edge_rate(),
            edge_delta=None if left is None or right is None else left - right,
            speed=self.speed,
            turn_count=self.detector.turn_count,
            turn_signal=self.detector.latest_signal,
            pitch=self.pitch,
            roll=self.roll,
            accel_g=self.accel_g,
        )

    def finish(
        self,
        run_number: int = 1,
        date: Optional[datetime] = None,
        name: Optional[str] = None,
        calibrations: Optional[Dict[str, BootCalibration]] = None,
    ) -> RunRecord:
        """Assemble the run record at session end.

        Args:
            run_number: Run number within the day.
            date: Run date. Defaults to now (UTC).
            name: Optional run name.
            calibrations: Boot calibration per sensor identity.

        Returns:
            RunRecord with everything recorded so far.
        """
        record = RunRecord(
            date=date if date is not None else datetime.now(timezone.utc),
            run_number=run_number,
            name=name,
            sensor_mode=self.mode,
            turn_windows=self.turn_windows,
            background_samples=self.background_samples,
            location_track=self.location_track,
            edge_samples=self.edge_samples,
            raw_samples=self.raw_samples,
            calibration=dict(calibrations or {}),
        )
        logger.info(
            "Run %d finished: %d turns, %d edge samples, %d raw records",
            run_number, len(record.turn_windows), len(record.edge_samples), len(record.raw_samples),
        )
        return record
