"""Hysteresis state machine segmenting the turn signal into turns."""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Union
import numpy as np

from ..core.config import Config
from ..core.types import LocationSample, TurnDirection, TurnSample, TurnWindow

logger = logging.getLogger(__name__)


@dataclass
class Idle:
    """No turn in progress.

    start_candidate_time is set while the signal stays above the on
    threshold; onset holds the samples seen since then.
    """
    start_candidate_time: Optional[float] = None
    onset: List[TurnSample] = field(default_factory=list)


@dataclass
class InTurn:
    """Turn in progress.

    samples starts with the onset; onset_count is its length.
    """
    start_time: float
    peak_signal_magnitude: float
    samples: List[TurnSample]
    end_candidate_time: Optional[float] = None
    onset_count: int = 0


TurnState = Union[Idle, InTurn]


class TurnDetector:
    """Turns a signed turn signal into TurnWindow events.

    Idle -> InTurn when |signal| exceeds max(min_on_threshold,
    median + k * MAD of recent background values) for start_hold_s and
    the previous turn started at least min_turn_spacing_s earlier.
    InTurn -> Idle once |signal| and the combined edge angle both stay
    below their exit thresholds for end_hold_s. Turns shorter than
    min_turn_duration_s are dropped.
    """

    def __init__(self, config: Optional[Config] = None):
        """Initialize detector.

        Args:
            config: System configuration. Defaults to Config().
        """
        self._config = config if config is not None else Config()
        self._cfg = self._config.detector
        self._history: Deque[float] = deque(maxlen=self._cfg.adaptive_capacity)
        self._state: TurnState = Idle()
        self._windows: List[TurnWindow] = []
        self._last_turn_start: Optional[float] = None
        self.turn_count = 0
        self.discarded_count = 0
        self.latest_signal = 0.0
        self.latest_location: Optional[LocationSample] = None
        self._released: List[TurnSample] = []

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def in_turn(self) -> bool:
        return isinstance(self._state, InTurn)

    @property
    def windows(self) -> List[TurnWindow]:
        """Emitted windows in order."""
        return list(self._windows)

    def adaptive_threshold(self) -> float:
        """median + k * MAD of the background history, 0 until enough samples."""
        if len(self._history) < self._cfg.adaptive_min_samples:
            return 0.0
        values = np.fromiter(self._history, dtype=np.float64)
        median = float(np.median(values))
        mad = float(np.median(np.abs(values - median)))
        return median + self._cfg.adaptive_mad_factor * mad

    def turn_on_threshold(self) -> float:
        return max(self._cfg.min_on_threshold, self.adaptive_threshold())

    def note_location(self, location: LocationSample) -> None:
        """Remember the latest location fix for the next emitted window."""
        self.latest_location = location

    def take_released(self) -> List[TurnSample]:
        """Samples of the last closed turn that belong to no window.

        These are the exit hold of an emitted turn, or every sample of a
        discarded turn from the one that opened it. The sample that closed
        the turn is not included. Cleared by this call.
        """
        released, self._released = self._released, []
        return released

    def update(
        self,
        timestamp: float,
        signal: float,
        left_angle: Optional[float] = None,
        right_angle: Optional[float] = None,
    ) -> Optional[TurnWindow]:
        """Advance the state machine by one sample.

        Args:
            timestamp: Sample timestamp in seconds.
            signal: Signed turn signal.
            left_angle: Latest left edge angle, if known.
            right_angle: Latest right edge angle, if known.

        Returns:
            The TurnWindow finalized by this sample, if any.
        """
        self.latest_signal = signal
        sample = TurnSample(
            timestamp=timestamp,
            turn_signal=signal,
            left_angle=left_angle,
            right_angle=right_angle,
        )

        if isinstance(self._state, InTurn):
            return self._update_in_turn(self._state, sample)

        self._update_idle(self._state, sample)
        return None

    def _update_idle(self, idle: Idle, sample: TurnSample) -> None:
        magnitude = abs(sample.turn_signal)
        threshold = self.turn_on_threshold()

        if magnitude < self._cfg.min_on_threshold:
            self._history.append(magnitude)

        if magnitude <= threshold:
            idle.start_candidate_time = None
            idle.onset = []
            return

        if idle.start_candidate_time is None:
            idle.start_candidate_time = sample.timestamp
        idle.onset.append(sample)

        sustained = sample.timestamp - idle.start_candidate_time >= self._cfg.start_hold_s
        spaced = (
            self._last_turn_start is None
            or sample.timestamp - self._last_turn_start >= self._cfg.min_turn_spacing_s
        )
        if sustained and spaced:
            self.turn_count += 1
            self._last_turn_start = idle.start_candidate_time
            self._state = InTurn(
                start_time=idle.start_candidate_time,
                peak_signal_magnitude=magnitude,
                samples=idle.onset,
                onset_count=len(idle.onset),
            )
            logger.debug("Turn started at %.3f (threshold %.1f)", idle.start_candidate_time, threshold)

    def _update_in_turn(self, turn: InTurn, sample: TurnSample) -> Optional[TurnWindow]:
        cfg = self._cfg
        magnitude = abs(sample.turn_signal)
        turn.samples.append(sample)
        turn.peak_signal_magnitude = max(turn.peak_signal_magnitude, magnitude)

        off_threshold = max(cfg.min_off_threshold, cfg.off_peak_ratio * turn.peak_signal_magnitude)
        edge_exit_threshold = cfg.edge_exit_base_deg + cfg.edge_exit_margin_deg

        if magnitude < off_threshold and sample.edge_angle <= edge_exit_threshold:
            if turn.end_candidate_time is None:
                turn.end_candidate_time = sample.timestamp
            if sample.timestamp - turn.end_candidate_time >= cfg.end_hold_s:
                return self._finalize(turn)
        else:
            turn.end_candidate_time = None
        return None

    def _finalize(self, turn: InTurn) -> Optional[TurnWindow]:
        self._state = Idle()
        end_time = turn.end_candidate_time
        duration = end_time - turn.start_time

        # The closing sample is the last one and is left to the caller.
        if duration < self._cfg.min_turn_duration_s:
            self._released.extend(turn.samples[max(turn.onset_count - 1, 0):-1])
            self.turn_count -= 1
            self.discarded_count += 1
            logger.debug("Discarded %.0f ms turn at %.3f", duration * 1000, turn.start_time)
            return None

        samples = tuple(s for s in turn.samples if s.timestamp < end_time)
        self._released.extend(s for s in turn.samples[:-1] if s.timestamp >= end_time)
        mean_signal = float(np.mean([s.turn_signal for s in samples]))
        window = TurnWindow(
            index=len(self._windows) + 1,
            start_time=turn.start_time,
            end_time=end_time,
            direction=TurnDirection.from_signal(mean_signal),
            mean_turn_signal=mean_signal,
            peak_edge_angle=max(s.edge_angle for s in samples),
            samples=samples,
            location=self.latest_location,
        )
        self._windows.append(window)
        logger.info(
            "Turn %d: %s, %.2f s, peak edge %.1f deg",
            window.index, window.direction.value, window.duration, window.peak_edge_angle,
        )
        return window

    def reset(self) -> None:
        """Return to a freshly initialized detector."""
        self._history.clear()
        self._released = []
        self._state = Idle()
        self._windows = []
        self._last_turn_start = None
        self.turn_count = 0
        self.discarded_count = 0
        self.latest_signal = 0.0
        self.latest_location = None
