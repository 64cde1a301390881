"""Ingest statistics for the sensor sample streams."""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional
import numpy as np

from ..core.config import Config
from ..core.types import SensorSide, TurnSignal

logger = logging.getLogger(__name__)


@dataclass
class SideCounters:
    """Running counters of one side."""
    dt_history: Deque[float]
    total_samples: int = 0
    duplicates: int = 0
    rejected: int = 0
    last_timestamp: Optional[float] = None


@dataclass
class IngestStats:
    """Aggregated ingest statistics of one side."""
    total_samples: int
    duplicates: int
    rejected: int
    mean_dt_ms: float
    std_dt_ms: float
    max_dt_ms: float
    effective_rate_hz: float

    @property
    def rejection_rate(self) -> float:
        """Fraction of processed samples rejected as invalid."""
        processed = self.total_samples - self.duplicates
        if processed <= 0:
            return 0.0
        return self.rejected / processed

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_samples": self.total_samples,
            "duplicates": self.duplicates,
            "rejected": self.rejected,
            "mean_dt_ms": self.mean_dt_ms,
            "std_dt_ms": self.std_dt_ms,
            "max_dt_ms": self.max_dt_ms,
            "effective_rate_hz": self.effective_rate_hz,
            "rejection_rate": self.rejection_rate,
        }


class IngestMonitor:
    """Tracks per-side sample rate, duplicates and rejections.

    All timing comes from sample timestamps, so replayed sessions report
    the same statistics as live ones. A summary is logged every
    log_interval_s of sample time.
    """

    def __init__(self, config: Optional[Config] = None):
        """Initialize ingest monitor.

        Args:
            config: System configuration with monitoring settings.
        """
        self._config = config if config is not None else Config()
        self._mon_cfg = self._config.monitoring
        self._sides: Dict[SensorSide, SideCounters] = {}
        self._last_log_time: Optional[float] = None

    def _counters(self, side: SensorSide) -> SideCounters:
        counters = self._sides.get(side)
        if counters is None:
            counters = SideCounters(dt_history=deque(maxlen=self._mon_cfg.window_size))
            self._sides[side] = counters
        return counters

    def record(self, side: SensorSide, timestamp: float, signal: Optional[TurnSignal]) -> None:
        """Record the outcome of one sample.

        Args:
            side: Side that produced the sample.
            timestamp: Sample timestamp in seconds.
            signal: Turn signal result; None for a duplicate timestamp.
        """
        counters = self._counters(side)
        counters.total_samples += 1

        if signal is None:
            counters.duplicates += 1
        else:
            if not signal.is_valid:
                counters.rejected += 1
            if counters.last_timestamp is not None:
                counters.dt_history.append((timestamp - counters.last_timestamp) * 1000)
            counters.last_timestamp = timestamp

        self._maybe_log_stats(timestamp)

    def _maybe_log_stats(self, timestamp: float) -> None:
        """Log statistics periodically."""
        if self._last_log_time is None:
            self._last_log_time = timestamp
            return

        if timestamp - self._last_log_time >= self._mon_cfg.log_interval_s:
            for side in self.sides:
                stats = self.get_stats(side)
                logger.info(
                    "Ingest %s: rate=%.1f Hz, dt=%.2f+/-%.2f ms, duplicates=%d, rejected=%d",
                    side.value,
                    stats.effective_rate_hz,
                    stats.mean_dt_ms,
                    stats.std_dt_ms,
                    stats.duplicates,
                    stats.rejected,
                )
            self._last_log_time = timestamp

    @property
    def sides(self) -> list:
        """Sides seen so far."""
        return list(self._sides)

    def get_stats(self, side: SensorSide) -> IngestStats:
        """Get aggregated statistics of one side.

        Returns:
            IngestStats, all zero for a side with no samples.
        """
        counters = self._sides.get(side)
        if counters is None:
            return IngestStats(0, 0, 0, 0.0, 0.0, 0.0, 0.0)

        if not counters.dt_history:
            return IngestStats(
                total_samples=counters.total_samples,
                duplicates=counters.duplicates,
                rejected=counters.rejected,
                mean_dt_ms=0.0,
                std_dt_ms=0.0,
                max_dt_ms=0.0,
                effective_rate_hz=0.0,
            )

        dt_array = np.array(counters.dt_history)
        mean_dt = float(np.mean(dt_array))

        return IngestStats(
            total_samples=counters.total_samples,
            duplicates=counters.duplicates,
            rejected=counters.rejected,
            mean_dt_ms=mean_dt,
            std_dt_ms=float(np.std(dt_array)),
            max_dt_ms=float(np.max(dt_array)),
            effective_rate_hz=1000.0 / mean_dt if mean_dt > 0 else 0.0,
        )

    def to_dict(self) -> dict:
        return {side.value: self.get_stats(side).to_dict() for side in self.sides}

    def reset(self) -> None:
        """Reset all statistics."""
        self._sides.clear()
        self._last_log_time = None
