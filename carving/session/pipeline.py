"""Host-facing ride pipeline: raw samples in, live values and turns out."""

import logging
from datetime import datetime
from typing import Dict, Optional

from ..calibration.boot_calibration import CalibrationEngine
from ..calibration.state import BootCalibration, CalibrationState
from ..calibration.store import CalibrationStore, InMemoryCalibrationStore
from ..core.config import Config
from ..core.types import LocationSample, SensorSample, SensorSide, TurnWindow
from ..monitoring.metrics import IngestMonitor
from ..processing.frame_transform import EdgeAngleSmoother, FrameTransform
from .aggregator import LiveTelemetry, SessionAggregator
from .assignment import SensorAssignment
from .records import RunRecord

logger = logging.getLogger(__name__)


class RidePipeline:
    """Wires calibration lookup, frame transform, smoothing and aggregation.

    One pipeline covers one run. Calibration captures go through
    `calibration`, which shares the pipeline's store.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        store: Optional[CalibrationStore] = None,
        assignment: Optional[SensorAssignment] = None,
    ):
        """Initialize pipeline.

        Args:
            config: System configuration. Defaults to Config().
            store: Calibration store. Defaults to an in-memory store.
            assignment: Side to sensor identity mapping.
        """
        self.config = config if config is not None else Config()
        self.store = store if store is not None else InMemoryCalibrationStore()
        self.assignment = assignment if assignment is not None else SensorAssignment()
        self.calibration = CalibrationEngine(self.store, self.config)

        self._transform = FrameTransform(self.config)
        self._smoother = EdgeAngleSmoother(self.config.edge.smoothing_alpha)
        self.aggregator = SessionAggregator(self.config)
        self.monitor = IngestMonitor(self.config)

    def calibration_for(self, side: SensorSide) -> CalibrationState:
        """Stored calibration of the sensor on a side, empty if unassigned."""
        identity = self.assignment.identity_for(side)
        if identity is None:
            return CalibrationState.empty()
        return self.store.get(identity)

    def on_sample(
        self,
        side: SensorSide,
        sample: SensorSample,
        timestamp: float,
        speed_mps: Optional[float] = None,
        location: Optional[LocationSample] = None,
    ) -> Optional[TurnWindow]:
        """Process one raw sample from a sensor.

        Args:
            side: Side that produced the sample.
            sample: Raw sample in g and deg/s.
            timestamp: Sample timestamp in seconds.
            speed_mps: Current speed, if known.
            location: Location fix received with the sample, if any.

        Returns:
            The TurnWindow completed by this sample, if any.
        """
        boot = self._transform.to_boot_frame(sample, self.calibration_for(side))
        angles = self._transform.compute_edge_angles(boot.accel)
        smoothed = self._smoother.update(side, angles)

        window = self.aggregator.ingest(
            boot,
            timestamp,
            edge_angle=smoothed.magnitude,
            side=side,
            speed_mps=speed_mps,
            location=location,
            signed_edge_angle=smoothed.signed,
            raw_sample=sample,
        )
        self.monitor.record(side, timestamp, self.aggregator.last_signal)
        return window

    def on_location(self, location: LocationSample) -> None:
        self.aggregator.ingest_location(location)

    def telemetry(self) -> LiveTelemetry:
        return self.aggregator.telemetry()

    def calibrations(self) -> Dict[str, BootCalibration]:
        """Boot calibrations of the assigned, calibrated sensors."""
        result = {}
        for identity in (self.assignment.left, self.assignment.right):
            if identity is None:
                continue
            calibration = self.store.get(identity).to_boot_calibration()
            if calibration is not None:
                result[identity] = calibration
        return result

    def finish(
        self,
        run_number: int = 1,
        date: Optional[datetime] = None,
        name: Optional[str] = None,
    ) -> RunRecord:
        """Close the run and return its record."""
        for side in self.monitor.sides:
            stats = self.monitor.get_stats(side)
            logger.info(
                "Ingest %s: %d samples, %d duplicates, %d rejected, %.1f Hz",
                side.value, stats.total_samples, stats.duplicates, stats.rejected,
                stats.effective_rate_hz,
            )
        return self.aggregator.finish(
            run_number=run_number,
            date=date,
            name=name,
            calibrations=self.calibrations(),
        )
