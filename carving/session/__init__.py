"""Ride session aggregation and run records."""

from .assignment import SensorAssignment
from .aggregator import LiveTelemetry, RawSampleLog, SessionAggregator
from .pipeline import RidePipeline
from .records import RunRecord, next_run_number, format_timestamp, parse_timestamp
from .summary import RunSummary, summarize_run, turn_profile, haversine_distance

__all__ = [
    "SensorAssignment",
    "LiveTelemetry",
    "RawSampleLog",
    "SessionAggregator",
    "RidePipeline",
    "RunRecord",
    "next_run_number",
    "format_timestamp",
    "parse_timestamp",
    "RunSummary",
    "summarize_run",
    "turn_profile",
    "haversine_distance",
]
