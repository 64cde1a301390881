"""Monitoring module for sensor ingest."""

from .metrics import IngestMonitor, IngestStats

__all__ = ["IngestMonitor", "IngestStats"]
