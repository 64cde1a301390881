"""Run record produced at the end of a ride session and its JSON codec.

Timestamps are encoded as ISO-8601 UTC strings with millisecond
fractional seconds. Decoding also accepts timestamps without fractional
seconds. List fields missing from older records decode as empty.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..calibration.state import BootCalibration
from ..core.types import (
    BackgroundSample,
    EdgeSample,
    LocationSample,
    RawSampleRecord,
    SensorMode,
    SensorSample,
    TurnDirection,
    TurnSample,
    TurnWindow,
)


def format_datetime(moment: datetime) -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2024-01-05T09:30:00.250Z.

    Naive datetimes are taken as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_timestamp(timestamp: float) -> str:
    """Unix seconds to an ISO-8601 UTC string."""
    return format_datetime(datetime.fromtimestamp(timestamp, tz=timezone.utc))


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string, with or without fractional seconds.

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp.
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        moment = datetime.strptime(text, "%Y-%m-%dT%H:%M:%S%z")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def parse_timestamp(value: str) -> float:
    """ISO-8601 string to Unix seconds."""
    return parse_datetime(value).timestamp()


def _optional(value: Optional[float]) -> Optional[float]:
    return None if value is None else float(value)


def _location_to_dict(location: LocationSample) -> dict:
    return {
        "timestamp": format_timestamp(location.timestamp),
        "latitude": location.latitude,
        "longitude": location.longitude,
        "altitude": location.altitude,
        "speed": location.speed,
        "horizontalAccuracy": location.horizontal_accuracy,
    }


def _location_from_dict(data: dict) -> LocationSample:
    return LocationSample(
        timestamp=parse_timestamp(data["timestamp"]),
        latitude=float(data["latitude"]),
        longitude=float(data["longitude"]),
        altitude=float(data.get("altitude", 0.0)),
        speed=float(data.get("speed", 0.0)),
        horizontal_accuracy=float(data.get("horizontalAccuracy", 0.0)),
    )


def _turn_sample_to_dict(sample: TurnSample) -> dict:
    return {
        "timestamp": format_timestamp(sample.timestamp),
        "turnSignal": sample.turn_signal,
        "leftAngle": sample.left_angle,
        "rightAngle": sample.right_angle,
    }


def _turn_sample_from_dict(data: dict) -> TurnSample:
    return TurnSample(
        timestamp=parse_timestamp(data["timestamp"]),
        turn_signal=float(data.get("turnSignal", 0.0)),
        left_angle=_optional(data.get("leftAngle")),
        right_angle=_optional(data.get("rightAngle")),
    )


def window_to_dict(window: TurnWindow) -> dict:
    """Convert a turn window to a JSON-ready dictionary."""
    return {
        "index": window.index,
        "startTime": format_timestamp(window.start_time),
        "endTime": format_timestamp(window.end_time),
        "direction": window.direction.value,
        "meanTurnSignal": window.mean_turn_signal,
        "peakEdgeAngle": window.peak_edge_angle,
        "samples": [_turn_sample_to_dict(s) for s in window.samples],
        "location": None if window.location is None else _location_to_dict(window.location),
    }


def window_from_dict(data: dict) -> TurnWindow:
    location = data.get("location")
    return TurnWindow(
        index=int(data["index"]),
        start_time=parse_timestamp(data["startTime"]),
        end_time=parse_timestamp(data["endTime"]),
        direction=TurnDirection(data.get("direction", TurnDirection.UNKNOWN.value)),
        mean_turn_signal=float(data.get("meanTurnSignal", 0.0)),
        peak_edge_angle=float(data.get("peakEdgeAngle", 0.0)),
        samples=tuple(_turn_sample_from_dict(s) for s in data.get("samples", [])),
        location=None if location is None else _location_from_dict(location),
    )


def _edge_to_dict(sample: EdgeSample) -> dict:
    return {
        "timestamp": format_timestamp(sample.timestamp),
        "leftAngle": sample.left_angle,
        "rightAngle": sample.right_angle,
    }


def _edge_from_dict(data: dict) -> EdgeSample:
    return EdgeSample(
        timestamp=parse_timestamp(data["timestamp"]),
        left_angle=_optional(data.get("leftAngle")),
        right_angle=_optional(data.get("rightAngle")),
    )


def _raw_to_dict(record: RawSampleRecord) -> dict:
    return {
        "timestamp": format_timestamp(record.timestamp),
        "left": None if record.left is None else record.left.to_dict(),
        "right": None if record.right is None else record.right.to_dict(),
    }


def _raw_from_dict(data: dict) -> RawSampleRecord:
    left = data.get("left")
    right = data.get("right")
    return RawSampleRecord(
        timestamp=parse_timestamp(data["timestamp"]),
        left=None if left is None else SensorSample.from_dict(left),
        right=None if right is None else SensorSample.from_dict(right),
    )


@dataclass
class RunRecord:
    """Everything recorded during one run."""
    date: datetime
    run_number: int
    sensor_mode: SensorMode = SensorMode.SINGLE
    name: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    turn_windows: List[TurnWindow] = field(default_factory=list)
    background_samples: List[BackgroundSample] = field(default_factory=list)
    location_track: List[LocationSample] = field(default_factory=list)
    edge_samples: List[EdgeSample] = field(default_factory=list)
    raw_samples: List[RawSampleRecord] = field(default_factory=list)
    calibration: Dict[str, BootCalibration] = field(default_factory=dict)

    @property
    def title(self) -> str:
        """Display name, "Run N" when unnamed."""
        return self.name or f"Run {self.run_number}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "date": format_datetime(self.date),
            "runNumber": self.run_number,
            "name": self.name,
            "sensorMode": self.sensor_mode.value,
            "turnWindows": [window_to_dict(w) for w in self.turn_windows],
            "backgroundSamples": [
                {"timestamp": format_timestamp(s.timestamp), "edgeAngle": s.edge_angle}
                for s in self.background_samples
            ],
            "locationTrack": [_location_to_dict(l) for l in self.location_track],
            "edgeSamples": [_edge_to_dict(s) for s in self.edge_samples],
            "rawSamples": [_raw_to_dict(r) for r in self.raw_samples],
            "calibration": {sensor_id: c.to_dict() for sensor_id, c in self.calibration.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RunRecord":
        """Create from dictionary.

        Raises:
            KeyError: If date or runNumber is missing.
            ValueError: If a timestamp cannot be parsed.
        """
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            date=parse_datetime(data["date"]),
            run_number=int(data["runNumber"]),
            name=data.get("name"),
            sensor_mode=SensorMode(data.get("sensorMode", SensorMode.SINGLE.value)),
            turn_windows=[window_from_dict(w) for w in data.get("turnWindows", [])],
            background_samples=[
                BackgroundSample(
                    timestamp=parse_timestamp(s["timestamp"]),
                    edge_angle=float(s.get("edgeAngle", 0.0)),
                )
                for s in data.get("backgroundSamples", [])
            ],
            location_track=[_location_from_dict(l) for l in data.get("locationTrack", [])],
            edge_samples=[_edge_from_dict(s) for s in data.get("edgeSamples", [])],
            raw_samples=[_raw_from_dict(r) for r in data.get("rawSamples", [])],
            calibration={
                sensor_id: BootCalibration.from_dict(c)
                for sensor_id, c in data.get("calibration", {}).items()
            },
        )

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "RunRecord":
        return cls.from_dict(json.loads(text))


def next_run_number(runs: Iterable[RunRecord], date: datetime) -> int:
    """Run number for a new run: one more than the highest on the same day."""
    day = date.date()
    same_day = [run.run_number for run in runs if run.date.date() == day]
    return max(same_day, default=0) + 1
