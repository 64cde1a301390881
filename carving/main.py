#!/usr/bin/env python3
"""Replay a recorded sensor stream through the ride pipeline.

Reads CSV rows `timestamp,side,ax,ay,az,gx,gy,gz`, prints every
detected turn window as a JSON line on stdout and the final run record
as JSON at the end. Sensor identities are the side names, so a
calibration file maps "left", "right" or "single" to a boot
calibration.
"""

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Iterator, Optional, Tuple

from .calibration.state import BootCalibration, CalibrationState
from .calibration.store import InMemoryCalibrationStore
from .core.config import Config, load_config
from .core.types import SensorSample, SensorSide
from .session.assignment import SensorAssignment
from .session.pipeline import RidePipeline
from .session.records import window_to_dict

logger = logging.getLogger(__name__)

SampleRow = Tuple[float, SensorSide, SensorSample]


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: If True, set DEBUG level; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def read_samples(path: str, si_units: bool = False) -> Iterator[SampleRow]:
    """Yield (timestamp, side, sample) rows from a CSV file.

    A first row starting with "timestamp" is treated as a header.

    Raises:
        ValueError: On a malformed row.
    """
    with open(path, "r", encoding="utf-8", newline="") as f:
        for line_number, row in enumerate(csv.reader(f), start=1):
            if not row or (line_number == 1 and row[0].strip().lower() == "timestamp"):
                continue
            if len(row) != 8:
                raise ValueError(f"line {line_number}: expected 8 columns, got {len(row)}")
            try:
                timestamp = float(row[0])
                side = SensorSide(row[1].strip().lower())
                values = [float(v) for v in row[2:]]
            except ValueError as e:
                raise ValueError(f"line {line_number}: {e}") from e
            factory = SensorSample.from_si if si_units else SensorSample
            yield timestamp, side, factory(*values)


def load_calibrations(path: str) -> InMemoryCalibrationStore:
    """Load a JSON object mapping sensor identity to boot calibration."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Calibration file must contain a JSON object")
    return InMemoryCalibrationStore({
        identity: CalibrationState.from_boot_calibration(BootCalibration.from_dict(entry))
        for identity, entry in data.items()
    })


def build_assignment(config: Config) -> SensorAssignment:
    assignment = SensorAssignment()
    if config.session.sensor_mode == "dual":
        assignment.assign(SensorSide.LEFT, SensorSide.LEFT.value)
        assignment.assign(SensorSide.RIGHT, SensorSide.RIGHT.value)
    else:
        assignment.assign(SensorSide.SINGLE, SensorSide.SINGLE.value)
    return assignment


def run_replay(
    config: Config,
    input_path: str,
    calibration_path: Optional[str] = None,
    si_units: bool = False,
) -> int:
    """Replay a CSV file through the pipeline.

    Args:
        config: System configuration.
        input_path: CSV sample file.
        calibration_path: Optional calibration JSON file.
        si_units: If True, input is in m/s^2 and rad/s.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    if not Path(input_path).exists():
        logger.error("Input file not found: %s", input_path)
        return 1

    try:
        store = load_calibrations(calibration_path) if calibration_path else None
    except (OSError, ValueError) as e:
        logger.error("Failed to load calibration: %s", e)
        return 1

    pipeline = RidePipeline(config, store=store, assignment=build_assignment(config))
    logger.info("Replaying %s in %s mode", input_path, config.session.sensor_mode)

    try:
        for timestamp, side, sample in read_samples(input_path, si_units):
            window = pipeline.on_sample(side, sample, timestamp)
            if window is not None:
                print(json.dumps(window_to_dict(window), sort_keys=True), flush=True)
    except ValueError as e:
        logger.error("Invalid input: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")

    record = pipeline.finish()
    print(record.to_json(), flush=True)
    return 0


def main(argv: Optional[list] = None) -> int:
    """Application entry point.

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        description="Replay boot sensor samples and detect carving turns"
    )
    parser.add_argument("input", help="CSV file with timestamp,side,ax,ay,az,gx,gy,gz rows")
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--calibration",
        type=str,
        default=None,
        help="JSON file mapping sensor identity to boot calibration",
    )
    parser.add_argument(
        "--si",
        action="store_true",
        help="Input is in m/s^2 and rad/s instead of g and deg/s",
    )
    parser.add_argument(
        "--dual",
        action="store_true",
        help="Two sensors, one per boot",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Include the raw sample log in the run record",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose)

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        logger.error("Configuration error: %s", e)
        return 1
    except Exception as e:
        logger.error("Failed to load configuration: %s", e)
        return 1

    if args.dual:
        config.session.sensor_mode = "dual"
    if args.raw:
        config.session.record_raw = True

    return run_replay(
        config,
        args.input,
        calibration_path=args.calibration,
        si_units=args.si,
    )


if __name__ == "__main__":
    sys.exit(main())
