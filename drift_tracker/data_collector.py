"""Data collection and CSV logging for drift tracking runs.

This module provides a session store that also logs, per run:
- Reference points (position, heading) of every reference path recorded
- Drift points (position, drift angle, speed) of every drift session
- One summary row per drift session when it is closed
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import RESULTS_DIR, TERM_BLUE, TERM_RESET
from .model import DriftPoint, ReferencePoint
from .storage import InMemorySessionStore
from .summary import summarize

logger = logging.getLogger(__name__)


class DataCollector(InMemorySessionStore):
    """In-memory session store that mirrors recorded data to CSV files.

    The in-memory store stays authoritative; CSV files are an append-only
    log for post-run analysis. Writes before ``setup()`` (or after
    ``cleanup()``) only reach memory.

    Attributes:
        run_dir: Directory path for this run's output files.
        reference_output_path: CSV of reference points.
        drift_output_path: CSV of drift points.
        sessions_output_path: CSV of closed drift session summaries.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        super().__init__()

        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        # CSV file handles
        self.reference_csv_file: Optional[TextIO] = None
        self.reference_csv_writer: Any = None
        self.drift_csv_file: Optional[TextIO] = None
        self.drift_csv_writer: Any = None
        self.sessions_csv_file: Optional[TextIO] = None
        self.sessions_csv_writer: Any = None

        # Determine run directory
        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / RESULTS_DIR / f"run_{timestamp}"

        self.reference_output_path: Path = self.run_dir / "reference_points.csv"
        self.drift_output_path: Path = self.run_dir / "drift_points.csv"
        self.sessions_output_path: Path = self.run_dir / "drift_sessions.csv"

    def setup(self) -> None:
        """Create the run directory and open CSV files with headers."""
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.reference_csv_file = open(self.reference_output_path, "w", newline="")
        self.reference_csv_writer = csv.writer(self.reference_csv_file)
        self.reference_csv_writer.writerow(
            ["path_id", "timestamp", "latitude", "longitude", "angle_deg"]
        )
        self.reference_csv_file.flush()

        self.drift_csv_file = open(self.drift_output_path, "w", newline="")
        self.drift_csv_writer = csv.writer(self.drift_csv_file)
        self.drift_csv_writer.writerow(
            ["session_id", "timestamp", "latitude", "longitude", "drift_angle_deg", "speed_kmh"]
        )
        self.drift_csv_file.flush()

        self.sessions_csv_file = open(self.sessions_output_path, "w", newline="")
        self.sessions_csv_writer = csv.writer(self.sessions_csv_file)
        self.sessions_csv_writer.writerow(
            [
                "session_id",
                "name",
                "reference_path_id",
                "start_time",
                "end_time",
                "point_count",
                "max_angle_deg",
                "mean_angle_deg",
                "max_speed_kmh",
                "mean_speed_kmh",
                "speed_at_max_angle_kmh",
            ]
        )
        self.sessions_csv_file.flush()

        logger.info(f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}/{TERM_RESET}")

    def append_reference_point(self, path_id: str, point: ReferencePoint) -> None:
        super().append_reference_point(path_id, point)
        if self.reference_csv_file:
            self.reference_csv_writer.writerow(
                [path_id, point.timestamp, point.latitude_deg, point.longitude_deg, point.angle_deg]
            )
            self.reference_csv_file.flush()

    def append_drift_point(self, session_id: str, point: DriftPoint) -> None:
        super().append_drift_point(session_id, point)
        if self.drift_csv_file:
            self.drift_csv_writer.writerow(
                [
                    session_id,
                    point.timestamp,
                    point.latitude_deg,
                    point.longitude_deg,
                    point.drift_angle_deg,
                    point.speed_kmh,
                ]
            )
            self.drift_csv_file.flush()

    def close_drift_session(self, session_id: str, end_time: float) -> None:
        super().close_drift_session(session_id, end_time)
        session = self.get_drift_session(session_id)
        if self.sessions_csv_file and session is not None:
            summary = summarize(session)
            self.sessions_csv_writer.writerow(
                [
                    session.id,
                    session.name,
                    session.reference_path_id or "",
                    session.start_time,
                    session.end_time,
                    summary.point_count,
                    summary.max_angle,
                    summary.mean_angle,
                    summary.max_speed_kmh,
                    summary.mean_speed_kmh,
                    summary.speed_at_max_angle,
                ]
            )
            self.sessions_csv_file.flush()

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        for handle in (self.reference_csv_file, self.drift_csv_file, self.sessions_csv_file):
            if handle:
                handle.close()
        self.reference_csv_file = None
        self.drift_csv_file = None
        self.sessions_csv_file = None

        logger.info(f"{TERM_BLUE}✓ Saved session data to {self.run_dir}/{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
