"""
Tests for CSV logging of recorded data.
"""

import csv

import pytest

from drift_tracker.catalog import ReferenceCatalog
from drift_tracker.data_collector import DataCollector
from drift_tracker.engine import DriftEngine

from .conftest import position


def read_rows(path):
    with open(path, newline="") as f:
        return list(csv.reader(f))


class TestRunDirectory:
    def test_explicit_run_dir(self, tmp_path):
        collector = DataCollector(run_dir=str(tmp_path / "run"))
        assert collector.run_dir == tmp_path / "run"

    def test_env_run_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RUN_DIR", str(tmp_path / "from_env"))
        collector = DataCollector(output_dir=str(tmp_path))
        assert collector.run_dir == tmp_path / "from_env"

    def test_timestamped_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RUN_DIR", raising=False)
        collector = DataCollector(output_dir=str(tmp_path))
        assert collector.run_dir.parent == tmp_path / "results"
        assert collector.run_dir.name.startswith("run_")

    def test_output_dir_must_be_directory(self, tmp_path):
        not_a_dir = tmp_path / "file.txt"
        not_a_dir.write_text("x")
        with pytest.raises(ValueError):
            DataCollector(output_dir=str(not_a_dir))


class TestCsvLogging:
    def test_headers_written(self, tmp_path):
        with DataCollector(run_dir=str(tmp_path)) as collector:
            pass

        assert read_rows(collector.reference_output_path)[0][0] == "path_id"
        assert read_rows(collector.drift_output_path)[0][4] == "drift_angle_deg"
        assert read_rows(collector.sessions_output_path)[0][-1] == "speed_at_max_angle_kmh"

    def test_full_run_logged(self, tmp_path, clock):
        with DataCollector(run_dir=str(tmp_path)) as collector:
            engine = DriftEngine(ReferenceCatalog(collector, clock=clock), collector, clock=clock)
            engine.on_position(position(speed=10.0))
            path = engine.start_reference_recording()
            engine.on_tick()
            engine.stop_reference_recording()

            session = engine.start_drift_recording()
            engine.estimator.predict(2.0, 1.0)
            engine.on_tick()
            engine.on_tick()
            engine.stop_drift_recording()

        reference_rows = read_rows(collector.reference_output_path)[1:]
        drift_rows = read_rows(collector.drift_output_path)[1:]
        session_rows = read_rows(collector.sessions_output_path)[1:]

        assert len(reference_rows) == 1
        assert reference_rows[0][0] == path.id
        assert len(drift_rows) == 2
        assert float(drift_rows[0][4]) == pytest.approx(2.0)
        assert float(drift_rows[0][5]) == pytest.approx(36.0)
        assert len(session_rows) == 1
        assert session_rows[0][0] == session.id
        assert session_rows[0][2] == path.id
        assert int(session_rows[0][5]) == 2

    def test_writes_before_setup_stay_in_memory(self, tmp_path, clock):
        collector = DataCollector(run_dir=str(tmp_path / "unused"))
        catalog = ReferenceCatalog(collector, clock=clock)
        path = catalog.start_recording()
        catalog.append_point(path, position(), 0.0, clock.now)

        assert len(collector.list_reference_paths()[0]) == 1
        assert not collector.run_dir.exists()
