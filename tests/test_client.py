"""
Tests for telemetry message routing and session control in the live client.
"""

import json

import pytest
from numpy.testing import assert_allclose

from drift_tracker.client import DriftTrackerClient
from drift_tracker.data_collector import DataCollector
from drift_tracker.model import SessionState


def sensors_message(gyro=None, gps=None, t=1.0):
    sensors = []
    if gyro is not None:
        sensors.append({"name": "gyro", "timestamp": t, "data": [gyro]})
    if gps is not None:
        sensors.append({"name": "gps", "timestamp": t, "data": list(gps)})
    return json.dumps({"message_type": "sensors", "sensors": sensors})


@pytest.fixture
def client(tmp_path):
    store = DataCollector(run_dir=str(tmp_path))
    return DriftTrackerClient("ws://localhost:8765", store)


class TestConstruction:
    @pytest.mark.parametrize("uri", ["", "http://localhost:8765", "localhost:8765"])
    def test_invalid_uri(self, tmp_path, uri):
        with pytest.raises(ValueError):
            DriftTrackerClient(uri, DataCollector(run_dir=str(tmp_path)))

    def test_invalid_mode(self, tmp_path):
        with pytest.raises(ValueError):
            DriftTrackerClient("ws://x", DataCollector(run_dir=str(tmp_path)), mode="race")


class TestMessageRouting:
    def test_gyro_feeds_estimator(self, client):
        client.parse_and_route_message(sensors_message(gyro=100.0))
        assert_allclose(client.engine.current_angle(), 1.0)

    def test_gps_sets_position(self, client):
        client.parse_and_route_message(sensors_message(gps=(46.0, 11.0, 5.0)))

        pos = client.engine.current_position()
        assert pos.latitude_deg == 46.0
        assert pos.longitude_deg == 11.0
        assert_allclose(pos.speed_kmh, 18.0)

    def test_gps_without_speed(self, client):
        client.parse_and_route_message(sensors_message(gps=(46.0, 11.0)))
        assert client.engine.current_position().speed_m_per_sec == 0.0

    def test_bytes_message(self, client):
        client.parse_and_route_message(sensors_message(gps=(1.0, 2.0)).encode("utf-8"))
        assert client.engine.current_position() is not None

    @pytest.mark.parametrize(
        "message",
        [
            "not json",
            json.dumps({"message_type": "sensors", "sensors": "oops"}),
            json.dumps({"message_type": "sensors", "sensors": [{"name": "gps", "data": ["a", "b"]}]}),
            json.dumps({"message_type": "heartbeat"}),
        ],
    )
    def test_malformed_or_unknown_messages_dropped(self, client, message):
        client.parse_and_route_message(message)
        assert client.engine.current_position() is None

    def test_consent_message(self, client):
        client.parse_and_route_message(json.dumps({"message_type": "consent", "granted": False}))
        assert not client.consent_granted


class TestSessionControl:
    def test_commands_drive_recording(self, client):
        client.parse_and_route_message(sensors_message(gps=(46.0, 11.0)))

        client.parse_and_route_message(json.dumps({"message_type": "command", "command": "start_reference"}))
        assert client.engine.state is SessionState.RECORDING_REFERENCE
        client.tick()

        client.parse_and_route_message(json.dumps({"message_type": "command", "command": "stop_reference"}))
        assert client.engine.state is SessionState.IDLE
        assert len(client.catalog.active_path()) == 1

        client.parse_and_route_message(json.dumps({"message_type": "command", "command": "start_drift"}))
        assert client.engine.state is SessionState.RECORDING_DRIFT

    def test_refused_start_is_logged_not_raised(self, client):
        assert client.start_recording("drift") is False
        assert client.engine.state is SessionState.IDLE

    def test_revoked_consent_blocks_drift(self, client):
        client.parse_and_route_message(sensors_message(gps=(46.0, 11.0)))
        client.start_recording("reference")
        client.tick()
        client.stop_recording()

        client.consent_granted = False
        assert client.start_recording("drift") is False

    def test_auto_start_waits_for_position(self, tmp_path):
        client = DriftTrackerClient(
            "ws://localhost:8765", DataCollector(run_dir=str(tmp_path)), mode="reference"
        )

        client.tick()
        assert client.engine.state is SessionState.IDLE

        client.parse_and_route_message(sensors_message(gps=(46.0, 11.0)))
        client.tick()
        assert client.engine.state is SessionState.RECORDING_REFERENCE
        assert client.mode is None

    def test_auto_start_store_failure_keeps_ticking(self, tmp_path):
        """A refused auto-start is logged and retried on the next tick."""

        class LockedCollector(DataCollector):
            locked = True

            def set_active_reference_path(self, path_id):
                if self.locked:
                    raise OSError("database locked")
                super().set_active_reference_path(path_id)

        store = LockedCollector(run_dir=str(tmp_path))
        client = DriftTrackerClient("ws://localhost:8765", store, mode="reference")
        client.parse_and_route_message(sensors_message(gps=(46.0, 11.0)))

        client.tick()
        client.tick()

        assert client.engine.state is SessionState.IDLE
        assert not client.should_stop
        assert store.list_reference_paths() == []

        store.locked = False
        client.tick()
        assert client.engine.state is SessionState.RECORDING_REFERENCE

    def test_duration_limit_stops(self, tmp_path):
        client = DriftTrackerClient(
            "ws://localhost:8765", DataCollector(run_dir=str(tmp_path)), duration=0.0
        )
        client.parse_and_route_message(sensors_message(gps=(46.0, 11.0)))
        client.start_recording("reference")

        client.tick()

        assert client.engine.state is SessionState.IDLE
        assert client.should_stop

    def test_stop_command(self, client):
        client.parse_and_route_message(json.dumps({"message_type": "command", "command": "stop"}))
        assert client.should_stop
