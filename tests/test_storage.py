"""
Tests for the in-memory session store.
"""

import pytest

from drift_tracker.errors import InvalidState, NoReference
from drift_tracker.model import DriftPoint, ReferencePoint
from drift_tracker.storage import InMemorySessionStore


def drift_point(t=1.0, angle=0.0):
    return DriftPoint(t, 46.0, 11.0, angle, 0.0)


class TestReferencePaths:
    def test_create_append_close(self, store):
        store.create_reference_path("p1", "Lap", "Track", 10.0)
        store.append_reference_point("p1", ReferencePoint(11.0, 46.0, 11.0, 5.0))
        store.close_reference_path("p1", 12.0)

        stored = store.list_reference_paths()[0]
        assert len(stored) == 1
        assert stored.end_time == 12.0

    def test_duplicate_id_rejected(self, store):
        store.create_reference_path("p1", "Lap", "Track", 10.0)
        with pytest.raises(InvalidState):
            store.create_reference_path("p1", "Again", "Track", 11.0)

    def test_unknown_path(self, store):
        with pytest.raises(NoReference):
            store.append_reference_point("nope", ReferencePoint(1.0, 0.0, 0.0, 0.0))
        with pytest.raises(NoReference):
            store.set_active_reference_path("nope")

    def test_single_active(self, store):
        store.create_reference_path("a", "A", "T", 1.0)
        store.create_reference_path("b", "B", "T", 2.0)

        store.set_active_reference_path("a")
        store.set_active_reference_path("b")

        assert store.query_active_reference_path().id == "b"
        assert [p.id for p in store.list_reference_paths() if p.is_active] == ["b"]

        store.set_active_reference_path(None)
        assert store.query_active_reference_path() is None

    def test_rename_and_delete(self, store):
        store.create_reference_path("a", "A", "T", 1.0)
        store.rename_reference_path("a", "Renamed")
        assert store.list_reference_paths()[0].name == "Renamed"

        store.delete_reference_path("a")
        assert store.list_reference_paths() == []


class TestDriftSessions:
    def test_lifecycle(self, store):
        session = store.create_drift_session("Run", 100.0, "p1")
        store.append_drift_point(session.id, drift_point())
        store.close_drift_session(session.id, 110.0)

        fetched = store.get_drift_session(session.id)
        assert fetched.reference_path_id == "p1"
        assert len(fetched.points) == 1
        assert fetched.is_closed

    def test_closed_session_rejects_writes(self, store):
        session = store.create_drift_session("Run", 100.0)
        store.close_drift_session(session.id, 110.0)

        with pytest.raises(InvalidState):
            store.append_drift_point(session.id, drift_point())
        with pytest.raises(InvalidState):
            store.close_drift_session(session.id, 120.0)
        assert session.end_time == 110.0

    def test_list_newest_first(self, store):
        old = store.create_drift_session("Old", 100.0)
        new = store.create_drift_session("New", 200.0)
        assert store.list_drift_sessions() == [new, old]

    def test_rename_delete(self, store):
        session = store.create_drift_session("Run", 100.0)
        store.rename_drift_session(session.id, "Best run")
        assert store.get_drift_session(session.id).name == "Best run"

        store.delete_drift_session(session.id)
        assert store.get_drift_session(session.id) is None
        with pytest.raises(InvalidState):
            store.delete_drift_session(session.id)

    def test_bulk_delete(self):
        store = InMemorySessionStore()
        for start in (100.0, 200.0, 300.0):
            store.create_drift_session("Run", start)

        deleted = store.delete_drift_sessions(lambda s: s.start_time < 250.0)

        assert deleted == 2
        assert [s.start_time for s in store.list_drift_sessions()] == [300.0]
