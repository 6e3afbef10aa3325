"""Session storage collaborator.

The engine hands every recorded reference point and drift point to a
storage collaborator and never reads them back during a tick, except for the
active reference path which the catalog caches in memory. ``SessionStore``
is the interface the engine depends on; ``InMemorySessionStore`` is the
default implementation and the base of the CSV-logging ``DataCollector``.
"""

import logging
import threading
import uuid
from typing import Callable, Dict, List, Optional, Protocol

from .errors import InvalidState, NoReference
from .model import DriftPoint, DriftSession, ReferencePoint
from .path import ReferencePath

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Operations the engine issues against persistent storage.

    All calls are synchronous from the engine's point of view and either
    commit or raise.
    """

    def create_reference_path(
        self, path_id: str, name: str, location_label: str, start_time: float
    ) -> None: ...

    def append_reference_point(self, path_id: str, point: ReferencePoint) -> None: ...

    def close_reference_path(self, path_id: str, end_time: float) -> None: ...

    def set_active_reference_path(self, path_id: Optional[str]) -> None: ...

    def query_active_reference_path(self) -> Optional[ReferencePath]: ...

    def list_reference_paths(self) -> List[ReferencePath]: ...

    def rename_reference_path(self, path_id: str, name: str) -> None: ...

    def delete_reference_path(self, path_id: str) -> None: ...

    def create_drift_session(
        self, name: str, start_time: float, reference_path_id: Optional[str] = None
    ) -> DriftSession: ...

    def append_drift_point(self, session_id: str, point: DriftPoint) -> None: ...

    def close_drift_session(self, session_id: str, end_time: float) -> None: ...

    def get_drift_session(self, session_id: str) -> Optional[DriftSession]: ...

    def list_drift_sessions(self) -> List[DriftSession]: ...

    def rename_drift_session(self, session_id: str, name: str) -> None: ...

    def delete_drift_session(self, session_id: str) -> None: ...

    def delete_drift_sessions(self, predicate: Callable[[DriftSession], bool]) -> int: ...


class InMemorySessionStore:
    """Dictionary-backed ``SessionStore``.

    Keeps its own copies of reference paths, independent of the catalog's
    instances, so the catalog can be rebuilt from the store. Access is
    guarded by a lock because the tick and the UI may call in from different
    threads.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._reference_paths: Dict[str, ReferencePath] = {}
        self._drift_sessions: Dict[str, DriftSession] = {}

    # ------------------------------------------------------------------
    # Reference paths
    # ------------------------------------------------------------------

    def _reference(self, path_id: str) -> ReferencePath:
        try:
            return self._reference_paths[path_id]
        except KeyError:
            raise NoReference(f"Unknown reference path: {path_id}") from None

    def create_reference_path(
        self, path_id: str, name: str, location_label: str, start_time: float
    ) -> None:
        with self._lock:
            if path_id in self._reference_paths:
                raise InvalidState(f"Reference path {path_id} already exists")
            self._reference_paths[path_id] = ReferencePath(
                id=path_id, name=name, location_label=location_label, start_time=start_time
            )

    def append_reference_point(self, path_id: str, point: ReferencePoint) -> None:
        with self._lock:
            self._reference(path_id).append_point(
                point.latitude_deg, point.longitude_deg, point.angle_deg, point.timestamp
            )

    def close_reference_path(self, path_id: str, end_time: float) -> None:
        with self._lock:
            self._reference(path_id).close(end_time)

    def set_active_reference_path(self, path_id: Optional[str]) -> None:
        """Activate one path (or none) and deactivate all others in one step."""
        with self._lock:
            if path_id is not None:
                self._reference(path_id)
            for stored in self._reference_paths.values():
                stored.is_active = stored.id == path_id

    def query_active_reference_path(self) -> Optional[ReferencePath]:
        with self._lock:
            for stored in self._reference_paths.values():
                if stored.is_active:
                    return stored
            return None

    def list_reference_paths(self) -> List[ReferencePath]:
        with self._lock:
            return list(self._reference_paths.values())

    def rename_reference_path(self, path_id: str, name: str) -> None:
        with self._lock:
            self._reference(path_id).name = name

    def delete_reference_path(self, path_id: str) -> None:
        with self._lock:
            self._reference(path_id)
            del self._reference_paths[path_id]

    # ------------------------------------------------------------------
    # Drift sessions
    # ------------------------------------------------------------------

    def _drift(self, session_id: str) -> DriftSession:
        try:
            return self._drift_sessions[session_id]
        except KeyError:
            raise InvalidState(f"Unknown drift session: {session_id}") from None

    def create_drift_session(
        self, name: str, start_time: float, reference_path_id: Optional[str] = None
    ) -> DriftSession:
        with self._lock:
            session = DriftSession(
                id=uuid.uuid4().hex,
                name=name,
                start_time=start_time,
                reference_path_id=reference_path_id,
            )
            self._drift_sessions[session.id] = session
            return session

    def append_drift_point(self, session_id: str, point: DriftPoint) -> None:
        with self._lock:
            session = self._drift(session_id)
            if session.is_closed:
                raise InvalidState(f"Drift session {session_id} is closed")
            session.points.append(point)

    def close_drift_session(self, session_id: str, end_time: float) -> None:
        with self._lock:
            session = self._drift(session_id)
            if session.is_closed:
                raise InvalidState(f"Drift session {session_id} is already closed")
            session.end_time = end_time

    def get_drift_session(self, session_id: str) -> Optional[DriftSession]:
        with self._lock:
            return self._drift_sessions.get(session_id)

    def list_drift_sessions(self) -> List[DriftSession]:
        """All drift sessions, most recent first."""
        with self._lock:
            return sorted(
                self._drift_sessions.values(), key=lambda s: s.start_time, reverse=True
            )

    def rename_drift_session(self, session_id: str, name: str) -> None:
        with self._lock:
            self._drift(session_id).name = name

    def delete_drift_session(self, session_id: str) -> None:
        with self._lock:
            self._drift(session_id)
            del self._drift_sessions[session_id]

    def delete_drift_sessions(self, predicate: Callable[[DriftSession], bool]) -> int:
        """Delete every drift session matching ``predicate``.

        Returns:
            Number of sessions deleted.
        """
        with self._lock:
            doomed = [sid for sid, s in self._drift_sessions.items() if predicate(s)]
            for sid in doomed:
                del self._drift_sessions[sid]
            if doomed:
                logger.info(f"Deleted {len(doomed)} drift session(s)")
            return len(doomed)
