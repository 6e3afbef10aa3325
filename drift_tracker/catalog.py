"""Reference path catalog.

Owns every ReferencePath and enforces that at most one of them is active.
The active path is the one drift sessions are measured against; a newly
recorded path becomes active immediately.
"""

import logging
import threading
import time
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .config import REFERENCE_NAME_FORMAT, UNKNOWN_LOCATION
from .errors import NoReference, PersistenceError
from .model import PositionSample, ReferencePoint
from .path import ReferencePath
from .storage import SessionStore

logger = logging.getLogger(__name__)


class ReferenceCatalog:
    """Collection of reference paths with a single active pointer.

    Structural changes (create, activate, rename, delete) are written to the
    storage collaborator first and applied in memory only once the store
    accepted them, so a failed store call leaves the catalog unchanged.
    Recorded points and closing a path are applied in memory first. Store
    failures of create, activate, append and close surface as
    ``PersistenceError``. The activation flags are flipped under one lock,
    so readers never see two active paths.

    Attributes:
        store: Storage collaborator receiving every mutation.
    """

    def __init__(self, store: SessionStore, clock: Callable[[], float] = time.time) -> None:
        """Initialize the catalog and load existing paths from the store.

        Args:
            store: Storage collaborator.
            clock: Time source used when callers do not pass a timestamp.
        """
        self.store = store
        self._clock = clock
        self._lock = threading.RLock()
        self._paths: Dict[str, ReferencePath] = {}
        self._active_id: Optional[str] = None

        for stored in store.list_reference_paths():
            path = ReferencePath(
                id=stored.id,
                name=stored.name,
                location_label=stored.location_label,
                start_time=stored.start_time,
                is_active=stored.is_active,
            )
            for point in stored.points:
                path.append_point(
                    point.latitude_deg, point.longitude_deg, point.angle_deg, point.timestamp
                )
            path.end_time = stored.end_time
            self._paths[path.id] = path
            if path.is_active:
                self._active_id = path.id

        if self._paths:
            logger.info(f"Loaded {len(self._paths)} reference path(s) from store")

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, path: ReferencePath) -> bool:
        return self._paths.get(path.id) is path

    def _require(self, path: ReferencePath) -> ReferencePath:
        if path not in self:
            raise NoReference(f"Reference path {path.id} is not in the catalog")
        return path

    def get(self, path_id: str) -> ReferencePath:
        """Look up a path by id.

        Raises:
            NoReference: If no path has this id.
        """
        try:
            return self._paths[path_id]
        except KeyError:
            raise NoReference(f"Unknown reference path: {path_id}") from None

    def paths(self) -> List[ReferencePath]:
        """All paths, most recently started first."""
        with self._lock:
            return sorted(self._paths.values(), key=lambda p: p.start_time, reverse=True)

    def active_path(self) -> Optional[ReferencePath]:
        """The active path, or None."""
        with self._lock:
            if self._active_id is None:
                return None
            return self._paths[self._active_id]

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def start_recording(
        self,
        label: Optional[str] = None,
        timestamp: Optional[float] = None,
        name: Optional[str] = None,
    ) -> ReferencePath:
        """Create a new path and make it the active one.

        Args:
            label: Location label (defaults to "Unknown Location").
            timestamp: Start time (defaults to the catalog clock).
            name: Display name (defaults to "Reference Session <date time>").

        Returns:
            The new, active, open path.

        Raises:
            PersistenceError: If the store rejected the path or its
                activation. The path is removed from the store again and the
                catalog is unchanged.
        """
        start_time = self._clock() if timestamp is None else timestamp
        if name is None:
            name = datetime.fromtimestamp(start_time).strftime(REFERENCE_NAME_FORMAT)

        path = ReferencePath(
            id=uuid.uuid4().hex,
            name=name,
            location_label=label or UNKNOWN_LOCATION,
            start_time=start_time,
        )

        with self._lock:
            try:
                self.store.create_reference_path(
                    path.id, path.name, path.location_label, path.start_time
                )
            except Exception as e:
                raise PersistenceError(f"Failed to create reference path: {e}", path) from e

            try:
                self.store.set_active_reference_path(path.id)
            except Exception as e:
                self._discard_stored(path)
                raise PersistenceError(f"Failed to activate reference path: {e}", path) from e

            self._paths[path.id] = path
            self._activate_in_memory(path)

        logger.info(f"Started reference path '{path.name}' ({path.location_label})")
        return path

    def append_point(
        self, path: ReferencePath, position: PositionSample, angle: float, timestamp: float
    ) -> ReferencePoint:
        """Record one sample on ``path`` and hand it to the store.

        The point is kept in memory even if the store rejects it, so matching
        keeps working while persistence is down.

        Raises:
            NoReference: If the path was deleted from the catalog.
            InvalidState: If the path is closed.
            PersistenceError: If the store rejected the point (``record`` is
                the point, already appended in memory).
        """
        with self._lock:
            self._require(path)
            point = path.append_point(
                position.latitude_deg, position.longitude_deg, angle, timestamp
            )
        try:
            self.store.append_reference_point(path.id, point)
        except Exception as e:
            raise PersistenceError(f"Failed to store reference point: {e}", point) from e
        return point

    def stop_recording(self, path: ReferencePath, timestamp: Optional[float] = None) -> None:
        """Close ``path``. It stays active until replaced or deactivated.

        Raises:
            InvalidState: If the path is already closed.
            PersistenceError: If the store rejected the close (the path is
                closed in memory regardless).
        """
        end_time = self._clock() if timestamp is None else timestamp
        with self._lock:
            self._require(path)
            path.close(end_time)
            try:
                self.store.close_reference_path(path.id, end_time)
            except Exception as e:
                raise PersistenceError(f"Failed to close reference path: {e}", path) from e
        logger.info(f"Closed reference path '{path.name}' with {len(path)} points")

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def set_active(self, path: ReferencePath) -> None:
        """Make ``path`` the only active path.

        Raises:
            NoReference: If the path is not in the catalog.
            PersistenceError: If the store rejected the activation (the
                previous active path stays active).
        """
        with self._lock:
            self._require(path)
            if self._active_id == path.id:
                return
            try:
                self.store.set_active_reference_path(path.id)
            except Exception as e:
                raise PersistenceError(f"Failed to activate reference path: {e}", path) from e
            self._activate_in_memory(path)

    def _activate_in_memory(self, path: ReferencePath) -> None:
        previous = self.active_path()
        if previous is not None:
            previous.is_active = False
        path.is_active = True
        self._active_id = path.id
        logger.debug(f"Active reference path is now '{path.name}'")

    def _discard_stored(self, path: ReferencePath) -> None:
        # Roll back a create whose activation failed
        try:
            self.store.delete_reference_path(path.id)
        except Exception as e:
            logger.error(f"Failed to remove unactivated reference path {path.id}: {e}")

    def deactivate(self) -> None:
        """Leave the catalog with no active path."""
        with self._lock:
            if self._active_id is None:
                return
            self.store.set_active_reference_path(None)
            self._paths[self._active_id].is_active = False
            self._active_id = None

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def rename(self, path: ReferencePath, name: str) -> None:
        with self._lock:
            self._require(path)
            self.store.rename_reference_path(path.id, name)
            path.name = name

    def delete(self, path: ReferencePath) -> Optional[ReferencePath]:
        """Delete ``path``.

        If it was active, the remaining path with the latest start time
        becomes active (on equal start times the later-created one wins), or
        no path is active when none remain.

        Returns:
            The active path after deletion, or None.
        """
        with self._lock:
            self._require(path)
            self.store.delete_reference_path(path.id)
            del self._paths[path.id]

            if self._active_id == path.id:
                path.is_active = False
                self._active_id = None
                successor = None
                # dicts keep insertion order, so max() over (start_time, index)
                # prefers the later-created path on a tie
                ordered = list(self._paths.values())
                if ordered:
                    _, idx = max((p.start_time, i) for i, p in enumerate(ordered))
                    successor = ordered[idx]
                self.store.set_active_reference_path(successor.id if successor else None)
                if successor is not None:
                    successor.is_active = True
                    self._active_id = successor.id

            logger.info(f"Deleted reference path '{path.name}'")
            return self.active_path()
