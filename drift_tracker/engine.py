"""Drift engine: ties sensing, reference matching and recording together.

The engine consumes two independent streams:
- Angular rate (~100 Hz): integrated into the heading estimate immediately
- Position fixes (irregular): the last one received is the current position

and a fixed-period tick (~10 Hz) that records either a reference point or a
drift point depending on the session state. The tick reads the latest
available estimate and position; it never waits for fresh data.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from . import config as default_config
from .catalog import ReferenceCatalog
from .errors import (
    ConsentRequired,
    DriftTrackerError,
    InvalidTransition,
    NoReference,
    PersistenceError,
    PositionUnavailable,
    TooFarFromReference,
)
from .estimator import AngleEstimator
from .model import (
    AngleSample,
    DriftPoint,
    DriftSession,
    PositionSample,
    ReferencePoint,
    SessionState,
)
from .path import ReferencePath
from .session import SessionStateMachine
from .storage import SessionStore

logger = logging.getLogger(__name__)


def _consent_granted() -> bool:
    return True


class DriftEngine:
    """Real-time drift tracking engine.

    Owns the angle estimator, the session state and the per-session angle
    offset. One re-entrant lock serializes gyro prediction, ticks and
    start/stop calls, which may arrive from different threads (sensor
    callback, timer, UI).

    Store writes of a tick run while that lock is held. This keeps a stop
    ordered after any point already being written, but in a threaded
    embedding a gyro callback can wait for the store (e.g. the
    DataCollector's CSV flush). Use a store whose appends are cheap, or feed
    gyro samples from the same thread as the tick, as the asyncio client does.

    Attributes:
        catalog: Reference path catalog.
        store: Storage collaborator for drift sessions.
        estimator: Heading estimator fed by ``on_angular_rate``.
        current_drift_angle: |drift angle| of the last drift tick (degrees),
            0.0 outside drift recording. Intended for live display.
        current_speed_kmh: Ground speed at the last tick (km/h).
        persist_failures: Number of store writes that failed.
        skipped_ticks: Number of ticks that recorded nothing.
        dropped_rate_samples: Gyro samples dropped for not advancing time.
        rate_gaps: Gyro samples integrated over the nominal interval after a
            pause longer than MAX_RATE_GAP_SECONDS.
    """

    def __init__(
        self,
        catalog: ReferenceCatalog,
        store: Optional[SessionStore] = None,
        consent: Callable[[], bool] = _consent_granted,
        estimator: Optional[AngleEstimator] = None,
        proximity_threshold_m: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        config=None,
    ) -> None:
        """Initialize the engine.

        Args:
            catalog: Catalog owning all reference paths.
            store: Storage collaborator for drift sessions. Defaults to the
                catalog's store.
            consent: Returns True when location tracking is authorized.
            estimator: Heading estimator. A default one is built from config.
            proximity_threshold_m: Maximum distance to the reference path for
                starting a drift session (meters).
            clock: Time source for tick and session timestamps.
            config: Configuration module or object. Defaults to
                drift_tracker.config.
        """
        cfg = config if config is not None else default_config

        self.catalog = catalog
        self.store = store if store is not None else catalog.store
        self._consent = consent
        self.estimator = estimator if estimator is not None else AngleEstimator(config=cfg)
        self.proximity_threshold_m = (
            cfg.PROXIMITY_THRESHOLD_METERS if proximity_threshold_m is None else proximity_threshold_m
        )
        self._nominal_dt = cfg.MOTION_UPDATE_INTERVAL_SECONDS
        self._max_rate_gap = cfg.MAX_RATE_GAP_SECONDS
        self._drift_name_format = cfg.DRIFT_NAME_FORMAT
        self._clock = clock

        self._lock = threading.RLock()
        self._session = SessionStateMachine()

        # Latest sensor inputs
        self._position: Optional[PositionSample] = None
        self._last_rate_timestamp: Optional[float] = None

        # Per-session state
        self._recording_path: Optional[ReferencePath] = None
        self._drift_session: Optional[DriftSession] = None
        self._angle_offset: Optional[float] = None

        # Observables
        self.current_drift_angle = 0.0
        self.current_speed_kmh = 0.0

        # Diagnostics
        self.persist_failures = 0
        self.skipped_ticks = 0
        self.dropped_rate_samples = 0
        self.rate_gaps = 0

    # ------------------------------------------------------------------
    # Sensor inputs
    # ------------------------------------------------------------------

    def on_angular_rate(self, sample: AngleSample) -> None:
        """Feed one gyro sample into the heading estimate.

        dt is derived from the previous sample's timestamp; the first sample
        and the first one after a gap longer than ``MAX_RATE_GAP_SECONDS``
        integrate over the nominal motion interval. Samples that do not
        advance time are dropped.
        """
        with self._lock:
            if self._last_rate_timestamp is None:
                dt = self._nominal_dt
            else:
                dt = sample.timestamp - self._last_rate_timestamp
                if not dt > 0.0:
                    self.dropped_rate_samples += 1
                    return
                if dt > self._max_rate_gap:
                    logger.debug(f"Gyro gap of {dt:.3f}s, integrating nominal interval")
                    self.rate_gaps += 1
                    dt = self._nominal_dt
            self._last_rate_timestamp = sample.timestamp
            self.estimator.predict(sample.angular_rate_deg_per_sec, dt)

    def on_position(self, sample: PositionSample) -> None:
        """Replace the last known position."""
        with self._lock:
            self._position = sample

    def current_position(self) -> Optional[PositionSample]:
        with self._lock:
            return self._position

    def current_angle(self) -> float:
        with self._lock:
            return self.estimator.state()

    # ------------------------------------------------------------------
    # Observables
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def angle_offset(self) -> Optional[float]:
        """Offset of the running drift session (degrees), None otherwise."""
        return self._angle_offset

    @property
    def active_drift_session(self) -> Optional[DriftSession]:
        return self._drift_session

    @property
    def recording_path(self) -> Optional[ReferencePath]:
        """Reference path being recorded, None outside reference recording."""
        return self._recording_path

    def snapshot(self) -> Dict[str, Any]:
        """Consistent view of the live values for display.

        Returns:
            Dictionary containing:
                - state: Session state value
                - angle: Heading estimate (degrees)
                - drift_angle: |drift angle| of the last drift tick (degrees)
                - speed_kmh: Speed at the last tick (km/h)
                - has_position: Whether any position fix was received
        """
        with self._lock:
            return {
                "state": self._session.state.value,
                "angle": self.estimator.state(),
                "drift_angle": self.current_drift_angle,
                "speed_kmh": self.current_speed_kmh,
                "has_position": self._position is not None,
            }

    def get_diagnostics(self) -> Dict[str, float]:
        with self._lock:
            diagnostics = dict(self.estimator.get_diagnostics())
            diagnostics.update(
                {
                    "persist_failures": self.persist_failures,
                    "skipped_ticks": self.skipped_ticks,
                    "dropped_rate_samples": self.dropped_rate_samples,
                    "rate_gaps": self.rate_gaps,
                }
            )
            return diagnostics

    # ------------------------------------------------------------------
    # Reference recording
    # ------------------------------------------------------------------

    def start_reference_recording(
        self, label: Optional[str] = None, name: Optional[str] = None
    ) -> ReferencePath:
        """Start recording a new reference path, which becomes active.

        Raises:
            InvalidTransition: If a recording is already running.
            PersistenceError: If the store rejected the new path. The engine
                stays idle and the catalog is unchanged.
        """
        with self._lock:
            self._require_transition(SessionState.RECORDING_REFERENCE)
            path = self.catalog.start_recording(label=label, timestamp=self._clock(), name=name)
            self._session.start_reference()
            self._recording_path = path
            self.current_drift_angle = 0.0
            return path

    def stop_reference_recording(self) -> ReferencePath:
        """Stop reference recording and close the path.

        Raises:
            InvalidTransition: If no reference recording is running.
        """
        with self._lock:
            self._session.stop_reference()
            path = self._recording_path
            self._recording_path = None
            self.current_drift_angle = 0.0
            self.current_speed_kmh = 0.0

            if path is not None and path in self.catalog and not path.is_closed:
                try:
                    self.catalog.stop_recording(path, timestamp=self._clock())
                except PersistenceError as e:
                    self._report_persist_failure(e)
            return path

    # ------------------------------------------------------------------
    # Drift recording
    # ------------------------------------------------------------------

    def is_too_far_from_reference(self) -> bool:
        """Whether the proximity gate would currently refuse a drift start.

        Missing position or an empty/absent reference path count as too far.
        """
        with self._lock:
            distance = self._distance_to_reference()
            return distance is None or not distance <= self.proximity_threshold_m

    def _distance_to_reference(self) -> Optional[float]:
        path = self.catalog.active_path()
        position = self._position
        if path is None or position is None:
            return None
        match = path.nearest_point_with_distance(position.latitude_deg, position.longitude_deg)
        return match[1] if match is not None else None

    def start_drift_recording(self, name: Optional[str] = None) -> DriftSession:
        """Start a drift session against the active reference path.

        Preconditions are checked in order and the first failure is raised:
        consent, an active reference path with points, then proximity.

        Raises:
            InvalidTransition: If a recording is already running.
            ConsentRequired: If tracking consent is not granted.
            NoReference: If there is no active path or it has no points.
            TooFarFromReference: If no position is known or the nearest
                reference point is beyond the proximity threshold.
            PersistenceError: If the store rejected the session record. The
                engine stays idle.
        """
        with self._lock:
            self._require_transition(SessionState.RECORDING_DRIFT)

            if not self._consent():
                raise ConsentRequired()

            path = self.catalog.active_path()
            if path is None or len(path) == 0:
                raise NoReference("No active reference path with recorded points")

            position = self._position
            if position is None:
                raise TooFarFromReference(None, self.proximity_threshold_m)

            nearest, distance = path.nearest_point_with_distance(
                position.latitude_deg, position.longitude_deg
            )
            if not distance <= self.proximity_threshold_m:
                raise TooFarFromReference(distance, self.proximity_threshold_m)

            angle_offset = self.estimator.state() - nearest.angle_deg

            start_time = self._clock()
            if name is None:
                name = datetime.fromtimestamp(start_time).strftime(self._drift_name_format)
            try:
                session = self.store.create_drift_session(name, start_time, path.id)
            except Exception as e:
                raise PersistenceError(f"Failed to create drift session: {e}") from e

            self._session.start_drift()
            self._drift_session = session
            self._angle_offset = angle_offset
            self.current_drift_angle = 0.0

        logger.info(
            f"Started drift session '{session.name}' against '{path.name}' "
            f"({distance:.1f}m from reference, offset {angle_offset:.2f}°)"
        )
        return session

    def stop_drift_recording(self) -> DriftSession:
        """Stop the drift session, discard the offset and close the record.

        Raises:
            InvalidTransition: If no drift session is running. A second stop
                therefore never closes the session record twice.
        """
        with self._lock:
            self._session.stop_drift()
            session = self._drift_session
            self._drift_session = None
            self._angle_offset = None
            self.current_drift_angle = 0.0
            self.current_speed_kmh = 0.0

            try:
                self.store.close_drift_session(session.id, self._clock())
            except Exception as e:
                self._report_persist_failure(e)

        logger.info(f"Stopped drift session '{session.name}' ({len(session.points)} points)")
        return session

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def on_tick(self) -> Optional[Union[ReferencePoint, DriftPoint]]:
        """Run one recording step.

        Checks the session state before doing anything else, so a tick that
        runs after a stop returned records nothing.

        Returns:
            The point recorded this tick, or None if the tick was skipped.
        """
        with self._lock:
            state = self._session.state
            if state is SessionState.IDLE:
                return None

            position = self._position
            if position is None:
                self._skip(PositionUnavailable())
                return None

            angle = self.estimator.state()
            timestamp = self._clock()
            self.current_speed_kmh = position.speed_kmh

            if state is SessionState.RECORDING_REFERENCE:
                return self._record_reference(position, angle, timestamp)
            return self._record_drift(position, angle, timestamp)

    def _record_reference(
        self, position: PositionSample, angle: float, timestamp: float
    ) -> Optional[ReferencePoint]:
        try:
            return self.catalog.append_point(self._recording_path, position, angle, timestamp)
        except PersistenceError as e:
            self._report_persist_failure(e)
            return e.record
        except DriftTrackerError as e:
            # Path deleted or closed underneath the recording
            self._skip(e)
            return None

    def _record_drift(
        self, position: PositionSample, angle: float, timestamp: float
    ) -> Optional[DriftPoint]:
        path = self.catalog.active_path()
        nearest = (
            path.nearest_point(position.latitude_deg, position.longitude_deg)
            if path is not None
            else None
        )
        if nearest is None:
            self._skip(NoReference("No reference points to match against"))
            return None

        drift_angle = (angle - self._angle_offset) - nearest.angle_deg
        point = DriftPoint(
            timestamp=timestamp,
            latitude_deg=position.latitude_deg,
            longitude_deg=position.longitude_deg,
            drift_angle_deg=drift_angle,
            speed_kmh=position.speed_kmh,
        )
        self.current_drift_angle = abs(drift_angle)

        try:
            self.store.append_drift_point(self._drift_session.id, point)
        except Exception as e:
            self._report_persist_failure(e)

        return point

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_transition(self, target: SessionState) -> None:
        current = self._session.state
        if not self._session.can_transition(target):
            logger.warning(f"Refused start of {target.value} while {current.value}")
            raise InvalidTransition(current, target)

    def _skip(self, reason: DriftTrackerError) -> None:
        self.skipped_ticks += 1
        logger.debug(f"Tick skipped: {reason}")

    def _report_persist_failure(self, error: Exception) -> None:
        self.persist_failures += 1
        logger.error(f"Persistence failure: {error}")
