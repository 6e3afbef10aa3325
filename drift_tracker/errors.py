"""Exceptions raised by the drift tracking engine.

Every error here is recoverable: it refuses a single start/stop request or
a single operation on a path and leaves the engine in its previous state.
"""

from typing import Any, Optional


class DriftTrackerError(Exception):
    """Base class for all drift tracker errors."""


class ConsentRequired(DriftTrackerError):
    """Location tracking consent has not been granted."""

    def __init__(self, message: str = "Location tracking consent has not been granted") -> None:
        super().__init__(message)


class NoReference(DriftTrackerError):
    """No usable reference path (none active, unknown id, or no points)."""


class TooFarFromReference(DriftTrackerError):
    """Current position is outside the proximity gate of the reference path.

    Attributes:
        distance_m: Distance to the nearest reference point (meters), or None
            when no position is available.
        threshold_m: Proximity threshold that was exceeded (meters).
    """

    def __init__(self, distance_m: Optional[float], threshold_m: float) -> None:
        self.distance_m = distance_m
        self.threshold_m = threshold_m
        if distance_m is None:
            message = "Position unavailable, treated as too far from reference"
        else:
            message = (
                f"Nearest reference point is {distance_m:.1f}m away "
                f"(threshold {threshold_m:.1f}m)"
            )
        super().__init__(message)


class InvalidTransition(DriftTrackerError):
    """Requested session state transition is not allowed.

    Attributes:
        current: State the machine was in.
        target: State that was requested.
    """

    def __init__(self, current: Any, target: Any) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from {current.value} to {target.value}")


class InvalidState(DriftTrackerError):
    """Operation is not valid for the object's current state (e.g. closed path)."""


class PositionUnavailable(DriftTrackerError):
    """No position sample has been received yet."""

    def __init__(self, message: str = "No position sample received yet") -> None:
        super().__init__(message)


class PersistenceError(DriftTrackerError):
    """The storage collaborator rejected a write that was already applied in memory.

    Attributes:
        record: The in-memory object whose write failed (point or path).
    """

    def __init__(self, message: str, record: Any = None) -> None:
        self.record = record
        super().__init__(message)
