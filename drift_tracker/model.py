"""
Data model for the drift tracking system.

Transient sensor samples (angular rate, position) and the recorded samples
that make up reference paths and drift sessions. The reference path itself
lives in ``path.py`` because it carries matching behaviour.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .config import MS_TO_KMH


class SessionState(Enum):
    """Recording mode of the engine."""

    IDLE = "idle"
    RECORDING_REFERENCE = "recording_reference"
    RECORDING_DRIFT = "recording_drift"


@dataclass(frozen=True)
class AngleSample:
    """One gyroscope reading around the vertical axis."""

    timestamp: float
    angular_rate_deg_per_sec: float


@dataclass(frozen=True)
class PositionSample:
    """One position fix from the location source.

    The location source reports ground speed as negative (or NaN) when it is
    not valid; ``speed_kmh`` treats such values as standstill.
    """

    timestamp: float
    latitude_deg: float
    longitude_deg: float
    speed_m_per_sec: float = 0.0

    @property
    def speed_kmh(self) -> float:
        """Ground speed clamped to >= 0 and converted to km/h."""
        speed = self.speed_m_per_sec
        if not math.isfinite(speed) or speed <= 0.0:
            return 0.0
        return speed * MS_TO_KMH


@dataclass(frozen=True)
class ReferencePoint:
    """One recorded sample of a reference path."""

    timestamp: float
    latitude_deg: float
    longitude_deg: float
    angle_deg: float


@dataclass(frozen=True)
class DriftPoint:
    """One recorded sample of a drift session.

    ``drift_angle_deg`` is signed: corrected live angle minus the angle of the
    matched reference point.
    """

    timestamp: float
    latitude_deg: float
    longitude_deg: float
    drift_angle_deg: float
    speed_kmh: float


@dataclass
class DriftSession:
    """A recorded drift run measured against a reference path."""

    id: str
    name: str
    start_time: float
    reference_path_id: Optional[str] = None
    end_time: Optional[float] = None
    points: List[DriftPoint] = field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    @property
    def duration_s(self) -> float:
        """Elapsed time between start and end (or last point while open)."""
        if self.end_time is not None:
            return max(0.0, self.end_time - self.start_time)
        if self.points:
            return max(0.0, self.points[-1].timestamp - self.start_time)
        return 0.0
