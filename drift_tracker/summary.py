"""Drift session statistics.

Summarizes a recorded drift session the way it is reviewed after a run:
peak and mean drift angle, peak and mean speed, and the speed carried
through the biggest drift.
"""

from dataclasses import dataclass

import numpy as np

from .model import DriftSession


@dataclass
class SessionSummary:
    """Statistical summary of one drift session.

    Angles are absolute drift angles in degrees, speeds in km/h.
    """

    point_count: int
    duration_s: float
    max_angle: float
    mean_angle: float
    max_speed_kmh: float
    mean_speed_kmh: float
    speed_at_max_angle: float  # Highest speed among points at the peak angle

    def __str__(self) -> str:
        """Human-readable summary."""
        return (
            f"Max angle: {self.max_angle:.0f}° @ {self.speed_at_max_angle:.0f} km/h | "
            f"Mean angle: {self.mean_angle:.1f}° | "
            f"Max speed: {self.max_speed_kmh:.0f} km/h | "
            f"Mean speed: {self.mean_speed_kmh:.1f} km/h | "
            f"Duration: {self.duration_s:.1f}s | N={self.point_count}"
        )


def summarize(session: DriftSession) -> SessionSummary:
    """Compute the summary of a drift session.

    Angle statistics use the magnitude of each drift angle, so a left and a
    right slide of 20° both count as 20° and do not cancel out in the mean.
    This differs from statistics over signed angles (max of signed values,
    magnitude of the signed mean).

    Args:
        session: Drift session (open or closed)

    Returns:
        SessionSummary; all statistics are 0.0 for a session without points.
    """
    # Remove any non-finite samples
    points = [
        p for p in session.points if np.isfinite(p.drift_angle_deg) and np.isfinite(p.speed_kmh)
    ]
    if not points:
        return SessionSummary(
            point_count=0,
            duration_s=session.duration_s,
            max_angle=0.0,
            mean_angle=0.0,
            max_speed_kmh=0.0,
            mean_speed_kmh=0.0,
            speed_at_max_angle=0.0,
        )

    angles = np.abs(np.array([p.drift_angle_deg for p in points], dtype=np.float64))
    speeds = np.array([p.speed_kmh for p in points], dtype=np.float64)

    max_angle = float(np.max(angles))

    return SessionSummary(
        point_count=len(points),
        duration_s=session.duration_s,
        max_angle=max_angle,
        mean_angle=float(np.mean(angles)),
        max_speed_kmh=float(np.max(speeds)),
        mean_speed_kmh=float(np.mean(speeds)),
        speed_at_max_angle=float(np.max(speeds[angles == max_angle])),
    )
