"""Reference path storage and nearest-point matching.

A reference path is one recorded lap: an append-only sequence of
(position, angle, time) samples. Drift sessions match the live position
against it to find the heading the vehicle had at the same place.
"""

from typing import List, Optional, Tuple

import numpy as np
import numpy.typing as npt

from .errors import InvalidState
from .geo import distances_meters
from .model import ReferencePoint


class ReferencePath:
    """One recorded reference lap.

    Points are appended in sampling order, which is also timestamp order, so
    the stored order is the time order. Coordinates are mirrored into growing
    lists so nearest-point search can run vectorised over numpy arrays.

    Attributes:
        id: Unique identifier.
        name: Display name.
        location_label: Human-readable place name.
        start_time: Recording start (seconds).
        end_time: Recording end (seconds), None while recording.
        is_active: Whether this path is the catalog's active reference.
            Only ``ReferenceCatalog`` flips this flag.
    """

    def __init__(
        self,
        id: str,
        name: str,
        location_label: str,
        start_time: float,
        end_time: Optional[float] = None,
        is_active: bool = False,
    ) -> None:
        self.id = id
        self.name = name
        self.location_label = location_label
        self.start_time = start_time
        self.end_time = end_time
        self.is_active = is_active

        self._points: List[ReferencePoint] = []
        self._lats: List[float] = []
        self._lons: List[float] = []

    def __repr__(self) -> str:
        return (
            f"ReferencePath(id={self.id!r}, name={self.name!r}, points={len(self._points)}, "
            f"active={self.is_active}, closed={self.is_closed})"
        )

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> Tuple[ReferencePoint, ...]:
        """Recorded points in time order (read-only snapshot)."""
        return tuple(self._points)

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    def append_point(
        self, latitude: float, longitude: float, angle: float, timestamp: float
    ) -> ReferencePoint:
        """Append a sample to the path.

        Args:
            latitude: Latitude in degrees
            longitude: Longitude in degrees
            angle: Heading estimate at this position (degrees)
            timestamp: Sample time (seconds)

        Returns:
            The recorded ReferencePoint.

        Raises:
            InvalidState: If the path has already been closed.
        """
        if self.is_closed:
            raise InvalidState(f"Reference path {self.id} is closed")

        point = ReferencePoint(
            timestamp=timestamp,
            latitude_deg=latitude,
            longitude_deg=longitude,
            angle_deg=angle,
        )
        self._points.append(point)
        self._lats.append(latitude)
        self._lons.append(longitude)
        return point

    def close(self, end_time: float) -> None:
        """Mark recording as finished.

        Raises:
            InvalidState: If the path has already been closed.
        """
        if self.is_closed:
            raise InvalidState(f"Reference path {self.id} is already closed")
        self.end_time = end_time

    def nearest_point_with_distance(
        self, latitude: float, longitude: float
    ) -> Optional[Tuple[ReferencePoint, float]]:
        """Find the recorded point closest to a position.

        Ties on exactly equal distance resolve to the earliest point in
        stored order (``np.argmin`` returns the first minimum).

        Args:
            latitude: Query latitude in degrees
            longitude: Query longitude in degrees

        Returns:
            Tuple of (point, distance in meters), or None for an empty path.
        """
        if not self._points:
            return None

        distances = distances_meters(latitude, longitude, self._lats, self._lons)
        idx = int(np.argmin(distances))
        return self._points[idx], float(distances[idx])

    def nearest_point(self, latitude: float, longitude: float) -> Optional[ReferencePoint]:
        """Find the recorded point closest to a position (None if empty)."""
        match = self.nearest_point_with_distance(latitude, longitude)
        return match[0] if match is not None else None

    def coordinates(self) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Latitude and longitude arrays in time order, e.g. for a map polyline.

        Returns:
            Tuple of (lats, lons) in degrees
        """
        return np.array(self._lats, dtype=np.float64), np.array(self._lons, dtype=np.float64)
