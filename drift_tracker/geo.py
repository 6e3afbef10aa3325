"""Great-circle distance helpers."""

import numpy as np
import numpy.typing as npt

from .config import EARTH_RADIUS_METERS


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two coordinates.

    Args:
        lat1, lon1: First point in degrees
        lat2, lon2: Second point in degrees

    Returns:
        Distance in meters. NaN inputs give NaN.
    """
    return float(distances_meters(lat1, lon1, np.asarray(lat2), np.asarray(lon2)))


def distances_meters(
    lat: float,
    lon: float,
    lats: npt.ArrayLike,
    lons: npt.ArrayLike,
) -> npt.NDArray[np.float64]:
    """Haversine distance from one coordinate to many.

    Args:
        lat, lon: Query point in degrees
        lats, lons: Arrays of target coordinates in degrees

    Returns:
        Array of distances in meters, same shape as ``lats``.
    """
    lats = np.asarray(lats, dtype=np.float64)
    lons = np.asarray(lons, dtype=np.float64)

    phi1 = np.radians(lat)
    phi2 = np.radians(lats)
    dphi = np.radians(lats - lat)
    dlambda = np.radians(lons - lon)

    a = np.sin(dphi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlambda / 2.0) ** 2
    # Rounding can push a marginally outside [0, 1] for antipodal points
    a = np.clip(a, 0.0, 1.0)
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))

    return EARTH_RADIUS_METERS * c
