"""
Tests for great-circle distance helpers.
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from drift_tracker.config import EARTH_RADIUS_METERS
from drift_tracker.geo import distance_meters, distances_meters


class TestDistanceMeters:
    """Tests for the scalar haversine distance."""

    @pytest.mark.parametrize(
        "lat, lon", [(0.0, 0.0), (46.0, 11.0), (-33.9, 151.2), (89.9, -179.9)]
    )
    def test_same_point_is_zero(self, lat, lon):
        assert distance_meters(lat, lon, lat, lon) == 0.0

    def test_symmetric(self):
        a = (46.0, 11.0)
        b = (46.01, 11.02)
        assert distance_meters(*a, *b) == distance_meters(*b, *a)

    def test_one_degree_of_latitude(self):
        """One degree along a meridian is R * pi / 180."""
        expected = EARTH_RADIUS_METERS * math.pi / 180.0
        assert_allclose(distance_meters(46.0, 11.0, 47.0, 11.0), expected, rtol=1e-9)

    def test_longitude_shrinks_with_latitude(self):
        at_equator = distance_meters(0.0, 0.0, 0.0, 1.0)
        at_60 = distance_meters(60.0, 0.0, 60.0, 1.0)
        assert_allclose(at_60, at_equator * 0.5, rtol=1e-3)

    def test_antipodal_points(self):
        assert_allclose(
            distance_meters(0.0, 0.0, 0.0, 180.0), EARTH_RADIUS_METERS * math.pi, rtol=1e-9
        )

    def test_nan_input_gives_nan(self):
        assert math.isnan(distance_meters(float("nan"), 11.0, 46.0, 11.0))


class TestDistancesMeters:
    """Tests for the vectorized variant."""

    def test_matches_scalar(self):
        lats = np.array([46.0, 46.001, 45.999])
        lons = np.array([11.0, 11.002, 10.998])

        result = distances_meters(46.0005, 11.0005, lats, lons)

        assert result.shape == (3,)
        for i in range(3):
            assert_allclose(result[i], distance_meters(46.0005, 11.0005, lats[i], lons[i]))

    def test_accepts_lists(self):
        result = distances_meters(0.0, 0.0, [0.0, 0.0], [0.0, 1.0])
        assert result[0] == 0.0
        assert result[1] > 0.0
