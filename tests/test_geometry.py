"""
Unit tests for bearing geometry.

Tests cover:
- Yaw convention for the four cardinal directions
- Degenerate (coincident) bearings
- Vectorised bearings and residual wrapping
- Least-squares intersection of bearing lines
"""

import math

import numpy as np
import pytest

from shf_core.proto import Observation
from shf_core.localization import (
    angular_residuals,
    bearing_to,
    bearings_to,
    direction_vector,
    intersect_bearings,
)
from tests.conftest import aimed


class TestBearing:
    """Tests for scalar bearings."""

    @pytest.mark.parametrize("target,expected", [
        ((0.0, 10.0), 0.0),     # +Z
        ((-10.0, 0.0), 90.0),   # -X
        ((10.0, 0.0), -90.0),   # +X
        ((0.0, -10.0), 180.0),  # -Z
    ])
    def test_cardinal_directions(self, target, expected):
        assert bearing_to(0.0, 0.0, *target) == pytest.approx(expected)

    def test_coincident_points(self):
        assert bearing_to(5.0, 5.0, 5.0, 5.0) is None

    def test_direction_vector_matches_bearing(self):
        """Walking along direction_vector(bearing) reaches the target."""
        angle = bearing_to(0.0, 0.0, 30.0, -40.0)
        dx, dz = direction_vector(angle)

        assert dx * 50.0 == pytest.approx(30.0)
        assert dz * 50.0 == pytest.approx(-40.0)


class TestVectorised:
    """Tests for numpy bearings and residuals."""

    def test_bearings_match_scalar(self):
        xs = np.array([10, -10, 0, 7])
        zs = np.array([0, 0, -10, 3])

        bearings = bearings_to(0.0, 0.0, xs, zs)

        for x, z, b in zip(xs, zs, bearings):
            assert b == pytest.approx(bearing_to(0.0, 0.0, x, z))

    def test_coincident_is_nan(self):
        bearings = bearings_to(1.0, 1.0, np.array([1, 2]), np.array([1, 2]))

        assert math.isnan(bearings[0])
        assert not math.isnan(bearings[1])

    def test_residual_wrapping(self):
        residuals = angular_residuals(179.0, np.array([-179.0, 179.0, 0.0]))

        np.testing.assert_allclose(residuals, [-2.0, 0.0, 179.0])


class TestIntersectBearings:
    """Tests for least-squares line intersection."""

    def test_exact_intersection(self):
        target = (120.0, -35.0)
        observations = [
            aimed((0.0, 0.0), target),
            aimed((300.0, 10.0), target),
            aimed((50.0, -400.0), target),
        ]

        x, z = intersect_bearings(observations)

        assert x == pytest.approx(target[0], abs=1e-6)
        assert z == pytest.approx(target[1], abs=1e-6)

    def test_single_observation_underdetermined(self):
        assert intersect_bearings([Observation.create(0.0, 0.0, 10.0)]) is None

    def test_parallel_lines(self):
        observations = [
            Observation.create(0.0, 0.0, 0.0),
            Observation.create(10.0, 0.0, 0.0),
        ]
        assert intersect_bearings(observations) is None
