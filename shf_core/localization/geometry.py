"""
Bearing geometry helpers.

Scalar and vectorised (numpy) bearing and residual computations shared by
the triangulation, blind and calibration engines.

Yaw convention: bearing 0 points to +Z, bearing 90 to -X, so the bearing
from an origin to a point is -atan2(dx, dz) in degrees.
"""

from typing import Optional, Sequence, Tuple
import math
import numpy as np

from shf_core.proto.observation import Observation, normalize_angle


# Points closer than this are treated as coincident
MIN_BEARING_DISTANCE = 1e-9


def bearing_to(origin_x: float, origin_z: float, x: float, z: float) -> Optional[float]:
    """
    Bearing (yaw, degrees) from an origin to a point.

    Args:
        origin_x, origin_z: Observer position
        x, z: Target position

    Returns:
        Bearing in (-180, 180], or None if the points coincide
    """
    dx = x - origin_x
    dz = z - origin_z
    if math.hypot(dx, dz) < MIN_BEARING_DISTANCE:
        return None
    return normalize_angle(-math.degrees(math.atan2(dx, dz)))


def direction_vector(angle_deg: float) -> Tuple[float, float]:
    """Unit (x, z) direction a yaw angle points to."""
    rad = math.radians(angle_deg)
    return (-math.sin(rad), math.cos(rad))


def wrap_angles(angles_deg: np.ndarray) -> np.ndarray:
    """Vectorised normalize_angle: wrap to (-180, 180]."""
    return 180.0 - np.mod(180.0 - angles_deg, 360.0)


def bearings_to(origin_x: float, origin_z: float, xs: np.ndarray, zs: np.ndarray) -> np.ndarray:
    """
    Bearings from one origin to many points.

    Args:
        origin_x, origin_z: Observer position
        xs, zs: Target coordinates (same shape)

    Returns:
        Array of bearings in (-180, 180]; NaN where a target coincides
        with the origin
    """
    dx = np.asarray(xs, dtype=float) - origin_x
    dz = np.asarray(zs, dtype=float) - origin_z
    bearings = wrap_angles(-np.degrees(np.arctan2(dx, dz)))
    degenerate = np.hypot(dx, dz) < MIN_BEARING_DISTANCE
    return np.where(degenerate, np.nan, bearings)


def angular_residuals(angle_deg: float, bearings: np.ndarray) -> np.ndarray:
    """
    Signed residual (observed - implied) for each bearing, wrapped to (-180, 180].

    NaN bearings propagate as NaN residuals.
    """
    return wrap_angles(angle_deg - bearings)


def intersect_bearings(observations: Sequence[Observation]) -> Optional[Tuple[float, float]]:
    """
    Least-squares intersection of bearing lines.

    Each observation defines a line through its origin along its corrected
    angle. The point minimising the summed squared perpendicular distance
    to all lines is returned.

    Args:
        observations: At least two non-parallel observations

    Returns:
        (x, z) of the intersection, or None if under-determined
        (fewer than two observations or all lines parallel)
    """
    if len(observations) < 2:
        return None

    A = np.zeros((2, 2))
    b = np.zeros(2)
    for obs in observations:
        d = np.array(direction_vector(obs.corrected_angle))
        P = np.eye(2) - np.outer(d, d)
        origin = np.array([obs.origin_x, obs.origin_z])
        A += P
        b += P @ origin

    # Parallel lines leave A rank-deficient
    if np.linalg.matrix_rank(A, tol=1e-9) < 2:
        return None

    point = np.linalg.solve(A, b)
    return (float(point[0]), float(point[1]))
