"""
Pytest configuration and shared fixtures for the stronghold finder tests.

Provides small candidate priors, engines wired to them, and a helper that
builds observations aimed exactly (or with a known offset) at a point.
"""

import sys
from pathlib import Path
from typing import Tuple

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from shf_core.proto import Observation, NoiseModel
from shf_core.localization import (
    BlindEstimator,
    CalibrationConfig,
    CalibrationEngine,
    GridPrior,
    StrongholdRingConfig,
    TriangulationConfig,
    TriangulationEngine,
    bearing_to,
    build_stronghold_prior,
)
from shf_core.metrics import reset_metrics


# =============================================================================
# Helpers
# =============================================================================


def aimed(
    origin: Tuple[float, float],
    target: Tuple[float, float],
    offset: float = 0.0,
    robust: bool = False
) -> Observation:
    """
    Observation from origin whose bearing points at target (plus offset).

    Args:
        origin: Observer (x, z)
        target: Point the throw points at (x, z)
        offset: Angle added to the exact bearing (degrees)
        robust: use_robust_weighting flag

    Returns:
        Observation with measured == corrected angle
    """
    angle = bearing_to(origin[0], origin[1], target[0], target[1]) + offset
    return Observation.create(origin[0], origin[1], angle, use_robust_weighting=robust)


def distance(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    return ((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2) ** 0.5


# =============================================================================
# Metrics
# =============================================================================


@pytest.fixture(autouse=True)
def clean_metrics():
    """Start every test with zeroed global metrics."""
    reset_metrics()
    yield
    reset_metrics()


# =============================================================================
# Prior Fixtures
# =============================================================================


@pytest.fixture
def square_prior() -> GridPrior:
    """
    Uniform prior over the integer grid [0, 100] x [0, 100].

    Returns:
        GridPrior with 101 * 101 candidates.
    """
    return GridPrior.from_rectangle(0, 100, 0, 100)


@pytest.fixture(scope="session")
def first_ring_prior() -> GridPrior:
    """Stronghold prior restricted to the innermost ring."""
    return build_stronghold_prior(StrongholdRingConfig(num_rings=1))


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def unit_noise() -> NoiseModel:
    """Noise model with sigma = 1 degree."""
    return NoiseModel(sigma_degrees=1.0)


@pytest.fixture
def engine(square_prior: GridPrior) -> TriangulationEngine:
    """Triangulation engine over the square prior."""
    return TriangulationEngine(TriangulationConfig(), prior=square_prior)


@pytest.fixture
def blind_estimator(square_prior: GridPrior) -> BlindEstimator:
    return BlindEstimator(square_prior)


@pytest.fixture
def calibration() -> CalibrationEngine:
    """Calibration engine completing after 3 samples."""
    return CalibrationEngine(CalibrationConfig(target_sample_count=3))
