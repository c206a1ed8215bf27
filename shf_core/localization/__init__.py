"""
Localization Module: Bearing geometry, priors and estimation engines.

Key classes:
- GridPrior: Immutable candidate set with prior weights
- TriangulationEngine: Bayesian point estimate from bearing observations
- BlindEstimator: Nearest candidate to a raw position
- CalibrationEngine: Noise sigma from throws at a known target
"""

from .geometry import (
    bearing_to,
    bearings_to,
    angular_residuals,
    direction_vector,
    intersect_bearings,
)
from .grid_prior import (
    GridPrior,
    StrongholdRingConfig,
    RING_STRONGHOLD_COUNTS,
    build_stronghold_prior,
    get_default_prior,
    ring_bounds_chunks,
)
from .triangulation_engine import (
    TriangulationEngine,
    TriangulationConfig,
    create_default_engine,
)
from .blind_estimator import BlindEstimator
from .calibration_engine import (
    CalibrationEngine,
    CalibrationConfig,
    CalibrationResult,
    CalibrationState,
    CalibrationError,
    CalibrationStateError,
    CalibrationCancelledError,
    CancellationToken,
    MIN_CALIBRATION_SAMPLES,
    create_default_calibration_engine,
)

__all__ = [
    # Geometry
    'bearing_to',
    'bearings_to',
    'angular_residuals',
    'direction_vector',
    'intersect_bearings',
    # Prior
    'GridPrior',
    'StrongholdRingConfig',
    'RING_STRONGHOLD_COUNTS',
    'build_stronghold_prior',
    'get_default_prior',
    'ring_bounds_chunks',
    # Triangulation
    'TriangulationEngine',
    'TriangulationConfig',
    'create_default_engine',
    # Blind
    'BlindEstimator',
    # Calibration
    'CalibrationEngine',
    'CalibrationConfig',
    'CalibrationResult',
    'CalibrationState',
    'CalibrationError',
    'CalibrationStateError',
    'CalibrationCancelledError',
    'CancellationToken',
    'MIN_CALIBRATION_SAMPLES',
    'create_default_calibration_engine',
]
