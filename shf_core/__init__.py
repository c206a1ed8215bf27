"""
Stronghold Finder Core Package.

Locates a stronghold from a few noisy eye throws by Bayesian triangulation
over the stronghold ring grid, and learns the throw noise from calibration.

Package structure:
- proto: Observation, result and noise model records
- localization: Geometry, grid prior, triangulation, blind and calibration engines
- domain: Observation session (capacity, undo, calibration routing)
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"


def create_session(prior=None):
    """
    Wire a complete session from the defaults in shf_core.config.

    Args:
        prior: Candidate prior (stronghold ring prior from RING_CONFIG if None)

    Returns:
        ObservationSession with triangulation, blind and calibration engines
    """
    from shf_core import config
    from shf_core.domain import ObservationSession, SessionConfig
    from shf_core.localization import (
        BlindEstimator,
        CalibrationConfig,
        CalibrationEngine,
        StrongholdRingConfig,
        TriangulationConfig,
        TriangulationEngine,
        build_stronghold_prior,
    )

    if prior is None:
        prior = build_stronghold_prior(StrongholdRingConfig(**config.RING_CONFIG))

    calibration = CalibrationEngine(CalibrationConfig(**config.CALIBRATION_CONFIG))
    engine = TriangulationEngine(
        TriangulationConfig(**config.TRIANGULATION_CONFIG),
        prior=prior,
        noise_provider=calibration.get_noise_model,
    )
    return ObservationSession(
        engine=engine,
        blind_estimator=BlindEstimator(prior),
        calibration=calibration,
        config=SessionConfig(**config.SESSION_CONFIG),
    )
