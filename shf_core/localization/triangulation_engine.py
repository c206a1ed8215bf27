"""
Triangulation Engine (bearing-only Bayesian point estimate).

Scores every candidate of a discrete prior against a set of bearing
observations and returns the maximum-posterior cell, its uncertainty and
one angular residual per observation.

Model:
    r_i(c)   = wrap(corrected_angle_i - bearing(origin_i -> c))
    ll_i(c)  = -0.5 * (r_i / sigma)^2                            (normal)
             = -(nu + 1) / 2 * log(1 + r_i^2 / (nu * sigma^2))   (robust)
    score(c) = log(prior(c)) + sum_i ll_i(c)
    radius   = max |c - best| over c with score(c) >= score(best) - k

The robust (Student-t) likelihood grows only logarithmically with the
residual, so one flagged outlier cannot dominate the estimate.
"""

from typing import Callable, Optional, Sequence
from dataclasses import dataclass
import logging
import math
import numpy as np

from shf_core.proto.observation import Observation, normalize_angle
from shf_core.proto.noise_model import NoiseModel, create_default_noise_model
from shf_core.proto.calculator_result import (
    CalculatorResult,
    RankedCandidate,
    create_failed_result,
)
from shf_core.localization.geometry import bearing_to, bearings_to, angular_residuals
from shf_core.localization.grid_prior import GridPrior, get_default_prior
from shf_core.metrics import get_metrics


logger = logging.getLogger(__name__)


@dataclass
class TriangulationConfig:
    """
    Configuration for the triangulation engine.

    Attributes:
        robust_dof: Degrees of freedom of the Student-t likelihood used for
            observations flagged use_robust_weighting (smaller = heavier tails)
        min_sigma_degrees: Floor applied to the noise sigma
        top_n: Number of ranked candidates to report
        radius_log_threshold: Log-score drop from the best candidate that
            bounds the uncertainty region (3.0 ~ 95% for two dimensions)
    """

    robust_dof: float = 3.0
    min_sigma_degrees: float = 1e-3
    top_n: int = 5
    radius_log_threshold: float = 3.0

    def __post_init__(self):
        if self.robust_dof <= 0:
            raise ValueError(f"robust_dof must be positive: {self.robust_dof}")
        if self.min_sigma_degrees <= 0:
            raise ValueError(f"min_sigma_degrees must be positive: {self.min_sigma_degrees}")
        if self.top_n < 1:
            raise ValueError(f"top_n must be >= 1: {self.top_n}")
        if self.radius_log_threshold <= 0:
            raise ValueError(f"radius_log_threshold must be positive: {self.radius_log_threshold}")


class TriangulationEngine:
    """
    Triangulate the target from bearing observations.

    Usage:
        engine = TriangulationEngine(config, prior=prior)

        result = engine.triangulate(observations, noise=NoiseModel(0.1))

        if result.succeeded:
            print(f"Best: {result.best_candidate.position}")
            print(f"Uncertainty: {result.uncertainty_radius:.0f} blocks")
            print(f"Residuals: {result.angle_residuals}")

    The engine holds no per-call state; triangulate() is a pure function of
    its arguments, the prior and the current noise model.
    """

    def __init__(
        self,
        config: Optional[TriangulationConfig] = None,
        prior: Optional[GridPrior] = None,
        noise_provider: Optional[Callable[[], NoiseModel]] = None,
    ):
        """
        Initialize triangulation engine.

        Args:
            config: Engine configuration (uses defaults if None)
            prior: Default prior (shared stronghold prior if None)
            noise_provider: Callable returning the current NoiseModel,
                typically CalibrationEngine.get_noise_model
        """
        self.config = config or TriangulationConfig()
        self.metrics = get_metrics()
        self._prior = prior
        self._noise_provider = noise_provider
        self._default_noise = create_default_noise_model()

    @property
    def prior(self) -> GridPrior:
        """Prior used when triangulate() is called without one."""
        if self._prior is None:
            self._prior = get_default_prior()
        return self._prior

    def current_noise_model(self) -> NoiseModel:
        """Noise model used when triangulate() is called without one."""
        if self._noise_provider is not None:
            return self._noise_provider()
        return self._default_noise

    def triangulate(
        self,
        observations: Sequence[Observation],
        prior: Optional[GridPrior] = None,
        noise: Optional[NoiseModel] = None,
    ) -> CalculatorResult:
        """
        Estimate the target position from observations.

        Args:
            observations: One or more observations (order kept for residuals)
            prior: Candidate prior (engine default if None)
            noise: Noise model (current provider value if None)

        Returns:
            CalculatorResult; succeeded=False if there are no observations,
            the prior is empty, or every candidate is degenerate
        """
        self.metrics.increment('triangulate_calls')
        observations = list(observations)

        if not observations:
            self.metrics.increment_failure('no_observations')
            return create_failed_result()

        prior = prior if prior is not None else self.prior
        if prior.is_empty:
            self.metrics.increment_failure('empty_prior')
            return create_failed_result()

        noise = noise if noise is not None else self.current_noise_model()
        sigma = max(noise.sigma_degrees, self.config.min_sigma_degrees)

        scores = self._score(observations, prior, sigma)
        valid = np.isfinite(scores)

        if not valid.any():
            self.metrics.increment_failure('all_degenerate')
            logger.debug("No candidate scored for %d observations", len(observations))
            return create_failed_result()

        scores = np.where(valid, scores, -np.inf)
        best_index = int(np.argmax(scores))
        best = prior.candidate_at(best_index)

        posterior = np.exp(scores - scores[best_index])
        posterior /= posterior.sum()

        uncertainty_radius = self._uncertainty_radius(prior, scores, best_index)
        residuals = self._residuals_at(observations, best.x, best.z)
        ranked = self._rank(prior, posterior)

        last = observations[-1]
        result = CalculatorResult(
            succeeded=True,
            best_candidate=best,
            uncertainty_radius=uncertainty_radius,
            angle_residuals=residuals,
            ranked_candidates=ranked,
            best_probability=float(posterior[best_index]),
            distance_from_last_observation=best.distance_to(last.origin_x, last.origin_z),
            num_observations=len(observations),
        )

        self.metrics.increment('triangulate_success')
        self.metrics.record_histogram('uncertainty_radius', uncertainty_radius)
        self.metrics.record_histogram('max_abs_residual_deg', result.max_abs_residual)

        logger.debug(
            "Triangulated %d observations: best=(%d, %d) p=%.3f radius=%.1f sigma=%.4f",
            len(observations), best.x, best.z, result.best_probability,
            uncertainty_radius, sigma,
        )
        return result

    def _score(
        self,
        observations: Sequence[Observation],
        prior: GridPrior,
        sigma: float
    ) -> np.ndarray:
        """
        Posterior log-score per candidate.

        Returns:
            Array aligned with the prior; NaN for candidates that coincide
            with an observer, -inf for zero prior mass
        """
        nu = self.config.robust_dof
        scores = np.array(prior.log_weights, dtype=float)

        for obs in observations:
            bearings = bearings_to(obs.origin_x, obs.origin_z, prior.xs, prior.zs)
            z2 = (angular_residuals(obs.corrected_angle, bearings) / sigma) ** 2

            if obs.use_robust_weighting:
                scores += -0.5 * (nu + 1.0) * np.log1p(z2 / nu)
            else:
                scores += -0.5 * z2

        return scores

    def _uncertainty_radius(
        self,
        prior: GridPrior,
        scores: np.ndarray,
        best_index: int
    ) -> float:
        """
        Largest distance from the best candidate to any candidate whose
        log-score lies within radius_log_threshold of the best score.

        An observation that agrees with the best candidate leaves its score
        unchanged and lowers every other score, so the region only shrinks.
        Smaller sigma shrinks it too.
        """
        region = scores >= scores[best_index] - self.config.radius_log_threshold
        dx = prior.xs[region] - prior.xs[best_index]
        dz = prior.zs[region] - prior.zs[best_index]
        return float(math.sqrt(float(np.max(dx * dx + dz * dz))))

    def _residuals_at(self, observations: Sequence[Observation], x: int, z: int) -> tuple:
        """Signed residual of each observation against the chosen cell."""
        residuals = []
        for obs in observations:
            implied = bearing_to(obs.origin_x, obs.origin_z, x, z)
            residuals.append(normalize_angle(obs.corrected_angle - implied))
        return tuple(residuals)

    def _rank(self, prior: GridPrior, posterior: np.ndarray) -> tuple:
        """Top-N candidates by posterior, ties broken by prior order."""
        n = min(self.config.top_n, posterior.size)
        if posterior.size > n:
            indices = np.argpartition(-posterior, n - 1)[:n]
        else:
            indices = np.arange(posterior.size)
        order = np.lexsort((indices, -posterior[indices]))
        return tuple(
            RankedCandidate(
                candidate=prior.candidate_at(int(i)),
                probability=float(posterior[i]),
            )
            for i in indices[order]
        )


def create_default_engine(
    noise_provider: Optional[Callable[[], NoiseModel]] = None
) -> TriangulationEngine:
    """
    Create triangulation engine with default configuration.

    Args:
        noise_provider: Source of the current NoiseModel (fixed default if None)

    Returns:
        Engine over the shared stronghold prior
    """
    return TriangulationEngine(TriangulationConfig(), prior=None, noise_provider=noise_provider)
