"""
Blind estimator: nearest candidate to a raw position.

Used before any bearing is available. Ties in distance go to the higher
prior weight, then to the lowest (x, z) so output is stable.
"""

from typing import Optional
import logging
import numpy as np

from shf_core.proto.observation import RawPosition
from shf_core.proto.blind_result import BlindResult, create_failed_blind_result
from shf_core.localization.geometry import bearing_to
from shf_core.localization.grid_prior import GridPrior, get_default_prior
from shf_core.metrics import get_metrics


logger = logging.getLogger(__name__)


class BlindEstimator:
    """
    Nearest-candidate search.

    Usage:
        estimator = BlindEstimator(prior)
        result = estimator.estimate_blind(RawPosition(1200.0, -300.0))

        if result.succeeded:
            print(result.nearest_candidate, result.distance, result.bearing)
    """

    def __init__(self, prior: Optional[GridPrior] = None):
        """
        Initialize blind estimator.

        Args:
            prior: Default prior (shared stronghold prior if None)
        """
        self._prior = prior
        self.metrics = get_metrics()

    @property
    def prior(self) -> GridPrior:
        if self._prior is None:
            self._prior = get_default_prior()
        return self._prior

    def estimate_blind(
        self,
        position: RawPosition,
        prior: Optional[GridPrior] = None
    ) -> BlindResult:
        """
        Find the candidate closest to a position.

        Args:
            position: Observer position
            prior: Candidate prior (estimator default if None)

        Returns:
            BlindResult; succeeded=False only for an empty prior
        """
        self.metrics.increment('blind_calls')
        prior = prior if prior is not None else self.prior

        if prior.is_empty:
            self.metrics.increment_failure('empty_prior')
            return create_failed_blind_result()

        d2 = (prior.xs - position.x) ** 2 + (prior.zs - position.z) ** 2

        # Primary key last: distance, then -weight, then x, then z
        order = np.lexsort((prior.zs, prior.xs, -prior.weights, d2))
        nearest = prior.candidate_at(int(order[0]))

        result = BlindResult(
            succeeded=True,
            nearest_candidate=nearest,
            distance=nearest.distance_to(position.x, position.z),
            bearing=bearing_to(position.x, position.z, nearest.x, nearest.z),
        )

        self.metrics.increment('blind_success')
        logger.debug(
            "Blind estimate from (%.1f, %.1f): nearest=(%d, %d) distance=%.1f",
            position.x, position.z, nearest.x, nearest.z, result.distance,
        )
        return result
