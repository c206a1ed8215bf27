"""
Triangulation Output Schema.

Produced fresh by TriangulationEngine.triangulate() on every call and handed
to the caller for display. A failed result still describes enough to render
"insufficient data": succeeded=False, no candidate, no residuals.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import math

from .grid_candidate import GridCandidate


# Overworld -> nether coordinate ratio
NETHER_SCALE = 8


@dataclass(frozen=True)
class RankedCandidate:
    """
    One entry of the ranked estimate.

    Attributes:
        candidate: Grid cell
        probability: Normalised posterior probability (0-1)
    """

    candidate: GridCandidate
    probability: float

    def to_dict(self) -> dict:
        return {
            'x': self.candidate.x,
            'z': self.candidate.z,
            'probability': self.probability,
        }


@dataclass(frozen=True)
class CalculatorResult:
    """
    Position estimate from triangulation.

    Attributes:
        succeeded: True if a best candidate was found
        best_candidate: Maximum-posterior cell
        uncertainty_radius: Farthest candidate within the credible region (blocks)
        angle_residuals: Signed residual per input observation, input order

        # Ranked output
        ranked_candidates: Top candidates by posterior, best first
        best_probability: Posterior probability of best_candidate

        # Travel info
        distance_from_last_observation: Distance from newest observer to best
        num_observations: Number of observations scored

    Notes:
        - If succeeded is False: best_candidate and uncertainty_radius are None,
          angle_residuals is empty
        - If succeeded is True: len(angle_residuals) == num_observations
    """

    succeeded: bool
    best_candidate: Optional[GridCandidate] = None
    uncertainty_radius: Optional[float] = None
    angle_residuals: Tuple[float, ...] = ()

    ranked_candidates: Tuple[RankedCandidate, ...] = ()
    best_probability: Optional[float] = None
    distance_from_last_observation: Optional[float] = None
    num_observations: int = 0

    def __post_init__(self):
        """Validate result consistency."""
        if self.succeeded:
            if self.best_candidate is None or self.uncertainty_radius is None:
                raise ValueError("Successful result needs best_candidate and uncertainty_radius")
            if len(self.angle_residuals) != self.num_observations:
                raise ValueError(
                    f"Expected {self.num_observations} residuals, got {len(self.angle_residuals)}"
                )
            if self.uncertainty_radius < 0 or math.isnan(self.uncertainty_radius):
                raise ValueError(f"Invalid uncertainty radius: {self.uncertainty_radius}")
        else:
            if self.best_candidate is not None or self.angle_residuals:
                raise ValueError("Failed result cannot carry a candidate or residuals")

    @property
    def nether_coordinates(self) -> Optional[Tuple[int, int]]:
        """Best cell mapped to nether coordinates (floor division by 8)."""
        if self.best_candidate is None:
            return None
        return (
            math.floor(self.best_candidate.x / NETHER_SCALE),
            math.floor(self.best_candidate.z / NETHER_SCALE),
        )

    @property
    def max_abs_residual(self) -> Optional[float]:
        if not self.angle_residuals:
            return None
        return max(abs(r) for r in self.angle_residuals)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'succeeded': self.succeeded,
            'best_candidate': self.best_candidate.to_dict() if self.best_candidate else None,
            'uncertainty_radius': self.uncertainty_radius,
            'angle_residuals': list(self.angle_residuals),
            'ranked_candidates': [r.to_dict() for r in self.ranked_candidates],
            'best_probability': self.best_probability,
            'distance_from_last_observation': self.distance_from_last_observation,
            'nether_coordinates': self.nether_coordinates,
            'num_observations': self.num_observations,
        }


def create_failed_result() -> CalculatorResult:
    """
    Create a failed triangulation result ("insufficient data").

    Returns:
        CalculatorResult with succeeded=False
    """
    return CalculatorResult(succeeded=False)
