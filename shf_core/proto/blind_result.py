"""
Blind estimate output schema.

Blind mode has a position but no bearing, so there are no residuals.
"""

from dataclasses import dataclass
from typing import Optional

from .grid_candidate import GridCandidate


@dataclass(frozen=True)
class BlindResult:
    """
    Nearest-candidate estimate from a raw position.

    Attributes:
        succeeded: False only for an empty prior
        nearest_candidate: Closest admissible cell
        distance: Distance from the position to nearest_candidate (blocks)
        bearing: Yaw to face nearest_candidate from the position (degrees)
    """

    succeeded: bool
    nearest_candidate: Optional[GridCandidate] = None
    distance: Optional[float] = None
    bearing: Optional[float] = None

    def __post_init__(self):
        if self.succeeded and self.nearest_candidate is None:
            raise ValueError("Successful blind result needs nearest_candidate")
        if not self.succeeded and self.nearest_candidate is not None:
            raise ValueError("Failed blind result cannot carry a candidate")

    def to_dict(self) -> dict:
        return {
            'succeeded': self.succeeded,
            'nearest_candidate': (
                self.nearest_candidate.to_dict() if self.nearest_candidate else None
            ),
            'distance': self.distance,
            'bearing': self.bearing,
        }


def create_failed_blind_result() -> BlindResult:
    """Create a failed blind result (empty prior)."""
    return BlindResult(succeeded=False)
