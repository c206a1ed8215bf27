"""
Grid candidate record.

One admissible target cell and its prior probability mass. Candidates are
generated once from world-geometry constants and never mutated.
"""

from dataclasses import dataclass
from typing import Tuple
import math


@dataclass(frozen=True)
class GridCandidate:
    """
    Admissible target cell.

    Attributes:
        x: Cell X coordinate (blocks)
        z: Cell Z coordinate (blocks)
        prior_weight: Prior probability mass of this cell (>= 0)
    """

    x: int
    z: int
    prior_weight: float = 1.0

    def __post_init__(self):
        if self.prior_weight < 0 or not math.isfinite(self.prior_weight):
            raise ValueError(f"Prior weight must be finite and non-negative: {self.prior_weight}")

    @property
    def position(self) -> Tuple[int, int]:
        """Cell position as (x, z)."""
        return (self.x, self.z)

    def distance_to(self, x: float, z: float) -> float:
        """Euclidean distance from this cell to (x, z)."""
        return math.hypot(self.x - x, self.z - z)

    def to_dict(self) -> dict:
        return {'x': self.x, 'z': self.z, 'prior_weight': self.prior_weight}
