"""
Grid prior: admissible target cells and their prior mass.

The default prior encodes the stronghold generation geometry. Strongholds
are placed in concentric rings around the world origin; within a ring the
radial distance is uniform and the ring's share of the total is its
stronghold count. A stronghold sits at block (16*cx + 4, 16*cz + 4) of its
chunk (cx, cz), which is the cell a candidate stands for.

The prior is built once and shared by reference; its arrays are read-only.
"""

from typing import Iterable, Iterator, List, Optional, Sequence, Tuple
from dataclasses import dataclass, field
import logging
import threading
import numpy as np

from shf_core.proto.grid_candidate import GridCandidate


logger = logging.getLogger(__name__)


# Ring geometry (chunks)
RING_SPREAD_CHUNKS = 32
RING_STRONGHOLD_COUNTS = (3, 6, 10, 15, 21, 28, 36, 9)
CHUNK_SIZE = 16
CHUNK_TARGET_OFFSET = 4


def _as_sequence(values):
    """Materialise generators; arrays and lists pass through."""
    if isinstance(values, (np.ndarray, list, tuple)):
        return values
    return list(values)


def ring_bounds_chunks(ring: int) -> Tuple[float, float]:
    """
    Radial bounds of a ring in chunks.

    Ring k is centred on (4 + 6k) * 32 chunks and spreads 1.25 * 32 chunks
    either side.

    Args:
        ring: Ring index (0-based)

    Returns:
        (r_min, r_max) in chunks
    """
    centre = (4 + 6 * ring) * RING_SPREAD_CHUNKS
    half_width = 1.25 * RING_SPREAD_CHUNKS
    return (centre - half_width, centre + half_width)


@dataclass
class StrongholdRingConfig:
    """
    Configuration for the stronghold ring prior.

    Attributes:
        num_rings: Number of rings to include, innermost first (1-8)
        chunk_stride: Keep every n-th chunk along each axis (1 = full grid)
        stronghold_counts: Strongholds per ring
    """

    num_rings: int = 8
    chunk_stride: int = 1
    stronghold_counts: Sequence[int] = field(default_factory=lambda: RING_STRONGHOLD_COUNTS)

    def __post_init__(self):
        if not 1 <= self.num_rings <= len(self.stronghold_counts):
            raise ValueError(
                f"num_rings must be in [1, {len(self.stronghold_counts)}]: {self.num_rings}"
            )
        if self.chunk_stride < 1:
            raise ValueError(f"chunk_stride must be >= 1: {self.chunk_stride}")


class GridPrior:
    """
    Immutable set of candidate cells with normalised prior weights.

    Usage:
        prior = GridPrior.uniform([(50, 50), (60, 40)])
        prior = build_stronghold_prior(StrongholdRingConfig(num_rings=1))

        for candidate in prior:
            print(candidate.x, candidate.z, candidate.prior_weight)

    Storage is columnar (xs, zs, weights) so engines can score the whole
    set with numpy; GridCandidate records are created on access.
    """

    def __init__(self, xs: Iterable[int], zs: Iterable[int], weights: Iterable[float]):
        """
        Initialize prior.

        Args:
            xs: Candidate X coordinates
            zs: Candidate Z coordinates
            weights: Unnormalised prior weights (>= 0)

        Raises:
            ValueError: Mismatched lengths, negative weights, or a
                non-empty prior whose weights sum to zero
        """
        xs = np.array(_as_sequence(xs), dtype=np.int64)
        zs = np.array(_as_sequence(zs), dtype=np.int64)
        weights = np.array(_as_sequence(weights), dtype=float)

        if not (xs.shape == zs.shape == weights.shape) or xs.ndim != 1:
            raise ValueError(
                f"Candidate arrays must be 1-D and equal length: "
                f"{xs.shape}, {zs.shape}, {weights.shape}"
            )

        if weights.size > 0:
            if np.any(weights < 0) or not np.all(np.isfinite(weights)):
                raise ValueError("Prior weights must be finite and non-negative")
            total = weights.sum()
            if total <= 0:
                raise ValueError("Prior weights sum to zero")
            weights = weights / total

        with np.errstate(divide='ignore'):
            log_weights = np.log(weights)

        for array in (xs, zs, weights, log_weights):
            array.setflags(write=False)

        self._xs = xs
        self._zs = zs
        self._weights = weights
        self._log_weights = log_weights

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def from_candidates(cls, candidates: Iterable[GridCandidate]) -> 'GridPrior':
        """Build a prior from GridCandidate records."""
        candidates = list(candidates)
        return cls(
            [c.x for c in candidates],
            [c.z for c in candidates],
            [c.prior_weight for c in candidates],
        )

    @classmethod
    def uniform(cls, points: Iterable[Tuple[int, int]]) -> 'GridPrior':
        """Build a prior with equal weight on every (x, z) point."""
        points = list(points)
        return cls(
            [p[0] for p in points],
            [p[1] for p in points],
            [1.0] * len(points),
        )

    @classmethod
    def from_rectangle(
        cls,
        x_min: int,
        x_max: int,
        z_min: int,
        z_max: int,
        step: int = 1
    ) -> 'GridPrior':
        """
        Build a uniform prior over an axis-aligned rectangle (bounds inclusive).

        Candidates are ordered row-major by z, then x.
        """
        if step < 1:
            raise ValueError(f"step must be >= 1: {step}")
        xs = np.arange(x_min, x_max + 1, step)
        zs = np.arange(z_min, z_max + 1, step)
        grid_z, grid_x = np.meshgrid(zs, xs, indexing='ij')
        flat_x = grid_x.ravel()
        return cls(flat_x, grid_z.ravel(), np.ones(flat_x.size))

    @classmethod
    def empty(cls) -> 'GridPrior':
        """Build a prior with no candidates."""
        return cls([], [], [])

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def xs(self) -> np.ndarray:
        """Candidate X coordinates (read-only)."""
        return self._xs

    @property
    def zs(self) -> np.ndarray:
        """Candidate Z coordinates (read-only)."""
        return self._zs

    @property
    def weights(self) -> np.ndarray:
        """Normalised prior weights (read-only)."""
        return self._weights

    @property
    def log_weights(self) -> np.ndarray:
        """Log of normalised prior weights; -inf for zero mass."""
        return self._log_weights

    @property
    def is_empty(self) -> bool:
        return self._xs.size == 0

    def __len__(self) -> int:
        return int(self._xs.size)

    def __iter__(self) -> Iterator[GridCandidate]:
        for i in range(len(self)):
            yield self.candidate_at(i)

    def candidate_at(self, index: int) -> GridCandidate:
        """
        Get candidate by index.

        Args:
            index: Position in the prior's candidate order

        Returns:
            GridCandidate with its normalised prior weight
        """
        return GridCandidate(
            x=int(self._xs[index]),
            z=int(self._zs[index]),
            prior_weight=float(self._weights[index]),
        )

    @property
    def candidates(self) -> Tuple[GridCandidate, ...]:
        """All candidates as records (materialises the whole set)."""
        return tuple(self)

    def __repr__(self) -> str:
        return f"GridPrior(num_candidates={len(self)})"


def _ring_chunks(r_min: float, r_max: float, stride: int) -> Tuple[np.ndarray, np.ndarray]:
    """Chunk coordinates whose distance from origin lies in [r_min, r_max]."""
    xs: List[np.ndarray] = []
    zs: List[np.ndarray] = []
    limit = int(np.floor(r_max))
    for cz in range(-limit, limit + 1, stride):
        cx = np.arange(-limit, limit + 1, stride)
        dist = np.hypot(cx, cz)
        row = cx[(dist >= r_min) & (dist <= r_max)]
        if row.size:
            xs.append(row)
            zs.append(np.full(row.size, cz))
    if not xs:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
    return np.concatenate(xs), np.concatenate(zs)


def build_stronghold_prior(config: Optional[StrongholdRingConfig] = None) -> GridPrior:
    """
    Build the stronghold ring prior.

    Each chunk inside ring k receives mass proportional to
    count_k / (2 * pi * r * ring_width): radial distance is uniform across
    the ring, so density per chunk falls off as 1 / r.

    Args:
        config: Ring configuration (uses defaults if None)

    Returns:
        GridPrior over stronghold target blocks
    """
    config = config or StrongholdRingConfig()

    all_x: List[np.ndarray] = []
    all_z: List[np.ndarray] = []
    all_w: List[np.ndarray] = []

    for ring in range(config.num_rings):
        r_min, r_max = ring_bounds_chunks(ring)
        cx, cz = _ring_chunks(r_min, r_max, config.chunk_stride)
        r = np.hypot(cx, cz)
        weight = config.stronghold_counts[ring] / (2.0 * np.pi * r * (r_max - r_min))

        all_x.append(cx * CHUNK_SIZE + CHUNK_TARGET_OFFSET)
        all_z.append(cz * CHUNK_SIZE + CHUNK_TARGET_OFFSET)
        all_w.append(weight)

    prior = GridPrior(np.concatenate(all_x), np.concatenate(all_z), np.concatenate(all_w))
    logger.info(
        "Built stronghold prior: %d rings, %d candidates (stride %d)",
        config.num_rings, len(prior), config.chunk_stride,
    )
    return prior


# Shared default prior, built on first use
_default_prior: Optional[GridPrior] = None
_default_prior_lock = threading.Lock()


def get_default_prior() -> GridPrior:
    """
    Get the process-wide stronghold prior.

    Built once from StrongholdRingConfig defaults and shared by reference.
    The default is the full chunk grid of all 8 rings (about 3.2 million
    candidates): building it takes around a second, and each observation
    adds a few tenths of a second to triangulate(). Build a coarser prior
    with chunk_stride > 1 and pass it to the engines where that is too slow.

    Returns:
        GridPrior singleton
    """
    global _default_prior
    with _default_prior_lock:
        if _default_prior is None:
            _default_prior = build_stronghold_prior()
        return _default_prior
