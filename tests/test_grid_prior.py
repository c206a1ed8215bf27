"""
Unit tests for GridPrior and the stronghold ring prior.

Tests cover:
- Weight normalisation and validation
- Immutability of candidate arrays
- Factories (uniform, rectangle, from_candidates, empty)
- Ring geometry: bounds, chunk offset, 1/r density, shared default
"""

import numpy as np
import pytest

from shf_core.proto import GridCandidate
from shf_core.localization import (
    GridPrior,
    StrongholdRingConfig,
    build_stronghold_prior,
    ring_bounds_chunks,
)
from shf_core.localization import grid_prior as grid_prior_module


class TestGridPrior:
    """Tests for generic priors."""

    def test_weights_normalised(self):
        prior = GridPrior([0, 1, 2], [0, 0, 0], [1.0, 1.0, 2.0])

        assert prior.weights.sum() == pytest.approx(1.0)
        assert prior.candidate_at(2).prior_weight == pytest.approx(0.5)

    def test_arrays_read_only(self, square_prior):
        with pytest.raises(ValueError):
            square_prior.xs[0] = 5
        with pytest.raises(ValueError):
            square_prior.weights[0] = 1.0

    def test_input_array_not_frozen(self):
        """The prior copies its inputs."""
        xs = np.array([1, 2])
        GridPrior(xs, [0, 0], [1.0, 1.0])

        xs[0] = 10
        assert xs[0] == 10

    def test_uniform(self):
        prior = GridPrior.uniform([(0, 0), (10, 5), (-3, 7)])

        assert len(prior) == 3
        assert all(c.prior_weight == pytest.approx(1 / 3) for c in prior)
        assert [c.position for c in prior] == [(0, 0), (10, 5), (-3, 7)]

    def test_from_candidates(self):
        prior = GridPrior.from_candidates([
            GridCandidate(0, 0, 3.0),
            GridCandidate(5, 5, 1.0),
        ])

        assert prior.candidates[0].prior_weight == pytest.approx(0.75)

    def test_rectangle_order(self):
        prior = GridPrior.from_rectangle(0, 2, 10, 11)

        assert len(prior) == 6
        assert [c.position for c in prior][:4] == [(0, 10), (1, 10), (2, 10), (0, 11)]

    def test_rectangle_step(self):
        prior = GridPrior.from_rectangle(0, 100, 0, 100, step=10)
        assert len(prior) == 121

    def test_empty(self):
        prior = GridPrior.empty()

        assert prior.is_empty
        assert len(prior) == 0
        assert prior.candidates == ()

    def test_zero_weights_rejected(self):
        with pytest.raises(ValueError):
            GridPrior([0, 1], [0, 0], [0.0, 0.0])

    def test_negative_weights_rejected(self):
        with pytest.raises(ValueError):
            GridPrior([0, 1], [0, 0], [1.0, -0.5])

    def test_mismatched_lengths_rejected(self):
        with pytest.raises(ValueError):
            GridPrior([0, 1], [0], [1.0, 1.0])

    def test_zero_weight_log_is_neg_inf(self):
        prior = GridPrior([0, 1], [0, 0], [1.0, 0.0])
        assert prior.log_weights[1] == -np.inf


class TestStrongholdPrior:
    """Tests for the stronghold ring geometry."""

    def test_ring_bounds(self):
        assert ring_bounds_chunks(0) == (88.0, 168.0)
        assert ring_bounds_chunks(1) == (280.0, 360.0)

    def test_first_ring_candidates_inside_bounds(self, first_ring_prior):
        cx = (first_ring_prior.xs - 4) / 16
        cz = (first_ring_prior.zs - 4) / 16
        r = np.hypot(cx, cz)

        assert np.all(r >= 88.0)
        assert np.all(r <= 168.0)

    def test_chunk_offset(self, first_ring_prior):
        """Candidates sit at block (16 * cx + 4, 16 * cz + 4)."""
        assert np.all((first_ring_prior.xs - 4) % 16 == 0)
        assert np.all((first_ring_prior.zs - 4) % 16 == 0)

    def test_density_falls_with_radius(self, first_ring_prior):
        xs = first_ring_prior.xs
        zs = first_ring_prior.zs
        inner = np.argmin(np.hypot(xs, zs))
        outer = np.argmax(np.hypot(xs, zs))

        assert first_ring_prior.weights[inner] > first_ring_prior.weights[outer]

    def test_ring_mass_follows_stronghold_count(self):
        prior = build_stronghold_prior(StrongholdRingConfig(num_rings=2, chunk_stride=2))
        r = np.hypot((prior.xs - 4) / 16, (prior.zs - 4) / 16)

        ring0 = prior.weights[r <= 168.0].sum()
        ring1 = prior.weights[r >= 280.0].sum()

        # 3 vs 6 strongholds
        assert ring1 / ring0 == pytest.approx(2.0, rel=0.05)

    def test_stride_reduces_candidates(self, first_ring_prior):
        coarse = build_stronghold_prior(StrongholdRingConfig(num_rings=1, chunk_stride=4))
        assert len(coarse) < len(first_ring_prior) / 10

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            StrongholdRingConfig(num_rings=0)
        with pytest.raises(ValueError):
            StrongholdRingConfig(num_rings=9)
        with pytest.raises(ValueError):
            StrongholdRingConfig(chunk_stride=0)

    def test_default_prior_shared(self, monkeypatch, first_ring_prior):
        """get_default_prior builds once and returns the same object."""
        calls = []

        def fake_build(config=None):
            calls.append(config)
            return first_ring_prior

        monkeypatch.setattr(grid_prior_module, '_default_prior', None)
        monkeypatch.setattr(grid_prior_module, 'build_stronghold_prior', fake_build)

        first = grid_prior_module.get_default_prior()
        second = grid_prior_module.get_default_prior()

        assert first is second is first_ring_prior
        assert len(calls) == 1
