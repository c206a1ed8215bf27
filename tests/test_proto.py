"""
Unit tests for proto records.

Tests cover:
- Angle normalisation and Observation validation
- Immutable edits (angle offset, robust toggle)
- NoiseModel validation
- CalculatorResult / BlindResult consistency checks
"""

import pytest

from shf_core.proto import (
    BlindResult,
    CalculatorResult,
    GridCandidate,
    NoiseModel,
    Observation,
    RawPosition,
    create_default_noise_model,
    create_failed_blind_result,
    create_failed_result,
    normalize_angle,
)


class TestNormalizeAngle:
    """Tests for angle wrapping to (-180, 180]."""

    @pytest.mark.parametrize("angle,expected", [
        (0.0, 0.0),
        (180.0, 180.0),
        (-180.0, 180.0),
        (190.0, -170.0),
        (370.0, 10.0),
        (-540.0, 180.0),
        (-179.5, -179.5),
    ])
    def test_wrapping(self, angle, expected):
        assert normalize_angle(angle) == pytest.approx(expected)


class TestObservation:
    """Tests for Observation records."""

    def test_create_sets_both_angles(self):
        obs = Observation.create(10.0, -20.0, 45.0)

        assert obs.measured_angle == 45.0
        assert obs.corrected_angle == 45.0
        assert obs.correction == 0.0
        assert not obs.use_robust_weighting
        assert obs.origin == (10.0, -20.0)

    def test_angles_normalised(self):
        obs = Observation(0.0, 0.0, 350.0, -190.0)

        assert obs.measured_angle == pytest.approx(-10.0)
        assert obs.corrected_angle == pytest.approx(170.0)

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            Observation.create(float('nan'), 0.0, 10.0)
        with pytest.raises(ValueError):
            Observation.create(0.0, 0.0, float('inf'))

    def test_with_angle_offset_returns_new_record(self):
        """Nudging the angle never mutates the original."""
        obs = Observation.create(1.0, 2.0, 30.0)
        nudged = obs.with_angle_offset(0.01).with_angle_offset(0.01)

        assert obs.corrected_angle == 30.0
        assert nudged.measured_angle == 30.0
        assert nudged.corrected_angle == pytest.approx(30.02)
        assert nudged.correction == pytest.approx(0.02)
        assert nudged is not obs

    def test_with_toggled_robust(self):
        obs = Observation.create(1.0, 2.0, 30.0)
        toggled = obs.with_toggled_robust()

        assert toggled.use_robust_weighting
        assert not obs.use_robust_weighting
        assert toggled.with_toggled_robust() == obs

    def test_frozen(self):
        obs = Observation.create(1.0, 2.0, 30.0)
        with pytest.raises(AttributeError):
            obs.corrected_angle = 10.0

    def test_to_dict(self):
        d = Observation.create(1.0, 2.0, 30.0, use_robust_weighting=True).to_dict()

        assert d['origin_x'] == 1.0
        assert d['corrected_angle'] == 30.0
        assert d['use_robust_weighting'] is True


class TestNoiseModel:
    """Tests for NoiseModel validation."""

    def test_default(self):
        model = create_default_noise_model()

        assert model.sigma_degrees == 0.1
        assert model.sample_count == 0
        assert not model.is_calibrated

    @pytest.mark.parametrize("sigma", [0.0, -1.0, float('nan'), float('inf')])
    def test_invalid_sigma(self, sigma):
        with pytest.raises(ValueError):
            NoiseModel(sigma_degrees=sigma)

    def test_negative_sample_count(self):
        with pytest.raises(ValueError):
            NoiseModel(sigma_degrees=0.1, sample_count=-1)


class TestResults:
    """Tests for result record consistency."""

    def test_failed_result(self):
        result = create_failed_result()

        assert not result.succeeded
        assert result.best_candidate is None
        assert result.uncertainty_radius is None
        assert result.angle_residuals == ()
        assert result.nether_coordinates is None
        assert result.to_dict()['succeeded'] is False

    def test_success_requires_candidate(self):
        with pytest.raises(ValueError):
            CalculatorResult(succeeded=True, uncertainty_radius=1.0)

    def test_residual_count_must_match(self):
        with pytest.raises(ValueError):
            CalculatorResult(
                succeeded=True,
                best_candidate=GridCandidate(0, 0),
                uncertainty_radius=1.0,
                angle_residuals=(0.1,),
                num_observations=2,
            )

    def test_nether_coordinates_floor(self):
        result = CalculatorResult(
            succeeded=True,
            best_candidate=GridCandidate(1604, -12),
            uncertainty_radius=5.0,
            angle_residuals=(0.0,),
            num_observations=1,
        )

        assert result.nether_coordinates == (200, -2)
        assert result.max_abs_residual == 0.0

    def test_blind_result_consistency(self):
        assert not create_failed_blind_result().succeeded

        with pytest.raises(ValueError):
            BlindResult(succeeded=True)

        result = BlindResult(succeeded=True, nearest_candidate=GridCandidate(4, 4), distance=1.0)
        assert result.to_dict()['nearest_candidate']['x'] == 4

    def test_grid_candidate(self):
        candidate = GridCandidate(3, 4, 0.5)

        assert candidate.position == (3, 4)
        assert candidate.distance_to(0.0, 0.0) == pytest.approx(5.0)

        with pytest.raises(ValueError):
            GridCandidate(0, 0, -1.0)

    def test_raw_position(self):
        assert RawPosition(1.5, -2.0).to_dict() == {'x': 1.5, 'z': -2.0}
