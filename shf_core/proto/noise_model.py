"""
Angular measurement noise model.

A single scalar (standard deviation of the bearing error) shared by every
observation. Written only by the calibration flow, read by triangulation
on every call. The record is frozen: an update is a whole-record replace.
"""

from dataclasses import dataclass
import math


DEFAULT_SIGMA_DEGREES = 0.1


@dataclass(frozen=True)
class NoiseModel:
    """
    Bearing noise parameter.

    Attributes:
        sigma_degrees: Standard deviation of angular error (degrees, > 0)
        sample_count: Number of calibration samples behind the estimate
            (0 for a configured default)
    """

    sigma_degrees: float
    sample_count: int = 0

    def __post_init__(self):
        """Validate noise model."""
        if not math.isfinite(self.sigma_degrees) or self.sigma_degrees <= 0:
            raise ValueError(f"Sigma must be positive and finite: {self.sigma_degrees}")

        if self.sample_count < 0:
            raise ValueError(f"Sample count cannot be negative: {self.sample_count}")

    @property
    def is_calibrated(self) -> bool:
        """True if the value came from a calibration run."""
        return self.sample_count > 0

    def to_dict(self) -> dict:
        return {
            'sigma_degrees': self.sigma_degrees,
            'sample_count': self.sample_count,
        }


def create_default_noise_model(sigma_degrees: float = DEFAULT_SIGMA_DEGREES) -> NoiseModel:
    """
    Create an uncalibrated noise model.

    Args:
        sigma_degrees: Configured default sigma

    Returns:
        NoiseModel with sample_count 0
    """
    return NoiseModel(sigma_degrees=sigma_degrees, sample_count=0)
