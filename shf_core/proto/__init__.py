"""
Protocol Module: Immutable records exchanged with the caller.

- Observation / RawPosition: inputs
- GridCandidate: admissible target cell
- NoiseModel: shared bearing noise parameter
- CalculatorResult / BlindResult: outputs
"""

from .observation import (
    Observation,
    RawPosition,
    normalize_angle,
)
from .grid_candidate import GridCandidate
from .noise_model import (
    NoiseModel,
    DEFAULT_SIGMA_DEGREES,
    create_default_noise_model,
)
from .calculator_result import (
    CalculatorResult,
    RankedCandidate,
    NETHER_SCALE,
    create_failed_result,
)
from .blind_result import (
    BlindResult,
    create_failed_blind_result,
)

__all__ = [
    # Inputs
    'Observation',
    'RawPosition',
    'normalize_angle',
    # Candidates
    'GridCandidate',
    # Noise
    'NoiseModel',
    'DEFAULT_SIGMA_DEGREES',
    'create_default_noise_model',
    # Outputs
    'CalculatorResult',
    'RankedCandidate',
    'NETHER_SCALE',
    'create_failed_result',
    'BlindResult',
    'create_failed_blind_result',
]
