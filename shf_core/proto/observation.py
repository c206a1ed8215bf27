"""
Observation and raw position records.

An Observation is one eye throw: the observer's world position and the
bearing (yaw, degrees) they measured. Observations are frozen; every edit
returns a new record so callers can keep the previous collection for undo.

Angle convention (Minecraft yaw):
    0 deg   -> +Z
    90 deg  -> -X
    -90 deg -> +X
    180 deg -> -Z
"""

from dataclasses import dataclass, replace
import math


def normalize_angle(angle_deg: float) -> float:
    """
    Wrap an angle to the half-open interval (-180, 180].

    Args:
        angle_deg: Angle in degrees

    Returns:
        Equivalent angle in (-180, 180]
    """
    wrapped = math.fmod(angle_deg, 360.0)
    if wrapped <= -180.0:
        wrapped += 360.0
    elif wrapped > 180.0:
        wrapped -= 360.0
    return wrapped


@dataclass(frozen=True)
class RawPosition:
    """
    Observer position without directional information (blind mode).

    Attributes:
        x: World X coordinate (blocks)
        z: World Z coordinate (blocks)
    """

    x: float
    z: float

    def to_dict(self) -> dict:
        return {'x': self.x, 'z': self.z}


@dataclass(frozen=True)
class Observation:
    """
    One directional measurement ("throw").

    Attributes:
        origin_x: Observer X at time of measurement (blocks)
        origin_z: Observer Z at time of measurement (blocks)
        measured_angle: Raw bearing reading (degrees)
        corrected_angle: measured_angle plus accumulated manual offset (degrees)
        use_robust_weighting: Score with the heavy-tailed likelihood

    Notes:
        - Both angles are normalised to (-180, 180] on construction
        - Only corrected_angle is used for scoring
    """

    origin_x: float
    origin_z: float
    measured_angle: float
    corrected_angle: float
    use_robust_weighting: bool = False

    def __post_init__(self):
        """Validate and normalise angles."""
        for name in ('origin_x', 'origin_z', 'measured_angle', 'corrected_angle'):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite: {value}")

        # frozen dataclass: write through object.__setattr__
        object.__setattr__(self, 'measured_angle', normalize_angle(self.measured_angle))
        object.__setattr__(self, 'corrected_angle', normalize_angle(self.corrected_angle))

    @classmethod
    def create(
        cls,
        x: float,
        z: float,
        angle: float,
        use_robust_weighting: bool = False
    ) -> 'Observation':
        """Create an uncorrected observation (corrected == measured)."""
        return cls(
            origin_x=x,
            origin_z=z,
            measured_angle=angle,
            corrected_angle=angle,
            use_robust_weighting=use_robust_weighting,
        )

    @property
    def origin(self):
        """Observer position as (x, z)."""
        return (self.origin_x, self.origin_z)

    @property
    def correction(self) -> float:
        """Accumulated manual offset (corrected - measured), degrees."""
        return normalize_angle(self.corrected_angle - self.measured_angle)

    def with_angle_offset(self, delta: float) -> 'Observation':
        """
        Return a copy with corrected_angle nudged by delta degrees.

        Models the observer rotating without re-measuring; the measured
        angle is kept so the total correction stays visible.
        """
        return replace(self, corrected_angle=self.corrected_angle + delta)

    def with_toggled_robust(self) -> 'Observation':
        """Return a copy with use_robust_weighting flipped."""
        return replace(self, use_robust_weighting=not self.use_robust_weighting)

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            'origin_x': self.origin_x,
            'origin_z': self.origin_z,
            'measured_angle': self.measured_angle,
            'corrected_angle': self.corrected_angle,
            'correction': self.correction,
            'use_robust_weighting': self.use_robust_weighting,
        }
