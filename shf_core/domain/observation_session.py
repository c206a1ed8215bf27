"""
Observation session: caller-side accumulation of throws.

Holds the live observation collection (capacity 10), recomputes the
triangulation after every change and keeps the previous collection for a
one-level undo. Collections are tuples; every edit builds a new one, so
undo is a swap of two immutable values.

While a calibration run is collecting, new throws and angle nudges are
routed to the calibration engine instead of the live collection.
"""

from typing import Optional, Tuple
from dataclasses import dataclass
import logging

from shf_core.proto.observation import Observation, RawPosition
from shf_core.proto.calculator_result import CalculatorResult, create_failed_result
from shf_core.proto.blind_result import BlindResult
from shf_core.localization.triangulation_engine import TriangulationEngine
from shf_core.localization.blind_estimator import BlindEstimator
from shf_core.localization.calibration_engine import CalibrationEngine, CalibrationStateError
from shf_core.metrics import get_metrics


logger = logging.getLogger(__name__)


MAX_OBSERVATIONS = 10


@dataclass
class SessionConfig:
    """
    Configuration for an observation session.

    Attributes:
        max_observations: Live observations kept; further throws are ignored
    """

    max_observations: int = MAX_OBSERVATIONS

    def __post_init__(self):
        if self.max_observations < 1:
            raise ValueError(f"max_observations must be >= 1: {self.max_observations}")


class ObservationSession:
    """
    Accumulate observations and keep the estimate current.

    Usage:
        calibration = CalibrationEngine()
        engine = TriangulationEngine(noise_provider=calibration.get_noise_model)
        session = ObservationSession(engine, BlindEstimator(), calibration)

        result = session.add_observation(Observation.create(120.5, -40.2, -31.4))
        result = session.change_last_angle(0.01)
        result = session.undo()
    """

    def __init__(
        self,
        engine: Optional[TriangulationEngine] = None,
        blind_estimator: Optional[BlindEstimator] = None,
        calibration: Optional[CalibrationEngine] = None,
        config: Optional[SessionConfig] = None,
    ):
        """
        Initialize session.

        Args:
            engine: Triangulation engine (default engine if None)
            blind_estimator: Blind estimator (default if None)
            calibration: Calibration engine that receives throws while
                calibrating (None disables routing)
            config: Session configuration (uses defaults if None)
        """
        self.config = config or SessionConfig()
        self.calibration = calibration
        if engine is None:
            noise_provider = calibration.get_noise_model if calibration is not None else None
            engine = TriangulationEngine(noise_provider=noise_provider)
        self.engine = engine
        self.blind_estimator = blind_estimator or BlindEstimator(engine.prior)
        self.metrics = get_metrics()

        self._observations: Tuple[Observation, ...] = ()
        self._previous: Tuple[Observation, ...] = ()
        self._last_result: CalculatorResult = create_failed_result()

    @property
    def observations(self) -> Tuple[Observation, ...]:
        """Live observations, oldest first."""
        return self._observations

    @property
    def previous_observations(self) -> Tuple[Observation, ...]:
        """Collection restored by undo()."""
        return self._previous

    @property
    def last_result(self) -> CalculatorResult:
        return self._last_result

    @property
    def is_full(self) -> bool:
        return len(self._observations) >= self.config.max_observations

    @property
    def is_calibrating(self) -> bool:
        return self.calibration is not None and self.calibration.is_calibrating

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def add_observation(self, observation: Observation) -> Optional[CalculatorResult]:
        """
        Add a throw and recompute.

        Returns:
            New CalculatorResult; None if the throw went to calibration or
            was ignored because the session is full
        """
        if self.is_calibrating:
            try:
                self.calibration.add_sample(observation)
                return None
            except CalibrationStateError:
                # Run ended after the check; the throw is a live observation
                logger.debug("Calibration ended before sample was added, keeping throw")

        if self.is_full:
            self.metrics.increment_failure('observation_capacity')
            logger.debug("Session full (%d), observation ignored", len(self._observations))
            return None

        return self._replace(self._observations + (observation,))

    def add_blind_position(self, position: RawPosition) -> Optional[BlindResult]:
        """
        Blind estimate; only meaningful before the first throw.

        Returns:
            BlindResult, or None if observations are present or calibrating
        """
        if self.is_calibrating:
            return None
        if self._observations:
            self.metrics.increment_failure('blind_with_observations')
            return None
        return self.blind_estimator.estimate_blind(position)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def remove_observation(self, observation: Observation) -> Optional[CalculatorResult]:
        """
        Remove the first observation equal to the given one.

        Returns:
            New CalculatorResult, or None if it was not present
        """
        if observation not in self._observations:
            return None
        index = self._observations.index(observation)
        return self._replace(self._observations[:index] + self._observations[index + 1:])

    def change_last_angle(self, delta: float) -> Optional[CalculatorResult]:
        """
        Nudge the newest observation's corrected angle by delta degrees.

        While calibrating, the newest calibration sample is nudged instead.

        Returns:
            New CalculatorResult, or None if nothing was changed here
        """
        if self.is_calibrating:
            self.calibration.change_last_angle(delta)
            return None
        if not self._observations:
            return None
        last = self._observations[-1].with_angle_offset(delta)
        return self._replace(self._observations[:-1] + (last,))

    def toggle_last_robust(self) -> Optional[CalculatorResult]:
        """
        Flip use_robust_weighting on the newest observation.

        Returns:
            New CalculatorResult, or None if there is no observation
        """
        if self.is_calibrating or not self._observations:
            return None
        last = self._observations[-1].with_toggled_robust()
        return self._replace(self._observations[:-1] + (last,))

    def reset(self) -> CalculatorResult:
        """
        Clear observations; the cleared set stays available to undo().

        Logs the metrics summary of the search that just ended (DEBUG).
        """
        self.metrics.log_summary(logging.DEBUG)
        if self._observations:
            self._previous = self._observations
            self._observations = ()
        return self.recalculate()

    def undo(self) -> CalculatorResult:
        """Swap the live collection with the previous one."""
        self._observations, self._previous = self._previous, self._observations
        return self.recalculate()

    def recalculate(self) -> CalculatorResult:
        """Recompute the estimate, e.g. after the noise model changed."""
        if self._observations:
            self._last_result = self.engine.triangulate(self._observations)
        else:
            self._last_result = create_failed_result()
        return self._last_result

    def _replace(self, observations: Tuple[Observation, ...]) -> CalculatorResult:
        self._previous = self._observations
        self._observations = observations
        return self.recalculate()
