"""
Calibration Engine: learn the bearing noise sigma from controlled throws.

All calibration samples are aimed at one shared target. The residual of
each sample against the true bearing is its measurement error, and sigma
is re-estimated as the sample standard deviation of those residuals.

State machine:
    IDLE --begin_calibration()--> COLLECTING --target count reached--> COMPUTING --> IDLE
                                   |  ^
                                   |  +-- add_sample(), change_last_angle()
                                   +--cancel()--> IDLE (NoiseModel untouched)

Samples may be supplied from a different thread than the one driving
triangulation. add_sample(wait=True) blocks on a condition variable until
the run completes or is cancelled. The NoiseModel is replaced as a whole
record under a lock, so readers see either the old or the new value.
"""

from typing import Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
import logging
import threading
import time
import numpy as np

from shf_core.proto.observation import Observation, RawPosition, normalize_angle
from shf_core.proto.noise_model import (
    NoiseModel,
    DEFAULT_SIGMA_DEGREES,
    create_default_noise_model,
)
from shf_core.localization.geometry import bearing_to, intersect_bearings
from shf_core.metrics import get_metrics


logger = logging.getLogger(__name__)


MIN_CALIBRATION_SAMPLES = 2

# Outcomes kept for late waiters
_MAX_KEPT_OUTCOMES = 8


class CalibrationState(Enum):
    """Calibration lifecycle state."""

    IDLE = "idle"
    COLLECTING = "collecting"
    COMPUTING = "computing"


class CalibrationError(Exception):
    """Base class for calibration errors."""


class CalibrationStateError(CalibrationError):
    """Operation not valid in the current calibration state."""


class CalibrationCancelledError(CalibrationError):
    """The calibration run was cancelled while a caller waited on it."""


class CancellationToken:
    """
    Cooperative cancellation signal.

    Usage:
        token = CancellationToken()
        worker = threading.Thread(
            target=engine.add_sample, args=(obs,),
            kwargs={'wait': True, 'cancel_token': token},
        )
        ...
        token.cancel()   # waiter raises CalibrationCancelledError
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        """Signal cancellation and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def register(self, callback: Callable[[], None]):
        """Run callback on cancel (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def unregister(self, callback: Callable[[], None]):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


@dataclass
class CalibrationConfig:
    """
    Configuration for calibration.

    Attributes:
        target_sample_count: Samples that complete a run
        default_sigma_degrees: Sigma before any calibration
        min_sigma_degrees: Floor for the estimated sigma
    """

    target_sample_count: int = 10
    default_sigma_degrees: float = DEFAULT_SIGMA_DEGREES
    min_sigma_degrees: float = 1e-3

    def __post_init__(self):
        if self.target_sample_count < 1:
            raise ValueError(f"target_sample_count must be >= 1: {self.target_sample_count}")
        if self.min_sigma_degrees <= 0:
            raise ValueError(f"min_sigma_degrees must be positive: {self.min_sigma_degrees}")
        if self.default_sigma_degrees < self.min_sigma_degrees:
            raise ValueError("default_sigma_degrees is below min_sigma_degrees")


@dataclass(frozen=True)
class CalibrationResult:
    """
    Outcome of one calibration run.

    Attributes:
        succeeded: True if the NoiseModel was updated
        noise_model: Updated model (None on failure)
        residuals: Per-sample residuals against the target (degrees)
        target: True target used (given or inferred)
        mean_residual: Mean residual, i.e. systematic bias (degrees)
        reason: Failure reason code
    """

    succeeded: bool
    noise_model: Optional[NoiseModel] = None
    residuals: Tuple[float, ...] = ()
    target: Optional[Tuple[float, float]] = None
    mean_residual: Optional[float] = None
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'succeeded': self.succeeded,
            'noise_model': self.noise_model.to_dict() if self.noise_model else None,
            'residuals': list(self.residuals),
            'target': self.target,
            'mean_residual': self.mean_residual,
            'reason': self.reason,
        }


@dataclass
class _Outcome:
    result: Optional[CalibrationResult] = None
    cancelled: bool = False


class CalibrationEngine:
    """
    Estimate the angular noise sigma from repeated throws at a known target.

    Usage:
        engine = CalibrationEngine(CalibrationConfig(target_sample_count=10))

        engine.begin_calibration(target=RawPosition(1204.0, -596.0))
        for obs in throws:
            result = engine.add_sample(obs)   # non-None on the completing sample

        sigma = engine.get_noise_model().sigma_degrees

    Without a target, the target is inferred as the least-squares
    intersection of the sample bearing lines.
    """

    def __init__(
        self,
        config: Optional[CalibrationConfig] = None,
        noise_model: Optional[NoiseModel] = None
    ):
        """
        Initialize calibration engine.

        Args:
            config: Calibration configuration (uses defaults if None)
            noise_model: Initial noise model (configured default if None)
        """
        self.config = config or CalibrationConfig()
        self.metrics = get_metrics()

        self._cond = threading.Condition()
        self._state = CalibrationState.IDLE
        self._samples: List[Observation] = []
        self._target: Optional[RawPosition] = None
        self._run_id = 0
        self._outcomes: Dict[int, _Outcome] = {}

        self._noise_lock = threading.Lock()
        self._noise_model = noise_model or create_default_noise_model(
            self.config.default_sigma_degrees
        )

    # ------------------------------------------------------------------
    # Noise model access (any thread)
    # ------------------------------------------------------------------

    def get_noise_model(self) -> NoiseModel:
        """Current noise model (old or fully updated, never partial)."""
        with self._noise_lock:
            return self._noise_model

    @property
    def noise_model(self) -> NoiseModel:
        return self.get_noise_model()

    def restore(self, noise_model: NoiseModel):
        """Replace the noise model, e.g. with a persisted value."""
        with self._noise_lock:
            self._noise_model = noise_model
        logger.info("Noise model restored: sigma=%.4f deg", noise_model.sigma_degrees)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> CalibrationState:
        with self._cond:
            return self._state

    @property
    def is_calibrating(self) -> bool:
        return self.state == CalibrationState.COLLECTING

    @property
    def samples(self) -> Tuple[Observation, ...]:
        with self._cond:
            return tuple(self._samples)

    @property
    def sample_count(self) -> int:
        with self._cond:
            return len(self._samples)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin_calibration(self, target: Optional[RawPosition] = None) -> int:
        """
        Start a run: IDLE -> COLLECTING with an empty sample buffer.

        Args:
            target: Known true target; inferred from samples if None

        Returns:
            Run id

        Raises:
            CalibrationStateError: A run is already in progress
        """
        with self._cond:
            if self._state != CalibrationState.IDLE:
                raise CalibrationStateError(f"Cannot begin calibration while {self._state.value}")
            self._run_id += 1
            self._samples = []
            self._target = target
            self._state = CalibrationState.COLLECTING
            self.metrics.increment('calibration_runs')
            logger.info(
                "Calibration run %d started (target=%s, samples needed=%d)",
                self._run_id, target, self.config.target_sample_count,
            )
            return self._run_id

    def add_sample(
        self,
        observation: Observation,
        wait: bool = False,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> Optional[CalibrationResult]:
        """
        Append a calibration sample.

        The sample that reaches target_sample_count runs the estimation and
        gets the result back directly.

        Args:
            observation: Throw aimed at the calibration target
            wait: Block until the run completes or is cancelled
            timeout: Maximum wait (seconds), None for unbounded
            cancel_token: Token that cancels the run and aborts the wait

        Returns:
            CalibrationResult if this call completed the run or waited for it,
            otherwise None

        Raises:
            CalibrationStateError: Not collecting
            CalibrationCancelledError: Run cancelled during the wait
            TimeoutError: Wait exceeded timeout
        """
        with self._cond:
            if self._state != CalibrationState.COLLECTING:
                raise CalibrationStateError(f"Cannot add sample while {self._state.value}")

            self._samples.append(observation)
            self.metrics.increment('calibration_samples')
            run_id = self._run_id
            logger.debug(
                "Calibration sample %d/%d: %s",
                len(self._samples), self.config.target_sample_count, observation.to_dict(),
            )

            if len(self._samples) >= self.config.target_sample_count:
                return self._complete_locked()

        if wait:
            return self._wait(run_id, timeout, cancel_token)
        return None

    def change_last_angle(self, delta: float) -> bool:
        """
        Nudge the newest sample's corrected angle by delta degrees.

        Returns:
            True if a sample was replaced
        """
        with self._cond:
            if self._state != CalibrationState.COLLECTING or not self._samples:
                return False
            self._samples[-1] = self._samples[-1].with_angle_offset(delta)
            return True

    def finish_calibration(self) -> CalibrationResult:
        """
        Compute from the samples collected so far and end the run.

        Returns:
            CalibrationResult (failure if fewer than 2 usable samples)

        Raises:
            CalibrationStateError: Not collecting
        """
        with self._cond:
            if self._state != CalibrationState.COLLECTING:
                raise CalibrationStateError(f"Cannot finish calibration while {self._state.value}")
            return self._complete_locked()

    def wait_for_completion(
        self,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> CalibrationResult:
        """
        Block until the current run completes.

        Raises:
            CalibrationStateError: No run has been started
            CalibrationCancelledError: Run cancelled
            TimeoutError: Wait exceeded timeout
        """
        with self._cond:
            if self._run_id == 0:
                raise CalibrationStateError("No calibration run to wait for")
            run_id = self._run_id
        return self._wait(run_id, timeout, cancel_token)

    def cancel(self) -> bool:
        """
        Abort the current run: discard samples, return to IDLE.

        The NoiseModel is left exactly as it was. Waiters raise
        CalibrationCancelledError.

        Returns:
            True if a run was cancelled
        """
        with self._cond:
            if self._state != CalibrationState.COLLECTING:
                return False
            discarded = len(self._samples)
            self._samples = []
            self._target = None
            self._state = CalibrationState.IDLE
            self._record_outcome_locked(_Outcome(cancelled=True))
            self._cond.notify_all()

        self.metrics.increment_failure('calibration_cancelled')
        logger.info("Calibration run cancelled, %d samples discarded", discarded)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _wait(
        self,
        run_id: int,
        timeout: Optional[float],
        cancel_token: Optional[CancellationToken]
    ) -> CalibrationResult:
        """Wait on the condition until run_id has an outcome."""
        deadline = None if timeout is None else time.monotonic() + timeout

        def on_cancel():
            # Cancels only the run this waiter belongs to
            with self._cond:
                same_run = self._run_id == run_id
            if same_run:
                self.cancel()

        if cancel_token is not None:
            cancel_token.register(on_cancel)

        try:
            with self._cond:
                while run_id not in self._outcomes:
                    remaining = None if deadline is None else deadline - time.monotonic()
                    if remaining is not None and remaining <= 0:
                        raise TimeoutError(f"Calibration run {run_id} did not complete in time")
                    self._cond.wait(remaining)
                outcome = self._outcomes[run_id]
        finally:
            if cancel_token is not None:
                cancel_token.unregister(on_cancel)

        if outcome.cancelled:
            raise CalibrationCancelledError(f"Calibration run {run_id} was cancelled")
        return outcome.result

    def _record_outcome_locked(self, outcome: _Outcome):
        self._outcomes[self._run_id] = outcome
        for old in sorted(self._outcomes)[:-_MAX_KEPT_OUTCOMES]:
            del self._outcomes[old]

    def _complete_locked(self) -> CalibrationResult:
        """COLLECTING -> COMPUTING -> IDLE; caller holds the condition."""
        self._state = CalibrationState.COMPUTING
        try:
            result = self._estimate(list(self._samples), self._target)
            if result.succeeded:
                with self._noise_lock:
                    self._noise_model = result.noise_model
        finally:
            self._samples = []
            self._target = None
            self._state = CalibrationState.IDLE

        self._record_outcome_locked(_Outcome(result=result))
        self._cond.notify_all()

        if result.succeeded:
            self.metrics.increment('calibration_completed')
            self.metrics.record_histogram('calibrated_sigma_deg', result.noise_model.sigma_degrees)
            logger.info(
                "Calibration run %d complete: sigma=%.4f deg from %d samples",
                self._run_id, result.noise_model.sigma_degrees, result.noise_model.sample_count,
            )
        else:
            self.metrics.increment_failure(f'calibration_{result.reason}')
            logger.warning("Calibration run %d failed: %s", self._run_id, result.reason)
        return result

    def _estimate(
        self,
        samples: List[Observation],
        target: Optional[RawPosition]
    ) -> CalibrationResult:
        """
        Sample standard deviation of residuals against the target.

        Samples whose origin coincides with the target have no bearing and
        are skipped.
        """
        if target is not None:
            target_xz = (target.x, target.z)
        else:
            target_xz = intersect_bearings(samples)
            if target_xz is None:
                return CalibrationResult(succeeded=False, reason='no_target')

        residuals = []
        for obs in samples:
            true_bearing = bearing_to(obs.origin_x, obs.origin_z, *target_xz)
            if true_bearing is None:
                continue
            residuals.append(normalize_angle(obs.corrected_angle - true_bearing))

        if len(residuals) < MIN_CALIBRATION_SAMPLES:
            return CalibrationResult(
                succeeded=False,
                residuals=tuple(residuals),
                target=target_xz,
                reason='too_few_samples',
            )

        values = np.array(residuals)
        sigma = max(float(np.std(values, ddof=1)), self.config.min_sigma_degrees)

        return CalibrationResult(
            succeeded=True,
            noise_model=NoiseModel(sigma_degrees=sigma, sample_count=len(residuals)),
            residuals=tuple(residuals),
            target=target_xz,
            mean_residual=float(values.mean()),
        )


def create_default_calibration_engine() -> CalibrationEngine:
    """Create calibration engine with default configuration."""
    return CalibrationEngine(CalibrationConfig())
