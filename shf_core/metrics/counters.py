"""
Diagnostic counters for the estimation engines.

Each engine operation counts its calls and successes:
    triangulate_calls / triangulate_success
    blind_calls       / blind_success
    calibration_runs  / calibration_completed  (+ calibration_samples)

Every call that ends without an estimate is counted under one code from
FAILURE_REASONS, so a "no estimate yet" result can always be traced to its
cause. Result quantities (uncertainty radius, residuals, calibrated sigma)
keep a bounded window of recent values.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional
import logging
import threading


logger = logging.getLogger(__name__)


FAILURE_REASONS = {
    'no_observations': 'triangulate() called with no observations',
    'all_degenerate': 'every candidate coincided with an observer',
    'empty_prior': 'prior holds no candidates',
    'calibration_too_few_samples': 'fewer than 2 usable calibration samples',
    'calibration_no_target': 'calibration target could not be determined',
    'calibration_cancelled': 'calibration run cancelled',
    'observation_capacity': 'throw ignored, session is full',
    'blind_with_observations': 'blind position ignored, throws present',
}

# (calls counter, success counter) per operation
OPERATIONS = {
    'triangulate': ('triangulate_calls', 'triangulate_success'),
    'blind': ('blind_calls', 'blind_success'),
    'calibration': ('calibration_runs', 'calibration_completed'),
}

HISTOGRAM_WINDOW = 1000


@dataclass(frozen=True)
class HistogramSummary:
    """Summary of the recent values of one quantity."""

    count: int
    mean: float
    minimum: float
    maximum: float
    last: float


@dataclass(frozen=True)
class MetricsSnapshot:
    """Copy of all counters at one point in time."""

    counters: Dict[str, int]
    failures: Dict[str, int]
    histograms: Dict[str, HistogramSummary]

    @property
    def total_failures(self) -> int:
        return sum(self.failures.values())

    def success_rate(self, operation: str) -> Optional[float]:
        """
        Fraction of calls of an operation that produced an estimate.

        Args:
            operation: Key of OPERATIONS ('triangulate', 'blind', 'calibration')

        Returns:
            Rate in [0, 1], or None before the first call
        """
        calls_key, success_key = OPERATIONS[operation]
        calls = self.counters.get(calls_key, 0)
        if calls == 0:
            return None
        return self.counters.get(success_key, 0) / calls


class MetricsCollector:
    """
    Thread-safe counters shared by the engines.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('triangulate_calls')
        metrics.increment_failure('all_degenerate')
        metrics.record_histogram('uncertainty_radius', 42.0)

        snapshot = metrics.snapshot()
        snapshot.success_rate('triangulate')
    """

    def __init__(self, histogram_window: int = HISTOGRAM_WINDOW):
        if histogram_window < 1:
            raise ValueError(f"histogram_window must be >= 1: {histogram_window}")
        self.histogram_window = histogram_window
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._failures: Dict[str, int] = {}
        self._histograms: Dict[str, Deque[float]] = {}
        self._zero()

    def _zero(self):
        """Known counters and reasons start at 0; caller must not hold the lock."""
        with self._lock:
            self._counters = {
                name: 0 for pair in OPERATIONS.values() for name in pair
            }
            self._counters['calibration_samples'] = 0
            self._counters['failures'] = 0
            self._failures = {reason: 0 for reason in FAILURE_REASONS}
            self._histograms = {}

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] = self._counters.get(counter_name, 0) + value

    def increment_failure(self, reason: str, value: int = 1):
        """
        Count a call that ended without an estimate.

        Args:
            reason: Code from FAILURE_REASONS; other codes are counted too
                but logged as unknown
            value: Amount to add
        """
        if reason not in FAILURE_REASONS:
            logger.warning("Unknown failure reason '%s'", reason)

        with self._lock:
            self._failures[reason] = self._failures.get(reason, 0) + value
            self._counters['failures'] += value

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_failure_count(self, reason: str) -> int:
        with self._lock:
            return self._failures.get(reason, 0)

    def record_histogram(self, histogram_name: str, value: float):
        """Record a value; only the newest histogram_window values are kept."""
        with self._lock:
            window = self._histograms.get(histogram_name)
            if window is None:
                window = deque(maxlen=self.histogram_window)
                self._histograms[histogram_name] = window
            window.append(float(value))

    def histogram(self, histogram_name: str) -> Optional[HistogramSummary]:
        """Summary of a histogram, or None if nothing was recorded."""
        with self._lock:
            return self._summarize(self._histograms.get(histogram_name))

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            histograms = {
                name: self._summarize(window)
                for name, window in self._histograms.items()
                if window
            }
            return MetricsSnapshot(
                counters=dict(self._counters),
                failures=dict(self._failures),
                histograms=histograms,
            )

    def reset(self):
        """Zero every counter and drop all histograms."""
        self._zero()

    def log_summary(self, level: int = logging.INFO):
        """Log call counts, success rates, failures and histogram means."""
        if not logger.isEnabledFor(level):
            return
        snapshot = self.snapshot()

        lines = ["Metrics summary:"]
        for operation, (calls_key, success_key) in OPERATIONS.items():
            rate = snapshot.success_rate(operation)
            lines.append(
                f"  {operation:12s} {snapshot.counters[success_key]}/{snapshot.counters[calls_key]}"
                + (f" ({rate:.0%})" if rate is not None else "")
            )

        for reason, count in sorted(snapshot.failures.items()):
            if count:
                lines.append(f"  failure {reason}: {count}")

        for name, summary in sorted(snapshot.histograms.items()):
            lines.append(
                f"  {name}: n={summary.count} mean={summary.mean:.3f} "
                f"max={summary.maximum:.3f} last={summary.last:.3f}"
            )

        logger.log(level, "\n".join(lines))

    @staticmethod
    def _summarize(window) -> Optional[HistogramSummary]:
        if not window:
            return None
        values = list(window)
        return HistogramSummary(
            count=len(values),
            mean=sum(values) / len(values),
            minimum=min(values),
            maximum=max(values),
            last=values[-1],
        )
