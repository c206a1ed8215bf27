"""
Metrics Module: Diagnostics, counters, histograms.

Usage:
    from shf_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('triangulate_calls')
    metrics.increment_failure('all_degenerate')
    metrics.record_histogram('uncertainty_radius', 42.0)
"""

import threading

from .counters import (
    FAILURE_REASONS,
    HistogramSummary,
    MetricsCollector,
    MetricsSnapshot,
)

# Global singleton for easy access
_global_metrics = None
_global_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    with _global_lock:
        if _global_metrics is None:
            _global_metrics = MetricsCollector()
        return _global_metrics


def reset_metrics():
    """Reset global metrics in place (for testing)."""
    with _global_lock:
        collector = _global_metrics
    if collector is not None:
        collector.reset()


__all__ = [
    'FAILURE_REASONS',
    'HistogramSummary',
    'MetricsCollector',
    'MetricsSnapshot',
    'get_metrics',
    'reset_metrics',
]
