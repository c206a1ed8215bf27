"""
Domain Module: Caller-side session logic.

Implements:
- Observation accumulation with capacity limit
- One-level undo by swapping immutable collections
- Routing throws to calibration while a run is collecting
"""

from .observation_session import (
    ObservationSession,
    SessionConfig,
    MAX_OBSERVATIONS,
)

__all__ = [
    'ObservationSession',
    'SessionConfig',
    'MAX_OBSERVATIONS',
]
