"""
Default configuration for the stronghold finder core.
"""

import logging
from typing import Optional


# Triangulation
TRIANGULATION_CONFIG = {
    "robust_dof": 3.0,            # Student-t degrees of freedom for flagged throws
    "min_sigma_degrees": 1e-3,    # Sigma floor
    "top_n": 5,                   # Ranked candidates reported
    "radius_log_threshold": 3.0,  # Log-score drop bounding the uncertainty region
}

# Stronghold ring prior
RING_CONFIG = {
    "num_rings": 8,               # All rings
    "chunk_stride": 1,            # Full chunk grid (~3.2M candidates); 2 gives ~0.8M
}

# Calibration
CALIBRATION_CONFIG = {
    "target_sample_count": 10,    # Throws per calibration run
    "default_sigma_degrees": 0.1, # Sigma before calibration
    "min_sigma_degrees": 1e-3,    # Sigma floor
}

# Session
SESSION_CONFIG = {
    "max_observations": 10,       # Live throws kept
}

# Logging
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}


def configure_logging(level: Optional[str] = None):
    """
    Configure root logging from LOGGING_CONFIG.

    Args:
        level: Override for LOGGING_CONFIG["level"] (e.g. "DEBUG")
    """
    logging.basicConfig(
        level=getattr(logging, (level or LOGGING_CONFIG["level"]).upper()),
        format=LOGGING_CONFIG["format"],
        force=True,
    )
