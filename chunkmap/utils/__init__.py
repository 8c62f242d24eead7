"""Utility modules for chunkmap.
"""

from .logging_utils import get_logger, setup_logging
from .resource_monitor import calculate_optimal_workers, get_cpu_count
from .settings import load_parallelism_settings, reload_settings, validate_settings

__all__ = [
    # Logging utilities
    "setup_logging",
    "get_logger",
    # Resource utilities
    "get_cpu_count",
    "calculate_optimal_workers",
    # Settings utilities
    "load_parallelism_settings",
    "reload_settings",
    "validate_settings",
]
