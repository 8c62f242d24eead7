"""Parallel execution utilities for chunked mapping.

This module provides the chunk-size heuristic, worker-count resolution,
the platform capability probe and joblib backend selection.
"""

import os
import sys
from typing import Any, Dict, Optional, Tuple

from joblib import Parallel, delayed

from chunkmap.errors import ConfigurationError
from chunkmap.utils.logging_utils import get_logger
from chunkmap.utils.resource_monitor import get_cpu_count
from chunkmap.utils.settings import VALID_BACKENDS, load_parallelism_settings

logger = get_logger(__name__)

MIN_CHUNK = 250
POOL_FACTOR = 12

# Platforms without process support
_UNSUPPORTED_PLATFORMS = ("emscripten", "wasi")

# Cache for loky availability test
_LOKY_AVAILABLE: bool | None = None


def validate_positive_int(name: str, value: Any) -> int:
    """Return ``value`` if it is an int >= 1, else raise ConfigurationError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value}")
    return value


def compute_chunk_size(
    n_items: int,
    pool_size: int,
    min_chunk: int = MIN_CHUNK,
    pool_factor: int = POOL_FACTOR,
) -> int:
    """Chunk size aiming at roughly ``pool_factor`` chunks per worker.

    ``max(min_chunk, floor(n_items / pool_size / pool_factor))``. The floor
    keeps small inputs from being split into overhead-dominated fragments.

    Args:
        n_items: Number of input elements
        pool_size: Number of workers
        min_chunk: Smallest chunk size produced
        pool_factor: Target number of chunks per worker

    Returns:
        Chunk size (at least ``min_chunk``)

    """
    if n_items < 0:
        raise ConfigurationError(f"n_items must be >= 0, got {n_items}")
    validate_positive_int("pool_size", pool_size)
    validate_positive_int("min_chunk", min_chunk)
    validate_positive_int("pool_factor", pool_factor)

    return max(min_chunk, n_items // (pool_size * pool_factor))


def get_optimal_workers(settings: Optional[Dict[str, Any]] = None) -> int:
    """Default pool size: the configured ``workers`` or the usable CPU count."""
    if settings is None:
        settings = load_parallelism_settings()

    workers = settings.get("workers", "auto")
    if workers is None or workers == "auto":
        return get_cpu_count()
    return validate_positive_int("parallelism.workers", workers)


def ensure_single_thread_blas() -> None:
    """Set BLAS environment variables to 1 if not already set by user.

    This prevents oversubscription when every worker process would
    otherwise start a full-width BLAS thread pool.
    """
    blas_vars = [
        "OMP_NUM_THREADS",
        "OPENBLAS_NUM_THREADS",
        "MKL_NUM_THREADS",
        "VECLIB_MAXIMUM_THREADS",
        "NUMEXPR_MAX_THREADS",
    ]

    for var in blas_vars:
        if var not in os.environ:
            os.environ[var] = "1"
            logger.debug(f"Set {var}=1 for single-threaded BLAS")


def is_loky_available() -> bool:
    """Test if the loky process backend is available and working.

    Runs one trivial two-worker job; the answer is cached per process.

    Returns:
        True if loky backend can be used, False otherwise

    """
    global _LOKY_AVAILABLE

    if _LOKY_AVAILABLE is not None:
        return _LOKY_AVAILABLE

    loky_works = False
    try:
        result = Parallel(n_jobs=2, backend="loky")(delayed(abs)(-1) for _ in range(2))
        loky_works = bool(isinstance(result, list) and result == [1, 1])
    except Exception as e:
        logger.debug(f"loky backend test failed: {e}")
        loky_works = False

    _LOKY_AVAILABLE = loky_works
    return _LOKY_AVAILABLE


def supports_process_parallelism() -> bool:
    """Platform capability probe for process-level parallelism."""
    if sys.platform in _UNSUPPORTED_PLATFORMS:
        return False
    return is_loky_available()


def select_backend(requested: Optional[str]) -> Tuple[str, str]:
    """Select the backend based on the request and platform support.

    Args:
        requested: 'loky', 'threading', 'sequential' or None for the default

    Returns:
        Tuple of (chosen_backend, reason)

    """
    if requested is None:
        if supports_process_parallelism():
            return "loky", "default"
        return "sequential", "fallback_unsupported"

    if requested not in VALID_BACKENDS:
        raise ConfigurationError(
            f"backend must be one of {', '.join(VALID_BACKENDS)}, got {requested!r}",
        )

    if requested in ("threading", "sequential"):
        return requested, "requested"

    if supports_process_parallelism():
        return "loky", "requested"
    return "sequential", "fallback_unsupported"


def log_parallel_plan(
    operation_name: str,
    n_items: int,
    n_chunks: int,
    chunk_size: int,
    workers: int,
    backend: str,
) -> None:
    """Log the execution plan of one mapping call."""
    strategy = "sequential" if backend == "sequential" else "parallel"
    logger.info(
        f"{operation_name} plan: N={n_items}, chunks={n_chunks}, "
        f"chunk_size={chunk_size}, strategy={strategy} "
        f"(workers={workers}, backend={backend})",
    )
