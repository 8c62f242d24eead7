"""Resource monitoring utilities for parallel mapping.

This module provides the CPU-count probe and memory usage checks used to
size worker pools.
"""

from typing import Any, Optional

import psutil

from chunkmap.utils.logging_utils import get_logger

logger = get_logger(__name__)


def get_cpu_count() -> int:
    """Number of logical CPUs this process may run on (at least 1).

    Uses the process CPU affinity where the platform exposes it, otherwise
    the logical CPU count.
    """
    process = psutil.Process()
    if hasattr(process, "cpu_affinity"):
        try:
            affinity = process.cpu_affinity()
            if affinity:
                return len(affinity)
        except (psutil.Error, OSError) as e:
            logger.debug(f"CPU affinity unavailable: {e}")

    return psutil.cpu_count(logical=True) or 1


def get_system_info() -> dict[str, Any]:
    """Get basic system information."""
    memory = psutil.virtual_memory()
    return {
        "cpu_count": get_cpu_count(),
        "physical_cpu_count": psutil.cpu_count(logical=False),
        "total_memory_gb": memory.total / (1024**3),
        "available_memory_gb": memory.available / (1024**3),
        "memory_percent": memory.percent,
    }


def estimate_memory_per_worker() -> float:
    """Estimate memory usage per worker process in GB.

    Each worker holds a copy of its chunk plus the interpreter, so the
    current process RSS is taken as the baseline.
    """
    try:
        current_memory = float(psutil.Process().memory_info().rss) / (1024**3)
    except psutil.Error as e:
        logger.warning(f"Failed to estimate worker memory: {e}")
        return 1.0

    return max(current_memory * 1.5, 0.25)


def calculate_optimal_workers(
    requested_workers: Optional[int] = None,
    memory_cap_percent: float = 75.0,
) -> int:
    """Calculate optimal number of workers based on available resources.

    Args:
        requested_workers: User-requested worker count (None for auto)
        memory_cap_percent: Maximum memory usage percentage (default 75%)

    Returns:
        Optimal number of workers

    """
    cpu_count = get_cpu_count()

    if requested_workers is not None:
        optimal_workers = max(1, min(requested_workers, cpu_count))
        logger.info(f"Using user-requested workers: {optimal_workers}")
        return optimal_workers

    memory = psutil.virtual_memory()
    total_memory_gb = memory.total / (1024**3)
    memory_per_worker = estimate_memory_per_worker()

    memory_cap_gb = total_memory_gb * (memory_cap_percent / 100.0)
    memory_limited_workers = max(1, int(memory_cap_gb / memory_per_worker))

    optimal_workers = min(cpu_count, memory_limited_workers)

    logger.info(
        f"Resource analysis: CPU={cpu_count}, "
        f"Memory={total_memory_gb:.1f}GB, "
        f"Memory/worker={memory_per_worker:.2f}GB, "
        f"Memory-limited={memory_limited_workers}, "
        f"Optimal={optimal_workers}",
    )

    return optimal_workers


def get_memory_usage() -> dict[str, float]:
    """Get current memory usage statistics."""
    memory = psutil.virtual_memory()
    process_memory = psutil.Process().memory_info()

    return {
        "total_gb": memory.total / (1024**3),
        "available_gb": memory.available / (1024**3),
        "used_gb": memory.used / (1024**3),
        "percent": memory.percent,
        "process_rss_gb": process_memory.rss / (1024**3),
    }


def monitor_parallel_execution(worker_count: int, operation_name: str) -> None:
    """Log expected memory pressure before a pool is started.

    Args:
        worker_count: Number of workers being used
        operation_name: Name of the operation being monitored

    """
    memory_info = get_memory_usage()
    estimated_total_memory = estimate_memory_per_worker() * worker_count
    memory_percent = (estimated_total_memory / memory_info["total_gb"]) * 100

    logger.debug(
        f"{operation_name}: workers={worker_count}, "
        f"estimated memory {estimated_total_memory:.1f}GB ({memory_percent:.1f}%)",
    )

    if memory_percent > 75:
        logger.warning(
            f"{operation_name}: high estimated memory usage {memory_percent:.1f}% "
            f"for {worker_count} workers",
        )
