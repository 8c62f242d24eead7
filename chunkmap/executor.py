"""Reusable executor configuration around ``parallel_map``.

A ``ParallelExecutor`` resolves its worker count and backend once and then
runs any number of mapping calls with them. Each call still owns its pool.
"""

import threading
from collections.abc import Iterable
from typing import Any, Callable, List, Optional

from chunkmap.mapper import parallel_map
from chunkmap.utils.logging_utils import get_logger
from chunkmap.utils.parallel_protocols import ProgressCallback
from chunkmap.utils.parallel_utils import select_backend, validate_positive_int
from chunkmap.utils.resource_monitor import calculate_optimal_workers
from chunkmap.utils.settings import load_parallelism_settings

logger = get_logger(__name__)


class ParallelExecutor:
    """Parallel execution wrapper with resource-aware sizing and fallbacks."""

    def __init__(
        self,
        workers: Optional[int] = None,
        backend: str = "loky",
        chunk_size: Optional[int] = None,
        small_input_threshold: int = 0,
        disable_parallel: bool = False,
        stop_flag: Optional[threading.Event] = None,
    ):
        """Initialize parallel executor.

        Args:
            workers: Number of workers (None for memory-aware auto sizing)
            backend: Backend to use ('loky', 'threading' or 'sequential')
            chunk_size: Elements per chunk (None for the heuristic)
            small_input_threshold: Inputs smaller than this run sequentially
            disable_parallel: Force sequential execution
            stop_flag: Optional threading.Event for graceful interruption

        """
        if workers is not None:
            validate_positive_int("workers", workers)
        if chunk_size is not None:
            validate_positive_int("chunk_size", chunk_size)

        self.disable_parallel = disable_parallel
        self.small_input_threshold = small_input_threshold
        self.chunk_size = chunk_size
        self.stop_flag = stop_flag or threading.Event()

        if disable_parallel:
            logger.info("Parallel execution disabled - using sequential execution")
            self.workers = 1
            self.backend = "sequential"
            self.backend_reason = "disabled"
        else:
            chosen_backend, reason = select_backend(backend)
            self.backend = chosen_backend
            self.backend_reason = reason
            self.workers = (
                1 if chosen_backend == "sequential" else calculate_optimal_workers(workers)
            )

            logger.info(
                f"Parallel executor initialized | requested={backend}, chosen={chosen_backend}, "
                f"reason={reason}, workers={self.workers}",
            )

    def should_use_parallel(self, input_size: int) -> bool:
        """Determine if parallel execution should be used.

        Args:
            input_size: Size of input data

        Returns:
            True if parallel execution should be used

        """
        if self.disable_parallel or self.backend == "sequential":
            return False

        if input_size < self.small_input_threshold:
            logger.info(
                f"Input size {input_size} < threshold {self.small_input_threshold}, using sequential",
            )
            return False

        if self.workers <= 1:
            return False

        return True

    def execute(
        self,
        func: Callable[[Any], Any],
        items: List[Any],
        operation_name: str = "parallel_operation",
        on_progress: Optional[ProgressCallback] = None,
        chunk_size: Optional[int] = None,
    ) -> List[Any]:
        """Execute function over items in parallel or sequentially.

        Args:
            func: Function to execute
            items: List of items to process
            operation_name: Name of operation for logging
            on_progress: Optional per-chunk progress hook
            chunk_size: Per-call chunk size override

        Returns:
            List of results in input order

        """
        backend = self.backend if self.should_use_parallel(len(items)) else "sequential"

        return parallel_map(
            items,
            func,
            pool_size=self.workers,
            chunk_size=chunk_size if chunk_size is not None else self.chunk_size,
            on_progress=on_progress,
            backend=backend,
            stop_event=self.stop_flag,
            operation_name=operation_name,
        )

    def map(
        self,
        fn: Callable[[Any], Any],
        items: Iterable[Any],
        *,
        chunksize: Optional[int] = None,
    ) -> List[Any]:
        """Apply function to items in parallel.

        This method implements the ExecutorLike protocol.

        Args:
            fn: Function to apply to each item
            items: Iterable of items to process
            chunksize: Optional chunk size for batching

        Returns:
            List of results

        """
        items_list = list(items)

        if not items_list:
            return []

        return self.execute(fn, items_list, chunk_size=chunksize)


def create_parallel_executor(
    workers: Optional[int] = None,
    backend: Optional[str] = None,
    chunk_size: Optional[int] = None,
    small_input_threshold: Optional[int] = None,
    disable_parallel: bool = False,
    stop_flag: Optional[threading.Event] = None,
) -> ParallelExecutor:
    """Create a parallel executor with the specified configuration.

    Arguments left as None are taken from the ``parallelism`` settings.

    Args:
        workers: Number of workers (None for auto)
        backend: Backend to use ('loky', 'threading' or 'sequential')
        chunk_size: Chunk size for parallel processing
        small_input_threshold: Threshold for auto-switching to sequential
        disable_parallel: Force sequential execution
        stop_flag: Optional threading.Event for graceful interruption

    Returns:
        Configured ParallelExecutor instance

    """
    settings = load_parallelism_settings()
    if backend is None:
        backend = settings.get("backend", "loky")
    if workers is None and settings.get("workers", "auto") != "auto":
        workers = settings["workers"]
    if small_input_threshold is None:
        small_input_threshold = settings.get("small_input_threshold", 0)

    return ParallelExecutor(
        workers=workers,
        backend=backend,
        chunk_size=chunk_size,
        small_input_threshold=small_input_threshold,
        disable_parallel=disable_parallel,
        stop_flag=stop_flag,
    )
