"""Chunked parallel mapping.

``parallel_map`` applies a unary transformation to every element of a
finite ordered sequence on a per-call worker pool. The input is split into
contiguous chunks, one joblib task per chunk, and results are merged back
in input order whatever order the chunks complete in.
"""

import threading
import time
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from joblib import Parallel, delayed

from chunkmap.errors import (
    ConfigurationError,
    MappingCancelledError,
    ProgressCallbackError,
    TransformError,
)
from chunkmap.transforms import (
    ChunkFailed,
    ChunkOutcome,
    ChunkSpec,
    apply_chunk,
    describe_transform,
    make_chunks,
)
from chunkmap.utils.logging_utils import get_logger
from chunkmap.utils.parallel_protocols import ProgressCallback
from chunkmap.utils.parallel_utils import (
    compute_chunk_size,
    ensure_single_thread_blas,
    get_optimal_workers,
    log_parallel_plan,
    select_backend,
    validate_positive_int,
)
from chunkmap.utils.resource_monitor import monitor_parallel_execution
from chunkmap.utils.settings import load_parallelism_settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class MapPlan:
    """Resolved execution parameters of one mapping call."""

    n_items: int
    pool_size: int
    chunk_size: int
    backend: str
    backend_reason: str
    chunks: List[ChunkSpec]


def plan_map(
    n_items: int,
    *,
    pool_size: Optional[int] = None,
    chunk_size: Optional[int] = None,
    backend: Optional[str] = None,
    settings: Optional[Dict[str, Any]] = None,
) -> MapPlan:
    """Resolve pool size, chunk size, backend and chunks for ``n_items``.

    Explicit arguments win over settings; settings win over probes.

    Raises:
        ConfigurationError: invalid explicit value or settings entry

    """
    if pool_size is not None:
        validate_positive_int("pool_size", pool_size)
    if chunk_size is not None:
        validate_positive_int("chunk_size", chunk_size)

    if settings is None:
        settings = load_parallelism_settings()

    requested = backend if backend is not None else settings.get("backend")
    chosen, reason = select_backend(requested)
    if reason == "fallback_unsupported":
        logger.warning(
            f"Process parallelism unavailable (requested={requested}), "
            "falling back to sequential execution",
        )

    if pool_size is None:
        pool_size = get_optimal_workers(settings)
    if chunk_size is None:
        chunk_size = compute_chunk_size(
            n_items,
            pool_size,
            min_chunk=settings.get("min_chunk", 250),
            pool_factor=settings.get("pool_factor", 12),
        )

    return MapPlan(
        n_items=n_items,
        pool_size=pool_size,
        chunk_size=chunk_size,
        backend=chosen,
        backend_reason=reason,
        chunks=make_chunks(n_items, chunk_size),
    )


def parallel_imap(
    items: Iterable[Any],
    transform: Callable[[Any], Any],
    *,
    pool_size: Optional[int] = None,
    chunk_size: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    backend: Optional[str] = None,
    stop_event: Optional[threading.Event] = None,
    operation_name: str = "parallel_map",
) -> Iterator[Any]:
    """Lazily map ``transform`` over ``items``, yielding in input order.

    Configuration is validated before the iterator is returned. The pool
    starts on the first ``next()`` and is released when the iterator is
    exhausted, fails or is closed. Elements are yielded as soon as every
    chunk before them has completed; later chunks that finish early are
    buffered.

    Args:
        items: Finite ordered input; non-sequences are materialized first
        transform: Picklable unary transformation
        pool_size: Number of workers (None: settings ``workers`` or CPU count)
        chunk_size: Elements per chunk (None: chunk-size heuristic)
        on_progress: Called once per completed chunk with the cumulative
            completed count
        backend: 'loky', 'threading' or 'sequential' (None: settings)
        stop_event: When set, remaining work is abandoned
        operation_name: Name used in log lines

    Returns:
        Iterator over ``transform(item)`` for each item, in input order

    Raises:
        ConfigurationError: invalid configuration (raised immediately)
        TransformError: ``transform`` raised (raised while iterating)
        ProgressCallbackError: ``on_progress`` raised
        MappingCancelledError: ``stop_event`` was set

    """
    if not callable(transform):
        raise ConfigurationError(
            f"transform must be callable, got {type(transform).__name__}",
        )
    if on_progress is not None and not callable(on_progress):
        raise ConfigurationError(
            f"on_progress must be callable, got {type(on_progress).__name__}",
        )
    if pool_size is not None:
        validate_positive_int("pool_size", pool_size)
    if chunk_size is not None:
        validate_positive_int("chunk_size", chunk_size)

    if not isinstance(items, Sequence):
        items = list(items)

    if len(items) == 0:
        return _no_results()

    plan = plan_map(
        len(items),
        pool_size=pool_size,
        chunk_size=chunk_size,
        backend=backend,
    )
    return _run_plan(plan, items, transform, on_progress, stop_event, operation_name)


def parallel_map(
    items: Iterable[Any],
    transform: Callable[[Any], Any],
    *,
    pool_size: Optional[int] = None,
    chunk_size: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    backend: Optional[str] = None,
    stop_event: Optional[threading.Event] = None,
    operation_name: str = "parallel_map",
) -> List[Any]:
    """Apply ``transform`` to every item on a chunked worker pool.

    All-or-nothing: returns the full result list in input order, or raises
    with no result. Empty input returns ``[]`` without creating a pool.
    See ``parallel_imap`` for the arguments.

    Returns:
        List where ``result[i] == transform(items[i])``

    """
    return list(
        parallel_imap(
            items,
            transform,
            pool_size=pool_size,
            chunk_size=chunk_size,
            on_progress=on_progress,
            backend=backend,
            stop_event=stop_event,
            operation_name=operation_name,
        ),
    )


def _run_plan(
    plan: MapPlan,
    items: Sequence,
    transform: Callable[[Any], Any],
    on_progress: Optional[ProgressCallback],
    stop_event: Optional[threading.Event],
    operation_name: str,
) -> Iterator[Any]:
    log_parallel_plan(
        operation_name,
        plan.n_items,
        len(plan.chunks),
        plan.chunk_size,
        plan.pool_size,
        plan.backend,
    )
    logger.debug(f"{operation_name}: transform={describe_transform(transform)}")

    if stop_event is not None and stop_event.is_set():
        raise MappingCancelledError(0, plan.n_items)

    start = time.perf_counter()

    if plan.backend == "sequential":
        outcomes: Iterator[ChunkOutcome] = (
            apply_chunk(transform, chunk, items[chunk.start : chunk.stop])
            for chunk in plan.chunks
        )
        yield from _merge_in_order(
            outcomes, plan, on_progress, stop_event, operation_name,
        )
    else:
        if plan.backend == "loky":
            ensure_single_thread_blas()
            monitor_parallel_execution(plan.pool_size, operation_name)

        with Parallel(
            n_jobs=plan.pool_size,
            backend=plan.backend,
            batch_size=1,
            return_as="generator_unordered",
        ) as parallel:
            outcomes = parallel(
                delayed(apply_chunk)(
                    transform,
                    chunk,
                    items[chunk.start : chunk.stop],
                    portable_errors=plan.backend == "loky",
                )
                for chunk in plan.chunks
            )
            try:
                yield from _merge_in_order(
                    outcomes, plan, on_progress, stop_event, operation_name,
                )
            finally:
                # Aborts queued tasks when the merge stops early
                outcomes.close()

    elapsed = time.perf_counter() - start
    logger.info(
        f"Completed {operation_name}: {plan.n_items} results in {elapsed:.2f}s",
    )


def _merge_in_order(
    outcomes: Iterator[ChunkOutcome],
    plan: MapPlan,
    on_progress: Optional[ProgressCallback],
    stop_event: Optional[threading.Event],
    operation_name: str,
) -> Iterator[Any]:
    pending: Dict[int, List[Any]] = {}
    next_index = 0
    completed = 0

    try:
        for chunk_index, outcome in outcomes:
            completed += len(outcome)
            pending[chunk_index] = outcome

            if on_progress is not None:
                try:
                    on_progress(completed)
                except Exception as e:
                    logger.error(f"{operation_name}: progress callback failed: {e}")
                    raise ProgressCallbackError(completed, e) from e

            # A finished mapping is returned even if the stop flag was set late
            if (
                stop_event is not None
                and completed < plan.n_items
                and stop_event.is_set()
            ):
                logger.info(f"Stop flag set, interrupting {operation_name}")
                raise MappingCancelledError(completed, plan.n_items)

            while next_index in pending:
                yield from pending.pop(next_index)
                next_index += 1
    except ChunkFailed as failure:
        logger.error(
            f"{operation_name}: transform failed at position {failure.position}: "
            f"{type(failure.error).__name__}: {failure.error}",
        )
        raise TransformError(
            failure.position, failure.error, failure.traceback_text,
        ) from failure.error

    if next_index != len(plan.chunks):
        raise RuntimeError(
            f"{operation_name}: {len(plan.chunks) - next_index} chunks never completed",
        )


def _no_results() -> Iterator[Any]:
    yield from ()
