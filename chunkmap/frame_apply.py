"""pandas adapters for chunked parallel mapping.

Runs a per-value transformation over a Series or a DataFrame column on a
worker pool, keeping the original index.
"""

from typing import Any, Callable, Optional

import pandas as pd

from chunkmap.errors import ConfigurationError
from chunkmap.mapper import parallel_map
from chunkmap.transforms import bind_transform
from chunkmap.utils.logging_utils import get_logger
from chunkmap.utils.progress import ProgressLogger

logger = get_logger(__name__)


def parallel_apply(
    series: pd.Series,
    func: Callable[..., Any],
    *,
    pool_size: Optional[int] = None,
    chunk_size: Optional[int] = None,
    show_progress: bool = False,
    backend: Optional[str] = None,
    **func_kwargs: Any,
) -> pd.Series:
    """Parallel equivalent of ``series.apply(func, **func_kwargs)``.

    Args:
        series: Input values
        func: Called as ``func(value, **func_kwargs)``
        pool_size: Number of workers (None for the default)
        chunk_size: Elements per chunk (None for the heuristic)
        show_progress: Display a tqdm bar updated per completed chunk
        backend: 'loky', 'threading' or 'sequential' (None for settings)
        **func_kwargs: Auxiliary parameters bound to ``func``

    Returns:
        Series of results with the input's index and name

    """
    transform = bind_transform(func, **func_kwargs)
    label = f"apply[{series.name}]" if series.name is not None else "apply"

    progress = (
        ProgressLogger(total=len(series), label=label, enable_tqdm=True)
        if show_progress
        else None
    )
    try:
        results = parallel_map(
            series.tolist(),
            transform,
            pool_size=pool_size,
            chunk_size=chunk_size,
            on_progress=progress,
            backend=backend,
            operation_name=label,
        )
    finally:
        if progress is not None:
            progress.close()

    return pd.Series(results, index=series.index, name=series.name, dtype=object).infer_objects()


def apply_to_column(
    df: pd.DataFrame,
    column: str,
    func: Callable[..., Any],
    *,
    target: Optional[str] = None,
    **options: Any,
) -> pd.DataFrame:
    """Return a copy of ``df`` with ``func`` applied to ``column``.

    Args:
        df: Input frame (not modified)
        column: Source column
        func: Per-value transformation
        target: Destination column (default: overwrite ``column``)
        **options: ``parallel_apply`` options and bound ``func`` parameters

    Returns:
        New DataFrame with the transformed column

    """
    if column not in df.columns:
        raise ConfigurationError(
            f"Column {column!r} not found; available: {list(df.columns)}",
        )

    out = df.copy()
    out[target or column] = parallel_apply(df[column], func, **options)
    logger.debug(f"Applied {getattr(func, '__name__', func)} to {column!r} -> {target or column!r}")
    return out
