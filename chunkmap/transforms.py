"""Transformation binding and the per-chunk worker unit.

A transformation is a plain callable applied to one element at a time.
Auxiliary keyword parameters are bound once, before dispatch, into a
``BoundTransform`` value that pickles into every worker task.
"""

from __future__ import annotations

import pickle
import traceback
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class BoundTransform:
    """A unary transformation with a fixed set of keyword parameters."""

    func: Callable[..., Any]
    params: Tuple[Tuple[str, Any], ...] = ()

    def __call__(self, item: Any) -> Any:
        return self.func(item, **dict(self.params))

    @property
    def kwargs(self) -> Mapping[str, Any]:
        return dict(self.params)


def bind_transform(func: Callable[..., Any], **params: Any) -> BoundTransform:
    """Bind auxiliary keyword parameters to ``func``.

    Args:
        func: Callable taking one element as its first positional argument
        **params: Keyword parameters passed unchanged on every call

    Returns:
        BoundTransform applying ``func(item, **params)``

    """
    if not callable(func):
        raise TypeError(f"func must be callable, got {type(func).__name__}")
    if isinstance(func, BoundTransform):
        merged = {**dict(func.params), **params}
        return BoundTransform(func.func, tuple(sorted(merged.items())))
    return BoundTransform(func, tuple(sorted(params.items())))


@dataclass(frozen=True)
class ChunkSpec:
    """Contiguous range ``[start, stop)`` of the input."""

    index: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


class ChunkFailed(Exception):
    """Raised by a worker when an element of its chunk fails.

    Raising, rather than returning a failure value, lets the pool stop
    dispatching further chunks as soon as the error reaches it.
    """

    def __init__(
        self,
        chunk_index: int,
        position: int,
        error: BaseException,
        traceback_text: str,
    ) -> None:
        super().__init__(chunk_index, position, error, traceback_text)
        self.chunk_index = chunk_index
        self.position = position
        self.error = error
        self.traceback_text = traceback_text

    def __str__(self) -> str:
        return f"chunk {self.chunk_index} failed at position {self.position}: {self.error!r}"


ChunkOutcome = Tuple[int, List[Any]]


def make_chunks(n_items: int, chunk_size: int) -> List[ChunkSpec]:
    """Split ``range(n_items)`` into contiguous chunks of ``chunk_size``.

    The last chunk may be shorter. Zero items give zero chunks.
    """
    return [
        ChunkSpec(index=i, start=start, stop=min(start + chunk_size, n_items))
        for i, start in enumerate(range(0, n_items, chunk_size))
    ]


def apply_chunk(
    transform: Callable[[Any], Any],
    chunk: ChunkSpec,
    items: Sequence,
    portable_errors: bool = False,
) -> ChunkOutcome:
    """Apply ``transform`` to every element of one chunk.

    Runs inside the worker. A failing element stops the chunk and raises
    ``ChunkFailed`` carrying its absolute position.

    Args:
        transform: Unary transformation
        chunk: Position of the chunk in the input
        items: The chunk's elements, ``input[chunk.start:chunk.stop]``
        portable_errors: Replace errors that cannot make a pickle round
            trip; set when the failure crosses a process boundary

    Returns:
        Tuple of (chunk index, results list)

    Raises:
        ChunkFailed: ``transform`` raised on an element

    """
    results: List[Any] = []
    for offset, item in enumerate(items):
        try:
            results.append(transform(item))
        except Exception as e:
            error = _transferable(e) if portable_errors else e
            raise ChunkFailed(
                chunk.index, chunk.start + offset, error, traceback.format_exc(),
            ) from None
    return chunk.index, results


def describe_transform(transform: Callable[..., Any]) -> str:
    """Short human-readable name for log lines."""
    target: Optional[Any] = transform
    if isinstance(transform, BoundTransform):
        target = transform.func
    name = getattr(target, "__qualname__", None) or getattr(target, "__name__", None)
    if name is None:
        name = type(target).__name__
    if isinstance(transform, BoundTransform) and transform.params:
        keys = ",".join(transform.kwargs)
        return f"{name}[{keys}]"
    return str(name)


def _transferable(error: BaseException) -> BaseException:
    """Return ``error`` if it survives a pickle round trip, else a RuntimeError.

    An exception can pickle yet fail to rebuild, e.g. when its ``__init__``
    signature does not match the ``args`` it passes to ``super()``.
    """
    try:
        pickle.loads(pickle.dumps(error))
    except Exception:
        return RuntimeError(f"{type(error).__name__}: {error!r}")
    return error
