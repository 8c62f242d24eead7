"""Error taxonomy for chunked parallel mapping.

Every failure aborts the whole mapping call, so each error type describes
why no result sequence was returned. All errors are picklable so they can
cross a worker boundary unchanged.
"""

from typing import Optional


class ChunkMapError(Exception):
    """Base class for all mapping failures."""


class ConfigurationError(ChunkMapError, ValueError):
    """Invalid pool size, chunk size, backend or settings value."""


class TransformError(ChunkMapError):
    """The transformation raised for the element at ``position``.

    Args:
        position: Absolute index of the failing element in the input
        cause: The exception raised by the transformation
        remote_traceback: Formatted traceback captured where the element ran

    """

    def __init__(
        self,
        position: int,
        cause: BaseException,
        remote_traceback: Optional[str] = None,
    ) -> None:
        self.position = position
        self.cause = cause
        self.remote_traceback = remote_traceback
        super().__init__(
            f"Transformation failed for element at position {position}: "
            f"{type(cause).__name__}: {cause}",
        )
        self.__cause__ = cause

    def __reduce__(self):
        return (type(self), (self.position, self.cause, self.remote_traceback))


class ProgressCallbackError(ChunkMapError):
    """The progress hook raised after ``completed`` elements were done."""

    def __init__(self, completed: int, cause: BaseException) -> None:
        self.completed = completed
        self.cause = cause
        super().__init__(
            f"Progress callback failed at {completed} completed elements: "
            f"{type(cause).__name__}: {cause}",
        )
        self.__cause__ = cause

    def __reduce__(self):
        return (type(self), (self.completed, self.cause))


class MappingCancelledError(ChunkMapError):
    """The stop event was set before all chunks completed."""

    def __init__(self, completed: int, total: int) -> None:
        self.completed = completed
        self.total = total
        super().__init__(f"Mapping cancelled after {completed}/{total} elements")

    def __reduce__(self):
        return (type(self), (self.completed, self.total))
