"""Chunked parallel mapping over finite ordered sequences."""

from chunkmap.errors import (
    ChunkMapError,
    ConfigurationError,
    MappingCancelledError,
    ProgressCallbackError,
    TransformError,
)
from chunkmap.transforms import BoundTransform, bind_transform
from chunkmap.utils.parallel_utils import (
    MIN_CHUNK,
    POOL_FACTOR,
    compute_chunk_size,
    supports_process_parallelism,
)
from chunkmap.mapper import parallel_imap, parallel_map, plan_map
from chunkmap.executor import ParallelExecutor, create_parallel_executor
from chunkmap.utils.progress import ProgressLogger

__version__ = "0.1.0"

__all__ = [
    # Mapping
    "parallel_map",
    "parallel_imap",
    "plan_map",
    "ParallelExecutor",
    "create_parallel_executor",
    # Transformations
    "BoundTransform",
    "bind_transform",
    # Heuristics and probes
    "MIN_CHUNK",
    "POOL_FACTOR",
    "compute_chunk_size",
    "supports_process_parallelism",
    # Progress
    "ProgressLogger",
    # Errors
    "ChunkMapError",
    "ConfigurationError",
    "MappingCancelledError",
    "ProgressCallbackError",
    "TransformError",
]
