#!/usr/bin/env python3
"""Benchmark sequential vs parallel per-row transformation of a table column.

This script builds a synthetic text table, applies the same transformation
with the sequential and the pool-based paths, checks both outputs match and
logs the timings.
"""

import argparse
import os
import random
import re
import string
import sys
import time
from pathlib import Path

import pandas as pd

from chunkmap import compute_chunk_size
from chunkmap.frame_apply import apply_to_column
from chunkmap.utils.logging_utils import get_logger, setup_logging
from chunkmap.utils.resource_monitor import get_system_info
from chunkmap.utils.settings import CONFIG_ENV_VAR, reload_settings

logger = get_logger(__name__)

_WORD_RE = re.compile(r"[a-z]+")


def normalize_text(text: str, stopwords: frozenset = frozenset(), min_len: int = 1) -> str:
    """Lowercase, tokenize and drop stopwords and short tokens."""
    tokens = _WORD_RE.findall(text.lower())
    return " ".join(t for t in tokens if t not in stopwords and len(t) >= min_len)


def make_sample_frame(rows: int, seed: int = 42) -> pd.DataFrame:
    """Build a frame with one free-text column of ``rows`` rows."""
    rng = random.Random(seed)
    vocabulary = [
        "".join(rng.choices(string.ascii_lowercase, k=rng.randint(2, 9)))
        for _ in range(500)
    ]
    text = [
        " ".join(rng.choices(vocabulary, k=rng.randint(5, 40))).title() + "."
        for _ in range(rows)
    ]
    return pd.DataFrame({"id": range(rows), "text": text})


def run_benchmark(
    rows: int,
    workers: int,
    chunk_size: int | None,
    backend: str,
    progress: bool,
) -> dict:
    """Run both paths and return timings.

    Returns:
        Dict with sequential/parallel seconds and the speedup

    """
    df = make_sample_frame(rows)
    options = {
        "stopwords": frozenset({"the", "a", "an", "of"}),
        "min_len": 3,
    }
    system = get_system_info()
    logger.info(
        f"System: {system['cpu_count']} CPUs, "
        f"{system['available_memory_gb']:.1f}/{system['total_memory_gb']:.1f}GB available",
    )
    effective_chunk = chunk_size or compute_chunk_size(rows, workers)
    logger.info(
        f"Benchmark: rows={rows}, workers={workers}, chunk_size={effective_chunk}, backend={backend}",
    )

    start = time.perf_counter()
    sequential = apply_to_column(
        df, "text", normalize_text, target="clean", backend="sequential",
        pool_size=workers, chunk_size=chunk_size, **options,
    )
    sequential_secs = time.perf_counter() - start

    start = time.perf_counter()
    parallel = apply_to_column(
        df, "text", normalize_text, target="clean", backend=backend,
        pool_size=workers, chunk_size=chunk_size, show_progress=progress, **options,
    )
    parallel_secs = time.perf_counter() - start

    if not sequential["clean"].equals(parallel["clean"]):
        raise AssertionError("Sequential and parallel outputs differ")

    stats = {
        "sequential_secs": sequential_secs,
        "parallel_secs": parallel_secs,
        "speedup": sequential_secs / parallel_secs if parallel_secs > 0 else float("inf"),
    }
    logger.info(
        f"Sequential: {sequential_secs:.2f}s | Parallel: {parallel_secs:.2f}s | "
        f"Speedup: {stats['speedup']:.2f}x",
    )
    return stats


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--rows", type=int, default=200_000, help="Number of rows")
    parser.add_argument("--workers", type=int, default=4, help="Pool size")
    parser.add_argument("--chunk-size", type=int, default=None, help="Chunk size override")
    parser.add_argument(
        "--backend",
        choices=["loky", "threading", "sequential"],
        default="loky",
        help="Execution backend for the parallel run",
    )
    parser.add_argument("--progress", action="store_true", help="Show a progress bar")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args()

    setup_logging(args.log_level)
    if args.config is not None:
        os.environ[CONFIG_ENV_VAR] = str(args.config)
        reload_settings()

    try:
        run_benchmark(args.rows, args.workers, args.chunk_size, args.backend, args.progress)
    except AssertionError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
