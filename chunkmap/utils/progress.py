from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator
from typing import Callable, Optional, TypeVar

from tqdm import tqdm

T = TypeVar("T")


class ProgressLogger:
    """Progress hook for ``parallel_map``: logs throughput or drives tqdm.

    Call it with the cumulative completed count (``on_progress=logger``),
    or decorate an iterator with ``wrap``.
    """

    def __init__(
        self,
        total: Optional[int],
        label: str,
        step_every: int = 10_000,
        secs_every: float = 5.0,
        enable_tqdm: bool = False,
        make_desc: Optional[Callable[[int, Optional[int], float], str]] = None,
    ) -> None:
        self.total = total
        self.label = label
        self.step_every = step_every
        self.secs_every = secs_every
        self.enable_tqdm = enable_tqdm
        self.make_desc = make_desc
        self.completed = 0
        self._last_log_count = 0
        self._last_log_time = time.time()
        self._start = self._last_log_time
        self._closed = False
        self._logger = logging.getLogger(__name__)

        self._tqdm: Optional[tqdm] = None
        if enable_tqdm:
            self._tqdm = tqdm(total=total, desc=label, unit="it")

    def _should_log(self, i: int) -> bool:
        if i - self._last_log_count >= self.step_every:
            return True
        now = time.time()
        if now - self._last_log_time >= self.secs_every:
            return True
        return False

    def _fmt(self, i: int) -> str:
        elapsed = time.time() - self._start
        rate = i / elapsed if elapsed > 0 else 0.0
        eta = ""
        if self.total is not None and rate > 0:
            remaining = max(self.total - i, 0)
            eta_secs = remaining / rate
            eta = f" | eta={eta_secs:,.0f}s"
        base = f"{self.label}: {i:,}/{self.total if self.total is not None else '?'} it | {rate:,.0f} it/s | elapsed={elapsed:,.0f}s{eta}"
        if self.make_desc:
            extra = self.make_desc(i, self.total, elapsed)
            if extra:
                base += f" | {extra}"
        return base

    def update(self, completed: int) -> None:
        delta = completed - self.completed
        self.completed = completed
        if self._tqdm is not None:
            if delta > 0:
                self._tqdm.update(delta)
            return
        if self._should_log(completed):
            self._logger.info(self._fmt(completed))
            self._last_log_count = completed
            self._last_log_time = time.time()

    __call__ = update

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._tqdm is None:
            self._logger.info(self._fmt(self.completed))
        else:
            self._tqdm.close()

    def __enter__(self) -> ProgressLogger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def wrap(self, it: Iterable[T]) -> Iterator[T]:
        for i, item in enumerate(it, 1):
            self.update(i)
            yield item
        self.close()
