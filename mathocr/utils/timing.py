"""
Stage timing for the page pipeline.

Every processor owns a Timer. The page processor times the rasterize,
classify and crop stages of each page with it; the document processor
uses the elapsed time of the whole run.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator


class Timer:
    """
    Accumulating per-stage timer.

    Usage:
        timer = Timer()
        with timer.measure("classify"):
            ...
        timer.last("classify")   # duration of that call
        timer.total("classify")  # sum over all calls
    """

    def __init__(self):
        self._created = time.perf_counter()
        self._running: dict[str, float] = {}
        self._last: dict[str, float] = {}
        self._totals: dict[str, float] = {}
        self._counts: dict[str, int] = {}

    def start(self, stage: str) -> None:
        self._running[stage] = time.perf_counter()

    def stop(self, stage: str) -> float:
        """Stop a running stage and return its duration (0.0 if it was not started)."""
        started = self._running.pop(stage, None)
        if started is None:
            return 0.0

        duration = time.perf_counter() - started
        self._last[stage] = duration
        self._totals[stage] = self._totals.get(stage, 0.0) + duration
        self._counts[stage] = self._counts.get(stage, 0) + 1
        return duration

    @contextmanager
    def measure(self, stage: str) -> Iterator[None]:
        """Time the body of a with-block, also when it raises."""
        self.start(stage)
        try:
            yield
        finally:
            self.stop(stage)

    def last(self, stage: str) -> float:
        return self._last.get(stage, 0.0)

    def total(self, stage: str) -> float:
        return self._totals.get(stage, 0.0)

    def count(self, stage: str) -> int:
        return self._counts.get(stage, 0)

    @property
    def elapsed(self) -> float:
        """Seconds since the timer was created."""
        return time.perf_counter() - self._created


def format_duration(seconds: float) -> str:
    """Short human-readable duration: 850ms, 12.5s, 3m 05s."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}m {secs:02d}s"
