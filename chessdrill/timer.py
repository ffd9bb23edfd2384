"""Stopwatch used to measure answer response times."""

from __future__ import annotations

import time


class Stopwatch:
    """Millisecond stopwatch over a monotonic clock."""

    def __init__(self, clock=time.perf_counter) -> None:
        self._clock = clock
        self._start: float | None = None
        self._running = False

    def start(self) -> None:
        self._start = self._clock()
        self._running = True

    def stop(self) -> int:
        """Stop the stopwatch and return elapsed ms (0 if not running)."""
        if not self._running:
            return 0
        self._running = False
        return self.elapsed()

    def elapsed(self) -> int:
        if self._start is None:
            return 0
        return int(round((self._clock() - self._start) * 1000))

    def reset(self) -> None:
        self._start = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running
