from __future__ import annotations

import logging
import time

logger = logging.getLogger("evalharness.timer")


class ProgressTimer:
    """Wall-clock stopwatch with optional logging of each measured span.

    Times are kept in nanoseconds (``time.perf_counter_ns``); ``last_time`` is
    ``-1`` until the first measurement.
    """

    def __init__(self, verbose: bool = True, label: str = "Time"):
        self.verbose = verbose
        self.label = label
        self.running = False
        self._start = 0
        self._split = 0
        self.last_time = -1

    def start(self) -> None:
        if not self.running:
            self._start = time.perf_counter_ns()
            self._split = self._start
            self.running = True

    def stop(self) -> int:
        if self.running:
            self.last_time = time.perf_counter_ns() - self._start
            self._print_time()
            self.running = False
        return self.last_time

    def split(self) -> int:
        previous = self._split
        self._split = time.perf_counter_ns()
        self.last_time = self._split - previous
        self._print_time()
        return self.last_time

    @property
    def last_seconds(self) -> float:
        return self.last_time / 1e9 if self.last_time >= 0 else float("nan")

    def _print_time(self) -> None:
        if self.verbose:
            logger.info("%s: %.3fs", self.label, self.last_time / 1e9)
