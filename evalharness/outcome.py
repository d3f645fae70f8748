"""Tri-state trial outcomes."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Union

# Elapsed time reported for timed-out trials; rendered as "Timeout" in sinks.
TIMEOUT_ELAPSED = math.inf


def elapsed_to_ms(elapsed: float) -> int | float:
    if math.isinf(elapsed):
        return TIMEOUT_ELAPSED
    return int(elapsed * 1000)


@dataclass(frozen=True)
class Success:
    value: Any
    elapsed: float

    status = "ok"

    @property
    def elapsed_ms(self) -> int | float:
        return elapsed_to_ms(self.elapsed)


@dataclass(frozen=True)
class Timeout:
    elapsed: float = TIMEOUT_ELAPSED

    status = "timeout"
    value = None

    @property
    def elapsed_ms(self) -> int | float:
        return TIMEOUT_ELAPSED


@dataclass(frozen=True)
class Failure:
    error: BaseException
    elapsed: float = 0.0

    status = "failure"
    value = None

    @property
    def elapsed_ms(self) -> int | float:
        return elapsed_to_ms(self.elapsed)

    def describe(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


Outcome = Union[Success, Timeout, Failure]
