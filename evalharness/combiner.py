"""Sweep enumeration over the Cartesian product of option dimensions.

Combinations are produced in rightmost-fastest order (the last declared
dimension cycles fastest, like nested loops written outer to inner). Each
combination carries the index of the dimension that changed relative to the
previous one, so consumers can rebuild only the state that dimension affects.

Marker convention:
    - combination 0 reports the last dimension index (``N - 1``);
    - combination k > 0 reports the lowest dimension index whose setting
      differs from combination k - 1 (an outer carry reports the outer
      dimension even though inner dimensions were reset to 0).

Example for sizes ``[2, 3]``::

    (0, 0 | 1) (0, 1 | 1) (0, 2 | 1) (1, 0 | 0) (1, 1 | 1) (1, 2 | 1)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Mapping, Sequence

from evalharness.errors import ConfigurationError
from evalharness.options import Dimension, validate_dimensions

logger = logging.getLogger("evalharness.combiner")


def enumerate_indices(sizes: Sequence[int]) -> Iterator[tuple[int, ...]]:
    """Yield every index tuple of the product plus a trailing changed marker.

    Each yielded tuple has ``len(sizes) + 1`` entries. Sizes must be positive;
    callers validate through :func:`validate_dimensions` first.
    """
    sizes = list(sizes)
    if not sizes:
        return
    current = [0] * len(sizes)

    def walk(depth: int, inherited: int) -> Iterator[tuple[int, ...]]:
        if depth == len(sizes):
            yield (*current, inherited)
            return
        for index in range(sizes[depth]):
            current[depth] = index
            marker = inherited if index == 0 else depth
            yield from walk(depth + 1, marker)

    yield from walk(0, len(sizes) - 1)


@dataclass(frozen=True)
class Combination:
    """Snapshot of one assignment of settings to every dimension.

    Attributes:
        indices: Setting index per dimension (declared order).
        changed: Dimension index that changed relative to the previous
            combination (see module docstring for the first one).
        position: Zero-based position in enumeration order.
    """

    indices: tuple[int, ...]
    changed: int
    position: int

    @property
    def first(self) -> bool:
        return self.position == 0

    def as_array(self) -> list[int]:
        return [*self.indices, self.changed]

    def __len__(self) -> int:
        return len(self.indices)


class SweepEnumerator:
    """Single-pass iterator over all combinations of ``dimensions``.

    Sizes are validated on construction so that an empty dimension fails
    before any trial is scheduled. Not thread-safe; one consumer only.
    """

    def __init__(self, dimensions: Sequence[Dimension]):
        self.dimensions = list(dimensions)
        self.sizes = validate_dimensions(self.dimensions)
        self.total = 1
        for size in self.sizes:
            self.total *= size
        self._source = enumerate_indices(self.sizes)
        self._position = 0

    def __iter__(self) -> "SweepEnumerator":
        return self

    def __next__(self) -> Combination:
        raw = next(self._source)
        combo = Combination(indices=tuple(raw[:-1]), changed=raw[-1], position=self._position)
        self._position += 1
        return combo

    def __len__(self) -> int:
        return self.total

    @property
    def emitted(self) -> int:
        return self._position


class OptionCombiner:
    """Resolve concrete settings while looping over a sweep.

    Mirrors the usual evaluation loop: log the option names with their sizes,
    then hand each combination's changed-dimension index to a callback while
    ``value(i)`` / ``values()`` expose the current settings.
    """

    def __init__(self, dimensions: Sequence[Dimension]):
        self.dimensions = list(dimensions)
        self._enumerator = SweepEnumerator(self.dimensions)
        self._current: Combination | None = None

    @property
    def total(self) -> int:
        return self._enumerator.total

    @property
    def current(self) -> Combination | None:
        return self._current

    def option_summary(self) -> str:
        return " ".join(f"{d.name}({d.size})" for d in self.dimensions)

    def value(self, index: int) -> Any:
        if self._current is None:
            return None
        return self.dimensions[index].value(self._current.indices[index])

    def values(self) -> Dict[str, Any]:
        if self._current is None:
            return {}
        return resolve_values(self.dimensions, self._current)

    def __iter__(self) -> Iterator[Combination]:
        logger.info("Start")
        logger.info(self.option_summary())
        for combo in self._enumerator:
            self._current = combo
            logger.info(
                "(%d/%d) %s",
                combo.position + 1,
                self.total,
                ", ".join(str(i) for i in combo.indices),
            )
            yield combo

    def loop_over_options(self, for_each: Callable[[int], None]) -> None:
        for combo in self:
            for_each(combo.changed)


def resolve_values(dimensions: Sequence[Dimension], combo: Combination) -> Dict[str, Any]:
    """Map dimension names to the settings selected by ``combo``."""
    if len(dimensions) != len(combo.indices):
        raise ConfigurationError(
            f"Combination has {len(combo.indices)} indices for {len(dimensions)} dimensions"
        )
    return {d.name: d.value(i) for d, i in zip(dimensions, combo.indices)}


class StageCache:
    """Per-dimension setup stages rerun only when their dimension changes.

    A stage registered for dimension ``d`` reruns whenever a combination
    reports a changed marker ``<= d``; the first combination reruns all of
    them. Stage results are stored by dimension index.
    """

    def __init__(self, stages: Mapping[int, Callable[[Combination], Any]] | None = None):
        self._stages: Dict[int, Callable[[Combination], Any]] = dict(stages or {})
        self.results: Dict[int, Any] = {}
        self.runs: Dict[int, int] = {d: 0 for d in self._stages}
        self._stale = True

    def __len__(self) -> int:
        return len(self._stages)

    def register(self, dimension: int, stage: Callable[[Combination], Any]) -> None:
        self._stages[dimension] = stage
        self.runs.setdefault(dimension, 0)
        self._stale = True

    def refresh(self, combo: Combination) -> list[int]:
        """Rerun the stages invalidated by ``combo``; return their dimensions.

        A stage that raises leaves the cache stale, so the next combination
        rebuilds every stage instead of reusing half-updated results.
        """
        start = 0 if (combo.first or self._stale) else combo.changed
        rerun = sorted(d for d in self._stages if d >= start)
        self._stale = True
        for dimension in rerun:
            self.results[dimension] = self._stages[dimension](combo)
            self.runs[dimension] += 1
        self._stale = False
        if rerun:
            logger.debug("Stages rerun for %s: %s", combo.as_array(), rerun)
        return rerun
