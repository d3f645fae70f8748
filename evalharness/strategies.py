"""Named strategies compared within one sweep.

Instead of one hand-written call site per variant, variants are registered
under a name and iterated as an ordinary sweep dimension.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, Protocol, runtime_checkable

from evalharness.errors import ConfigurationError
from evalharness.options import ListDimension


@runtime_checkable
class Strategy(Protocol):
    name: str

    def run(self, data: Any) -> Any: ...


class FunctionStrategy:
    """Adapter turning a plain function into a :class:`Strategy`."""

    def __init__(self, name: str, fn: Callable[[Any], Any]):
        self.name = name
        self.fn = fn

    def run(self, data: Any) -> Any:
        return self.fn(data)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FunctionStrategy({self.name!r})"


class StrategyRegistry:
    def __init__(self) -> None:
        self._strategies: Dict[str, Strategy] = {}

    def add(self, strategy: Strategy) -> Strategy:
        if strategy.name in self._strategies:
            raise ConfigurationError(f"Strategy {strategy.name!r} already registered")
        self._strategies[strategy.name] = strategy
        return strategy

    def register(self, name: str) -> Callable[[Callable[[Any], Any]], Callable[[Any], Any]]:
        """Decorator: ``@registry.register("fast")`` on a ``fn(data)``."""

        def decorator(fn: Callable[[Any], Any]) -> Callable[[Any], Any]:
            self.add(FunctionStrategy(name, fn))
            return fn

        return decorator

    def get(self, name: str) -> Strategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise ConfigurationError(f"Unknown strategy {name!r}") from None

    def names(self) -> list[str]:
        return list(self._strategies)

    def __iter__(self) -> Iterator[Strategy]:
        return iter(list(self._strategies.values()))

    def __len__(self) -> int:
        return len(self._strategies)

    def as_dimension(self, name: str = "strategy") -> ListDimension:
        """Registered strategies, in registration order, as a sweep dimension."""
        return ListDimension(name, list(self._strategies.values()))
