"""Option space model: independent dimensions with discrete settings."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from evalharness.errors import ConfigurationError


class Dimension:
    """One configuration axis with a fixed number of discrete settings.

    Subclasses provide ``size`` and ``value(index)``. Dimensions are read-only
    while a sweep enumerates them.
    """

    name: str

    @property
    def size(self) -> int:
        raise NotImplementedError

    def value(self, index: int) -> Any:
        raise NotImplementedError

    def values(self) -> list[Any]:
        return [self.value(i) for i in range(self.size)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, size={self.size})"


class ListDimension(Dimension):
    """Dimension backed by an explicit sequence of settings."""

    def __init__(self, name: str, settings: Sequence[Any]):
        self.name = name
        self.settings: tuple[Any, ...] = tuple(settings)

    @property
    def size(self) -> int:
        return len(self.settings)

    def value(self, index: int) -> Any:
        if index < 0 or index >= len(self.settings):
            raise IndexError(f"index {index} out of range for dimension {self.name!r}")
        return self.settings[index]


def dimensions_from_mapping(mapping: Mapping[str, Any]) -> list[Dimension]:
    """Build ordered dimensions from ``{name: [settings...]}``.

    Scalars are promoted to single-setting dimensions. Insertion order of the
    mapping is the declared (outer to inner) order.
    """
    dims: list[Dimension] = []
    for name, raw in mapping.items():
        if isinstance(raw, (list, tuple)):
            settings = list(raw)
        elif raw is None:
            settings = []
        else:
            settings = [raw]
        dims.append(ListDimension(str(name), settings))
    return dims


def validate_dimensions(dimensions: Sequence[Dimension]) -> list[int]:
    """Return the sizes of ``dimensions`` or raise ``ConfigurationError``."""
    if not dimensions:
        raise ConfigurationError("At least one dimension is required")
    sizes: list[int] = []
    seen: set[str] = set()
    for dim in dimensions:
        if dim.name in seen:
            raise ConfigurationError(f"Duplicate dimension name: {dim.name!r}")
        seen.add(dim.name)
        size = dim.size
        if size <= 0:
            raise ConfigurationError(f"Option list must not be empty. Option: {dim.name}")
        sizes.append(size)
    return sizes
