"""Campaign configuration.

Built once from a YAML (or JSON) file at campaign start and passed to every
component that needs it; nothing is registered globally.

Example::

    output: output
    timeout_s: 30          # or timeout_ms; omitted / 0 means unbounded
    iterations: 3
    seed: 42
    verbosity: 1
    abort_on_timeout: false
    phases: [sweep, plot]
    sweep:
      name: solver
      command: ["python", "solve.py", "--n", "{n}", "--mode", "{mode}"]
      dimensions:
        n: [10, 20, 40]
        mode: [fast, exact]
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import yaml

from evalharness.driver import TimeoutPolicy
from evalharness.errors import ConfigurationError
from evalharness.options import Dimension, dimensions_from_mapping
from evalharness.process import template_placeholders

logger = logging.getLogger("evalharness.config")

KNOWN_PHASES = ("clean", "sweep", "plot")
TRIAL_PLACEHOLDERS = ("iteration", "seed", "temp")
_TRUE_WORDS = ("true", "yes", "on", "1")
_FALSE_WORDS = ("false", "no", "off", "0")


@dataclass(frozen=True)
class SweepSpec:
    name: str
    command: Tuple[str, ...]
    dimensions: Mapping[str, List[Any]]

    def build_dimensions(self) -> list[Dimension]:
        return dimensions_from_mapping(self.dimensions)


@dataclass(frozen=True)
class EvaluatorConfig:
    output: str = "output"
    resources: str = ""
    timeout_ms: int | None = None
    iterations: int = 1
    seed: int | None = None
    verbosity: int = 0
    debug: int = 0
    log_level: str = "INFO"
    abort_on_timeout: bool = False
    phases: Tuple[str, ...] = ("sweep",)
    sweep: SweepSpec | None = None
    explicit: frozenset = field(default_factory=frozenset, compare=False, repr=False)

    @property
    def timeout_s(self) -> float | None:
        if self.timeout_ms is None or self.timeout_ms <= 0:
            return None
        return self.timeout_ms / 1000.0

    @property
    def timeout_policy(self) -> TimeoutPolicy:
        return TimeoutPolicy.ABORT if self.abort_on_timeout else TimeoutPolicy.RECORD

    def describe(self) -> list[str]:
        lines = []
        for f in fields(self):
            if f.name == "explicit":
                continue
            value = getattr(self, f.name)
            suffix = "" if f.name in self.explicit else " (default value)"
            lines.append(f"{f.name} = {value}{suffix}")
        return lines


def _as_int(data: Mapping[str, Any], key: str, default: int | None, minimum: int | None = None):
    raw = data.get(key, default)
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}")
    return value


def _timeout_ms(data: Mapping[str, Any]) -> int | None:
    if "timeout_ms" in data:
        return _as_int(data, "timeout_ms", None)
    if "timeout_s" in data:
        raw = data["timeout_s"]
        if raw is None:
            return None
        try:
            return int(float(raw) * 1000)
        except (TypeError, ValueError):
            raise ConfigurationError(f"timeout_s must be a number, got {raw!r}") from None
    return None


def _settings(raw: Any) -> List[Any]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return [raw]


def _as_bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    raw = data.get(key, default)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
    raise ConfigurationError(f"{key} must be true or false, got {raw!r}")


def _sweep_spec(raw: Any) -> SweepSpec | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ConfigurationError("sweep must be a mapping")
    command = raw.get("command")
    if isinstance(command, str):
        command = command.split()
    if not command or not isinstance(command, (list, tuple)):
        raise ConfigurationError("sweep.command must be a non-empty list of tokens")
    dims = raw.get("dimensions") or {}
    if not isinstance(dims, Mapping) or not dims:
        raise ConfigurationError("sweep.dimensions must be a non-empty mapping")
    spec = SweepSpec(
        name=str(raw.get("name", "sweep")),
        command=tuple(str(t) for t in command),
        dimensions={
            str(k): _settings(v) for k, v in dims.items()
        },
    )
    for name, values in spec.dimensions.items():
        if not values:
            raise ConfigurationError(f"Option list must not be empty. Option: {name}")
    unknown = template_placeholders(spec.command) - set(spec.dimensions) - set(TRIAL_PLACEHOLDERS)
    if unknown:
        raise ConfigurationError(f"sweep.command uses unknown placeholders: {sorted(unknown)}")
    return spec


def config_from_mapping(data: Mapping[str, Any]) -> EvaluatorConfig:
    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration root must be a mapping")
    known = {f.name for f in fields(EvaluatorConfig)} | {"timeout_s"}
    for key in data:
        if key not in known or key == "explicit":
            logger.warning("Ignoring unknown config key %r", key)

    phases_raw = data.get("phases", ["sweep"])
    if isinstance(phases_raw, str):
        phases_raw = [p.strip() for p in phases_raw.split(",") if p.strip()]
    phases = tuple(str(p) for p in phases_raw or ())

    verbosity = _as_int(data, "verbosity", 0, minimum=0)
    if verbosity > 2:
        raise ConfigurationError(f"verbosity must be 0, 1 or 2, got {verbosity}")
    explicit = frozenset(k if k != "timeout_s" else "timeout_ms" for k in data)
    return EvaluatorConfig(
        output=str(data.get("output", "output")),
        resources=str(data.get("resources", "")),
        timeout_ms=_timeout_ms(data),
        iterations=_as_int(data, "iterations", 1, minimum=1),
        seed=_as_int(data, "seed", None),
        verbosity=verbosity,
        debug=_as_int(data, "debug", 0, minimum=0),
        log_level=str(data.get("log_level", "INFO")).upper(),
        abort_on_timeout=_as_bool(data, "abort_on_timeout", False),
        phases=phases,
        sweep=_sweep_spec(data.get("sweep")),
        explicit=explicit,
    )


def load_config(config_file: str | Path) -> EvaluatorConfig:
    """Load configuration from a YAML or JSON file."""
    path = Path(config_file)
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")
    logger.info("Reading config file. (%s)", path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yml", ".yaml"):
            data: Dict[str, Any] = yaml.safe_load(text) or {}
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e
    return config_from_mapping(data)
