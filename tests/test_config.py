"""Tests for loading campaign configuration from YAML/JSON."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml

from evalharness.config import EvaluatorConfig, config_from_mapping, load_config
from evalharness.driver import TimeoutPolicy
from evalharness.errors import ConfigurationError


def _write_yaml(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def test_load_yaml(tmp_path: Path) -> None:
    cfg = load_config(
        _write_yaml(
            tmp_path / "config.yaml",
            {
                "output": str(tmp_path / "out"),
                "timeout_s": 1.5,
                "iterations": 3,
                "seed": 42,
                "abort_on_timeout": True,
                "phases": ["sweep", "plot"],
                "sweep": {
                    "name": "solver",
                    "command": ["solve", "--n", "{n}", "--seed", "{seed}"],
                    "dimensions": {"n": [10, 20], "mode": "fast"},
                },
            },
        )
    )
    assert cfg.timeout_ms == 1500
    assert cfg.timeout_s == 1.5
    assert cfg.iterations == 3
    assert cfg.timeout_policy is TimeoutPolicy.ABORT
    assert cfg.phases == ("sweep", "plot")
    assert cfg.sweep.name == "solver"
    dims = cfg.sweep.build_dimensions()
    assert [(d.name, d.size) for d in dims] == [("n", 2), ("mode", 1)]


def test_load_json(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"timeout_ms": 250, "phases": "clean, sweep"}))
    cfg = load_config(path)
    assert cfg.timeout_s == 0.25
    assert cfg.phases == ("clean", "sweep")
    assert cfg.sweep is None


def test_defaults() -> None:
    cfg = config_from_mapping({})
    assert cfg == EvaluatorConfig()
    assert cfg.timeout_s is None
    assert cfg.timeout_policy is TimeoutPolicy.RECORD
    assert all(line.endswith("(default value)") for line in cfg.describe())


def test_describe_marks_only_defaults() -> None:
    lines = config_from_mapping({"iterations": 4}).describe()
    assert "iterations = 4" in lines
    assert "verbosity = 0 (default value)" in lines


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "nope.yaml")


def test_malformed_yaml(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("sweep: [unclosed\n")
    with pytest.raises(ConfigurationError, match="Could not parse"):
        load_config(path)


@pytest.mark.parametrize(
    "data",
    [
        {"iterations": 0},
        {"iterations": "many"},
        {"verbosity": 3},
        {"timeout_s": "soon"},
        {"sweep": {"command": [], "dimensions": {"n": [1]}}},
        {"sweep": {"command": ["run"], "dimensions": {}}},
        {"sweep": {"command": ["run"], "dimensions": {"n": []}}},
        {"sweep": {"command": ["run"], "dimensions": {"n": None}}},
        {"abort_on_timeout": "maybe"},
        {"abort_on_timeout": 2},
        {"sweep": {"command": ["run", "{m}"], "dimensions": {"n": [1]}}},
        ["not", "a", "mapping"],
    ],
)
def test_invalid_values_rejected(data) -> None:
    with pytest.raises(ConfigurationError):
        config_from_mapping(data)


def test_trial_placeholders_allowed() -> None:
    cfg = config_from_mapping(
        {"sweep": {"command": "run {n} {iteration} {seed} {temp}", "dimensions": {"n": [1]}}}
    )
    assert cfg.sweep.command == ("run", "{n}", "{iteration}", "{seed}", "{temp}")


def test_unknown_keys_warned(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="evalharness.config")
    config_from_mapping({"tiemout": 5})
    assert "tiemout" in caplog.text


@pytest.mark.parametrize(
    "raw, expected",
    [(True, True), (False, False), ("false", False), ("no", False), ("Yes", True), (1, True)],
)
def test_abort_on_timeout_parsing(raw, expected) -> None:
    assert config_from_mapping({"abort_on_timeout": raw}).abort_on_timeout is expected


def test_option_without_value_is_empty(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("sweep:\n  command: [run, '{n}']\n  dimensions:\n    n:\n")
    with pytest.raises(ConfigurationError, match="Option: n"):
        load_config(path)
