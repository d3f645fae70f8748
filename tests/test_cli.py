"""Smoke tests for the command line entry point."""

from __future__ import annotations

import sys
from pathlib import Path

import yaml

from evalharness.main import main
from evalharness.sink import read_rows
from evalharness.workspace import MARKER_FILE


def _config(tmp_path: Path, **overrides) -> Path:
    data = {
        "output": str(tmp_path / "out"),
        "timeout_s": 20,
        "phases": ["sweep", "plot"],
        "sweep": {
            "name": "product",
            "command": [sys.executable, "-c", "print({n} * {m})"],
            "dimensions": {"n": [1, 2], "m": [3]},
        },
    }
    data.update(overrides)
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


def _run_dir(tmp_path: Path) -> Path:
    out = tmp_path / "out"
    return out / (out / MARKER_FILE).read_text().strip()


def test_sweep_and_plot(tmp_path: Path) -> None:
    assert main(["--config", str(_config(tmp_path))]) == 0
    run_dir = _run_dir(tmp_path)
    header, rows = read_rows(run_dir / "data" / "product.csv")
    assert header == ["n", "m", "iteration", "status", "value", "time"]
    assert [row[4] for row in rows] == ["3", "6"]
    assert list((run_dir / "plots").glob("product_times*.png"))
    assert list(run_dir.glob("log-*/output.log"))


def test_repeated_runs_append_new_csv(tmp_path: Path) -> None:
    cfg = _config(tmp_path, phases=["sweep"])
    assert main(["--config", str(cfg)]) == 0
    assert main(["--config", str(cfg)]) == 0
    names = sorted(p.name for p in (_run_dir(tmp_path) / "data").glob("*.csv"))
    assert names == ["product.csv", "product_1.csv"]


def test_unknown_phase_sets_exit_code(tmp_path: Path) -> None:
    assert main(["--config", str(_config(tmp_path, phases=["sweep", "publish"]))]) == 1


def test_configuration_error_exit_code(tmp_path: Path) -> None:
    assert main(["--config", str(tmp_path / "missing.yaml")]) == 2
    bad = _config(tmp_path, sweep={"command": ["run", "{x}"], "dimensions": {"n": [1]}})
    assert main(["--config", str(bad)]) == 2


def test_sweep_phase_without_sweep_section(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"output": str(tmp_path / "out")}))
    assert main(["--config", str(path)]) == 2
