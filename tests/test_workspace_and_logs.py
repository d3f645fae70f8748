"""Tests for the output directory layout and campaign logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from evalharness.config import EvaluatorConfig
from evalharness.errors import SinkIOError
from evalharness.logs import LOGGER_NAME, CampaignLogging, level_for
from evalharness.timer import ProgressTimer
from evalharness.workspace import MARKER_FILE, Workspace


def test_setup_creates_layout_and_marker(tmp_path: Path) -> None:
    ws = Workspace(EvaluatorConfig(output=str(tmp_path / "out"))).setup()
    marker = (tmp_path / "out" / MARKER_FILE).read_text().strip()
    assert ws.output_path == tmp_path / "out" / marker
    assert ws.csv_path.is_dir() and ws.temp_path.is_dir() and ws.log_path.is_dir()
    assert ws.log_path.name.startswith("log-")


def test_marker_reused_until_reset(tmp_path: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / MARKER_FILE).write_text("campaign-a\n")
    ws = Workspace(EvaluatorConfig(output=str(out))).setup()
    assert ws.output_path == out / "campaign-a"

    assert ws.reset_marker() is True
    assert not (out / MARKER_FILE).exists()
    assert ws.reset_marker() is False


def test_dispose_removes_temp_unless_debug(tmp_path: Path) -> None:
    with Workspace(EvaluatorConfig(output=str(tmp_path / "a"))) as ws:
        (ws.temp_path / "scratch").write_text("x")
    assert not ws.temp_path.exists()

    with Workspace(EvaluatorConfig(output=str(tmp_path / "b"), debug=1)) as ws:
        (ws.temp_path / "scratch").write_text("x")
    assert (ws.temp_path / "scratch").exists()


def test_sinks_live_in_data_directory(tmp_path: Path) -> None:
    ws = Workspace(EvaluatorConfig(output=str(tmp_path / "out")))
    with pytest.raises(SinkIOError):
        ws.sinks
    ws.setup()
    sink = ws.sinks.open("results", ["a"])
    assert sink.path.parent == ws.csv_path


def test_unwritable_output_root(tmp_path: Path) -> None:
    blocker = tmp_path / "out"
    blocker.write_text("not a directory")
    with pytest.raises(SinkIOError):
        Workspace(EvaluatorConfig(output=str(blocker))).setup()


def test_campaign_logging_splits_files(tmp_path: Path) -> None:
    log = logging.getLogger(f"{LOGGER_NAME}.test")
    with CampaignLogging(tmp_path, verbosity=0, console=False):
        log.info("progress line")
        log.debug("hidden detail")
        log.warning("trouble")
    output = (tmp_path / "output.log").read_text()
    errors = (tmp_path / "error.log").read_text()
    assert "progress line" in output and "trouble" not in output
    assert "hidden detail" not in output
    assert "trouble" in errors and "progress line" not in errors
    assert logging.getLogger(LOGGER_NAME).handlers == []


def test_verbosity_levels() -> None:
    assert level_for(0) == logging.INFO
    assert level_for(0, "warning") == logging.WARNING
    assert level_for(1) == logging.DEBUG
    assert level_for(2, "ERROR") == logging.DEBUG


def test_progress_timer_measures_spans(caplog) -> None:
    caplog.set_level(logging.INFO, logger="evalharness.timer")
    timer = ProgressTimer(label="Sweep time")
    assert timer.last_time == -1
    timer.start()
    timer.split()
    elapsed = timer.stop()
    assert elapsed >= 0 and timer.last_seconds >= 0
    assert not timer.running
    assert "Sweep time:" in caplog.text
