"""Tests for CSV sinks: rollback, header growth, registry naming."""

from __future__ import annotations

import math
from pathlib import Path

import pytest

from evalharness.errors import ConfigurationError, RowStateError, SinkIOError
from evalharness.sink import CSVSink, SinkRegistry, format_field, read_rows


def test_header_written_on_open(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["a", "b"])
    assert read_rows(sink.path) == (["a", "b"], [])


def test_failed_population_leaves_file_untouched(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["a", "b"])
    sink.add_line([1, 2])
    before = sink.path.read_bytes()

    def populate(s: CSVSink) -> None:
        s.add_value(3)
        raise RuntimeError("extractor failed")

    with pytest.raises(RuntimeError):
        sink.write_row(populate)
    assert sink.path.read_bytes() == before
    assert not sink.row_open

    sink.add_line([5, 6])
    assert read_rows(sink.path)[1] == [["1", "2"], ["5", "6"]]


def test_manual_rollback_discards_partial_row(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["a"])
    sink.new_line()
    sink.add_value("partial")
    sink.remove_last_line()
    sink.new_line()
    sink.add_value("kept")
    sink.flush()
    assert read_rows(sink.path)[1] == [["kept"]]


def test_header_grows_until_first_commit(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["a"])
    sink.add_header_field("b")
    assert read_rows(sink.path)[0] == ["a", "b"]
    sink.add_line([1, 2])
    assert sink.header_frozen
    with pytest.raises(ConfigurationError, match="frozen"):
        sink.add_header_field("c")
    assert read_rows(sink.path) == (["a", "b"], [["1", "2"]])


def test_duplicate_header_fields_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        CSVSink(tmp_path / "r.csv", ["a", "a"])
    sink = CSVSink(tmp_path / "s.csv", ["a"])
    with pytest.raises(ConfigurationError):
        sink.add_header_fields(["b", "b"])
    assert sink.header == ["a"]


def test_field_count_mismatch_is_configuration_error(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["a", "b"])
    with pytest.raises(ConfigurationError):
        sink.add_line([1])
    assert read_rows(sink.path)[1] == []
    assert not sink.row_open


def test_row_lifecycle_misuse(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["a"])
    with pytest.raises(RowStateError):
        sink.add_value(1)
    with pytest.raises(RowStateError):
        sink.flush()
    sink.new_line()
    with pytest.raises(RowStateError):
        sink.new_line()


def test_unwritable_destination_is_sink_io_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(SinkIOError):
        CSVSink(blocker / "r.csv", ["a"])


def test_timeout_sentinel_rendered_as_token(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["value", "time"])
    sink.add_line([None, math.inf])
    sink.add_line([1.5, 12])
    assert read_rows(sink.path)[1] == [["", "Timeout"], ["1.5", "12"]]


def test_format_field() -> None:
    assert format_field(None) == ""
    assert format_field(math.inf) == "Timeout"
    assert format_field(-math.inf) == "-inf"
    assert format_field(0.1) == "0.1"
    assert format_field("x,y") == "x,y"


def test_quoting_of_delimiters(tmp_path: Path) -> None:
    sink = CSVSink(tmp_path / "r.csv", ["label"])
    sink.add_line(["a,b"])
    assert read_rows(sink.path)[1] == [["a,b"]]


def test_registry_never_reuses_a_name(tmp_path: Path) -> None:
    registry = SinkRegistry(tmp_path)
    first = registry.open("results", ["a"])
    first.add_line([1])
    second = registry.open("results", ["b"])
    assert first.path.name == "results.csv"
    assert second.path.name == "results_1.csv"
    assert read_rows(first.path) == (["a"], [["1"]])
    assert registry.names() == ["results", "results_1"]
    assert registry.get("results_1") is second
    assert len(registry) == 2


def test_registry_skips_files_from_earlier_runs(tmp_path: Path) -> None:
    (tmp_path / "results.csv").write_text("old\n")
    sink = SinkRegistry(tmp_path).open("results", ["a"])
    assert sink.path.name == "results_1.csv"
    assert (tmp_path / "results.csv").read_text() == "old\n"


def test_registry_extend_and_unknown(tmp_path: Path) -> None:
    registry = SinkRegistry(tmp_path)
    registry.open("r", ["a"])
    registry.extend("r", ["b"])
    assert registry.get("r").header == ["a", "b"]
    with pytest.raises(ConfigurationError):
        registry.get("missing")
