"""Append-only CSV sinks with per-row rollback.

A sink owns one file. Rows are assembled in memory and only reach the file on
commit, one append and flush per row, so a row whose population fails leaves
the file exactly as it was. The header may still grow until the first row is
committed; after that its shape is frozen.
"""

from __future__ import annotations

import csv
import logging
import math
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Sequence

from evalharness.errors import ConfigurationError, RowStateError, SinkIOError
from evalharness.paths import next_unique_path

logger = logging.getLogger("evalharness.sink")

TIMEOUT_TOKEN = "Timeout"


def format_field(value: Any) -> str:
    """Render one field; the timeout sentinel (``inf``) becomes ``"Timeout"``."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isinf(value) and value > 0:
            return TIMEOUT_TOKEN
        return repr(value)
    return str(value)


class CSVSink:
    def __init__(self, path: str | Path, header: Sequence[str], delimiter: str = ","):
        self.path = Path(path)
        self.delimiter = delimiter
        self.header: List[str] = []
        self.committed = 0
        self._row: List[str] | None = None
        for name in header:
            self._append_header_name(name)
        self._write_header()

    @property
    def header_frozen(self) -> bool:
        return self.committed > 0

    @property
    def row_open(self) -> bool:
        return self._row is not None

    def _append_header_name(self, name: str) -> None:
        name = str(name)
        if name in self.header:
            raise ConfigurationError(f"Duplicate header field {name!r} in {self.path.name}")
        self.header.append(name)

    def _write_header(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", newline="", encoding="utf-8") as f:
                csv.writer(f, delimiter=self.delimiter).writerow(self.header)
        except OSError as e:
            raise SinkIOError(f"Could not open {self.path}: {e}") from e

    def add_header_field(self, name: str) -> None:
        self.add_header_fields([name])

    def add_header_fields(self, names: Iterable[str]) -> None:
        if self.header_frozen:
            raise ConfigurationError(
                f"Header of {self.path.name} is frozen after {self.committed} committed rows"
            )
        names = [str(n) for n in names]
        clash = [n for n in names if n in self.header] or [
            n for i, n in enumerate(names) if n in names[:i]
        ]
        if clash:
            raise ConfigurationError(f"Duplicate header field {clash[0]!r} in {self.path.name}")
        self.header.extend(names)
        self._write_header()

    # -- row lifecycle -------------------------------------------------
    def new_line(self) -> None:
        if self._row is not None:
            raise RowStateError(f"A row is already open on {self.path.name}")
        self._row = []

    def add_value(self, value: Any) -> None:
        if self._row is None:
            raise RowStateError(f"No open row on {self.path.name}")
        self._row.append(format_field(value))

    def add_values(self, values: Iterable[Any]) -> None:
        for value in values:
            self.add_value(value)

    def remove_last_line(self) -> None:
        self._row = None

    def flush(self) -> None:
        """Commit the open row: append it to the file and flush to disk."""
        if self._row is None:
            raise RowStateError(f"No open row on {self.path.name}")
        row, self._row = self._row, None
        if len(row) != len(self.header):
            raise ConfigurationError(
                f"Row has {len(row)} fields but header of {self.path.name} has {len(self.header)}"
            )
        try:
            with open(self.path, "a", newline="", encoding="utf-8") as f:
                csv.writer(f, delimiter=self.delimiter).writerow(row)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise SinkIOError(f"Could not write to {self.path}: {e}") from e
        self.committed += 1

    def write_row(self, populate: Callable[["CSVSink"], None]) -> None:
        """Open a row, let ``populate`` fill it, commit; discard on any error."""
        self.new_line()
        try:
            populate(self)
        except BaseException:
            self.remove_last_line()
            raise
        self.flush()

    def add_line(self, values: Iterable[Any]) -> None:
        self.write_row(lambda sink: sink.add_values(values))

    def __repr__(self) -> str:
        return f"CSVSink({str(self.path)!r}, fields={len(self.header)}, rows={self.committed})"


class SinkRegistry:
    """Sinks of one campaign, keyed by logical name.

    Requesting a name twice never reuses or overwrites the first file: the new
    sink gets the next free ``<name>_<n>.csv``. Existing files from an earlier
    run in the same output directory are skipped the same way.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self._sinks: Dict[str, CSVSink] = {}
        self._taken: set[Path] = set()

    def open(self, name: str, header: Sequence[str]) -> CSVSink:
        path = next_unique_path(self.directory / f"{name}.csv", self._taken)
        sink = CSVSink(path, header)
        self._taken.add(path)
        key = name if name not in self._sinks else path.stem
        self._sinks[key] = sink
        logger.info("Opened sink %s -> %s", key, path)
        return sink

    def get(self, name: str) -> CSVSink:
        try:
            return self._sinks[name]
        except KeyError:
            raise ConfigurationError(f"Unknown sink {name!r}") from None

    def extend(self, name: str, fields: Sequence[str]) -> None:
        self.get(name).add_header_fields(fields)

    def names(self) -> list[str]:
        return list(self._sinks)

    def __len__(self) -> int:
        return len(self._sinks)


def read_rows(path: str | Path, delimiter: str = ",") -> tuple[list[str], list[list[str]]]:
    with open(path, "r", newline="", encoding="utf-8") as f:
        reader = csv.reader(f, delimiter=delimiter)
        rows = list(reader)
    if not rows:
        return [], []
    return rows[0], rows[1:]
