"""Output directory layout of a campaign.

::

    <output>/
        .current            marker naming the active run directory
        <marker>/
            data/           CSV sinks
            temp/           scratch space, removed on dispose unless debug
            log-<stamp>/    output.log, error.log

The marker survives between invocations so several phases (or several
processes) append into the same run directory until it is reset.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from evalharness.config import EvaluatorConfig
from evalharness.errors import SinkIOError
from evalharness.paths import timestamp
from evalharness.sink import SinkRegistry

logger = logging.getLogger("evalharness.workspace")

MARKER_FILE = ".current"


class Workspace:
    def __init__(self, config: EvaluatorConfig):
        self.config = config
        self.output_root = Path(config.output)
        self.resource_path = Path(config.resources) if config.resources else Path(".")
        self.output_path: Path | None = None
        self.csv_path: Path | None = None
        self.temp_path: Path | None = None
        self.log_path: Path | None = None
        self._sinks: SinkRegistry | None = None

    def read_current_output_marker(self) -> str:
        marker_file = self.output_root / MARKER_FILE
        marker = None
        if marker_file.is_file():
            try:
                lines = marker_file.read_text(encoding="utf-8").splitlines()
            except OSError as e:
                logger.error("Could not read %s: %s", marker_file, e)
                lines = []
            if lines and lines[0].strip():
                marker = lines[0].strip()
        if marker is None:
            marker = timestamp()
            try:
                self.output_root.mkdir(parents=True, exist_ok=True)
                marker_file.write_text(marker, encoding="utf-8")
            except OSError as e:
                raise SinkIOError(f"Could not write output marker {marker_file}: {e}") from e
        return marker

    def setup(self) -> "Workspace":
        marker = self.read_current_output_marker()
        self.output_path = self.output_root / marker
        self.csv_path = self.output_path / "data"
        self.temp_path = self.output_path / "temp"
        self.log_path = self.output_path / f"log-{timestamp()}"
        try:
            for path in (self.output_path, self.csv_path, self.temp_path, self.log_path):
                path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SinkIOError(f"Could not create output directory: {e}") from e
        self._sinks = SinkRegistry(self.csv_path)
        return self

    @property
    def sinks(self) -> SinkRegistry:
        if self._sinks is None:
            raise SinkIOError("Workspace not set up")
        return self._sinks

    def reset_marker(self) -> bool:
        """Forget the active run directory; the next setup starts a new one."""
        marker_file = self.output_root / MARKER_FILE
        existed = marker_file.exists()
        marker_file.unlink(missing_ok=True)
        logger.info("Reset current output path.")
        return existed

    def dispose(self) -> None:
        if self.temp_path is None or self.config.debug:
            return
        shutil.rmtree(self.temp_path, ignore_errors=True)

    def __enter__(self) -> "Workspace":
        return self.setup()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()
