"""Campaign-scoped logging.

Handlers are attached to the ``evalharness`` logger for the lifetime of one
campaign and removed again on exit, so two campaigns in the same process (or
two tests) never share log files.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List

LOGGER_NAME = "evalharness"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


def level_for(verbosity: int, log_level: str = "INFO") -> int:
    """0 -> configured level (INFO by default), 1 and 2 -> DEBUG."""
    if verbosity >= 1:
        return logging.DEBUG
    return getattr(logging, str(log_level).upper(), logging.INFO)


class CampaignLogging:
    """Context manager installing console and file handlers for one campaign.

    Args:
        log_dir: Directory for ``output.log`` (INFO/DEBUG) and ``error.log``
            (WARNING and above); ``None`` logs to the console only.
        verbosity: 0 info, 1 debug, 2 debug including every captured
            subprocess line.
        log_level: Console level used at verbosity 0.
        console: Also log to stderr.
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        verbosity: int = 0,
        log_level: str = "INFO",
        console: bool = True,
    ):
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.verbosity = verbosity
        self.level = level_for(verbosity, log_level)
        self.console = console
        self.logger = logging.getLogger(LOGGER_NAME)
        self._handlers: List[logging.Handler] = []
        self._previous_level = self.logger.level
        self._previous_propagate = self.logger.propagate

    def _add(self, handler: logging.Handler, level: int) -> None:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        self.logger.addHandler(handler)
        self._handlers.append(handler)

    def __enter__(self) -> logging.Logger:
        self._previous_level = self.logger.level
        self._previous_propagate = self.logger.propagate
        self.logger.setLevel(self.level)
        if self.console:
            self._add(logging.StreamHandler(sys.stderr), self.level)
            self.logger.propagate = False
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            out = logging.FileHandler(self.log_dir / "output.log", encoding="utf-8")
            out.addFilter(_MaxLevelFilter(logging.INFO))
            self._add(out, logging.DEBUG)
            self._add(
                logging.FileHandler(self.log_dir / "error.log", encoding="utf-8"),
                logging.WARNING,
            )
        # Captured subprocess lines are logged at DEBUG; only echo them at verbosity 2.
        logging.getLogger("evalharness.streams").setLevel(
            logging.DEBUG if self.verbosity >= 2 else logging.INFO
        )
        return self.logger

    def __exit__(self, exc_type, exc, tb) -> None:
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self.logger.setLevel(self._previous_level)
        self.logger.propagate = self._previous_propagate
        logging.getLogger("evalharness.streams").setLevel(logging.NOTSET)
