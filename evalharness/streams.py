"""Line readers for subprocess output streams."""

from __future__ import annotations

import logging
import threading
from typing import IO, Iterable, List, Protocol

logger = logging.getLogger("evalharness.streams")


class OutputReader(Protocol):
    def read_output(self, line: str) -> None: ...


class ErrStreamCollector:
    """Collects every stderr line; any entry marks the trial as erroring."""

    def __init__(self) -> None:
        self.err_list: List[str] = []
        self._lock = threading.Lock()

    def read_output(self, line: str) -> None:
        with self._lock:
            self.err_list.append(line)

    @property
    def has_errors(self) -> bool:
        with self._lock:
            return bool(self.err_list)


class LineCollector:
    """Keeps every line (stdout capture for result parsing)."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def read_output(self, line: str) -> None:
        self.lines.append(line)


class OutStreamLogger:
    def __init__(self, prefix: str = "out", level: int = logging.DEBUG):
        self.prefix = prefix
        self.level = level

    def read_output(self, line: str) -> None:
        logger.log(self.level, "[%s] %s", self.prefix, line)


class ErrStreamLogger(OutStreamLogger):
    def __init__(self, prefix: str = "err"):
        super().__init__(prefix, logging.WARNING)


class StreamRedirector:
    """Drains one text stream line by line and fans each line out to readers.

    Meant as a thread target. A reader that raises is logged and skipped for
    that line; draining continues until the stream closes (process exit or
    kill), at which point :meth:`run` returns.
    """

    def __init__(self, readers: Iterable[OutputReader], name: str = "stream"):
        self.readers = list(readers)
        self.name = name
        self.stream: IO[str] | None = None
        self.lines_read = 0

    def set_input_stream(self, stream: IO[str]) -> None:
        self.stream = stream

    def run(self) -> None:
        if self.stream is None:
            return
        try:
            with self.stream:
                for raw in self.stream:
                    line = raw.rstrip("\r\n")
                    self.lines_read += 1
                    for reader in self.readers:
                        try:
                            reader.read_output(line)
                        except Exception:
                            logger.exception("Reader %r failed on %s line", reader, self.name)
        except UnicodeDecodeError as e:
            # Streams must be opened with a replacing decoder; a strict one loses the rest.
            logger.error("Undecodable output on %s, stopped reading: %s", self.name, e)
        except (OSError, ValueError) as e:
            # ValueError: stream closed underneath us after a forced kill.
            logger.debug("Stream %s closed: %s", self.name, e)

    def start_thread(self) -> threading.Thread:
        thread = threading.Thread(target=self.run, name=f"redirect-{self.name}", daemon=True)
        thread.start()
        return thread
