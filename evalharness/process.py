"""Subprocess trials: spawn, capture stdout/stderr live, kill on timeout."""

from __future__ import annotations

import abc
import logging
import shutil
import string
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Sequence

from evalharness.errors import ConfigurationError, TrialFailure
from evalharness.executor import normalize_timeout, timeout_from_ms
from evalharness.outcome import Failure, Outcome, Success, Timeout
from evalharness.streams import (
    ErrStreamCollector,
    ErrStreamLogger,
    LineCollector,
    OutStreamLogger,
    StreamRedirector,
)

logger = logging.getLogger("evalharness.process")

INVALID_TIME = -1


class Algorithm(abc.ABC):
    """One externally executed trial.

    ``pre_process`` rebuilds the command line, stdout lines arrive through
    ``read_output`` while the process runs, and ``parse_results`` turns the
    captured output into the trial value once the process is gone.
    """

    def __init__(self) -> None:
        self.command_elements: List[str] = []
        self.iterations = -1
        self.cwd: str | None = None
        self.env: Mapping[str, str] | None = None

    @property
    @abc.abstractmethod
    def name(self) -> str: ...

    @property
    @abc.abstractmethod
    def parameter_settings(self) -> str: ...

    @abc.abstractmethod
    def add_command_elements(self) -> None: ...

    @abc.abstractmethod
    def parse_results(self) -> Any: ...

    def pre_process(self) -> None:
        self.command_elements.clear()
        self.add_command_elements()

    def post_process(self) -> None:
        pass

    def read_output(self, line: str) -> None:
        pass

    def add_command_element(self, element: Any) -> None:
        self.command_elements.append(str(element))

    @property
    def command(self) -> str:
        return " ".join(self.command_elements)

    @property
    def full_name(self) -> str:
        return f"{self.name}_{self.parameter_settings}"

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if other is None or type(self) is not type(other):
            return False
        return self.full_name == other.full_name  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash(self.full_name)

    def __repr__(self) -> str:
        return self.full_name


def template_placeholders(template: Sequence[str]) -> set[str]:
    """Names referenced as ``{name}`` in the command tokens."""
    names: set[str] = set()
    for token in template:
        for _, field_name, _, _ in string.Formatter().parse(token):
            if field_name:
                names.add(field_name.split(".")[0].split("[")[0])
    return names


def parse_scalar(text: str) -> Any:
    text = text.strip()
    for cast in (int, float):
        try:
            return cast(text)
        except ValueError:
            continue
    return text


class CommandTemplateAlgorithm(Algorithm):
    """Command built from ``{placeholder}`` tokens and the trial's settings.

    The value of the trial is the last non-empty stdout line, parsed as int,
    float or kept as text. When ``temp_root`` is given a fresh directory is
    created before the run (available as ``{temp}``) and removed afterwards.
    """

    def __init__(
        self,
        template: Sequence[str],
        values: Mapping[str, Any],
        label: str = "command",
        temp_root: str | Path | None = None,
    ):
        super().__init__()
        if not template:
            raise ConfigurationError("Command template must not be empty")
        self.template = list(template)
        self.values = dict(values)
        self.label = label
        self.temp_root = Path(temp_root) if temp_root is not None else None
        self.temp_dir: Path | None = None
        self.stdout = LineCollector()

    @property
    def name(self) -> str:
        return self.label

    @property
    def parameter_settings(self) -> str:
        return "_".join(f"{k}={v}" for k, v in self.values.items())

    def pre_process(self) -> None:
        self.stdout = LineCollector()
        if self.temp_root is not None:
            self.temp_root.mkdir(parents=True, exist_ok=True)
            self.temp_dir = Path(tempfile.mkdtemp(prefix=f"{self.label}_", dir=self.temp_root))
        super().pre_process()

    def add_command_elements(self) -> None:
        fmt_values = dict(self.values)
        if self.temp_dir is not None:
            fmt_values["temp"] = str(self.temp_dir)
        for token in self.template:
            self.add_command_element(token.format(**fmt_values))

    def read_output(self, line: str) -> None:
        self.stdout.read_output(line)

    def parse_results(self) -> Any:
        lines = [line for line in self.stdout.lines if line.strip()]
        if not lines:
            raise TrialFailure(f"{self.full_name}: no output to parse")
        return parse_scalar(lines[-1])

    def post_process(self) -> None:
        if self.temp_dir is not None:
            shutil.rmtree(self.temp_dir)
            self.temp_dir = None


@dataclass
class ProcessResult:
    terminated_in_time: bool = False
    no_error: bool = False
    time_ms: int = INVALID_TIME
    result: Any = None
    exit_code: int | None = None
    timed_out: bool = False
    errors: List[str] = field(default_factory=list)

    def to_outcome(self) -> Outcome:
        if self.timed_out:
            return Timeout()
        elapsed = max(self.time_ms, 0) / 1000.0
        if not self.terminated_in_time:
            return Failure(TrialFailure("process could not be started"), elapsed)
        if not self.no_error:
            detail = self.errors[0] if self.errors else "result could not be parsed"
            return Failure(TrialFailure(detail), elapsed)
        return Success(self.result, elapsed)


class ProcessRunner:
    """Run an :class:`Algorithm` as a child process under a hard timeout.

    A run counts as error-free only if the process exits in time and writes
    nothing to stderr; exit status alone is not the signal. A process still
    alive at the deadline is killed. Result parsing always runs afterwards
    and a parse failure turns an in-time run into an erroring one.
    """

    def __init__(self, timeout: float | None = None, reader_join_timeout: float = 5.0):
        self.timeout = normalize_timeout(timeout)
        self.reader_join_timeout = reader_join_timeout

    @classmethod
    def from_ms(cls, timeout_ms: int | None) -> "ProcessRunner":
        return cls(timeout_from_ms(timeout_ms))

    def run(self, algorithm: Algorithm) -> ProcessResult:
        result = ProcessResult()
        try:
            algorithm.pre_process()
            logger.info(algorithm.command)
            if algorithm.command_elements:
                self._execute(algorithm, result)
            else:
                logger.info("Invalid command")
        except Exception:
            logger.exception("Could not run %s", algorithm.full_name)
            result.terminated_in_time = False
            result.no_error = False
            result.timed_out = False
            result.time_ms = INVALID_TIME

        try:
            result.result = algorithm.parse_results()
        except Exception as e:
            logger.error("Could not parse results of %s: %s", algorithm.full_name, e)
            result.errors.append(str(e))
            if result.terminated_in_time:
                result.no_error = False
        try:
            algorithm.post_process()
        except Exception:
            logger.exception("Post-processing failed for %s", algorithm.full_name)
        return result

    def _execute(self, algorithm: Algorithm, result: ProcessResult) -> None:
        err_collector = ErrStreamCollector()
        err_redirector = StreamRedirector([ErrStreamLogger(), err_collector], "stderr")
        out_redirector = StreamRedirector([OutStreamLogger(), algorithm], "stdout")
        process: subprocess.Popen[str] | None = None
        readers = []
        terminated_in_time = False
        no_error = False
        try:
            start = time.perf_counter_ns()
            process = subprocess.Popen(
                algorithm.command_elements,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                cwd=algorithm.cwd,
                env=dict(algorithm.env) if algorithm.env is not None else None,
            )
            out_redirector.set_input_stream(process.stdout)
            err_redirector.set_input_stream(process.stderr)
            readers = [out_redirector.start_thread(), err_redirector.start_thread()]
            try:
                result.exit_code = process.wait(timeout=self.timeout)
                terminated_in_time = True
            except subprocess.TimeoutExpired:
                terminated_in_time = False
            end = time.perf_counter_ns()
            if terminated_in_time:
                # Streams close with the process; drain what is left before judging stderr.
                for reader in readers:
                    reader.join(self.reader_join_timeout)
            no_error = terminated_in_time and not err_collector.has_errors
            result.terminated_in_time = terminated_in_time
            result.timed_out = not terminated_in_time
            result.no_error = no_error
            result.time_ms = (end - start) // 1_000_000
            result.errors.extend(err_collector.err_list)
        finally:
            if process is not None:
                if process.poll() is None:
                    process.kill()
                process.wait()
            for reader in readers:
                reader.join(self.reader_join_timeout)
            logger.info("In time: %s, no error: %s", terminated_in_time, no_error)
