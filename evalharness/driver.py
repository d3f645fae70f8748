"""Sweep driver: one trial at a time, one row per trial, in enumeration order.

State machine::

    IDLE -> RUNNING(k) -> ROW_COMMITTED | ROW_DISCARDED -> RUNNING(k+1) -> ... -> DONE
                                                        \\-> ABORTED (timeout policy ABORT)

Per-trial failures and timeouts become rows. Only configuration errors and
sink I/O errors escape :meth:`SweepDriver.run`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Sequence, Union

from evalharness.combiner import Combination, OptionCombiner, StageCache
from evalharness.errors import ConfigurationError, SinkIOError
from evalharness.executor import BoundedExecutor
from evalharness.options import Dimension, validate_dimensions
from evalharness.outcome import Failure, Outcome, Success, Timeout
from evalharness.process import Algorithm, ProcessRunner
from evalharness.sink import CSVSink
from evalharness.timer import ProgressTimer

logger = logging.getLogger("evalharness.driver")

BASE_COLUMNS = ("iteration", "status", "value", "time")


class TimeoutPolicy(str, Enum):
    RECORD = "record"  # write the Timeout row and go on
    ABORT = "abort"  # write the Timeout row and skip the rest of the sweep


class DriverState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    ROW_COMMITTED = "row_committed"
    ROW_DISCARDED = "row_discarded"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Trial:
    """What a trial factory gets to build one trial body."""

    combination: Combination
    values: Mapping[str, Any]
    iteration: int
    seed: int | None = None
    stages: Mapping[int, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    @property
    def label(self) -> str:
        return f"{self.combination.position + 1}.{self.iteration}"


TrialBody = Callable[[], Any]
TrialFactory = Callable[[Trial], Union[TrialBody, Algorithm]]
ExtraValues = Callable[[Trial, Outcome], Mapping[str, Any]]


@dataclass
class TrialRecord:
    trial: Trial
    outcome: Outcome
    committed: bool


@dataclass
class SweepReport:
    records: List[TrialRecord] = field(default_factory=list)
    aborted: bool = False
    total_combinations: int = 0

    def _count(self, kind: type) -> int:
        return sum(1 for r in self.records if isinstance(r.outcome, kind))

    @property
    def successes(self) -> int:
        return self._count(Success)

    @property
    def timeouts(self) -> int:
        return self._count(Timeout)

    @property
    def failures(self) -> int:
        return self._count(Failure)

    @property
    def rows(self) -> int:
        return sum(1 for r in self.records if r.committed)

    @property
    def discarded(self) -> int:
        return sum(1 for r in self.records if not r.committed)

    def outcomes(self) -> List[Outcome]:
        return [r.outcome for r in self.records]


def setting_label(value: Any) -> Any:
    """Strategies and other named settings are written by name."""
    name = getattr(value, "name", None)
    if isinstance(name, str) and not isinstance(value, (str, bytes)):
        return name
    return value


class SweepDriver:
    """Run a full campaign over ``dimensions`` into ``sink``.

    Args:
        dimensions: Ordered dimensions (outermost first).
        trial_factory: Builds a zero-argument body, or an :class:`Algorithm`
            for subprocess trials, for each :class:`Trial`.
        sink: Destination for rows. An empty header is filled with
            :attr:`columns`; a non-empty one must start with them.
        timeout: Seconds per trial; ``None`` is unbounded.
        iterations: Repetitions of every combination.
        timeout_policy: What a timeout does to the rest of the sweep.
        seed: Passed through to every trial.
        extra_columns: Columns declared up front after the base columns.
        extra_values: Returns additional named fields per row. Unknown names
            extend the header as long as no row has been committed.
        stages: Per-dimension setup stages (see :class:`StageCache`).
    """

    def __init__(
        self,
        dimensions: Sequence[Dimension],
        trial_factory: TrialFactory,
        sink: CSVSink,
        *,
        timeout: float | None = None,
        iterations: int = 1,
        timeout_policy: TimeoutPolicy = TimeoutPolicy.RECORD,
        seed: int | None = None,
        extra_columns: Sequence[str] = (),
        extra_values: ExtraValues | None = None,
        stages: Mapping[int, Callable[[Combination], Any]] | None = None,
        executor: BoundedExecutor | None = None,
        process_runner: ProcessRunner | None = None,
    ):
        self.dimensions = list(dimensions)
        validate_dimensions(self.dimensions)
        if iterations < 1:
            raise ConfigurationError(f"iterations must be >= 1, got {iterations}")
        if not isinstance(timeout_policy, TimeoutPolicy):
            raise ConfigurationError(f"Unknown timeout policy: {timeout_policy!r}")
        for index in stages or {}:
            if not 0 <= index < len(self.dimensions):
                raise ConfigurationError(f"Stage registered for unknown dimension {index}")
        self.trial_factory = trial_factory
        self.sink = sink
        self.iterations = iterations
        self.timeout_policy = timeout_policy
        self.seed = seed
        self.extra_columns = list(extra_columns)
        self.extra_values = extra_values
        self.stages = StageCache(stages)
        self.executor = executor or BoundedExecutor(timeout)
        self.process_runner = process_runner or ProcessRunner(self.executor.timeout)
        self.state = DriverState.IDLE

    @property
    def columns(self) -> List[str]:
        return [d.name for d in self.dimensions] + list(BASE_COLUMNS) + self.extra_columns

    def _transition(self, state: DriverState) -> None:
        logger.debug("Driver %s -> %s", self.state.value, state.value)
        self.state = state

    def _prepare_sink(self) -> None:
        columns = self.columns
        if not self.sink.header:
            self.sink.add_header_fields(columns)
        elif self.sink.header[: len(columns)] != columns:
            raise ConfigurationError(
                f"Sink header {self.sink.header} does not start with {columns}"
            )

    def run(self) -> SweepReport:
        if self.state is not DriverState.IDLE:
            raise ConfigurationError("A sweep driver runs only once")
        self._prepare_sink()
        combiner = OptionCombiner(self.dimensions)
        report = SweepReport(total_combinations=combiner.total)
        timer = ProgressTimer(label="Sweep time")
        timer.start()
        try:
            for combo in combiner:
                values = combiner.values()
                stage_error = self._refresh_stages(combo)
                for iteration in range(1, self.iterations + 1):
                    trial = Trial(combo, values, iteration, self.seed, dict(self.stages.results))
                    self._transition(DriverState.RUNNING)
                    logger.debug("Trial %s iteration %d/%d", trial.label, iteration, self.iterations)
                    if stage_error is not None:
                        outcome: Outcome = Failure(stage_error)
                    else:
                        outcome = self._run_trial(trial)
                    committed = self._record(trial, outcome)
                    report.records.append(TrialRecord(trial, outcome, committed))
                    if isinstance(outcome, Timeout) and self.timeout_policy is TimeoutPolicy.ABORT:
                        logger.warning(
                            "Trial %s timed out; aborting the remaining sweep", trial.label
                        )
                        report.aborted = True
                        self._transition(DriverState.ABORTED)
                        return report
        finally:
            timer.stop()
            logger.info(
                "Sweep finished: %d ok, %d timeout, %d failure, %d discarded",
                report.successes,
                report.timeouts,
                report.failures,
                report.discarded,
            )
        self._transition(DriverState.DONE)
        return report

    def _refresh_stages(self, combo: Combination) -> Exception | None:
        if not len(self.stages):
            return None
        try:
            self.stages.refresh(combo)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception("Setup stage failed for combination %s", combo.as_array())
            return e
        return None

    def _run_trial(self, trial: Trial) -> Outcome:
        try:
            body = self.trial_factory(trial)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception("Could not build trial %s", trial.label)
            return Failure(e)
        if isinstance(body, Algorithm):
            return self.process_runner.run(body).to_outcome()
        return self.executor(body, name=f"trial-{trial.label}")

    def _record(self, trial: Trial, outcome: Outcome) -> bool:
        def populate(sink: CSVSink) -> None:
            sink.add_values(setting_label(trial.values[d.name]) for d in self.dimensions)
            sink.add_value(trial.iteration)
            sink.add_value(outcome.status)
            sink.add_value(setting_label(outcome.value))
            sink.add_value(outcome.elapsed_ms)
            extras: Dict[str, Any] = {}
            if self.extra_values is not None:
                extras = dict(self.extra_values(trial, outcome))
            new_fields = [name for name in extras if name not in sink.header]
            if new_fields:
                sink.add_header_fields(new_fields)
            fixed = len(self.dimensions) + len(BASE_COLUMNS)
            sink.add_values(extras.get(name) for name in sink.header[fixed:])

        try:
            self.sink.write_row(populate)
        except (ConfigurationError, SinkIOError):
            raise
        except Exception:
            logger.exception("Row for trial %s discarded", trial.label)
            self._transition(DriverState.ROW_DISCARDED)
            return False
        self._transition(DriverState.ROW_COMMITTED)
        return True
