"""Experiment sweep engine.

Exports the option model, the sweep driver and the building blocks it runs
trials with.
"""

from evalharness.combiner import (  # noqa: F401
    Combination,
    OptionCombiner,
    StageCache,
    SweepEnumerator,
)
from evalharness.config import EvaluatorConfig, load_config  # noqa: F401
from evalharness.driver import SweepDriver, SweepReport, TimeoutPolicy, Trial  # noqa: F401
from evalharness.executor import BoundedExecutor, run_with_timeout  # noqa: F401
from evalharness.options import Dimension, ListDimension  # noqa: F401
from evalharness.outcome import Failure, Success, Timeout  # noqa: F401
from evalharness.process import Algorithm, CommandTemplateAlgorithm, ProcessRunner  # noqa: F401
from evalharness.sink import CSVSink, SinkRegistry  # noqa: F401
from evalharness.strategies import StrategyRegistry  # noqa: F401

__all__ = [
    "Algorithm",
    "BoundedExecutor",
    "CSVSink",
    "Combination",
    "CommandTemplateAlgorithm",
    "Dimension",
    "EvaluatorConfig",
    "Failure",
    "ListDimension",
    "OptionCombiner",
    "ProcessRunner",
    "SinkRegistry",
    "StageCache",
    "StrategyRegistry",
    "Success",
    "SweepDriver",
    "SweepEnumerator",
    "SweepReport",
    "Timeout",
    "TimeoutPolicy",
    "Trial",
    "load_config",
    "run_with_timeout",
]
