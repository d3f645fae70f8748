import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from evalharness.config import EvaluatorConfig, load_config
from evalharness.driver import SweepDriver, SweepReport, Trial
from evalharness.errors import ConfigurationError, SinkIOError
from evalharness.logs import CampaignLogging
from evalharness.process import CommandTemplateAlgorithm
from evalharness.visualization import plot_trial_times
from evalharness.workspace import Workspace

logger = logging.getLogger("evalharness.main")


def run_sweep(config: EvaluatorConfig, workspace: Workspace) -> SweepReport:
    spec = config.sweep
    if spec is None:
        raise ConfigurationError("Phase 'sweep' needs a 'sweep' section in the config")
    dimensions = spec.build_dimensions()
    sink = workspace.sinks.open(spec.name, [])

    def factory(trial: Trial) -> CommandTemplateAlgorithm:
        values = dict(trial.values)
        values["iteration"] = trial.iteration
        values["seed"] = "" if trial.seed is None else trial.seed
        algorithm = CommandTemplateAlgorithm(
            spec.command, values, label=spec.name, temp_root=workspace.temp_path
        )
        algorithm.iterations = trial.iteration
        if config.resources:
            algorithm.cwd = str(workspace.resource_path)
        return algorithm

    driver = SweepDriver(
        dimensions,
        factory,
        sink,
        timeout=config.timeout_s,
        iterations=config.iterations,
        timeout_policy=config.timeout_policy,
        seed=config.seed,
    )
    report = driver.run()
    logger.info(
        "[Sweep] %s: %d rows -> %s%s",
        spec.name,
        report.rows,
        sink.path,
        " (aborted)" if report.aborted else "",
    )
    return report


def run_plot(workspace: Workspace) -> List[Path]:
    csv_files = sorted(workspace.csv_path.glob("*.csv"))
    if not csv_files:
        logger.warning("No CSV files to plot in %s", workspace.csv_path)
        return []
    out_dir = workspace.output_path / "plots"
    written = []
    for csv_file in csv_files:
        target = plot_trial_times(csv_file, out_dir / f"{csv_file.stem}_times.png")
        if target is not None:
            written.append(target)
    return written


def run_phases(config: EvaluatorConfig) -> int:
    workspace = Workspace(config)
    if "clean" in config.phases:
        workspace.reset_marker()
    with workspace:
        with CampaignLogging(workspace.log_path, config.verbosity, config.log_level):
            for line in config.describe():
                logger.info(line)
            exit_code = 0
            for phase in config.phases:
                logger.info("Running %s", phase)
                if phase == "clean":
                    continue
                elif phase == "sweep":
                    run_sweep(config, workspace)
                elif phase == "plot":
                    run_plot(workspace)
                else:
                    logger.error("Unknown phase: %s", phase)
                    exit_code = 1
            return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run an experiment sweep campaign")
    parser.add_argument("--config", required=True, help="Path to YAML/JSON config")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    try:
        config = load_config(args.config)
        return run_phases(config)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return 2
    except SinkIOError as e:
        logger.error("Output error: %s", e)
        return 3


if __name__ == "__main__":
    sys.exit(main())
