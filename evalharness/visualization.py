from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List

import matplotlib

matplotlib.use("Agg")  # Must be set before importing pyplot
import matplotlib.pyplot as plt  # noqa: E402

from evalharness.paths import next_unique_path  # noqa: E402
from evalharness.sink import TIMEOUT_TOKEN, read_rows  # noqa: E402

logger = logging.getLogger("evalharness.visualization")


def _time_series(header: List[str], rows: List[List[str]]) -> Dict[str, List[float | None]]:
    """Group trial times (ms) by combination label; ``None`` marks a timeout."""
    if "iteration" not in header or "time" not in header:
        return {}
    n_dims = header.index("iteration")
    t_idx = header.index("time")
    series: Dict[str, List[float | None]] = defaultdict(list)
    for row in rows:
        if len(row) <= t_idx:
            continue
        label = ", ".join(row[:n_dims]) or "-"
        raw = row[t_idx]
        if raw == TIMEOUT_TOKEN:
            series[label].append(None)
            continue
        try:
            value = float(raw)
        except ValueError:
            continue
        series[label].append(value)
    return series


def plot_trial_times(csv_path: str | Path, out_path: str | Path) -> Path | None:
    """Bar chart of mean trial time per combination.

    Timed-out trials are drawn as hatched red bars at the height of the slowest
    finished trial. Returns the written file, or ``None`` if the CSV holds no
    rows to plot.
    """
    header, rows = read_rows(csv_path)
    series = _time_series(header, rows)
    if not series:
        logger.info("Nothing to plot in %s", csv_path)
        return None

    finished = [t for times in series.values() for t in times if t is not None]
    ceiling = max(finished) if finished else 1.0
    labels = list(series)
    means, colors, hatches = [], [], []
    for label in labels:
        done = [t for t in series[label] if t is not None]
        if len(done) < len(series[label]):
            means.append(ceiling)
            colors.append("#d62728")
            hatches.append("//")
        else:
            means.append(sum(done) / len(done))
            colors.append("#1f77b4")
            hatches.append("")

    fig, ax = plt.subplots(figsize=(max(6, min(0.6 * len(labels) + 2, 18)), 4.5))
    bars = ax.bar(range(len(labels)), means, color=colors, edgecolor="black", linewidth=0.6)
    for bar, hatch in zip(bars, hatches):
        bar.set_hatch(hatch)
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha="right", fontsize=8)
    ax.set_ylabel("Time [ms]")
    ax.set_title(f"Trial times - {Path(csv_path).stem}")
    ax.grid(True, alpha=0.25, axis="y", linestyle="--", linewidth=0.7)
    if any(hatches):
        ax.legend(
            handles=[
                plt.Rectangle((0, 0), 1, 1, facecolor="#1f77b4", label="finished"),
                plt.Rectangle((0, 0), 1, 1, facecolor="#d62728", hatch="//", label="timeout"),
            ],
            fontsize=8,
        )
    fig.tight_layout()

    target = next_unique_path(out_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(target, dpi=150)
    plt.close(fig)
    logger.info("Saved plot to %s", target)
    return target
