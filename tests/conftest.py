"""Pytest configuration & custom summary hook.

Also ensures the project root is on sys.path so the flat ``evalharness``
package imports without installation.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so 'import evalharness.*' works
_root = Path(__file__).resolve().parents[1]
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

_SUMMARY_KEYS = ("passed", "failed", "error", "skipped", "xfailed", "xpassed")


def pytest_terminal_summary(
    terminalreporter: pytest.TerminalReporter,
    exitstatus: int,
    config: pytest.Config,
) -> None:
    """One-line outcome counts, then the node ids of every failed or erroring test."""
    stats = terminalreporter.stats
    counts = {key: len(stats.get(key, [])) for key in _SUMMARY_KEYS}
    collected = terminalreporter._numcollected  # type: ignore[attr-defined]

    terminalreporter.section("Sweep engine test summary", sep="=")
    terminalreporter.write_line(
        f"collected {collected}: " + ", ".join(f"{n} {key}" for key, n in counts.items() if n)
    )
    broken = stats.get("failed", []) + stats.get("error", [])
    for rep in broken:
        terminalreporter.write_line(f"  {getattr(rep, 'when', ''):<8} {rep.nodeid}")


@pytest.fixture
def python_cmd() -> list[str]:
    """Interpreter prefix for subprocess trials (``sys.executable -c``)."""
    return [sys.executable, "-c"]
