from __future__ import annotations

from datetime import datetime
from pathlib import Path

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def next_unique_path(path: str | Path, taken: set[Path] | None = None) -> Path:
    """If the file exists (or is in ``taken``), add _1, _2 ... until a free name is found."""
    p = Path(path)
    taken = taken or set()
    if not p.exists() and p not in taken:
        return p
    stem = p.stem
    suffix = p.suffix
    parent = p.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}_{counter}{suffix}"
        if not candidate.exists() and candidate not in taken:
            return candidate
        counter += 1
