"""JSON Lines persistence for record snapshots."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import OutputError
from .logging import get_logger
from .models import Record, SkippedItem

logger = get_logger("snapshot")


@dataclass
class SnapshotReadResult:
    records: List[Record]
    skipped: List[SkippedItem] = field(default_factory=list)


def write_snapshot(records: Iterable[Record], path: Path) -> Path:
    """Rewrite ``path`` with one JSON object per record."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="\n") as handle:
            for record in records:
                handle.write(json.dumps(record.to_dict(), ensure_ascii=False))
                handle.write("\n")
    except OSError as exc:
        raise OutputError(path, "write snapshot", exc) from exc
    return path


def read_snapshot(path: Path) -> SnapshotReadResult:
    """Load a snapshot; malformed lines are logged and reported as skipped."""
    path = Path(path)
    records: List[Record] = []
    skipped: List[SkippedItem] = []
    with path.open("r", encoding="utf-8", errors="replace") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            location = f"{path.name}:{line_number}"
            try:
                payload = json.loads(line)
                records.append(Record.from_dict(payload))
            except (ValueError, OverflowError) as exc:
                # json.JSONDecodeError is a ValueError subclass
                logger.warning("Skipping malformed snapshot line %s: %s", location, exc)
                skipped.append(SkippedItem(path=location, reason=f"malformed snapshot line: {exc}"))
    return SnapshotReadResult(records=records, skipped=skipped)


def archive_snapshot(path: Path, history_dir: Path, stamp: str) -> Optional[Path]:
    """Move an existing snapshot into ``history_dir``; returns the archived path."""
    path = Path(path)
    if not path.exists():
        return None
    target = Path(history_dir) / f"{path.stem}_{stamp}{path.suffix}"
    counter = 1
    while target.exists():
        target = Path(history_dir) / f"{path.stem}_{stamp}_{counter}{path.suffix}"
        counter += 1
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        path.rename(target)
    except OSError as exc:
        raise OutputError(target, "archive snapshot to", exc) from exc
    logger.info("Archived previous snapshot to %s", target)
    return target


__all__ = ["SnapshotReadResult", "archive_snapshot", "read_snapshot", "write_snapshot"]
