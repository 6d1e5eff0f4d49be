"""Snapshot comparison with one-to-one rename detection."""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

from .errors import OutputError
from .logging import get_logger
from .models import Record

DIFF_REPORT_VERSION = 1

logger = get_logger("diff")


def _minimal(record: Record) -> Dict[str, Any]:
    return {
        "path": record.path,
        "content_hash": record.content_hash,
        "size_bytes": record.size_bytes,
        "language": record.language,
    }


def _signals(record: Record) -> Dict[str, Any]:
    return {
        "content_hash": record.content_hash,
        "size_bytes": record.size_bytes,
        "token_estimate": record.token_estimate,
        "language": record.language,
        "role": record.role.value,
        "module": record.module,
        "lines_total": record.lines_total,
        "lines_nonblank": record.lines_nonblank,
    }


@dataclass(frozen=True)
class RenamedEntry:
    source: str
    target: str
    content_hash: str
    size_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.source,
            "to": self.target,
            "content_hash": self.content_hash,
            "size_bytes": self.size_bytes,
        }


@dataclass(frozen=True)
class ModifiedEntry:
    """A path present in both generations whose content or signals changed."""

    before: Record
    after: Record

    @property
    def path(self) -> str:
        return self.after.path

    @property
    def content_changed(self) -> bool:
        return self.before.content_hash != self.after.content_hash

    @property
    def tags_added(self) -> List[str]:
        return sorted(set(self.after.tags) - set(self.before.tags))

    @property
    def tags_removed(self) -> List[str]:
        return sorted(set(self.before.tags) - set(self.after.tags))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "content_changed": self.content_changed,
            "before": _signals(self.before),
            "after": _signals(self.after),
            "deltas": {
                "size_bytes": self.after.size_bytes - self.before.size_bytes,
                "token_estimate": self.after.token_estimate - self.before.token_estimate,
                "lines_total": self.after.lines_total - self.before.lines_total,
                "lines_nonblank": self.after.lines_nonblank - self.before.lines_nonblank,
            },
            "tags_added": self.tags_added,
            "tags_removed": self.tags_removed,
        }


@dataclass
class DiffReport:
    total_old: int
    total_new: int
    added: List[Record] = field(default_factory=list)
    removed: List[Record] = field(default_factory=list)
    modified: List[ModifiedEntry] = field(default_factory=list)
    renamed: List[RenamedEntry] = field(default_factory=list)
    unchanged: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified or self.renamed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": DIFF_REPORT_VERSION,
            "summary": {
                "total_old": self.total_old,
                "total_new": self.total_new,
                "added": len(self.added),
                "removed": len(self.removed),
                "modified": len(self.modified),
                "renamed": len(self.renamed),
                "unchanged": self.unchanged,
            },
            "added": [_minimal(record) for record in self.added],
            "removed": [_minimal(record) for record in self.removed],
            "modified": [entry.to_dict() for entry in self.modified],
            "renamed": [entry.to_dict() for entry in self.renamed],
        }


def _group_by_hash(records: Iterable[Record]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = defaultdict(list)
    for record in records:
        grouped[record.content_hash].append(record.path)
    return grouped


def _signals_differ(old: Record, new: Record) -> bool:
    return (
        old.language != new.language
        or old.role != new.role
        or old.module != new.module
        or old.lines_total != new.lines_total
        or old.lines_nonblank != new.lines_nonblank
        or set(old.tags) != set(new.tags)
    )


class SnapshotDiffer:
    """Compares two record generations keyed by path and content hash."""

    def compare(self, old: Sequence[Record], new: Sequence[Record]) -> DiffReport:
        old_by_path = {record.path: record for record in old}
        new_by_path = {record.path: record for record in new}

        lost = [old_by_path[path] for path in old_by_path if path not in new_by_path]
        gained = [new_by_path[path] for path in new_by_path if path not in old_by_path]
        lost_by_hash = _group_by_hash(lost)
        gained_by_hash = _group_by_hash(gained)

        renamed: List[RenamedEntry] = []
        claimed_old: set[str] = set()
        claimed_new: set[str] = set()
        for content_hash, lost_paths in lost_by_hash.items():
            gained_paths = gained_by_hash.get(content_hash, [])
            if len(lost_paths) == 1 and len(gained_paths) == 1:
                source, target = lost_paths[0], gained_paths[0]
                renamed.append(
                    RenamedEntry(
                        source=source,
                        target=target,
                        content_hash=content_hash,
                        size_bytes=new_by_path[target].size_bytes,
                    )
                )
                claimed_old.add(source)
                claimed_new.add(target)
            elif gained_paths:
                logger.debug(
                    "Ambiguous rename candidates for %s (%d lost, %d gained); treating as add/remove",
                    content_hash,
                    len(lost_paths),
                    len(gained_paths),
                )

        report = DiffReport(total_old=len(old), total_new=len(new))
        report.added = sorted(
            (record for record in gained if record.path not in claimed_new),
            key=lambda record: record.path,
        )
        report.removed = sorted(
            (record for record in lost if record.path not in claimed_old),
            key=lambda record: record.path,
        )
        report.renamed = sorted(renamed, key=lambda entry: (entry.source, entry.target))

        for path in sorted(set(old_by_path) & set(new_by_path)):
            before, after = old_by_path[path], new_by_path[path]
            if before.content_hash != after.content_hash or _signals_differ(before, after):
                report.modified.append(ModifiedEntry(before=before, after=after))
            else:
                report.unchanged += 1
        return report


def write_diff_report(report: DiffReport, path: Path) -> Path:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise OutputError(path, "write diff report", exc) from exc
    return path


__all__ = ["DiffReport", "ModifiedEntry", "RenamedEntry", "SnapshotDiffer", "write_diff_report"]
