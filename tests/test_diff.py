"""Tests for repoindex.diff."""

from __future__ import annotations

import json
from pathlib import Path

from repoindex.diff import DIFF_REPORT_VERSION, SnapshotDiffer, write_diff_report
from repoindex.models import Record


def _record(path: str, content_hash: str, **overrides: object) -> Record:
    values: dict[str, object] = {
        "path": path,
        "language": "rust",
        "content_hash": content_hash,
        "size_bytes": 10,
        "lines_total": 1,
        "lines_nonblank": 1,
        "tags": ["rust"],
    }
    values.update(overrides)
    return Record(**values)  # type: ignore[arg-type]


def test_compare_classifies_added_removed_modified_and_unchanged() -> None:
    old = [_record("a.rs", "h1"), _record("b.rs", "h2"), _record("c.rs", "h3")]
    new = [_record("a.rs", "h1"), _record("b.rs", "h2-new", size_bytes=14), _record("d.rs", "h4")]

    report = SnapshotDiffer().compare(old, new)

    assert [record.path for record in report.added] == ["d.rs"]
    assert [record.path for record in report.removed] == ["c.rs"]
    assert [entry.path for entry in report.modified] == ["b.rs"]
    assert report.modified[0].content_changed is True
    assert report.renamed == []
    assert report.unchanged == 1
    assert report.has_changes is True


def test_compare_detects_one_to_one_rename() -> None:
    old = [_record("old/name.rs", "same")]
    new = [_record("new/name.rs", "same")]

    report = SnapshotDiffer().compare(old, new)

    assert report.added == []
    assert report.removed == []
    assert len(report.renamed) == 1
    assert report.renamed[0].source == "old/name.rs"
    assert report.renamed[0].target == "new/name.rs"


def test_compare_treats_ambiguous_hash_groups_as_add_remove() -> None:
    old = [_record("x.rs", "dup"), _record("y.rs", "dup")]
    new = [_record("z.rs", "dup")]

    report = SnapshotDiffer().compare(old, new)

    assert report.renamed == []
    assert [record.path for record in report.removed] == ["x.rs", "y.rs"]
    assert [record.path for record in report.added] == ["z.rs"]


def test_copy_is_not_a_rename() -> None:
    old = [_record("a.rs", "same")]
    new = [_record("a.rs", "same"), _record("copy.rs", "same")]

    report = SnapshotDiffer().compare(old, new)

    assert report.renamed == []
    assert [record.path for record in report.added] == ["copy.rs"]
    assert report.unchanged == 1


def test_signal_only_change_is_modified_with_tag_deltas() -> None:
    old = [_record("a.rs", "h", tags=["rust", "core"])]
    new = [_record("a.rs", "h", tags=["rust", "ui"])]

    report = SnapshotDiffer().compare(old, new)

    assert len(report.modified) == 1
    entry = report.modified[0]
    assert entry.content_changed is False
    assert entry.tags_added == ["ui"]
    assert entry.tags_removed == ["core"]


def test_identical_snapshots_have_no_changes() -> None:
    records = [_record("a.rs", "h1"), _record("b.rs", "h2")]

    report = SnapshotDiffer().compare(records, list(records))

    assert report.has_changes is False
    assert report.unchanged == 2


def test_write_diff_report_document(tmp_path: Path) -> None:
    old = [_record("a.rs", "h1"), _record("gone.rs", "h9")]
    new = [_record("a.rs", "h1b", size_bytes=25), _record("moved.rs", "h9")]
    report = SnapshotDiffer().compare(old, new)

    path = write_diff_report(report, tmp_path / "diffs" / "demo_20240101_000000.json")
    data = json.loads(path.read_text(encoding="utf-8"))

    assert data["version"] == DIFF_REPORT_VERSION
    assert data["summary"] == {
        "total_old": 2,
        "total_new": 2,
        "added": 0,
        "removed": 0,
        "modified": 1,
        "renamed": 1,
        "unchanged": 0,
    }
    assert data["renamed"][0]["from"] == "gone.rs"
    assert data["renamed"][0]["to"] == "moved.rs"
    assert data["modified"][0]["deltas"]["size_bytes"] == 15
