"""Tests for repoindex.orchestrator."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from repoindex.config import RepoIndexConfig
from repoindex.orchestrator import Orchestrator, OutputLayout, project_slug
from repoindex.snapshot import read_snapshot
from tests._fixtures.clock import SteppingClock
from tests._fixtures.repo_builder import RepoBuilder


def _seed_sample_repo(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/main.rs": "fn main() {\n    demo::run();\n}\n",
            "src/lib.rs": "//! Demo crate\npub fn run() {}\n\npub struct Config {\n    pub name: String,\n}\n",
            "README.md": "# Demo\n\nA tiny crate.\n",
            "Cargo.toml": '[package]\nname = "demo"\n',
        }
    )


def test_project_slug_sanitizes_directory_names(tmp_path: Path) -> None:
    odd = tmp_path / "My Project!"
    odd.mkdir()
    plain = tmp_path / "forge-core_v1.2"
    plain.mkdir()

    assert project_slug(odd) == "My_Project"
    assert project_slug(plain) == "forge-core_v1.2"


def test_output_layout_paths(tmp_path: Path) -> None:
    layout = OutputLayout.for_repo(tmp_path / "repo", RepoIndexConfig(root=tmp_path))

    assert layout.index_file == tmp_path / "repo" / ".gpt_index" / "indexes" / "repo.jsonl"
    assert layout.history_full == tmp_path / "repo" / ".gpt_index" / "history" / "full"
    assert layout.pack_file == tmp_path / "repo" / ".gpt_index" / "packs" / "repo.pack.json"


def test_run_init_writes_snapshot_chunks_and_pack(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    orchestrator = Orchestrator(clock=clock)

    outcome = orchestrator.run_init(repo_builder.path())

    root = repo_builder.path().resolve()
    assert outcome.index_path == root / ".gpt_index" / "indexes" / "repo.jsonl"
    stored = read_snapshot(outcome.index_path).records
    assert [record.path for record in stored] == ["Cargo.toml", "README.md", "src/lib.rs", "src/main.rs"]
    assert outcome.archived_path is None
    assert outcome.diff_path is None
    assert [path.name for path in outcome.chunk_paths] == ["paste_1.md"]
    chunk_text = outcome.chunk_paths[0].read_text(encoding="utf-8")
    assert "## `src/lib.rs` [rust]" in chunk_text

    assert outcome.pack_path is not None
    pack = json.loads(outcome.pack_path.read_text(encoding="utf-8"))
    lib = next(entry for entry in pack["files"] if entry["path"] == "src/lib.rs")
    assert [anchor["name"] for anchor in lib["anchors"]] == ["run", "Config"]


def test_run_reindex_archives_and_writes_diff(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    orchestrator = Orchestrator(clock=clock)
    orchestrator.run_init(repo_builder.path())

    repo_builder.remove("Cargo.toml")
    repo_builder.write({"src/lib.rs": "//! Demo crate\npub fn run() { println!(\"v2\"); }\n", "src/extra.rs": "pub fn extra() {}\n"})
    outcome = orchestrator.run_reindex(repo_builder.path())

    assert outcome.archived_path is not None
    assert outcome.archived_path.parent.name == "full"
    assert outcome.archived_path.name.startswith("repo_2024")
    assert outcome.diff_path is not None and outcome.diff_path.exists()
    report = outcome.report
    assert report is not None
    assert [record.path for record in report.added] == ["src/extra.rs"]
    assert [record.path for record in report.removed] == ["Cargo.toml"]
    assert [entry.path for entry in report.modified] == ["src/lib.rs"]
    document = json.loads(outcome.diff_path.read_text(encoding="utf-8"))
    assert document["summary"]["added"] == 1
    assert document["summary"]["unchanged"] == 2


def test_reindex_without_previous_snapshot_writes_no_diff(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)

    outcome = Orchestrator(clock=clock).run_reindex(repo_builder.path())

    assert outcome.diff_path is None
    assert outcome.report is None
    assert outcome.index_path.exists()


def test_reindex_does_not_index_its_own_output(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    orchestrator = Orchestrator(clock=clock)
    orchestrator.run_init(repo_builder.path())

    outcome = orchestrator.run_reindex(repo_builder.path())

    assert outcome.report is not None
    assert outcome.report.has_changes is False
    assert all(not record.path.startswith(".gpt_index") for record in outcome.records)


def test_run_chunk_uses_stored_snapshot_and_cap(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    orchestrator = Orchestrator(clock=clock)
    orchestrator.run_init(repo_builder.path())

    paths = orchestrator.run_chunk(repo_builder.path(), token_cap=256)

    assert paths
    assert all(path.parent.name == "chunks" for path in paths)


def test_run_chunk_and_pack_require_an_index(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    orchestrator = Orchestrator(clock=clock)

    with pytest.raises(FileNotFoundError, match="repoindex init"):
        orchestrator.run_chunk(repo_builder.path())
    with pytest.raises(FileNotFoundError):
        orchestrator.run_pack(repo_builder.path())


def test_run_pack_rebuilds_from_snapshot(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    orchestrator = Orchestrator(clock=clock)
    first = orchestrator.run_init(repo_builder.path())
    assert first.pack_path is not None
    first_id = json.loads(first.pack_path.read_text(encoding="utf-8"))["pack_id"]

    pack_path = orchestrator.run_pack(repo_builder.path())

    assert pack_path == first.pack_path
    assert json.loads(pack_path.read_text(encoding="utf-8"))["pack_id"] != first_id


def test_run_sub_writes_sub_index(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    orchestrator = Orchestrator(clock=clock)
    sub_dir = repo_builder.path() / "src"

    first = orchestrator.run_sub(sub_dir)
    second = orchestrator.run_sub(sub_dir)

    assert first.index_path == sub_dir.resolve() / ".sub_index" / "indexes" / "src.jsonl"
    assert [record.path for record in second.records] == ["lib.rs", "main.rs"]
    assert second.archived_path is not None
    assert second.archived_path.parent == sub_dir.resolve() / ".sub_index" / "indexes" / "history"


def test_custom_output_dir_from_config(repo_builder: RepoBuilder, clock: SteppingClock) -> None:
    _seed_sample_repo(repo_builder)
    repo_builder.write_config({"output_dir": "build/index", "chunker": {"token_cap": 4000}})

    outcome = Orchestrator(clock=clock).run_init(repo_builder.path())

    assert outcome.index_path == repo_builder.path().resolve() / "build" / "index" / "indexes" / "repo.jsonl"


def test_missing_repository_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        Orchestrator().run_init(tmp_path / "missing")
