"""Tests for repoindex.repo_scanner."""

from __future__ import annotations

from hashlib import sha256
from pathlib import Path

import pytest

from repoindex.models import Role
from repoindex.repo_scanner import RepoScanner, detect_language, looks_binary
from tests._fixtures.repo_builder import RepoBuilder


def test_scan_builds_records_with_roles_and_language(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/main.rs": 'fn main() {\n    println!("hi");\n}\n',
            "src/lib.rs": "//! Library root\npub mod net;\n",
            "tests/smoke.rs": "#[test]\nfn smoke() {}\n",
            "docs/overview.md": "# Overview\n\nHow things fit.\n",
            "Cargo.toml": '[package]\nname = "demo"\n',
        }
    )
    (repo_builder.path() / ".venv").mkdir()
    (repo_builder.path() / ".venv" / "ignored.py").write_text("print('nope')\n", encoding="utf-8")

    result = repo_builder.scan()

    assert result.root == str(repo_builder.path().resolve())
    records = {record.path: record for record in result.records}
    assert list(records) == sorted(records)
    assert ".venv/ignored.py" not in records

    main = records["src/main.rs"]
    assert main.language == "rust"
    assert main.role is Role.BIN
    assert main.module == "bin"
    assert main.rel_dir == "src"
    assert main.lines_total == 3
    assert main.summary == "Entrypoint for this Rust binary."
    expected_hash = sha256((repo_builder.path() / "src" / "main.rs").read_bytes()).hexdigest()
    assert main.content_hash == expected_hash
    assert main.size_bytes == len((repo_builder.path() / "src" / "main.rs").read_bytes())
    assert main.last_modified.isdigit()

    assert records["src/lib.rs"].role is Role.LIB
    assert records["src/lib.rs"].module == "crate"
    assert records["tests/smoke.rs"].role is Role.TEST
    assert records["docs/overview.md"].role is Role.DOC
    assert records["docs/overview.md"].language == "markdown"
    assert records["Cargo.toml"].role is Role.CONFIG
    assert records["Cargo.toml"].rel_dir == "."


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    with pytest.raises(FileNotFoundError) as excinfo:
        RepoScanner().scan(str(missing))
    assert str(missing) in str(excinfo.value)


def test_scan_rejects_file_root(tmp_path: Path) -> None:
    target = tmp_path / "file.rs"
    target.write_text("fn a(){}\n", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        RepoScanner().scan(target)


def test_scan_respects_gitignore_and_gptignore(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".gitignore": "build/\n*.log\n",
            ".gptignore": "generated/\n!keep.log\n",
            "src/main.py": "print('ok')\n",
            "build/artifact.py": "x = 1\n",
            "generated/out.rs": "fn gen() {}\n",
            "notes.log.md": "# kept\n",
            "debug.log": "ignore me\n",
        }
    )

    paths = {record.path for record in repo_builder.scan().records}

    assert "src/main.py" in paths
    assert "build/artifact.py" not in paths
    assert "generated/out.rs" not in paths
    assert "notes.log.md" in paths
    assert "debug.log" not in paths


def test_scan_applies_exclude_paths_from_config(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            ".repoindex.yml": "exclude_paths:\n  - sandbox/\n",
            "sandbox/tmp.rs": "fn tmp() {}\n",
            "src/lib.rs": "pub fn keep() {}\n",
        }
    )

    paths = {record.path for record in repo_builder.scan().records}

    assert paths == {"src/lib.rs"}


def test_scan_skips_output_directory(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/lib.rs": "pub fn keep() {}\n",
            ".gpt_index/notes.md": "# stale output\n",
            "custom_out/chunks/paste_1.md": "# Paste Chunk 1\n",
        }
    )
    (repo_builder.path() / ".repoindex.yml").write_text(
        "output_dir: custom_out\nscanner:\n  include_hidden: true\n", encoding="utf-8"
    )

    paths = {record.path for record in repo_builder.scan().records}

    assert "custom_out/chunks/paste_1.md" not in paths
    assert ".gpt_index/notes.md" in paths
    assert "src/lib.rs" in paths


def test_scan_excludes_only_the_nested_output_directory(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "docs/intro.md": "# Intro\n\nHello.\n",
            "docs/index/chunks/paste_1.md": "# Paste Chunk 1\n",
            "src/docs/guide.py": "def guide():\n    return 1\n",
        }
    )
    repo_builder.write_config({"output_dir": "docs/index"})

    paths = {record.path for record in repo_builder.scan().records}

    assert paths == {"docs/intro.md", "src/docs/guide.py"}


def test_scan_reports_skipped_files(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/lib.rs": "pub fn keep() {}\n", "data.unknownext": "words\n"})
    repo_builder.write_bytes("empty.rs", b"")
    repo_builder.write_bytes("blob.rs", b"\x00\x01\x02binary")
    repo_builder.write_bytes("latin1.rs", b"// caf\xe9\n")
    (repo_builder.path() / ".repoindex.yml").write_text(
        "scanner:\n  max_file_bytes: 40\n", encoding="utf-8"
    )
    repo_builder.write({"big.rs": "fn big() {}\n" * 10})

    result = repo_builder.scan()
    reasons = {item.path: item.reason for item in result.skipped}

    assert [record.path for record in result.records] == ["src/lib.rs"]
    assert reasons["empty.rs"] == "empty file"
    assert reasons["blob.rs"] == "binary content"
    assert reasons["latin1.rs"] == "binary content"
    assert reasons["data.unknownext"] == "unknown language"
    assert reasons["big.rs"].startswith("larger than 40")


def test_scan_is_deterministic(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"b.rs": "fn b() {}\n", "a/z.rs": "fn z() {}\n", "a/b.py": "x = 1\n"})

    first = repo_builder.scan()
    second = repo_builder.scan()

    assert [record.to_dict() for record in first.records] == [record.to_dict() for record in second.records]
    assert [record.path for record in first.records] == ["a/b.py", "a/z.rs", "b.rs"]


def test_detect_language_from_name_suffix_and_shebang() -> None:
    assert detect_language(Path("Dockerfile")) == "dockerfile"
    assert detect_language(Path("lib.RS")) == "rust"
    assert detect_language(Path("run"), b"#!/usr/bin/env python3\nprint(1)\n") == "python"
    assert detect_language(Path("run"), b"#!/bin/bash\necho hi\n") == "bash"
    assert detect_language(Path("run"), b"echo hi\n") is None


def test_looks_binary() -> None:
    assert looks_binary(b"plain text") is False
    assert looks_binary(b"\x00abc") is True
    assert looks_binary(b"\xff\xfe") is True
    # a multi-byte sequence cut at the sample boundary is still text
    assert looks_binary("é".encode("utf-8")[:1]) is False


def test_snippet_budget_is_measured_in_bytes(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"notes.md": "ééééééé\n"})
    repo_builder.write_config({"scanner": {"snippet_bytes": 5}})

    record = repo_builder.scan().records[0]

    assert record.snippet == "éé"
    assert record.size_bytes == len("ééééééé\n".encode("utf-8"))
