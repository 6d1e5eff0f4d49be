"""Tests for repoindex.snippet."""

from __future__ import annotations

from repoindex.snippet import MAX_KEEP_LINES, extract_relevant_snippet, leading_doc_block, score_line


def test_rust_doc_capture() -> None:
    snippet = extract_relevant_snippet("//! Top module docs\n/// more\nfn main(){}\n", "rust")

    assert snippet.startswith("Top module docs\nmore")
    assert "fn main(){}" in snippet


def test_python_triple_quote_docstring() -> None:
    source = '"""Module summary\nGoes here."""\ndef f(): pass\n'

    snippet = extract_relevant_snippet(source, "python")

    assert "Module summary" in snippet
    assert "def f(): pass" in snippet


def test_js_block_doc() -> None:
    snippet = extract_relevant_snippet("/** Hello */\nexport function x(){}\n", "ts")

    assert "Hello" in snippet
    assert "export function" in snippet


def test_fallback_head_when_nothing_scores() -> None:
    snippet = extract_relevant_snippet("line1\n\nline2\n", "txt")

    assert snippet == "line1\n\nline2"


def test_snippet_is_capped() -> None:
    source = "".join(f"pub fn f{index}() {{}}\n" for index in range(500))

    snippet = extract_relevant_snippet(source, "rust")

    assert len(snippet.splitlines()) <= MAX_KEEP_LINES
    assert snippet.splitlines()[0] == "pub fn f0() {}"


def test_score_line_per_language() -> None:
    assert score_line("pub fn x() {}", "rust") == 8
    assert score_line("let x = 1;", "rust") == 0
    assert score_line("## Usage", "md") == 8
    assert score_line("import os", "python") == 3
    assert score_line("name = \"demo\"", "toml") == 5


def test_leading_doc_block_normalizes_python_docstring() -> None:
    text = '"""Module docs.\n\nMore."""\nimport os\n'

    assert leading_doc_block(text, "python") == ["Module docs.", "More."]
