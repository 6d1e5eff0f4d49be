"""Offline one-line summaries inferred from a file's path and snippet."""

from __future__ import annotations

from typing import Iterator, Optional, Sequence, Tuple

MAX_SCAN_CHARS = 32 * 1024
NO_SUMMARY = "No summary available (offline mode)."

# (path suffixes, summary) checked in order against the lowercased path.
_PATH_SUFFIX_RULES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (("cargo.toml",), "Cargo manifest / workspace configuration."),
    (("package.json",), "Node package manifest (scripts/deps)."),
    (("pyproject.toml",), "Python project configuration (build/deps/tooling)."),
    (("requirements.txt",), "Python dependencies locklist."),
    (("dockerfile",), "Container build definition (Dockerfile)."),
    (("makefile", ".mk"), "Make build targets and automation."),
    (("readme.md", "readme"), "Project README / documentation."),
    (("license", "license.md"), "Project license."),
)

_UI_HINTS = ("/ui", "/panel", "/editor", "/view", "/component", "/widget", "/screen", "/page")
_CORE_HINTS = ("/core", "/engine", "/domain", "/model", "/service")


def guess_summary(path: str, snippet: str, language: str) -> str:
    """Return a short, human and LLM friendly description of a file."""
    p = "/" + path.replace("\\", "/").lower()
    scan = snippet[:MAX_SCAN_CHARS]
    s = scan.lower()
    lang = language.lower()

    for suffixes, summary in _PATH_SUFFIX_RULES:
        if p.endswith(suffixes):
            return summary
    if "/docker/" in p:
        return "Container build definition (Dockerfile)."
    if ".github/workflows/" in p or "/.gitlab-ci" in p or "/.circleci/" in p:
        return "CI pipeline/workflow configuration."
    if p.endswith((".yml", ".yaml")):
        return "YAML configuration file."
    if p.endswith(".toml"):
        return "TOML configuration file."
    if p.endswith(".env"):
        return "Environment variables file."

    if p.endswith("src/main.rs") or "/bin/" in p or "fn main(" in s:
        return "Entrypoint for this Rust binary." if lang == "rust" else "Program entrypoint."
    if lang == "python" and "__name__ ==" in s and "__main__" in s:
        return "Python script entrypoint."
    if p.endswith("lib.rs"):
        return "Root library file for this Rust crate."

    if _is_test_file(p, s):
        return "Test module or spec suite."

    if p.endswith("mod.rs") or s.lstrip().startswith("mod "):
        return "Module definition / namespace aggregator."

    if any(hint in p for hint in _UI_HINTS):
        return "User interface / presentation layer."
    if any(hint in p for hint in _CORE_HINTS):
        return "Core domain logic / engine layer."
    if any(marker in s for marker in ("use clap", "use structopt", "import argparse", "import click")) or "/cli" in p:
        return "Command-line interface."
    if _is_httpish(s, p):
        return "HTTP server / routing."
    if _is_dblike(s, p):
        return "Database access / persistence layer."
    if any(marker in s for marker in ("tokio::", "async fn", "std::sync", "mpsc", "spawn(", "asyncio")):
        return "Concurrency / async orchestration."
    if "std::fs" in s or "std::io" in s or "/io" in p or "/fs" in p:
        return "Filesystem / IO utilities."

    if lang == "rust" and "/types" in p:
        return "Type definitions / data models."
    if lang == "rust" and "/util" in p:
        return "Utility helpers for the crate."

    doc = extract_doc_summary(scan)
    if doc is not None:
        return doc
    return _first_non_empty_line(scan) or NO_SUMMARY


def _is_test_file(p: str, s: str) -> bool:
    return (
        "/tests" in p
        or "/test" in p
        or p.endswith(("_test.rs", ".spec.ts", ".spec.js", "_test.py"))
        or "#[test]" in s
        or "pytest" in s
    )


def _is_httpish(s: str, p: str) -> bool:
    if any(marker in s for marker in ("axum::", "actix", "rocket::", "warp::", "fastapi", "flask")):
        return True
    return "router" in s and any(hint in p for hint in ("/http", "/server", "/api"))


def _is_dblike(s: str, p: str) -> bool:
    if any(marker in s for marker in ("sqlx::", "diesel::", "postgres", "mongodb", "redis", "sqlalchemy")):
        return True
    return any(hint in p for hint in ("/db", "/repo/", "/repository", "/persistence"))


def extract_doc_summary(text: str) -> Optional[str]:
    """Pull a succinct summary from doc comments, a Markdown heading, or prose.

    Fenced code blocks are skipped so the summary never lands on random code,
    and a ``# `` heading outside fences wins over earlier prose.
    """
    for line in text.splitlines()[:256]:
        stripped = line.lstrip()
        if stripped.startswith(("//!", "///")):
            message = stripped[3:].strip()
            if message:
                return message
            continue
        if stripped and not stripped.startswith(("//", "#!")):
            break

    prose: Optional[str] = None
    for stripped in _unfenced_lines(text, 512):
        if stripped.startswith("# "):
            message = stripped.lstrip("#").strip()
            if message:
                return message
        if (
            prose is None
            and len(stripped) > 2
            and not stripped.startswith(("#", "//", "/*"))
        ):
            prose = stripped
    if prose is not None:
        return prose

    for line in text.splitlines()[:256]:
        stripped = line.strip()
        if len(stripped) > 6 and (stripped.endswith(".") or " " in stripped):
            return stripped
    return None


def _unfenced_lines(text: str, limit: int) -> Iterator[str]:
    in_fence = False
    for line in text.splitlines()[:limit]:
        stripped = line.strip()
        if stripped.startswith("```"):
            in_fence = not in_fence
            continue
        if not in_fence and stripped:
            yield stripped


def _first_non_empty_line(text: str) -> Optional[str]:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return None


__all__ = ["extract_doc_summary", "guess_summary"]
