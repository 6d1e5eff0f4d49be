"""Path/snippet heuristics that derive structural signals for a record.

Everything here is a pure function of its arguments: no file access and no
compiler front end. The heuristics are intentionally coarse; they exist to
give downstream tools a cheap first impression of a file.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Iterable, List, Sequence, Tuple

from .models import MIN_TOKEN_ESTIMATE, Role, dedupe_preserving_order

NOISE_DIRS = frozenset(
    {
        "target",
        "node_modules",
        ".git",
        ".github",
        ".idea",
        ".vscode",
        "build",
        "dist",
        "vendor",
        "__pycache__",
        ".venv",
    }
)

_CONFIG_LANGUAGES = {"toml", "yaml", "json"}
_UI_HINTS = ("/ui", "panel", "editor", "view")
_CORE_HINTS = ("core", "engine")


def estimate_tokens(text: str) -> int:
    """Approximate LLM tokens as ``ceil(words / 0.75)``, never below the floor."""
    return max(MIN_TOKEN_ESTIMATE, tokens_for_words(len(text.split())))


def tokens_for_words(words: int) -> int:
    # ceil(words / 0.75) in integer arithmetic
    return -(-words * 4 // 3)


def infer_role(path: str, language: str, snippet: str) -> Role:
    """Classify a file as bin/lib/test/doc/config/script/ui/core."""
    p = "/" + path.lower()
    lang = language.lower()
    s = snippet.lower()

    if (
        "/tests" in p
        or "/test" in p
        or p.endswith(("_test.rs", "_tests.rs", "_test.py", "_test.go", ".spec.ts", ".spec.js"))
        or "#[test]" in s
        or "pytest" in s
    ):
        return Role.TEST

    if p.endswith("src/main.rs") or "/src/bin/" in p or "fn main(" in s:
        return Role.BIN
    if p.endswith("/__main__.py") or (lang == "python" and "__name__ ==" in s and "__main__" in s):
        return Role.BIN

    if p.endswith((".md", ".rst")) or "/docs" in p:
        return Role.DOC
    if lang in _CONFIG_LANGUAGES:
        return Role.CONFIG

    if p.endswith(".sh") or s.startswith(("#!/bin/bash", "#!/usr/bin/env bash", "#!/bin/sh")):
        return Role.SCRIPT

    if any(hint in p for hint in _UI_HINTS):
        return Role.UI

    if p.endswith("lib.rs"):
        return Role.LIB
    if any(hint in p for hint in _CORE_HINTS):
        return Role.CORE
    return Role.LIB


def infer_module_id(path: str, language: str) -> str:
    """Best-effort logical module id derived from the path."""
    p = path.strip("/")
    lang = language.lower()
    if lang == "rust":
        return rust_module_id(p)
    if lang == "python":
        return python_module_id(p)
    return _strip_extension(p).replace("/", "::")


def rust_module_id(path: str) -> str:
    if path.endswith("src/lib.rs"):
        return "crate"
    if path.endswith("src/main.rs"):
        return "bin"
    if path.startswith("src/bin/"):
        rest = path[len("src/bin/") :]
        return "bin::" + (rest[: -len(".rs")] if rest.endswith(".rs") else rest)
    if path.startswith("src/"):
        rest = path[len("src/") :]
        if rest.endswith("/mod.rs"):
            return rest[: -len("/mod.rs")].replace("/", "::")
        if rest.endswith(".rs"):
            rest = rest[: -len(".rs")]
        return rest.replace("/", "::")
    return _strip_extension(path).replace("/", "::")


def python_module_id(path: str) -> str:
    stem = path[: -len(".py")] if path.endswith(".py") else path
    if stem.endswith("/__init__"):
        stem = stem[: -len("/__init__")]
    return stem.replace("/", ".")


def _strip_extension(path: str) -> str:
    name = PurePosixPath(path).name
    if "." not in name.lstrip("."):
        return path
    return path[: path.rfind(".")]


def skim_symbols(snippet: str, language: str) -> Tuple[List[str], List[str]]:
    """Return ``(imports, exports)`` skimmed from the snippet without parsing."""
    lang = language.lower()
    if lang == "rust":
        return _skim_rust(snippet)
    if lang == "python":
        return _skim_python(snippet)
    if lang in {"typescript", "javascript"}:
        return _skim_js(snippet)
    return [], []


_RUST_EXPORT_PREFIXES = ("pub fn ", "pub struct ", "pub enum ", "pub trait ", "pub mod ")
_JS_EXPORT_PREFIXES = ("export function ", "export class ", "export const ", "export let ")


def _skim_rust(snippet: str) -> Tuple[List[str], List[str]]:
    imports: List[str] = []
    exports: List[str] = []
    for raw in snippet.splitlines():
        line = raw.strip()
        if line.startswith("use "):
            body = line[len("use ") :].rstrip(";").strip()
            if body:
                imports.append(body)
        for prefix in _RUST_EXPORT_PREFIXES:
            if line.startswith(prefix):
                exports.append(_leading_ident(line[len(prefix) :]))
                break
    return _sorted_unique(imports), _sorted_unique(exports)


def _skim_python(snippet: str) -> Tuple[List[str], List[str]]:
    imports: List[str] = []
    exports: List[str] = []
    for raw in snippet.splitlines():
        line = raw.strip()
        if line.startswith("import "):
            for part in line[len("import ") :].split(","):
                tokens = part.split()
                if tokens:
                    imports.append(tokens[0])
        elif line.startswith("from ") and " import " in line:
            package, names = line[len("from ") :].split(" import ", 1)
            for part in names.strip("() ").split(","):
                tokens = part.split()
                if tokens:
                    imports.append(f"{package.strip()}.{tokens[0]}")
        # top-level definitions only
        if raw.startswith("def "):
            exports.append(_leading_ident(raw[len("def ") :]))
        elif raw.startswith("class "):
            exports.append(_leading_ident(raw[len("class ") :]))
    return _sorted_unique(imports), _sorted_unique(exports)


def _skim_js(snippet: str) -> Tuple[List[str], List[str]]:
    imports: List[str] = []
    exports: List[str] = []
    for raw in snippet.splitlines():
        line = raw.strip()
        if line.startswith("import ") and " from " in line:
            module = line.rsplit(" from ", 1)[1].strip().strip("\"';")
            if module:
                imports.append(module)
        for prefix in _JS_EXPORT_PREFIXES:
            if line.startswith(prefix):
                exports.append(_leading_ident(line[len(prefix) :]))
                break
    return _sorted_unique(imports), _sorted_unique(exports)


def _leading_ident(rest: str) -> str:
    rest = rest.strip()
    chars = []
    for char in rest:
        if char.isalnum() or char in "_$":
            chars.append(char)
            continue
        break
    if chars:
        return "".join(chars)
    return rest.split()[0] if rest.split() else rest


def _sorted_unique(values: Iterable[str]) -> List[str]:
    return sorted({value for value in values if value})


def _tag_language(language: str) -> str:
    lang = language.strip().lower()
    return {"rs": "rust", "py": "python", "typescript": "ts", "javascript": "js"}.get(lang, lang)


def infer_tags(path: str, language: str, hints: Sequence[str] = ()) -> List[str]:
    """Structural labels for filtering: language, ``dir:``, ``ext:`` and concern tags."""
    tags: List[str] = []
    lang = _tag_language(language)
    if lang:
        tags.append(lang)

    pure = PurePosixPath(path)
    parts = [part.lower() for part in pure.parts]
    full = path.lower()
    name = pure.name.lower()

    if parts:
        tags.append(f"dir:{parts[0]}")
    if pure.suffix:
        tags.append(f"ext:{pure.suffix[1:].lower()}")

    if "core" in full:
        tags.append("core")
    if "gui" in full or "ui" in parts or "/ui" in "/" + full:
        tags.append("ui")
    if "test" in full:
        tags.append("test")
    if "bench" in full:
        tags.append("bench")
    if "docs" in full or "doc/" in full or full.endswith(".md"):
        tags.append("docs")
    if "script" in full or full.endswith(".sh"):
        tags.append("script")
    if name == "lib.rs":
        tags.append("crate:lib")
    if name == "main.rs":
        tags.append("crate:bin")
    if name == "mod.rs" or name.endswith("_mod.rs"):
        tags.append("mod")
    if name in {"types.rs", "types.py"} or name.endswith("_types.rs"):
        tags.append("types")
    if "build" in full or "ci" in parts or ".github" in parts:
        tags.append("build")

    for hint in hints:
        needle = hint.strip().lower()
        if needle and needle in full:
            tags.append(f"proj:{needle}")

    return dedupe_preserving_order(tags)


def count_lines(text: str) -> Tuple[int, int]:
    """Return ``(lines_total, lines_nonblank)``; a trailing newline does not open a line."""
    if not text:
        return 0, 0
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return len(lines), sum(1 for line in lines if line.strip())


def top_level_dir(path: str) -> str:
    head, sep, _ = path.partition("/")
    return head if sep else "."


def is_noise_path(path: str) -> bool:
    return any(part in NOISE_DIRS for part in PurePosixPath(path).parts[:-1])


__all__ = [
    "NOISE_DIRS",
    "count_lines",
    "estimate_tokens",
    "infer_module_id",
    "infer_role",
    "infer_tags",
    "is_noise_path",
    "python_module_id",
    "rust_module_id",
    "skim_symbols",
    "tokens_for_words",
    "top_level_dir",
]
