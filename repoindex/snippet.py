"""High-signal snippet extraction for indexed files.

The snippet is what downstream summarizers and the chunk packer see instead of
the whole file. Extraction runs in two passes over a bounded head window:

1. capture the leading doc/comment block (capped so docs cannot take over);
2. score every line by language-specific patterns and keep the hits, each
   followed by a line of context, in original order.

When neither pass yields anything a plain head-of-file slice is returned.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

MAX_SCAN_LINES = 800
MAX_KEEP_LINES = 60
MAX_INTERESTING_SEEN = 400
CONTEXT_AFTER = 1
HEAD_FALLBACK_LINES = 40
MAX_DOC_LINES = MAX_KEEP_LINES // 3


def extract_relevant_snippet(content: str, language: str) -> str:
    """Return a compact excerpt of ``content`` tuned for LLM ingestion."""
    lang = _canonical(language)
    lines = content.splitlines()[:MAX_SCAN_LINES]

    out: List[str] = []
    doc = leading_doc_block(content, lang)
    if doc:
        _push_lines(out, doc)
        if len(out) >= MAX_KEEP_LINES:
            return "\n".join(out)

    kept: List[Tuple[int, str]] = []
    seen_interesting = 0
    index = 0
    while (
        index < len(lines)
        and len(kept) < MAX_KEEP_LINES
        and seen_interesting < MAX_INTERESTING_SEEN
    ):
        raw = lines[index]
        stripped = raw.strip()
        if stripped and score_line(stripped, lang) > 0:
            kept.append((index, raw.rstrip()))
            for offset in range(1, CONTEXT_AFTER + 1):
                if index + offset < len(lines):
                    context = lines[index + offset].rstrip()
                    if context:
                        kept.append((index + offset, context))
            seen_interesting += 1
        index += 1

    if not kept and not out:
        return "\n".join(line.rstrip() for line in lines[:HEAD_FALLBACK_LINES])

    kept.sort(key=lambda item: item[0])
    _push_lines(out, [line for _, line in kept])
    return "\n".join(out)


def _push_lines(out: List[str], lines: List[str]) -> None:
    for line in lines:
        if len(out) >= MAX_KEEP_LINES:
            break
        if out and out[-1] == line:
            continue
        out.append(line)


def _canonical(language: str) -> str:
    lang = language.strip().lower()
    return {
        "ts": "typescript",
        "js": "javascript",
        "md": "markdown",
        "yml": "yaml",
        "py": "python",
        "rs": "rust",
    }.get(lang, lang)


# --------------------------------------------------------------------------- scoring


def _score_rust(line: str, lowered: str) -> int:
    if line.startswith(("///", "//!")):
        return 9
    if line.startswith("pub use "):
        return 5
    if line.startswith(("pub fn ", "pub struct ", "pub enum ", "pub trait ", "pub mod ")):
        return 8
    if line.startswith(("use ", "extern crate")):
        return 3
    if line.startswith(("fn ", "struct ", "enum ", "impl ", "type ")):
        return 6
    if line.startswith("#["):
        return 4
    if "todo" in lowered or "fixme" in lowered:
        return 2
    return 0


def _score_python(line: str, lowered: str) -> int:
    if line.startswith(('"""', "'''", "#!", "# ")):
        return 9
    if line.startswith(("def ", "class ", "async def ")):
        return 8
    if line.startswith(("import ", "from ")):
        return 3
    if lowered.startswith(("if __name__ == '__main__'", 'if __name__ == "__main__"')):
        return 7
    if "todo" in lowered or "fixme" in lowered:
        return 2
    return 0


def _score_js(line: str, lowered: str) -> int:
    if line.startswith(("/**", "* ", "//")):
        return 8
    if line.startswith("export "):
        return 8
    if line.startswith("import "):
        return 3
    if line.startswith("function ") or "=>" in line:
        return 5
    return 0


def _score_go(line: str, lowered: str) -> int:
    if line.startswith("//"):
        return 7
    if line.startswith("package "):
        return 5
    if line.startswith("import "):
        return 3
    if line.startswith("func "):
        return 6
    return 0


def _score_config(line: str, lowered: str) -> int:
    if line.startswith("[") or ": " in line or " = " in line:
        return 5
    return 0


def _score_markdown(line: str, lowered: str) -> int:
    return 8 if line.startswith(("# ", "## ")) else 0


def _score_generic(line: str, lowered: str) -> int:
    if line.startswith(("//", "#", "--")):
        return 6
    if "class " in line or line.startswith(("def ", "fn ")):
        return 5
    if line.startswith(("import ", "using ")):
        return 3
    return 0


_SCORERS: Dict[str, Callable[[str, str], int]] = {
    "rust": _score_rust,
    "python": _score_python,
    "typescript": _score_js,
    "javascript": _score_js,
    "go": _score_go,
    "toml": _score_config,
    "yaml": _score_config,
    "json": _score_config,
    "markdown": _score_markdown,
}


def score_line(line: str, language: str) -> int:
    """Score one stripped line; zero means "not interesting"."""
    scorer = _SCORERS.get(_canonical(language), _score_generic)
    return scorer(line, line.lower())


# --------------------------------------------------------------------------- leading docs


def _rust_docs(text: str) -> List[str]:
    out: List[str] = []
    started = False
    for line in text.splitlines()[:120]:
        stripped = line.lstrip()
        if stripped.startswith(("//!", "///")):
            started = True
            out.append(stripped[3:].strip())
            continue
        if started:
            if stripped.startswith("//") or not stripped:
                continue
            break
        if stripped.startswith("/*") and "*/" in stripped:
            inner = stripped[2 : stripped.index("*/")].strip(" *")
            if inner:
                out.append(inner)
            break
    return out


def _python_docs(text: str) -> List[str]:
    out: List[str] = []
    quote: Optional[str] = None
    for line in text.splitlines()[:160]:
        stripped = line.lstrip()
        if quote is None and stripped.startswith(('"""', "'''")):
            quote = stripped[:3]
            rest = stripped[3:]
            if quote in rest:
                inner = rest.split(quote, 1)[0].strip()
                if inner:
                    out.append(inner)
                break
            if rest.strip():
                out.append(rest.strip())
            continue
        if quote is not None:
            if quote in stripped:
                inner = stripped.split(quote, 1)[0].strip()
                if inner:
                    out.append(inner)
                break
            out.append(stripped)
            continue
        if stripped.startswith(("#!", "# ")):
            out.append(stripped.lstrip("#!").strip())
            continue
        if out:
            if stripped and not stripped.startswith("#"):
                break
        elif stripped:
            break
    return out


def _js_docs(text: str) -> List[str]:
    out: List[str] = []
    in_block = False
    for line in text.splitlines()[:160]:
        stripped = line.lstrip()
        if not in_block and stripped.startswith("/**"):
            in_block = True
            body = stripped[3:]
            if "*/" in body:
                inner = body[: body.index("*/")].strip().lstrip("*").strip()
                if inner:
                    out.append(inner)
                break
            continue
        if in_block:
            if "*/" in stripped:
                inner = stripped[: stripped.index("*/")].strip().lstrip("*").strip()
                if inner:
                    out.append(inner)
                break
            inner = stripped.lstrip("*").strip()
            if inner:
                out.append(inner)
            continue
        if stripped.startswith(("// ", "//\t")):
            out.append(stripped[2:].strip())
            continue
        if out and stripped and not stripped.startswith("//"):
            break
        if not out and stripped and not stripped.startswith(("//", "/*")):
            break
    return out


def _markdown_head(text: str) -> List[str]:
    out: List[str] = []
    for line in text.splitlines()[:60]:
        stripped = line.strip()
        if stripped.startswith("# "):
            out.append(stripped[2:].strip())
            continue
        if out:
            if stripped:
                out.append(stripped)
            break
        if stripped and not stripped.startswith("#"):
            break
    return out


def _generic_head(text: str) -> List[str]:
    out: List[str] = []
    for line in text.splitlines()[:40]:
        stripped = line.strip()
        if stripped.startswith(("//", "# ", "--")):
            out.append(stripped.lstrip("/-#").strip())
            continue
        if not stripped and not out:
            continue
        if stripped and out:
            out.append(stripped)
        break
    return out


_DOC_EXTRACTORS: Dict[str, Callable[[str], List[str]]] = {
    "rust": _rust_docs,
    "python": _python_docs,
    "typescript": _js_docs,
    "javascript": _js_docs,
    "markdown": _markdown_head,
}


def leading_doc_block(text: str, language: str) -> List[str]:
    """Return the normalized top-of-file doc lines (possibly empty)."""
    extractor = _DOC_EXTRACTORS.get(_canonical(language), _generic_head)
    normalized: List[str] = []
    for line in extractor(text):
        stripped = line.strip()
        if not stripped:
            continue
        normalized.append(stripped)
        if len(normalized) >= MAX_DOC_LINES:
            break
    return normalized


__all__ = [
    "MAX_KEEP_LINES",
    "extract_relevant_snippet",
    "leading_doc_block",
    "score_line",
]
