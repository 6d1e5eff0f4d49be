"""Repository walking and record building."""

from __future__ import annotations

import codecs
import hashlib
import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Union

from .config import CONFIG_FILENAME, RepoIndexConfig, load_config
from .intent import guess_summary
from .logging import get_logger
from .models import Record, ScanResult, SkippedItem
from .signals import (
    count_lines,
    estimate_tokens,
    infer_module_id,
    infer_role,
    infer_tags,
    is_noise_path,
    skim_symbols,
    top_level_dir,
)
from .snippet import extract_relevant_snippet

BINARY_SNIFF_BYTES = 4096

IGNORE_FILES = (".gitignore", ".gptignore")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".sub_index",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_LANGUAGE_BY_SUFFIX = {
    ".rs": "rust",
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hh": "cpp",
    ".hxx": "cpp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".toml": "toml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".md": "markdown",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "bash",
}

_LANGUAGE_BY_FILENAME = {
    "Dockerfile": "dockerfile",
    "Makefile": "make",
    "Gemfile": "ruby",
    "Rakefile": "ruby",
}

_SHELLS = {"sh", "bash", "zsh", "dash", "ksh"}

logger = get_logger("scanner")


@dataclass
class IgnoreRule:
    """A gitignore-style rule parsed from an ignore file or .repoindex.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern.rstrip("/")

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern.lstrip("/")

    # "**/" prefixes are equivalent to an unanchored match on the remainder
    while pattern.startswith("**/"):
        pattern = pattern[3:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_ignore_file(path: Path) -> List[IgnoreRule]:
    if not path.is_file():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read ignore file %s: %s", path, exc)
        return []

    rules: List[IgnoreRule] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def load_ignore_rules(root: Path, config: RepoIndexConfig) -> List[IgnoreRule]:
    """Rules from .gitignore, then .gptignore, then ``exclude_paths``; later rules win."""
    rules: List[IgnoreRule] = []
    for name in IGNORE_FILES:
        rules.extend(_parse_ignore_file(root / name))
    for pattern in config.exclude_paths:
        rule = _build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def detect_language(path: Path, head: bytes = b"") -> Optional[str]:
    """Language from the filename or extension, then from a shebang line."""
    if path.name in _LANGUAGE_BY_FILENAME:
        return _LANGUAGE_BY_FILENAME[path.name]
    language = _LANGUAGE_BY_SUFFIX.get(path.suffix.lower())
    if language:
        return language
    return _language_from_shebang(head)


def _language_from_shebang(head: bytes) -> Optional[str]:
    if not head.startswith(b"#!"):
        return None
    first_line = head.split(b"\n", 1)[0][2:].decode("utf-8", errors="replace")
    tokens = first_line.split()
    if not tokens:
        return None
    interpreter = tokens[0].rsplit("/", 1)[-1]
    if interpreter == "env":
        args = [token for token in tokens[1:] if not token.startswith("-")]
        if not args:
            return None
        interpreter = args[0]
    if interpreter.startswith("python"):
        return "python"
    if interpreter in _SHELLS:
        return "bash"
    if interpreter in {"node", "nodejs"}:
        return "javascript"
    if interpreter.startswith("ruby"):
        return "ruby"
    return None


def looks_binary(head: bytes) -> bool:
    """Heuristic: a NUL byte or undecodable UTF-8 in the sampled prefix."""
    if b"\x00" in head:
        return True
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        # final=False tolerates a multi-byte sequence cut by the sample boundary
        decoder.decode(head, final=False)
    except UnicodeDecodeError:
        return True
    return False


class RepoScanner:
    """Walks a repository and produces one record per indexable file."""

    def __init__(self, config: RepoIndexConfig | None = None) -> None:
        self._config = config

    def scan(self, root: str | Path) -> ScanResult:
        """Return path-sorted records for ``root`` plus the items that were skipped."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        config = self._config or load_config(root_path / CONFIG_FILENAME)
        rules = load_ignore_rules(root_path, config)
        records: Dict[str, Record] = {}
        skipped: List[SkippedItem] = []
        for path in self._iter_files(root_path, rules, config, skipped):
            rel_path = path.relative_to(root_path).as_posix()
            outcome = self._scan_file(path, rel_path, config)
            if isinstance(outcome, SkippedItem):
                skipped.append(outcome)
                continue
            records[rel_path] = outcome

        ordered = [records[key] for key in sorted(records)]
        logger.debug("Scanned %s: %d records, %d skipped", root_path, len(ordered), len(skipped))
        return ScanResult(root=str(root_path), records=ordered, skipped=skipped)

    def _iter_files(
        self,
        root: Path,
        rules: Sequence[IgnoreRule],
        config: RepoIndexConfig,
        skipped: List[SkippedItem],
    ) -> Iterator[Path]:
        def on_error(error: OSError) -> None:
            if error.filename is None or Path(error.filename) == root:
                raise error
            rel = Path(error.filename).relative_to(root).as_posix()
            logger.warning("Skipping %s: cannot list directory (%s)", rel, error.strerror or error)
            skipped.append(SkippedItem(path=rel, reason=f"cannot list directory: {error.strerror or error}"))

        output_rel = Path(config.output_dir).as_posix()
        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

            kept_dirs = []
            for name in sorted(dirnames):
                if name in _EXCLUDED_DIRS:
                    continue
                if name.startswith(".") and not config.scanner.include_hidden:
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if rel_path == output_rel:
                    continue
                if _should_ignore(rel_path, True, rules):
                    logger.debug("Ignoring directory %s", rel_path)
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if filename in _EXCLUDED_FILES:
                    continue
                if filename.startswith(".") and not config.scanner.include_hidden:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, rules):
                    continue
                candidate = current_dir / filename
                if not candidate.is_file():
                    continue
                yield candidate

    def _scan_file(
        self, path: Path, rel_path: str, config: RepoIndexConfig
    ) -> Union[Record, SkippedItem]:
        try:
            stat_result = path.stat()
        except OSError as exc:
            return _skip(rel_path, f"stat failed: {exc}", warn=True)

        size = stat_result.st_size
        if size == 0:
            return _skip(rel_path, "empty file")
        if size > config.scanner.max_file_bytes:
            return _skip(rel_path, f"larger than {config.scanner.max_file_bytes} bytes")

        try:
            data = path.read_bytes()
        except OSError as exc:
            return _skip(rel_path, f"read failed: {exc}", warn=True)

        head = data[:BINARY_SNIFF_BYTES]
        if looks_binary(head):
            return _skip(rel_path, "binary content")

        language = detect_language(path, head)
        if not language:
            return _skip(rel_path, "unknown language")

        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            return _skip(rel_path, f"not valid UTF-8: {exc.reason}", warn=True)

        # a multi-byte character cut by the byte budget is dropped
        head_text = data[: config.scanner.snippet_bytes].decode("utf-8", errors="ignore")
        snippet = extract_relevant_snippet(head_text, language)
        imports, exports = skim_symbols(snippet, language)
        lines_total, lines_nonblank = count_lines(text)

        return Record(
            path=rel_path,
            language=language,
            content_hash=hashlib.sha256(data).hexdigest(),
            size_bytes=len(data),
            last_modified=str(int(stat_result.st_mtime)),
            lines_total=lines_total,
            lines_nonblank=lines_nonblank,
            snippet=snippet,
            tags=infer_tags(rel_path, language, config.scanner.tag_hints),
            summary=guess_summary(rel_path, snippet, language),
            token_estimate=estimate_tokens(snippet),
            role=infer_role(rel_path, language, snippet),
            module=infer_module_id(rel_path, language),
            imports=imports,
            exports=exports,
            rel_dir=top_level_dir(rel_path),
            noise=is_noise_path(rel_path),
        )


def _skip(rel_path: str, reason: str, *, warn: bool = False) -> SkippedItem:
    if warn:
        logger.warning("Skipping %s: %s", rel_path, reason)
    else:
        logger.debug("Skipping %s: %s", rel_path, reason)
    return SkippedItem(path=rel_path, reason=reason)


__all__ = [
    "IgnoreRule",
    "RepoScanner",
    "detect_language",
    "load_ignore_rules",
    "looks_binary",
]
