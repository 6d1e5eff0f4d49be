"""Token-bounded paste chunks built from scanned records.

Records are first split into parts (only when a snippet is larger than the
per-part target), then parts are packed, in ``(path, part_index)`` order, into
chunks that respect the token cap and the files-per-chunk ceiling.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from .errors import OutputError
from .logging import get_logger
from .models import MIN_TOKEN_ESTIMATE, Record
from .signals import tokens_for_words

MIN_TOKEN_CAP = 256
DEFAULT_TOKEN_CAP = 15_000
MAX_FILES_PER_CHUNK = 120
DEFAULT_PART_TARGET_TOKENS = 3_000
MAX_SECTION_CHARS = 32_000
TRUNCATION_MARKER = "\n// … [truncated]"
TEMPLATE_NAME = "paste_chunk.md.j2"

_FENCE_LANGUAGES = {
    "rs": "rust",
    "rust": "rust",
    "ts": "ts",
    "typescript": "ts",
    "js": "javascript",
    "javascript": "javascript",
    "py": "python",
    "python": "python",
    "go": "go",
    "golang": "go",
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "java": "java",
    "md": "md",
    "markdown": "md",
}

_BACKTICK_RUN = re.compile(r"`{3,}")

logger = get_logger("chunker")


@dataclass(frozen=True)
class ChunkPart:
    """One ordered fragment of a record's snippet."""

    path: str
    language: str
    content_hash: str
    size_bytes: int
    last_modified: str
    body: str
    token_estimate: int
    part_index: int = 1
    part_total: int = 1
    summary: Optional[str] = None


@dataclass
class PasteChunk:
    index: int
    parts: List[ChunkPart] = field(default_factory=list)
    token_total: int = 0

    @property
    def paths(self) -> List[str]:
        ordered: List[str] = []
        for part in self.parts:
            if not ordered or ordered[-1] != part.path:
                ordered.append(part.path)
        return ordered

    @property
    def file_count(self) -> int:
        return len(self.paths)


def fence_language(language: str) -> str:
    """Normalize a language tag to one Markdown renderers recognize."""
    lang = language.strip()
    return _FENCE_LANGUAGES.get(lang.lower(), lang)


def trim_snippet(snippet: str, max_chars: int = MAX_SECTION_CHARS) -> str:
    if len(snippet) <= max_chars:
        return snippet
    return snippet[:max_chars] + TRUNCATION_MARKER


def _fence_for(text: str) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN.findall(text)), default=2)
    return "`" * max(3, longest + 1)


class ChunkPacker:
    """Splits oversized records into parts and bin-packs parts into paste chunks."""

    def __init__(
        self,
        token_cap: int = DEFAULT_TOKEN_CAP,
        max_files_per_chunk: int = MAX_FILES_PER_CHUNK,
        part_target_tokens: int = DEFAULT_PART_TARGET_TOKENS,
        clock: Callable[[], datetime] | None = None,
        templates_dir: Path | None = None,
    ) -> None:
        self.token_cap = max(MIN_TOKEN_CAP, int(token_cap))
        self.max_files_per_chunk = max(1, int(max_files_per_chunk))
        self.part_target_tokens = max(MIN_TOKEN_ESTIMATE, int(part_target_tokens))
        self._clock = clock or (lambda: datetime.now(UTC))
        templates = templates_dir or Path(__file__).with_name("templates")
        self._env = Environment(
            loader=FileSystemLoader(str(templates)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def split_record(self, record: Record) -> List[ChunkPart]:
        """Return the ordered parts of ``record``; rejoining their bodies gives the snippet."""
        snippet = trim_snippet(record.snippet)
        template = ChunkPart(
            path=record.path,
            language=record.language,
            content_hash=record.content_hash,
            size_bytes=record.size_bytes,
            last_modified=record.last_modified,
            body=snippet,
            token_estimate=record.token_estimate,
            summary=record.summary,
        )
        words = len(snippet.split())
        if snippet is record.snippet and record.token_estimate <= self.part_target_tokens:
            return [template]
        if tokens_for_words(words) <= self.part_target_tokens:
            return [replace(template, token_estimate=max(MIN_TOKEN_ESTIMATE, tokens_for_words(words)))]

        bodies: List[tuple[str, int]] = []
        current: List[str] = []
        current_words = 0
        for line in snippet.splitlines(keepends=True):
            current.append(line)
            current_words += len(line.split())
            if tokens_for_words(current_words) >= self.part_target_tokens:
                bodies.append(("".join(current), current_words))
                current, current_words = [], 0
        if current:
            bodies.append(("".join(current), current_words))

        total = len(bodies)
        return [
            replace(
                template,
                body=body,
                token_estimate=max(MIN_TOKEN_ESTIMATE, tokens_for_words(body_words)),
                part_index=index,
                part_total=total,
                summary=record.summary if index == 1 else None,
            )
            for index, (body, body_words) in enumerate(bodies, start=1)
        ]

    def pack(self, records: Iterable[Record]) -> List[PasteChunk]:
        parts: List[ChunkPart] = []
        for record in records:
            parts.extend(self.split_record(record))
        parts.sort(key=lambda part: (part.path, part.part_index))

        chunks: List[PasteChunk] = []
        current = PasteChunk(index=1)
        files_in_chunk = 0
        for part in parts:
            new_file = not current.parts or current.parts[-1].path != part.path
            over_tokens = current.token_total + part.token_estimate > self.token_cap
            over_files = new_file and files_in_chunk + 1 > self.max_files_per_chunk
            if current.parts and (over_tokens or over_files):
                chunks.append(current)
                current = PasteChunk(index=current.index + 1)
                files_in_chunk = 0
                new_file = True
            if part.token_estimate > self.token_cap:
                logger.debug(
                    "Part %d of %s (~%d tokens) exceeds the %d token cap on its own",
                    part.part_index,
                    part.path,
                    part.token_estimate,
                    self.token_cap,
                )
            current.parts.append(part)
            current.token_total += part.token_estimate
            if new_file:
                files_in_chunk += 1
        if current.parts:
            chunks.append(current)
        return chunks

    def render(self, chunk: PasteChunk) -> str:
        template = self._env.get_template(TEMPLATE_NAME)
        generated = self._clock().isoformat(timespec="seconds")
        return template.render(
            index=chunk.index,
            generated=generated,
            file_count=chunk.file_count,
            part_count=len(chunk.parts),
            token_total=chunk.token_total,
            sections=self._sections(chunk.parts),
        ).rstrip() + "\n"

    def write(self, records: Iterable[Record], out_dir: Path, prefix: str = "paste_") -> List[Path]:
        """Render every chunk to ``out_dir/<prefix><n>.md``; stale higher-numbered files are removed."""
        out_dir = Path(out_dir)
        try:
            out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputError(out_dir, "create chunk directory", exc) from exc

        written: List[Path] = []
        for chunk in self.pack(records):
            target = out_dir / f"{prefix}{chunk.index}.md"
            try:
                target.write_text(self.render(chunk), encoding="utf-8")
            except OSError as exc:
                raise OutputError(target, "write paste chunk", exc) from exc
            written.append(target)

        self._remove_stale(out_dir, prefix, {path.name for path in written})
        logger.info("Wrote %d paste chunk(s) to %s", len(written), out_dir)
        return written

    @staticmethod
    def _remove_stale(out_dir: Path, prefix: str, keep: set[str]) -> None:
        pattern = re.compile(rf"{re.escape(prefix)}\d+\.md")
        for candidate in out_dir.iterdir():
            if candidate.name in keep or not pattern.fullmatch(candidate.name):
                continue
            try:
                candidate.unlink()
            except OSError as exc:
                raise OutputError(candidate, "remove stale paste chunk", exc) from exc

    @staticmethod
    def _sections(parts: Sequence[ChunkPart]) -> List[Dict[str, object]]:
        sections: List[Dict[str, object]] = []
        for part in parts:
            if not sections or sections[-1]["path"] != part.path:
                split = part.part_total > 1
                title = f"`{part.path}` [{part.language}]"
                sections.append(
                    {
                        "path": part.path,
                        "title": title,
                        "split": split,
                        "language": part.language,
                        "fence_language": fence_language(part.language),
                        "content_hash": part.content_hash,
                        "size_bytes": part.size_bytes,
                        "last_modified": part.last_modified,
                        "summary": (part.summary or "").strip(),
                        "parts": [],
                    }
                )
            section = sections[-1]
            text = part.body[:-1] if part.body.endswith("\n") else part.body
            section["parts"].append(  # type: ignore[union-attr]
                {
                    "part_index": part.part_index,
                    "part_total": part.part_total,
                    "text": text,
                    "fence": _fence_for(text),
                }
            )

        for section in sections:
            if section["split"]:
                rendered = section["parts"]
                first = rendered[0]["part_index"]  # type: ignore[index]
                last = rendered[-1]["part_index"]  # type: ignore[index]
                total = rendered[0]["part_total"]  # type: ignore[index]
                section["title"] = f"{section['title']} (parts {first}-{last} of {total})"
        return sections


__all__ = [
    "ChunkPacker",
    "ChunkPart",
    "MIN_TOKEN_CAP",
    "PasteChunk",
    "fence_language",
    "trim_snippet",
]
