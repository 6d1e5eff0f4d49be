"""Builds the content-addressable pack from records and the files they describe."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import OutputError
from ..logging import get_logger
from ..models import Anchor, IndexPack, PackFile, Record, SkippedItem
from ..signals import count_lines
from .anchors import ParseFailure, RustAnchorExtractor
from .merkle import DEFAULT_CHUNK_SIZE, build_chunk_set, sha256_hex

logger = get_logger("pack.builder")


@dataclass
class PackBuildResult:
    pack: IndexPack
    skipped: List[SkippedItem] = field(default_factory=list)


class PackBuilder:
    """Chunk tables and Merkle roots for every file, plus anchors for Rust sources.

    In the default lenient mode a file that cannot be read or decoded is left
    out of the pack and reported in ``skipped``; with ``strict=True`` the
    underlying ``OSError``/``UnicodeDecodeError`` propagates to the caller.
    A file that fails to parse always stays in the pack, with no anchors.
    """

    def __init__(
        self,
        chunk_size_bytes: int = DEFAULT_CHUNK_SIZE,
        strict: bool = False,
        extractor: Optional[RustAnchorExtractor] = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if chunk_size_bytes <= 0:
            raise ValueError("chunk_size_bytes must be positive")
        self.chunk_size_bytes = chunk_size_bytes
        self.strict = strict
        self._extractor = extractor
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def extractor(self) -> RustAnchorExtractor:
        if self._extractor is None:
            self._extractor = RustAnchorExtractor()
        return self._extractor

    def build(self, records: Iterable[Record], root: Path | str) -> PackBuildResult:
        root_path = Path(root)
        files: List[PackFile] = []
        skipped: List[SkippedItem] = []

        for record in sorted(records, key=lambda item: item.path):
            source_path = root_path / record.path
            try:
                data = source_path.read_bytes()
                text = data.decode("utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                if self.strict:
                    raise
                logger.warning("Skipping %s in pack: %s", record.path, exc)
                skipped.append(SkippedItem(path=record.path, reason=f"unreadable: {exc}"))
                continue

            anchors: List[Anchor] = []
            if self._wants_anchors(record):
                try:
                    extraction = self.extractor.extract(text)
                except ParseFailure as exc:
                    logger.warning("No anchors for %s: %s", record.path, exc)
                    skipped.append(SkippedItem(path=record.path, reason=f"parse failure: {exc}"))
                else:
                    anchors = extraction.anchors
                    for reason in extraction.skipped:
                        logger.debug("%s: skipped declaration %s", record.path, reason)

            files.append(
                PackFile(
                    path=record.path,
                    language=record.language,
                    size_bytes=len(data),
                    line_count=count_lines(text)[0],
                    file_sha256=sha256_hex(data),
                    chunks=build_chunk_set(data, self.chunk_size_bytes),
                    anchors=anchors,
                )
            )

        created = self._clock()
        pack = IndexPack(
            pack_id=f"PACK_{uuid.uuid4().hex}",
            created_utc=created.isoformat(timespec="seconds"),
            files=files,
            strict=self.strict,
        )
        return PackBuildResult(pack=pack, skipped=skipped)

    def _wants_anchors(self, record: Record) -> bool:
        return record.language.lower() == RustAnchorExtractor.language


def write_pack(pack: IndexPack, path: Path) -> Path:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(pack.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise OutputError(path, "write pack", exc) from exc
    return path


__all__ = ["PackBuildResult", "PackBuilder", "write_pack"]
