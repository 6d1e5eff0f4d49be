"""Core data models shared across repoindex components."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

MIN_TOKEN_ESTIMATE = 1


class Role(str, Enum):
    """Coarse purpose of a file inside its repository."""

    BIN = "bin"
    LIB = "lib"
    TEST = "test"
    DOC = "doc"
    CONFIG = "config"
    SCRIPT = "script"
    UI = "ui"
    CORE = "core"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Return the role named by ``value``; unknown or legacy values map to OTHER."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return cls.OTHER
        key = value.strip().lower()
        if not key:
            return cls.OTHER
        key = _ROLE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return cls.OTHER


_ROLE_ALIASES = {
    "binary": "bin",
    "entrypoint": "bin",
    "main": "bin",
    "library": "lib",
    "src": "lib",
    "source": "lib",
    "tests": "test",
    "spec": "test",
    "docs": "doc",
    "documentation": "doc",
    "configuration": "config",
    "settings": "config",
    "scripts": "script",
    "view": "ui",
    "app": "ui",
    "engine": "core",
    "domain": "core",
}


def dedupe_preserving_order(values: List[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


@dataclass
class Record:
    """Everything the index knows about one scanned file."""

    path: str
    language: str
    content_hash: str
    size_bytes: int
    last_modified: str = "0"
    lines_total: int = 0
    lines_nonblank: int = 0
    snippet: str = ""
    tags: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    token_estimate: int = MIN_TOKEN_ESTIMATE
    role: Role = Role.OTHER
    module: str = ""
    imports: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    rel_dir: str = "."
    noise: bool = False

    def __post_init__(self) -> None:
        self.role = Role.parse(self.role)
        self.tags = dedupe_preserving_order(list(self.tags))
        self.token_estimate = max(MIN_TOKEN_ESTIMATE, int(self.token_estimate or 0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "language": self.language,
            "content_hash": self.content_hash,
            "size_bytes": self.size_bytes,
            "last_modified": self.last_modified,
            "lines_total": self.lines_total,
            "lines_nonblank": self.lines_nonblank,
            "snippet": self.snippet,
            "tags": list(self.tags),
            "summary": self.summary,
            "token_estimate": self.token_estimate,
            "role": self.role.value,
            "module": self.module,
            "imports": list(self.imports),
            "exports": list(self.exports),
            "rel_dir": self.rel_dir,
            "noise": self.noise,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Record":
        """Build a record from a snapshot line, tolerating older and newer writers.

        Unknown keys are ignored, missing keys fall back to defaults and the
        field names used by earlier snapshots (``lang``, ``sha1``, ``size``)
        are accepted as aliases.
        """
        if not isinstance(payload, Mapping):
            raise ValueError("record payload must be a mapping")

        path = payload.get("path")
        if not isinstance(path, str) or not path.strip():
            raise ValueError("record payload has no usable 'path'")

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in payload and payload[key] is not None:
                    return payload[key]
            return default

        summary = pick("summary")
        return cls(
            path=path,
            language=str(pick("language", "lang", default="")),
            content_hash=str(pick("content_hash", "sha1", "hash", default="")),
            size_bytes=_as_int(pick("size_bytes", "size", default=0)),
            last_modified=str(pick("last_modified", default="0")),
            lines_total=_as_int(pick("lines_total", default=0)),
            lines_nonblank=_as_int(pick("lines_nonblank", default=0)),
            snippet=str(pick("snippet", default="")),
            tags=_as_str_list(pick("tags", default=[])),
            summary=str(summary) if summary is not None else None,
            token_estimate=_as_int(pick("token_estimate", default=0)),
            role=pick("role", default=""),
            module=str(pick("module", default="")),
            imports=_as_str_list(pick("imports", default=[])),
            exports=_as_str_list(pick("exports", default=[])),
            rel_dir=str(pick("rel_dir", default=".")) or ".",
            noise=_as_flag(pick("noise", default=False)),
        )


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, str)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return 0
    return 0


def _as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return False


def _as_str_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


@dataclass(frozen=True)
class SkippedItem:
    """A file (or snapshot line) left out of the results, with the reason."""

    path: str
    reason: str


@dataclass
class ScanResult:
    """Outcome of one scan: the records produced and the items that were skipped."""

    root: str
    records: List[Record]
    skipped: List[SkippedItem] = field(default_factory=list)


@dataclass(frozen=True)
class ContentChunk:
    """Fixed-size byte range of a file, used as a Merkle leaf."""

    index: int
    offset: int
    length: int
    sha256: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "offset": self.offset, "length": self.length, "sha256": self.sha256}


@dataclass(frozen=True)
class ChunkSet:
    chunk_size_bytes: int
    merkle_root: str
    chunks: List[ContentChunk]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_size_bytes": self.chunk_size_bytes,
            "merkle_root": self.merkle_root,
            "list": [chunk.to_dict() for chunk in self.chunks],
        }


@dataclass(frozen=True)
class AnchorRange:
    """1-based inclusive line span."""

    start_line: int
    end_line: int


@dataclass(frozen=True)
class FieldSchema:
    name: str
    type: str
    public: bool


@dataclass
class AnchorSchema:
    """Kind-specific description of a declaration."""

    fields: Optional[List[FieldSchema]] = None
    variants: Optional[List[str]] = None
    returns: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fields": (
                [{"name": f.name, "ty": f.type, "public": f.public} for f in self.fields]
                if self.fields is not None
                else None
            ),
            "variants": list(self.variants) if self.variants is not None else None,
            "returns": self.returns,
        }


@dataclass
class Anchor:
    """Byte-exact, hash-addressed slice of one declaration."""

    kind: str
    name: str
    visibility: str
    signature: Optional[str]
    range: AnchorRange
    slice_sha256: str
    verbatim_b64: str
    schema: Optional[AnchorSchema] = None

    def decode_slice(self) -> bytes:
        return base64.b64decode(self.verbatim_b64)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.name,
            "visibility": self.visibility,
            "signature": self.signature,
            "range": {"start_line": self.range.start_line, "end_line": self.range.end_line},
            "slice_sha256": self.slice_sha256,
            "verbatim_b64": self.verbatim_b64,
            "schema": self.schema.to_dict() if self.schema is not None else None,
        }


@dataclass
class PackFile:
    """Per-file entry of the pack document."""

    path: str
    language: str
    size_bytes: int
    line_count: int
    file_sha256: str
    chunks: ChunkSet
    anchors: List[Anchor] = field(default_factory=list)
    encoding: str = "utf-8"
    eol: str = "lf"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "language": self.language,
            "size_bytes": self.size_bytes,
            "line_count": self.line_count,
            "encoding": self.encoding,
            "eol": self.eol,
            "file_sha256": self.file_sha256,
            "chunks": self.chunks.to_dict(),
            "anchors": [anchor.to_dict() for anchor in self.anchors],
        }


@dataclass
class IndexPack:
    """Self-verifying pack of chunk tables, Merkle roots and anchors."""

    pack_id: str
    created_utc: str
    files: List[PackFile]
    format: str = "LLM-CODE-INDEX"
    version: str = "3.0"
    hash_algo: str = "sha256"
    primary_language: str = "rust"
    dialect: str = "edition2021"
    strict: bool = False

    def file(self, path: str) -> Optional[PackFile]:
        for entry in self.files:
            if entry.path == path:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": self.format,
            "version": self.version,
            "hash_algo": self.hash_algo,
            "pack_id": self.pack_id,
            "created_utc": self.created_utc,
            "lang": {"primary": self.primary_language, "dialect": self.dialect},
            "rules": {
                "mode": "strict" if self.strict else "lenient",
                "patch_contract": {
                    "diff_format": "unified",
                    "limit_scope_to_verified_anchors": True,
                },
            },
            "files": [entry.to_dict() for entry in self.files],
        }


__all__ = [
    "MIN_TOKEN_ESTIMATE",
    "Anchor",
    "AnchorRange",
    "AnchorSchema",
    "ChunkSet",
    "ContentChunk",
    "FieldSchema",
    "IndexPack",
    "PackFile",
    "Record",
    "Role",
    "ScanResult",
    "SkippedItem",
    "dedupe_preserving_order",
]
