"""Content-addressable pack: chunk tables, Merkle roots and verbatim anchors."""

from __future__ import annotations

from .anchors import AnchorExtraction, Declaration, ParseFailure, RustAnchorExtractor, extract_anchors
from .builder import PackBuildResult, PackBuilder, write_pack
from .lexer import (
    AnchorScanError,
    DeclarationNotFoundError,
    NoBodyError,
    UnbalancedBlockError,
)
from .merkle import build_chunk_set, chunk_bytes, merkle_root

__all__ = [
    "AnchorExtraction",
    "AnchorScanError",
    "Declaration",
    "DeclarationNotFoundError",
    "NoBodyError",
    "PackBuildResult",
    "PackBuilder",
    "ParseFailure",
    "RustAnchorExtractor",
    "UnbalancedBlockError",
    "build_chunk_set",
    "chunk_bytes",
    "extract_anchors",
    "merkle_root",
    "write_pack",
]
