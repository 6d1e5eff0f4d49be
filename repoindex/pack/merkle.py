"""Fixed-size content chunking and a pairwise SHA-256 Merkle root."""

from __future__ import annotations

import hashlib
from typing import List, Sequence

from ..models import ChunkSet, ContentChunk

DEFAULT_CHUNK_SIZE = 16 * 1024


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def chunk_bytes(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[ContentChunk]:
    """Split ``data`` into consecutive chunks; the last one may be shorter."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    chunks: List[ContentChunk] = []
    for index, offset in enumerate(range(0, len(data), chunk_size)):
        piece = data[offset : offset + chunk_size]
        chunks.append(ContentChunk(index=index, offset=offset, length=len(piece), sha256=sha256_hex(piece)))
    return chunks


def merkle_root(digests: Sequence[bytes]) -> str:
    """Hex root over raw leaf digests.

    Adjacent pairs are hashed as ``sha256(left + right)``; an odd node at the
    end of a level moves up unchanged. No leaves gives the hash of empty input.
    """
    if not digests:
        return sha256_hex(b"")
    layer = list(digests)
    while len(layer) > 1:
        following: List[bytes] = []
        for position in range(0, len(layer), 2):
            if position + 1 < len(layer):
                following.append(hashlib.sha256(layer[position] + layer[position + 1]).digest())
            else:
                following.append(layer[position])
        layer = following
    return layer[0].hex()


def build_chunk_set(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> ChunkSet:
    chunks = chunk_bytes(data, chunk_size)
    root = merkle_root([bytes.fromhex(chunk.sha256) for chunk in chunks])
    return ChunkSet(chunk_size_bytes=chunk_size, merkle_root=root, chunks=chunks)


__all__ = ["DEFAULT_CHUNK_SIZE", "build_chunk_set", "chunk_bytes", "merkle_root", "sha256_hex"]
