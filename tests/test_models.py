"""Tests for repoindex.models."""

from __future__ import annotations

import base64

import pytest

from repoindex.models import (
    Anchor,
    AnchorRange,
    AnchorSchema,
    ChunkSet,
    ContentChunk,
    FieldSchema,
    IndexPack,
    PackFile,
    Record,
    Role,
)


def test_role_parse_accepts_aliases_and_defaults_to_other() -> None:
    assert Role.parse("bin") is Role.BIN
    assert Role.parse("Tests") is Role.TEST
    assert Role.parse("docs") is Role.DOC
    assert Role.parse("engine") is Role.CORE
    assert Role.parse("mystery") is Role.OTHER
    assert Role.parse(None) is Role.OTHER
    assert Role.parse(Role.UI) is Role.UI


def test_record_normalizes_role_tags_and_token_floor() -> None:
    record = Record(
        path="src/lib.rs",
        language="rust",
        content_hash="abc",
        size_bytes=3,
        tags=["rust", "dir:src", "rust"],
        token_estimate=0,
        role="lib",
    )

    assert record.role is Role.LIB
    assert record.tags == ["rust", "dir:src"]
    assert record.token_estimate == 1


def test_record_to_dict_round_trips_through_from_dict() -> None:
    record = Record(
        path="src/main.rs",
        language="rust",
        content_hash="f" * 64,
        size_bytes=42,
        last_modified="1700000000",
        lines_total=3,
        lines_nonblank=2,
        snippet="fn main() {}",
        tags=["rust"],
        summary="Entrypoint for this Rust binary.",
        token_estimate=4,
        role=Role.BIN,
        module="bin",
        rel_dir="src",
    )

    restored = Record.from_dict(record.to_dict())

    assert restored == record


def test_record_from_dict_accepts_legacy_aliases_and_ignores_unknown_keys() -> None:
    payload = {
        "path": "a.py",
        "lang": "python",
        "sha1": "deadbeef",
        "size": "12",
        "role": "tests",
        "future_field": {"nested": True},
    }

    record = Record.from_dict(payload)

    assert record.language == "python"
    assert record.content_hash == "deadbeef"
    assert record.size_bytes == 12
    assert record.role is Role.TEST
    assert record.rel_dir == "."
    assert record.summary is None


def test_record_from_dict_rejects_missing_path() -> None:
    with pytest.raises(ValueError):
        Record.from_dict({"language": "rust"})
    with pytest.raises(ValueError):
        Record.from_dict(["not", "a", "mapping"])  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(True, True), ("false", False), ("True", True), ("0", False), (1, True), (0, False), (None, False)],
)
def test_record_from_dict_reads_noise_flags(raw: object, expected: bool) -> None:
    assert Record.from_dict({"path": "a.rs", "noise": raw}).noise is expected


def test_index_pack_serializes_metadata_and_rules() -> None:
    chunks = ChunkSet(
        chunk_size_bytes=16,
        merkle_root="00" * 32,
        chunks=[ContentChunk(index=0, offset=0, length=4, sha256="11" * 32)],
    )
    verbatim = b"fn a(){}"
    anchor = Anchor(
        kind="fn",
        name="a",
        visibility="pub",
        signature="fn a()",
        range=AnchorRange(start_line=1, end_line=1),
        slice_sha256="22" * 32,
        verbatim_b64=base64.b64encode(verbatim).decode("ascii"),
        schema=AnchorSchema(fields=[FieldSchema(name="x", type="u8", public=True)]),
    )
    pack = IndexPack(
        pack_id="PACK_1",
        created_utc="2024-01-01T00:00:00+00:00",
        files=[
            PackFile(
                path="src/lib.rs",
                language="rust",
                size_bytes=4,
                line_count=1,
                file_sha256="33" * 32,
                chunks=chunks,
                anchors=[anchor],
            )
        ],
        strict=True,
    )

    data = pack.to_dict()

    assert data["format"] == "LLM-CODE-INDEX"
    assert data["version"] == "3.0"
    assert data["hash_algo"] == "sha256"
    assert data["lang"] == {"primary": "rust", "dialect": "edition2021"}
    assert data["rules"]["mode"] == "strict"
    assert data["rules"]["patch_contract"]["limit_scope_to_verified_anchors"] is True
    entry = data["files"][0]
    assert entry["encoding"] == "utf-8"
    assert entry["chunks"]["list"][0]["length"] == 4
    assert entry["anchors"][0]["schema"]["fields"] == [{"name": "x", "ty": "u8", "public": True}]
    assert anchor.decode_slice() == verbatim
    assert pack.file("src/lib.rs") is pack.files[0]
    assert pack.file("missing.rs") is None
