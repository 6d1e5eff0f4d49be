"""Rust anchor extraction: tree-sitter finds declarations, the lexer bounds them."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import List, Optional

import tree_sitter_rust
from tree_sitter import Language, Node, Parser

from ..logging import get_logger
from ..models import Anchor, AnchorRange, AnchorSchema, FieldSchema
from .lexer import (
    RUST_RULES,
    AnchorScanError,
    BodySpan,
    LexRules,
    find_body_bounds,
    find_declaration,
    is_token_at,
    line_of,
    offset_from_line_col,
    parse_ident,
    skip_trivia,
)
from .merkle import sha256_hex

RUST_LANGUAGE = Language(tree_sitter_rust.language())

_KEYWORDS = {"fn": "fn", "struct": "struct", "enum": "enum"}
_CONTAINERS = {"impl_item", "trait_item", "mod_item"}

logger = get_logger("pack.anchors")


class ParseFailure(RuntimeError):
    """The source did not parse cleanly; no anchors are produced for it."""


@dataclass
class Declaration:
    """A declaration to anchor.

    ``start_hint`` is the ``str`` offset of the declaration keyword when the
    parser supplied one. ``None`` (or an offset that does not point at the
    keyword) sends extraction through the lexical fallback search.
    """

    kind: str
    name: str
    visibility: str = "priv"
    start_hint: Optional[int] = None
    schema: Optional[AnchorSchema] = None


@dataclass
class AnchorExtraction:
    anchors: List[Anchor] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def locate_declaration(text: str, declaration: Declaration, rules: LexRules = RUST_RULES) -> BodySpan:
    """Bound ``declaration``, preferring its start hint over a whole-file search."""
    keyword = _KEYWORDS[declaration.kind]
    allow_unit = declaration.kind == "struct"
    hint = declaration.start_hint
    if hint is not None and 0 <= hint < len(text) and is_token_at(text, hint, keyword):
        ident, _ = parse_ident(text, skip_trivia(text, hint + len(keyword), rules))
        if ident == declaration.name:
            return find_body_bounds(text, hint, allow_unit, rules)
    if hint is not None:
        logger.debug("Start hint %d for %s %s is stale; searching", hint, keyword, declaration.name)
    return find_declaration(text, keyword, declaration.name, allow_unit, rules)


def build_anchor(text: str, declaration: Declaration, span: BodySpan) -> Anchor:
    verbatim = text[span.start : span.end].encode("utf-8")
    signature = None
    if declaration.kind == "fn" and span.body_start is not None:
        signature = _collapse(text[span.start : span.body_start])
    return Anchor(
        kind=declaration.kind,
        name=declaration.name,
        visibility=declaration.visibility,
        signature=signature,
        range=AnchorRange(start_line=line_of(text, span.start), end_line=line_of(text, span.end)),
        slice_sha256=sha256_hex(verbatim),
        verbatim_b64=base64.b64encode(verbatim).decode("ascii"),
        schema=declaration.schema,
    )


def extract_anchors(text: str, declarations: List[Declaration]) -> AnchorExtraction:
    """Anchor every declaration that can be bounded; the rest are reported as skipped."""
    result = AnchorExtraction()
    for declaration in declarations:
        try:
            span = locate_declaration(text, declaration)
        except AnchorScanError as exc:
            logger.debug("No anchor for %s %s: %s", declaration.kind, declaration.name, exc)
            result.skipped.append(f"{declaration.kind} {declaration.name}: {exc}")
            continue
        result.anchors.append(build_anchor(text, declaration, span))
    return result


class RustAnchorExtractor:
    """Collects Rust fn/struct/enum declarations with tree-sitter."""

    language = "rust"

    def __init__(self) -> None:
        self._parser = Parser(RUST_LANGUAGE)

    def extract(self, text: str) -> AnchorExtraction:
        return extract_anchors(text, self.collect(text))

    def collect(self, text: str) -> List[Declaration]:
        source = text.encode("utf-8")
        tree = self._parser.parse(source)
        if tree.root_node.has_error:
            raise ParseFailure("source contains syntax errors")
        declarations: List[Declaration] = []
        self._walk(tree.root_node, source, text, declarations)
        return declarations

    def _walk(self, container: Node, source: bytes, text: str, out: List[Declaration]) -> None:
        for node in container.named_children:
            kind = node.type
            if kind in ("function_item", "function_signature_item"):
                out.append(self._function(node, source, text))
            elif kind == "struct_item":
                out.append(self._struct(node, source, text))
            elif kind == "enum_item":
                out.append(self._enum(node, source, text))
            elif kind in _CONTAINERS:
                body = node.child_by_field_name("body")
                if body is not None:
                    self._walk(body, source, text, out)

    def _function(self, node: Node, source: bytes, text: str) -> Declaration:
        returns = node.child_by_field_name("return_type")
        return Declaration(
            kind="fn",
            name=_node_text(node.child_by_field_name("name"), source),
            visibility=_visibility(node, source),
            start_hint=_keyword_offset(node, "fn", text),
            schema=AnchorSchema(returns=_collapse(_node_text(returns, source)) if returns else "()"),
        )

    def _struct(self, node: Node, source: bytes, text: str) -> Declaration:
        fields: List[FieldSchema] = []
        body = node.child_by_field_name("body")
        if body is not None and body.type == "field_declaration_list":
            for child in body.named_children:
                if child.type != "field_declaration":
                    continue
                fields.append(
                    FieldSchema(
                        name=_node_text(child.child_by_field_name("name"), source),
                        type=_collapse(_node_text(child.child_by_field_name("type"), source)),
                        public=_visibility(child, source) == "pub",
                    )
                )
        elif body is not None and body.type == "ordered_field_declaration_list":
            public = False
            for child in body.named_children:
                if child.type == "visibility_modifier":
                    public = _collapse(_node_text(child, source)) == "pub"
                    continue
                if child.type == "attribute_item":
                    continue
                fields.append(
                    FieldSchema(name=str(len(fields)), type=_collapse(_node_text(child, source)), public=public)
                )
                public = False
        return Declaration(
            kind="struct",
            name=_node_text(node.child_by_field_name("name"), source),
            visibility=_visibility(node, source),
            start_hint=_keyword_offset(node, "struct", text),
            schema=AnchorSchema(fields=fields),
        )

    def _enum(self, node: Node, source: bytes, text: str) -> Declaration:
        variants: List[str] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for child in body.named_children:
                if child.type == "enum_variant":
                    variants.append(_node_text(child.child_by_field_name("name"), source))
        return Declaration(
            kind="enum",
            name=_node_text(node.child_by_field_name("name"), source),
            visibility=_visibility(node, source),
            start_hint=_keyword_offset(node, "enum", text),
            schema=AnchorSchema(variants=variants),
        )


def _node_text(node: Optional[Node], source: bytes) -> str:
    if node is None:
        return ""
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _visibility(node: Node, source: bytes) -> str:
    for child in node.children:
        if child.type == "visibility_modifier":
            return _collapse(_node_text(child, source))
    return "priv"


def _keyword_offset(node: Node, keyword: str, text: str) -> Optional[int]:
    for child in node.children:
        if child.type == keyword:
            row, column = child.start_point
            return offset_from_line_col(text, row + 1, column)
    return None


__all__ = [
    "AnchorExtraction",
    "Declaration",
    "ParseFailure",
    "RustAnchorExtractor",
    "build_anchor",
    "extract_anchors",
    "locate_declaration",
]
