"""Comment- and string-aware lexical scanning over source text.

The scanner is a small tagged-state machine. :func:`lex_states` is a pure
generator yielding the lexical state of every character from a start index,
which makes brace matching a matter of counting delimiters that are seen in
``LexState.CODE``. Each supported language contributes one :class:`LexRules`
table; only Rust is wired up today.

All offsets are ``str`` indices. Every loop advances its cursor on each step
and ends either with a result or with an :class:`AnchorScanError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple


class AnchorScanError(RuntimeError):
    """Base error for declarations that cannot be bounded."""


class NoBodyError(AnchorScanError):
    """The declaration ends in ``;`` (or EOF) before any body opens."""


class UnbalancedBlockError(AnchorScanError):
    """A body opened but its closing delimiter never appeared."""


class DeclarationNotFoundError(AnchorScanError):
    """No ``<keyword> <name>`` token pair exists in code context."""


class LexState(Enum):
    CODE = "code"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING = "string"
    RAW_STRING = "raw_string"
    CHAR = "char"


@dataclass(frozen=True)
class LexRules:
    """Delimiters for one language's comments and literals."""

    line_comment: str = "//"
    block_open: str = "/*"
    block_close: str = "*/"
    nested_block_comments: bool = True
    string_quote: str = '"'
    escape: str = "\\"
    raw_prefix: Optional[str] = "r"
    raw_weight: str = "#"
    raw_prefix_modifiers: str = "bc"
    char_quote: Optional[str] = "'"
    block_open_char: str = "{"
    block_close_char: str = "}"


RUST_RULES = LexRules()


@dataclass(frozen=True)
class BodySpan:
    """Bounds of a declaration: ``text[start:end]`` is the verbatim slice.

    ``body_start`` is the index of the opening brace, or ``None`` for
    declarations terminated by ``;`` (unit and tuple structs).
    """

    start: int
    body_start: Optional[int]
    end: int


def is_ident_start(char: str) -> bool:
    return char == "_" or char.isalpha()


def is_ident_continue(char: str) -> bool:
    return char == "_" or char.isalnum()


def _raw_string_open(text: str, index: int, rules: LexRules) -> Optional[Tuple[int, int]]:
    """Return ``(width, weight)`` if a raw string literal opens at ``index``."""
    prefix = rules.raw_prefix
    if not prefix or not text.startswith(prefix, index):
        return None
    if index > 0 and is_ident_continue(text[index - 1]):
        # byte and C string modifiers may precede the prefix: br#"..."#, cr#"..."#
        modifier_ok = (
            text[index - 1] in rules.raw_prefix_modifiers
            and (index < 2 or not is_ident_continue(text[index - 2]))
        )
        if not modifier_ok:
            return None
    cursor = index + len(prefix)
    weight = 0
    while cursor < len(text) and text[cursor] == rules.raw_weight:
        weight += 1
        cursor += 1
    if cursor < len(text) and text[cursor] == rules.string_quote:
        return cursor + 1 - index, weight
    return None


def _is_char_literal(text: str, index: int) -> bool:
    # 'a' and '\n' are literals; 'a (no closing quote two ahead) is a lifetime or label
    nxt = text[index + 1] if index + 1 < len(text) else ""
    if nxt == "\\":
        return True
    return index + 2 < len(text) and text[index + 2] == "'" and nxt not in ("'", "\n")


def lex_states(text: str, start: int = 0, rules: LexRules = RUST_RULES) -> Iterator[Tuple[int, LexState]]:
    """Yield ``(index, state)`` for every character from ``start`` onward.

    ``start`` is assumed to lie in code context. Opening and closing
    delimiters carry the state of the construct they belong to.
    """
    length = len(text)
    index = start
    state = LexState.CODE
    depth = 0
    weight = 0

    while index < length:
        char = text[index]

        if state is LexState.CODE:
            if rules.line_comment and text.startswith(rules.line_comment, index):
                state = LexState.LINE_COMMENT
                width = len(rules.line_comment)
            elif rules.block_open and text.startswith(rules.block_open, index):
                state = LexState.BLOCK_COMMENT
                depth = 1
                width = len(rules.block_open)
            elif (raw := _raw_string_open(text, index, rules)) is not None:
                state = LexState.RAW_STRING
                width, weight = raw
            elif char == rules.string_quote:
                state = LexState.STRING
                width = 1
            elif rules.char_quote and char == rules.char_quote and _is_char_literal(text, index):
                state = LexState.CHAR
                width = 1
            else:
                yield index, LexState.CODE
                index += 1
                continue
            for offset in range(width):
                yield index + offset, state
            index += width
            continue

        if state is LexState.LINE_COMMENT:
            yield index, state
            index += 1
            if char == "\n":
                state = LexState.CODE
            continue

        if state is LexState.BLOCK_COMMENT:
            if rules.nested_block_comments and text.startswith(rules.block_open, index):
                depth += 1
                width = len(rules.block_open)
            elif text.startswith(rules.block_close, index):
                depth -= 1
                width = len(rules.block_close)
            else:
                width = 1
            for offset in range(min(width, length - index)):
                yield index + offset, LexState.BLOCK_COMMENT
            index += width
            if depth == 0:
                state = LexState.CODE
            continue

        if state is LexState.STRING or state is LexState.CHAR:
            closing = rules.string_quote if state is LexState.STRING else rules.char_quote
            if char == rules.escape:
                width = 2
            else:
                width = 1
            for offset in range(min(width, length - index)):
                yield index + offset, state
            index += width
            if char == closing:
                state = LexState.CODE
            elif state is LexState.CHAR and char == "\n":
                # malformed literal; resume code scanning on the next line
                state = LexState.CODE
            continue

        # RAW_STRING
        terminator = rules.string_quote + rules.raw_weight * weight
        if text.startswith(terminator, index):
            for offset in range(len(terminator)):
                yield index + offset, state
            index += len(terminator)
            state = LexState.CODE
            continue
        yield index, state
        index += 1


def iter_code(text: str, start: int = 0, rules: LexRules = RUST_RULES) -> Iterator[int]:
    """Indices of characters that are in code context."""
    for index, state in lex_states(text, start, rules):
        if state is LexState.CODE:
            yield index


def skip_trivia(text: str, index: int, rules: LexRules = RUST_RULES) -> int:
    """Advance past whitespace and comments; returns the next significant index."""
    for position, state in lex_states(text, index, rules):
        if state is LexState.CODE and not text[position].isspace():
            return position
        if state not in (LexState.CODE, LexState.LINE_COMMENT, LexState.BLOCK_COMMENT):
            return position
    return len(text)


def parse_ident(text: str, index: int) -> Tuple[Optional[str], int]:
    """Read an identifier at ``index``; returns ``(None, index)`` when there is none."""
    if index >= len(text) or not is_ident_start(text[index]):
        return None, index
    end = index + 1
    while end < len(text) and is_ident_continue(text[end]):
        end += 1
    return text[index:end], end


def is_token_at(text: str, index: int, token: str) -> bool:
    """True when ``token`` starts at ``index`` on identifier boundaries."""
    if not text.startswith(token, index):
        return False
    if index > 0 and is_ident_continue(text[index - 1]):
        return False
    end = index + len(token)
    return end >= len(text) or not is_ident_continue(text[end])


def find_block_end(text: str, open_index: int, rules: LexRules = RUST_RULES) -> int:
    """Return the index just past the delimiter matching ``text[open_index]``."""
    if text[open_index : open_index + 1] != rules.block_open_char:
        raise ValueError(f"no {rules.block_open_char!r} at offset {open_index}")
    depth = 0
    for index in iter_code(text, open_index, rules):
        char = text[index]
        if char == rules.block_open_char:
            depth += 1
        elif char == rules.block_close_char:
            depth -= 1
            if depth == 0:
                return index + 1
    raise UnbalancedBlockError(f"unbalanced block opened at offset {open_index}")


def find_body_bounds(
    text: str, start: int, allow_unit: bool = False, rules: LexRules = RUST_RULES
) -> BodySpan:
    """Bound the declaration that begins at ``start`` (its keyword).

    Scans forward in code context for the first ``{`` or ``;`` outside of
    parentheses, brackets and generic angle brackets. A ``;`` ends the
    declaration only when ``allow_unit`` is set; otherwise the declaration
    has no body.
    """
    nesting = 0
    angles = 0
    for index in iter_code(text, start, rules):
        char = text[index]
        if char in "([":
            nesting += 1
        elif char in ")]":
            nesting = max(0, nesting - 1)
        elif nesting:
            continue
        elif char == "<":
            angles += 1
        elif char == ">":
            # -> and => are not closing brackets
            if index > start and text[index - 1] in "-=":
                continue
            angles = max(0, angles - 1)
        elif angles:
            continue
        elif char == rules.block_open_char:
            return BodySpan(start=start, body_start=index, end=find_block_end(text, index, rules))
        elif char == ";":
            if allow_unit:
                return BodySpan(start=start, body_start=None, end=index + 1)
            raise NoBodyError(f"signature-only declaration at offset {start}")
    raise NoBodyError(f"no body found after offset {start}")


def find_declaration(
    text: str,
    keyword: str,
    name: str,
    allow_unit: bool = False,
    rules: LexRules = RUST_RULES,
) -> BodySpan:
    """Locate ``<keyword> <name>`` in code context and bound it.

    The first match in file order wins.
    """
    for index in iter_code(text, 0, rules):
        if text[index] != keyword[0] or not is_token_at(text, index, keyword):
            continue
        ident, _ = parse_ident(text, skip_trivia(text, index + len(keyword), rules))
        if ident == name:
            return find_body_bounds(text, index, allow_unit, rules)
    raise DeclarationNotFoundError(f"cannot find '{keyword} {name}'")


def offset_from_line_col(text: str, line: int, byte_column: int) -> int:
    """Convert a 1-based line and a UTF-8 byte column into a ``str`` index.

    Positions past the end of the text clamp to ``len(text)``.
    """
    offset = 0
    current = 1
    while current < line:
        newline = text.find("\n", offset)
        if newline == -1:
            return len(text)
        offset = newline + 1
        current += 1
    line_end = text.find("\n", offset)
    line_text = text[offset:] if line_end == -1 else text[offset : line_end + 1]
    prefix = line_text.encode("utf-8")[:byte_column].decode("utf-8", errors="ignore")
    return offset + len(prefix)


def line_of(text: str, offset: int) -> int:
    """1-based line number: newlines strictly before ``offset``, plus one."""
    return text.count("\n", 0, offset) + 1


__all__ = [
    "AnchorScanError",
    "BodySpan",
    "DeclarationNotFoundError",
    "LexRules",
    "LexState",
    "NoBodyError",
    "RUST_RULES",
    "UnbalancedBlockError",
    "find_block_end",
    "find_body_bounds",
    "find_declaration",
    "is_token_at",
    "iter_code",
    "lex_states",
    "line_of",
    "offset_from_line_col",
    "parse_ident",
    "skip_trivia",
]
