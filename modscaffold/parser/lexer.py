"""Line lexer for ``typePayload`` declarations.

Locates the declaration block inside a type-definition source and turns its
body into a flat stream of line tokens. The lexer never raises; it returns
``None`` for the body when the block cannot be located or bounded and lets
the parser decide how to degrade.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ANCHOR_PATTERN = re.compile(r"export\s+type\s+typePayload\s*=")
_OPEN_PATTERN = re.compile(r"^(\w+)(\?)?\s*:\s*\{(.*)$")
_FIELD_PATTERN = re.compile(r"^(\w+)(\?)?\s*:\s*(.+)$")
_CLOSE_PATTERN = re.compile(r"^\}(?P<suffix>.*)$")
_COMMENT_PREFIXES = ("//", "/*", "*")


class TokenKind(str, Enum):
    FIELD = "field"
    OPEN = "open"
    CLOSE = "close"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class LineToken:
    """One meaningful line of a declaration body."""

    kind: TokenKind
    text: str
    line: int
    name: str = ""
    optional_marker: bool = False
    remainder: str = ""


@dataclass(frozen=True)
class BoundedBlock:
    """The declaration body between the anchor's braces."""

    body: Optional[str]
    anomaly: str = ""


# ---------------------------------------------------------------------------
# Block location
# ---------------------------------------------------------------------------

def locate_block(source: str) -> BoundedBlock:
    """Find the ``typePayload`` anchor and return the brace-bounded body.

    Scans from the first ``{`` after the anchor keeping a depth counter until
    it returns to zero. Braces inside quoted strings and comments are ignored.
    """
    anchor = ANCHOR_PATTERN.search(source)
    if anchor is None:
        return BoundedBlock(body=None, anomaly="typePayload declaration not found")

    start = source.find("{", anchor.end())
    if start == -1:
        return BoundedBlock(body=None, anomaly="typePayload declaration has no opening brace")

    depth = 0
    quote: Optional[str] = None
    index = start
    while index < len(source):
        char = source[index]
        if quote is not None:
            if char == quote and source[index - 1] != "\\":
                quote = None
            index += 1
            continue
        pair = source[index:index + 2]
        if pair == "//":
            newline = source.find("\n", index)
            index = len(source) if newline == -1 else newline
            continue
        if pair == "/*":
            close = source.find("*/", index + 2)
            index = len(source) if close == -1 else close + 2
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return BoundedBlock(body=source[start + 1:index])
        index += 1

    return BoundedBlock(body=None, anomaly="unbalanced braces in typePayload declaration")


# ---------------------------------------------------------------------------
# Tokenisation
# ---------------------------------------------------------------------------

def _strip_trailing_comment(line: str) -> str:
    """Drop a ``//`` comment that is not inside a string literal."""
    quote: Optional[str] = None
    for index, char in enumerate(line):
        if quote is not None:
            if char == quote:
                quote = None
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif char == "/" and line[index + 1:index + 2] == "/":
            return line[:index].rstrip()
    return line


def _split_inline(body: str) -> list[str]:
    """Split a one-line object body on ``;`` / ``,`` outside strings and braces."""
    parts: list[str] = []
    depth = 0
    quote: Optional[str] = None
    current: list[str] = []
    previous = ""
    for char in body:
        if quote is not None:
            current.append(char)
            if char == quote:
                quote = None
            previous = char
            continue
        if char in ("'", '"', "`"):
            quote = char
        elif char in "{<([":
            depth += 1
        elif char in "})]" or (char == ">" and previous != "="):
            depth -= 1
        previous = char
        if char in ";," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return [part for part in parts if part]


def _close_suffix(text: str) -> str:
    return text.strip().rstrip(";,").strip()


def _tokenize_line(text: str, line: int) -> list[LineToken]:
    closed = _CLOSE_PATTERN.match(text)
    if closed:
        # Whatever follows the brace (``[]``, ``| null``) types the nested object.
        suffix = _close_suffix(closed.group("suffix"))
        return [LineToken(TokenKind.CLOSE, text, line, remainder=suffix)]

    opened = _OPEN_PATTERN.match(text)
    if opened:
        name, marker, rest = opened.group(1), bool(opened.group(2)), opened.group(3)
        tokens = [LineToken(TokenKind.OPEN, text, line, name=name, optional_marker=marker)]
        rest = rest.strip()
        if not rest:
            return tokens
        close_at = rest.rfind("}")
        inner = rest[:close_at] if close_at != -1 else rest
        for part in _split_inline(inner):
            tokens.extend(_tokenize_line(part, line))
        if close_at != -1:
            suffix = _close_suffix(rest[close_at + 1:])
            tokens.append(LineToken(TokenKind.CLOSE, "}", line, remainder=suffix))
        return tokens

    parts = _split_inline(text)
    if len(parts) > 1:
        # Several fields declared on one line.
        return [token for part in parts for token in _tokenize_line(part, line)]

    field = _FIELD_PATTERN.match(text)
    if field:
        return [
            LineToken(
                TokenKind.FIELD,
                text,
                line,
                name=field.group(1),
                optional_marker=bool(field.group(2)),
                remainder=field.group(3).strip(),
            )
        ]

    return [LineToken(TokenKind.UNKNOWN, text, line)]


def tokenize(body: str) -> list[LineToken]:
    """Turn a declaration body into line tokens, skipping blanks and comments."""
    tokens: list[LineToken] = []
    in_block_comment = False
    for number, raw in enumerate(body.splitlines(), start=1):
        text = raw.strip()
        if in_block_comment:
            if "*/" in text:
                in_block_comment = False
            continue
        if not text:
            continue
        if text.startswith("/*") and "*/" not in text:
            in_block_comment = True
            continue
        if text.startswith(_COMMENT_PREFIXES):
            continue
        text = _strip_trailing_comment(text)
        if text:
            tokens.extend(_tokenize_line(text, number))
    return tokens
