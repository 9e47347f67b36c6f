"""Structural parser for hand-edited ``typePayload`` declarations.

Consumes the line-token stream produced by :mod:`modscaffold.parser.lexer`
and builds an ordered, recursive field tree. Declaration text is edited by
people between generation phases, so nothing here raises: every problem is
recorded on the returned :class:`ParseOutcome` and the payload degrades to
:data:`EMPTY_PAYLOAD` when the block itself is unusable.
"""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Mapping, Optional, Sequence

from .lexer import LineToken, TokenKind, locate_block, tokenize
from .models import EMPTY_PAYLOAD, ParsedField, ParsedTypePayload, ParseOutcome


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# ``=`` that is not part of ``=>``, ``==`` or ``<=``/``>=``.
_DEFAULT_SPLIT = re.compile(r"^(?P<type>.*?[^=<>!])\s*=(?![=>])\s*(?P<default>.+)$")
_UNDEFINED_BRANCH = re.compile(r"\s*\|\s*undefined\b|\bundefined\s*\|\s*")


# ---------------------------------------------------------------------------
# Field-level helpers
# ---------------------------------------------------------------------------

def _split_type_and_default(remainder: str) -> tuple[str, Optional[str]]:
    """Split ``type[;] [= default]`` into the type token and default text."""
    text = remainder.strip().rstrip(";,").strip()
    match = _DEFAULT_SPLIT.match(text)
    if match:
        return match.group("type").strip(), match.group("default").strip().rstrip(";").strip()
    return text, None


def _strip_undefined(declared_type: str) -> tuple[str, bool]:
    """Remove a ``| undefined`` branch and report whether one was present."""
    if not re.search(r"\bundefined\b", declared_type) or "|" not in declared_type:
        return declared_type, False
    cleaned = _UNDEFINED_BRANCH.sub("", declared_type).strip()
    return cleaned, True


def _nested_type(suffix: str) -> tuple[str, bool]:
    """Declared type of a nested object from its closing suffix, e.g. ``[]`` or ``| null``."""
    if suffix.startswith("["):
        return _strip_undefined(f"object{suffix}")
    if suffix.startswith("|"):
        return _strip_undefined(f"object {suffix}")
    return "object", False


def parse_field_token(token: LineToken) -> ParsedField:
    """Build a scalar :class:`ParsedField` from a ``FIELD`` token."""
    declared_type, default_value = _split_type_and_default(token.remainder)
    declared_type, unions_undefined = _strip_undefined(declared_type)
    return ParsedField(
        name=token.name,
        declared_type=declared_type,
        optional=token.optional_marker or unions_undefined or default_value is not None,
        default_value=default_value,
    )


# ---------------------------------------------------------------------------
# Recursive descent over the token stream
# ---------------------------------------------------------------------------

class _TokenParser:
    """Recursive-descent parser over a flat list of line tokens."""

    def __init__(self, tokens: Sequence[LineToken]) -> None:
        self.tokens = list(tokens)
        self.position = 0
        self.anomalies: list[str] = []
        self.closing_suffix = ""

    def parse_fields(self, depth: int = 0) -> list[ParsedField]:
        fields: list[ParsedField] = []
        index_by_name: dict[str, int] = {}

        while self.position < len(self.tokens):
            token = self.tokens[self.position]
            self.position += 1

            if token.kind is TokenKind.CLOSE:
                if depth > 0:
                    self.closing_suffix = token.remainder
                    return fields
                self.anomalies.append(f"line {token.line}: unexpected closing brace")
                continue

            if token.kind is TokenKind.OPEN:
                children = self.parse_fields(depth + 1)
                declared_type, unions_undefined = _nested_type(self.closing_suffix)
                self.closing_suffix = ""
                field = ParsedField(
                    name=token.name,
                    declared_type=declared_type,
                    optional=token.optional_marker or unions_undefined,
                    nested=True,
                    nested_fields=children,
                )
            elif token.kind is TokenKind.FIELD:
                field = parse_field_token(token)
            else:
                self.anomalies.append(f"line {token.line}: unrecognised declaration {token.text!r}")
                continue

            if field.name in index_by_name:
                # Last occurrence wins, keeping the first position.
                self.anomalies.append(
                    f"line {token.line}: duplicate field {field.name!r}, later declaration kept"
                )
                fields[index_by_name[field.name]] = field
            else:
                index_by_name[field.name] = len(fields)
                fields.append(field)

        if depth > 0:
            self.anomalies.append("nested object not closed before end of declaration")
        return fields


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse(source: str) -> ParseOutcome:
    """Parse one type-definition source into a :class:`ParseOutcome`.

    Pure function of *source*; field order equals source line order at every
    nesting level.
    """
    block = locate_block(source or "")
    if block.body is None:
        return ParseOutcome(payload=EMPTY_PAYLOAD, anomalies=[block.anomaly], aborted=True)

    parser = _TokenParser(tokenize(block.body))
    fields = parser.parse_fields()
    payload = ParsedTypePayload.from_fields(fields) if fields else EMPTY_PAYLOAD
    return ParseOutcome(payload=payload, anomalies=parser.anomalies)


def parse_type_payload(source: str) -> ParsedTypePayload:
    """Convenience wrapper returning only the payload."""
    return parse(source).payload


async def parse_type_file(path: str | Path) -> ParseOutcome:
    """Read and parse a type-definition file.

    A missing or unreadable file degrades to the empty payload with an
    anomaly note rather than an error.
    """
    file_path = Path(path)
    try:
        source = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return ParseOutcome(
            payload=EMPTY_PAYLOAD,
            anomalies=[f"could not read {file_path}: {exc}"],
            aborted=True,
        )
    return parse(source)


async def parse_module_types(
    type_files: Mapping[str, Path],
) -> dict[str, ParseOutcome]:
    """Parse the type file of every operation.

    Args:
        type_files: Operation name -> type file path, in operation order.

    Returns:
        Operation name -> outcome, in the same order as *type_files*.
    """
    operations = list(type_files)
    outcomes = await asyncio.gather(*(parse_type_file(type_files[op]) for op in operations))
    return dict(zip(operations, outcomes))
