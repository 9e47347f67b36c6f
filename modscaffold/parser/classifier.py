"""Field classification: identifier resolution and validation-rule inference.

Rules are chosen from an explicit, ordered name table (first match wins)
and fall back to the declared type when no name entry matches. The order of
:data:`NAME_RULES` is part of the contract: ``emailId`` must resolve to the
email rule, not the identifier rule.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .models import (
    ClassifiedPayload,
    FieldRule,
    ParsedField,
    ParsedTypePayload,
    RuleKind,
    ValidationRule,
)


class _NamingLike(Protocol):
    variable: str


# ---------------------------------------------------------------------------
# Identifier resolution
# ---------------------------------------------------------------------------

PLACEHOLDER_ID_FIELD = "id"


def resolve_id_field(payload: ParsedTypePayload, module_variable: str) -> Optional[str]:
    """Return the canonical identifier field name, or ``None``.

    Priority: ``{module_variable}Id``, then ``id``.
    """
    names = set(payload.field_names)
    module_id = f"{module_variable}Id"
    if module_id in names:
        return module_id
    if "id" in names:
        return "id"
    return None


# ---------------------------------------------------------------------------
# Ordered name table
# ---------------------------------------------------------------------------

def _contains(*needles: str) -> Callable[[str, ParsedField], bool]:
    def predicate(name: str, _field: ParsedField) -> bool:
        return any(needle in name for needle in needles)
    return predicate


def _string_identifier(name: str, field: ParsedField) -> bool:
    return name.endswith("id") and field.declared_type == "string"


@dataclass(frozen=True)
class NameRule:
    """One ordered entry of the name table."""

    label: str
    predicate: Callable[[str, ParsedField], bool]
    rule: ValidationRule

    def matches(self, field: ParsedField) -> bool:
        return self.predicate(field.name.lower(), field)


NAME_RULES: tuple[NameRule, ...] = (
    NameRule("email", _contains("email"), ValidationRule(kind=RuleKind.EMAIL, max_length=255)),
    NameRule("url", _contains("url", "link"), ValidationRule(kind=RuleKind.URL, max_length=2048)),
    NameRule(
        "phone",
        _contains("phone", "mobile"),
        ValidationRule(kind=RuleKind.STRING, min_length=10, max_length=20),
    ),
    NameRule(
        "identifier",
        _string_identifier,
        ValidationRule(kind=RuleKind.IDENTIFIER, min_length=1, max_length=64),
    ),
    NameRule(
        "name",
        _contains("name", "title"),
        ValidationRule(kind=RuleKind.STRING, min_length=1, max_length=255),
    ),
    NameRule(
        "text",
        _contains("description", "content", "text"),
        ValidationRule(kind=RuleKind.STRING, max_length=5000),
    ),
    NameRule(
        "code",
        _contains("code", "slug", "key"),
        ValidationRule(kind=RuleKind.STRING, min_length=1, max_length=50),
    ),
    NameRule(
        "password",
        _contains("password"),
        ValidationRule(kind=RuleKind.STRING, min_length=8, max_length=128),
    ),
    NameRule("age", _contains("age"), ValidationRule(kind=RuleKind.INTEGER, minimum=0, maximum=150)),
    NameRule(
        "money",
        _contains("price", "amount", "cost"),
        ValidationRule(kind=RuleKind.NUMBER, minimum=0, maximum=1_000_000_000),
    ),
    NameRule(
        "quantity",
        _contains("quantity", "count"),
        ValidationRule(kind=RuleKind.INTEGER, minimum=0, maximum=1_000_000),
    ),
)


# ---------------------------------------------------------------------------
# Type fallback
# ---------------------------------------------------------------------------

_ARRAY_SUFFIX = re.compile(r"^(?P<item>.+)\[\]$")
_ARRAY_GENERIC = re.compile(r"^(?:Readonly)?Array<(?P<item>.+)>$")

STRING_RULE = ValidationRule(kind=RuleKind.STRING, max_length=255)
NUMBER_RULE = ValidationRule(kind=RuleKind.NUMBER, minimum=-1_000_000_000, maximum=1_000_000_000)
BOOLEAN_RULE = ValidationRule(kind=RuleKind.BOOLEAN)
ANY_RULE = ValidationRule(kind=RuleKind.ANY)
MAX_ARRAY_ITEMS = 100


def _array_item_type(declared_type: str) -> Optional[str]:
    text = declared_type.strip()
    for pattern in (_ARRAY_SUFFIX, _ARRAY_GENERIC):
        match = pattern.match(text)
        if match:
            item = match.group("item").strip()
            if item.startswith("(") and item.endswith(")"):
                item = item[1:-1].strip()
            return item
    return None


def rule_for_type(declared_type: str) -> ValidationRule:
    """Fallback rule derived from the declared type token alone."""
    text = declared_type.strip()
    if text == "string":
        return STRING_RULE
    if text == "number":
        return NUMBER_RULE
    if text == "boolean":
        return BOOLEAN_RULE
    item_type = _array_item_type(text)
    if item_type is not None:
        return ValidationRule(
            kind=RuleKind.ARRAY, max_items=MAX_ARRAY_ITEMS, items=rule_for_type(item_type)
        )
    if "|" in text:
        return STRING_RULE
    return ANY_RULE


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_field(field: ParsedField) -> FieldRule:
    """Pick the rule for one field and wrap it with the field's optionality."""
    if field.nested:
        children = [classify_field(child) for child in field.nested_fields or []]
        rule = ValidationRule(kind=RuleKind.OBJECT, properties=children)
        if field.is_array:
            rule = ValidationRule(kind=RuleKind.ARRAY, items=rule, max_items=MAX_ARRAY_ITEMS)
        matched_by = "nested"
    else:
        entry = next((entry for entry in NAME_RULES if entry.matches(field)), None)
        if entry is not None:
            rule, matched_by = entry.rule, entry.label
        else:
            rule, matched_by = rule_for_type(field.declared_type), "type"

    if field.optional:
        rule = rule.model_copy(update={"optional": True})
    return FieldRule(field=field, rule=rule, matched_by=matched_by)


def classify(payload: ParsedTypePayload, naming: _NamingLike) -> ClassifiedPayload:
    """Resolve the identifier and attach a validation rule to every field."""
    return ClassifiedPayload(
        payload=payload,
        id_field=resolve_id_field(payload, naming.variable),
        rules=[classify_field(field) for field in payload.fields],
    )
