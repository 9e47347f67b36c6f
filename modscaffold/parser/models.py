"""Pydantic v2 models for the payload-declaration parser.

Defines the field model recovered from a ``typePayload`` declaration, the
validation rules inferred for each field, and the result type returned by
the parser.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


PAGINATION_FIELDS: frozenset[str] = frozenset({"page", "limit", "sort_by", "sort_order"})


# ---------------------------------------------------------------------------
# Field model
# ---------------------------------------------------------------------------

class ParsedField(BaseModel):
    """A single named, typed entry within a payload declaration."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Field name as declared")
    declared_type: str = Field(..., description="Opaque type token, e.g. 'string[]'")
    optional: bool = Field(default=False, description="Marker, '| undefined' or default present")
    default_value: Optional[str] = Field(default=None, description="Default value source text")
    nested: bool = Field(default=False, description="Whether this field is an inline object")
    nested_fields: Optional[list[ParsedField]] = Field(
        default=None, description="Ordered sub-fields, only when nested"
    )

    @property
    def is_array(self) -> bool:
        return self.declared_type.endswith("[]")

    @property
    def is_plain_object(self) -> bool:
        """Nested object that is neither an array nor unioned with another type."""
        return self.nested and self.declared_type == "object"


class ParsedTypePayload(BaseModel):
    """The structured model of one operation's payload declaration."""
    model_config = ConfigDict(frozen=True)

    fields: list[ParsedField] = Field(default_factory=list, description="Top-level fields in order")
    has_id: bool = Field(default=False, description="A top-level field is named exactly 'id'")
    has_pagination: bool = Field(default=False, description="A pagination field is declared")

    @property
    def is_empty(self) -> bool:
        return len(self.fields) == 0

    @property
    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]

    @classmethod
    def from_fields(cls, fields: list[ParsedField]) -> "ParsedTypePayload":
        """Build a payload, deriving the role flags from the top-level names."""
        names = {field.name for field in fields}
        return cls(
            fields=fields,
            has_id="id" in names,
            has_pagination=bool(names & PAGINATION_FIELDS),
        )


EMPTY_PAYLOAD = ParsedTypePayload()


class ParseOutcome(BaseModel):
    """Result of parsing one declaration.

    The parser never raises: problems are reported as ``anomalies`` and the
    payload degrades to :data:`EMPTY_PAYLOAD` when the declaration block
    itself cannot be located or bounded.
    """
    model_config = ConfigDict(frozen=True)

    payload: ParsedTypePayload = Field(default=EMPTY_PAYLOAD)
    anomalies: list[str] = Field(default_factory=list)
    aborted: bool = Field(default=False, description="The block could not be bounded")

    @property
    def ok(self) -> bool:
        return not self.aborted


# ---------------------------------------------------------------------------
# Validation rules
# ---------------------------------------------------------------------------

class RuleKind(str, Enum):
    """Structural shape of an inferred validation rule."""
    STRING = "string"
    EMAIL = "email"
    URL = "url"
    IDENTIFIER = "identifier"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    ANY = "any"


class ValidationRule(BaseModel):
    """Bounded structural validation rule for one field."""
    model_config = ConfigDict(frozen=True)

    kind: RuleKind
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    max_items: Optional[int] = None
    items: Optional[ValidationRule] = None
    properties: Optional[list[FieldRule]] = None
    optional: bool = False


class FieldRule(BaseModel):
    """A field paired with the rule the classifier chose for it."""
    model_config = ConfigDict(frozen=True)

    field: ParsedField
    rule: ValidationRule
    matched_by: str = Field(default="type", description="Name-table label or 'type'")

    @property
    def name(self) -> str:
        return self.field.name


class ClassifiedPayload(BaseModel):
    """A payload together with its resolved identifier and per-field rules."""
    model_config = ConfigDict(frozen=True)

    payload: ParsedTypePayload
    id_field: Optional[str] = None
    rules: list[FieldRule] = Field(default_factory=list)


ParsedField.model_rebuild()
ValidationRule.model_rebuild()
FieldRule.model_rebuild()
