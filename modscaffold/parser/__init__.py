"""modscaffold payload-declaration parser.

Recovers a structured field model from hand-edited ``typePayload``
declarations and infers identifier roles and validation rules from it.

Usage::

    from modscaffold.parser import parse, classify

    outcome = parse(source_text)
    classified = classify(outcome.payload, naming)
"""

from modscaffold.parser.classifier import NAME_RULES, classify, resolve_id_field
from modscaffold.parser.models import (
    EMPTY_PAYLOAD,
    ClassifiedPayload,
    FieldRule,
    ParsedField,
    ParsedTypePayload,
    ParseOutcome,
    RuleKind,
    ValidationRule,
)
from modscaffold.parser.type_parser import parse, parse_module_types, parse_type_file

__all__ = [
    "parse",
    "parse_type_file",
    "parse_module_types",
    "classify",
    "resolve_id_field",
    "NAME_RULES",
    "EMPTY_PAYLOAD",
    "ParsedField",
    "ParsedTypePayload",
    "ParseOutcome",
    "ClassifiedPayload",
    "FieldRule",
    "RuleKind",
    "ValidationRule",
]
