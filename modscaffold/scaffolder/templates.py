"""Jinja2 template rendering for generated module sources.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``modscaffold/scaffolder/templates/`` directory and renders them with
module-specific context data.  Besides the case-conversion filters, the
environment exposes filters that turn classified field rules into ``zod``
schema expressions and parsed fields into destructuring patterns.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from modscaffold.parser.models import FieldRule, ParsedField, RuleKind, ValidationRule

from .naming import (
    to_camel_case,
    to_constant_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
)


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

EMPTY_FIELDS_PLACEHOLDER = "// No fields defined in typePayload"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for module scaffolding.

    The renderer discovers ``.j2`` template files under a configurable
    template directory.  Templates are rendered with a context dictionary that
    typically contains the module naming, the operation and its classified
    payload.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["pascal_case"] = to_pascal_case
        self.env.filters["snake_case"] = to_snake_case
        self.env.filters["camel_case"] = to_camel_case
        self.env.filters["kebab_case"] = to_kebab_case
        self.env.filters["constant_case"] = to_constant_case
        self.env.filters["zod"] = rule_to_zod
        self.env.filters["destructure"] = field_destructuring
        self.env.filters["sample"] = sample_value
        self.env.filters["object_entry"] = object_entry
        self.env.globals["EMPTY_FIELDS_PLACEHOLDER"] = EMPTY_FIELDS_PLACEHOLDER

    # -- Single template rendering -----------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"types/create.ts.j2"``).
            context: Dictionary of variables available inside the template.

        Returns:
            The rendered template content as a string.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context."""
        template = self.env.from_string(template_string)
        return template.render(**context)

    # -- Utility -----------------------------------------------------------

    def has_template(self, template_path: str) -> bool:
        return (self.template_dir / template_path).is_file()

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of all ``.j2`` template paths under *prefix*.

        Paths are relative to the template root directory.
        """
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix()
            for p in search_dir.rglob("*.j2")
        )


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _number(value: float) -> str:
    """Render ``1000000000.0`` as ``1000000000`` and keep real fractions."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def rule_to_zod(rule: ValidationRule) -> str:
    """Translate a classified rule into a ``zod`` schema expression."""
    kind = rule.kind
    if kind is RuleKind.EMAIL:
        expr = "z.string().email()"
    elif kind is RuleKind.URL:
        expr = "z.string().url()"
    elif kind in (RuleKind.STRING, RuleKind.IDENTIFIER):
        expr = "z.string()"
    elif kind is RuleKind.INTEGER:
        expr = "z.number().int()"
    elif kind is RuleKind.NUMBER:
        expr = "z.number()"
    elif kind is RuleKind.BOOLEAN:
        expr = "z.boolean()"
    elif kind is RuleKind.ARRAY:
        inner = rule_to_zod(rule.items) if rule.items is not None else "z.any()"
        expr = f"z.array({inner})"
    elif kind is RuleKind.OBJECT:
        props = ", ".join(
            f"{child.name}: {rule_to_zod(child.rule)}" for child in rule.properties or []
        )
        expr = f"z.object({{ {props} }})" if props else "z.object({})"
    else:
        expr = "z.any()"

    if rule.min_length is not None:
        expr += f".min({rule.min_length})"
    if rule.max_length is not None:
        expr += f".max({rule.max_length})"
    if rule.minimum is not None:
        expr += f".min({_number(rule.minimum)})"
    if rule.maximum is not None:
        expr += f".max({_number(rule.maximum)})"
    if rule.max_items is not None:
        expr += f".max({rule.max_items})"
    if rule.optional:
        expr += ".optional()"
    return expr


def field_destructuring(fields: list[ParsedField] | list[FieldRule], indent: str = "  ") -> str:
    """Render a destructuring pattern body for *fields*, one per line.

    Defaults are kept (``name = default``), nested objects list their
    sub-field names (``name: { a, b }``).
    """
    parsed = [item.field if isinstance(item, FieldRule) else item for item in fields]
    if not parsed:
        return f"{indent}{EMPTY_FIELDS_PLACEHOLDER}"

    lines = []
    for field in parsed:
        if field.default_value is not None:
            lines.append(f"{indent}{field.name} = {field.default_value},")
        elif field.is_plain_object and field.nested_fields:
            inner = ", ".join(child.name for child in field.nested_fields)
            lines.append(f"{indent}{field.name}: {{ {inner} }},")
        else:
            lines.append(f"{indent}{field.name},")
    return "\n".join(lines)


def object_entry(item: ParsedField | FieldRule) -> str:
    """Object-literal entry for a destructured field (``name`` or ``name: { a, b }``)."""
    field = item.field if isinstance(item, FieldRule) else item
    if field.is_plain_object and field.nested_fields and field.default_value is None:
        inner = ", ".join(child.name for child in field.nested_fields)
        return f"{field.name}: {{ {inner} }}"
    return field.name


def sample_value(rule: ValidationRule) -> str:
    """A TypeScript literal that satisfies *rule*, used in scaffold tests."""
    kind = rule.kind
    if kind is RuleKind.EMAIL:
        return "'user@example.com'"
    if kind is RuleKind.URL:
        return "'https://example.com'"
    if kind is RuleKind.IDENTIFIER:
        return "'id-0001'"
    if kind is RuleKind.STRING:
        length = max(rule.min_length or 0, 6)
        if rule.max_length is not None:
            length = min(length, rule.max_length)
        return "'" + ("sample" + "x" * length)[:length] + "'"
    if kind in (RuleKind.INTEGER, RuleKind.NUMBER):
        value = 1.0
        if rule.minimum is not None:
            value = max(value, rule.minimum)
        if rule.maximum is not None:
            value = min(value, rule.maximum)
        return _number(value)
    if kind is RuleKind.BOOLEAN:
        return "true"
    if kind is RuleKind.ARRAY:
        return "[]"
    if kind is RuleKind.OBJECT:
        props = ", ".join(
            f"{child.name}: {sample_value(child.rule)}" for child in rule.properties or []
        )
        return f"{{ {props} }}" if props else "{}"
    return "null"
