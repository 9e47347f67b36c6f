"""Emission collaborators: one Jinja2-backed renderer per artifact kind.

Each emitter turns ``(operation, naming, payload, id_field)`` into the text
of one generated file.  Emitters never touch the file system and never
mutate the payload they are given; the pipeline decides where and whether
the result is written.

Template lookup goes from most to least specific::

    <dir>/<operation>.ts.j2     (CRUD operations only)
    <dir>/<kind>.ts.j2          (crud / custom / services)
    <dir>/generic.ts.j2
"""

from __future__ import annotations

from typing import Any, Optional

from modscaffold.parser.classifier import PLACEHOLDER_ID_FIELD, classify
from modscaffold.parser.models import EMPTY_PAYLOAD, PAGINATION_FIELDS, ParsedTypePayload

from .layout import CRUD_OPERATIONS, ArtifactKind, OperationKind, OperationSet
from .naming import ModuleNaming, to_pascal_case
from .templates import TemplateRenderer


TEMPLATE_SUFFIX = ".ts.j2"

HTTP_METHODS: dict[str, str] = {
    "create": "post",
    "get": "get",
    "list": "get",
    "update": "put",
    "delete": "delete",
}

# Route path relative to the module mount point; custom operations use ``/<name>``.
ROUTE_PATHS: dict[str, str] = {
    "create": "/",
    "get": "/:id",
    "list": "/",
    "update": "/:id",
    "delete": "/:id",
}

# Operations whose payload carries the record identifier.
ID_OPERATIONS = frozenset({"get", "update", "delete"})


class TemplateNotFoundError(LookupError):
    """No template exists for an artifact/operation combination."""


def http_method_for(operation: str) -> str:
    return HTTP_METHODS.get(operation, "post")


def route_path_for(operation: str) -> str:
    return ROUTE_PATHS.get(operation, f"/{operation}")


# ---------------------------------------------------------------------------
# TemplateEmitter
# ---------------------------------------------------------------------------


class TemplateEmitter:
    """Renders one artifact kind from templates under *template_dir*.

    Args:
        renderer: Shared template renderer.
        artifact: The artifact kind this emitter produces.
        template_dir: Template subdirectory, e.g. ``"handlers"`` or
            ``"controllers/express"``.
        kind: Operation family, used for template lookup and context.
        framework: Controller/route flavour exposed to templates.
    """

    def __init__(
        self,
        renderer: TemplateRenderer,
        artifact: ArtifactKind,
        template_dir: str,
        *,
        kind: OperationKind = OperationKind.CRUD,
        framework: str = "express",
    ) -> None:
        self.renderer = renderer
        self.artifact = artifact
        self.template_dir = template_dir
        self.kind = kind
        self.framework = framework

    def template_for(self, operation: str, variant: Optional[str] = None) -> str:
        """Return the most specific template path available for *operation*."""
        candidates = []
        if variant:
            candidates.append(f"{self.template_dir}/{variant}{TEMPLATE_SUFFIX}")
        if self.kind is OperationKind.CRUD and operation in CRUD_OPERATIONS:
            candidates.append(f"{self.template_dir}/{operation}{TEMPLATE_SUFFIX}")
        candidates.append(f"{self.template_dir}/{self.kind.value}{TEMPLATE_SUFFIX}")
        candidates.append(f"{self.template_dir}/generic{TEMPLATE_SUFFIX}")

        for candidate in candidates:
            if self.renderer.has_template(candidate):
                return candidate
        raise TemplateNotFoundError(
            f"No {self.artifact.value} template for {operation!r} in {self.template_dir}/"
        )

    def build_context(
        self,
        operation: str,
        naming: ModuleNaming,
        payload: ParsedTypePayload,
        id_field: Optional[str],
    ) -> dict[str, Any]:
        classified = classify(payload, naming)
        resolved_id = id_field or PLACEHOLDER_ID_FIELD
        return {
            "operation": operation,
            "operation_class": to_pascal_case(operation),
            "operation_constant": operation.upper(),
            "kind": self.kind.value,
            "framework": self.framework,
            "naming": naming,
            "payload": payload,
            "rules": classified.rules,
            "body_rules": [r for r in classified.rules if r.name != resolved_id],
            "id_field": resolved_id,
            "id_resolved": id_field is not None,
            "uses_id": operation in ID_OPERATIONS,
            "pagination_fields": sorted(PAGINATION_FIELDS),
            "http_method": http_method_for(operation),
            "route_path": route_path_for(operation),
            "function_name": f"{operation}{naming.class_name}",
        }

    def render(
        self,
        operation: str,
        naming: ModuleNaming,
        payload: ParsedTypePayload = EMPTY_PAYLOAD,
        id_field: Optional[str] = None,
        **extra: Any,
    ) -> str:
        """Render the artifact text for one operation.

        Extra keyword arguments are passed to the template unchanged;
        ``variant`` selects a more specific template when one exists.
        """
        variant = extra.pop("variant", None)
        context = self.build_context(operation, naming, payload, id_field)
        context.update(extra)
        return self.renderer.render(self.template_for(operation, variant), context)


# ---------------------------------------------------------------------------
# Module-level artifacts
# ---------------------------------------------------------------------------


class RoutesEmitter:
    """Renders the module router that mounts every operation's controller."""

    def __init__(self, renderer: TemplateRenderer, framework: str = "express") -> None:
        self.renderer = renderer
        self.framework = framework

    def render_module(self, naming: ModuleNaming, operation_set: OperationSet) -> str:
        routes = [
            {
                "operation": op,
                "method": http_method_for(op) if operation_set.kind is OperationKind.CRUD else "post",
                "path": route_path_for(op) if operation_set.kind is OperationKind.CRUD else f"/{op}",
                "controller": f"{op}{naming.class_name}Controller",
            }
            for op in operation_set.operations
        ]
        return self.renderer.render(
            f"routes/{self.framework}{TEMPLATE_SUFFIX}",
            {"naming": naming, "routes": routes, "kind": operation_set.kind.value},
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class EmitterSet:
    """Every emitter one generation run needs, keyed by artifact kind."""

    def __init__(
        self,
        kind: OperationKind,
        framework: str = "express",
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.kind = kind
        self.framework = framework

        def make(artifact: ArtifactKind, template_dir: str) -> TemplateEmitter:
            return TemplateEmitter(
                self.renderer, artifact, template_dir, kind=kind, framework=framework
            )

        self.types = make(ArtifactKind.TYPE, "types")
        self.tests = make(ArtifactKind.TEST, "tests")
        self.routes = RoutesEmitter(self.renderer, framework)
        self.code: dict[ArtifactKind, TemplateEmitter] = {
            ArtifactKind.VALIDATOR: make(ArtifactKind.VALIDATOR, "validators"),
            ArtifactKind.HANDLER: make(ArtifactKind.HANDLER, "handlers"),
            ArtifactKind.REPOSITORY: make(ArtifactKind.REPOSITORY, "repository"),
            ArtifactKind.CONTROLLER: make(ArtifactKind.CONTROLLER, f"controllers/{framework}"),
            ArtifactKind.SERVICE: make(ArtifactKind.SERVICE, "services"),
        }

    def for_artifact(self, artifact: ArtifactKind) -> TemplateEmitter:
        return self.code[artifact]
