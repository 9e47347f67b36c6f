"""Operation sets and the persisted on-disk layout of a module.

:class:`ModuleLayout` computes every directory and file path for one
module exactly once; the pipeline only ever looks paths up from it.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modscaffold.config import Config

from .naming import ModuleNaming, validate_operation_name


CRUD_OPERATIONS: tuple[str, ...] = ("create", "get", "list", "update", "delete")
TEST_CATEGORIES: tuple[str, ...] = ("validation", "success", "failure")


class OperationKind(str, Enum):
    """Which family of operations a module exposes."""
    CRUD = "crud"
    CUSTOM = "custom"
    SERVICES = "services"


class ArtifactKind(str, Enum):
    """One kind of generated file."""
    TYPE = "type"
    VALIDATOR = "validator"
    HANDLER = "handler"
    REPOSITORY = "repository"
    CONTROLLER = "controller"
    SERVICE = "service"
    ROUTES = "routes"
    TEST = "test"


# Artifact kind -> subdirectory inside the module root.
ARTIFACT_DIRECTORIES: dict[ArtifactKind, str] = {
    ArtifactKind.TYPE: "types",
    ArtifactKind.VALIDATOR: "validators",
    ArtifactKind.HANDLER: "handlers",
    ArtifactKind.REPOSITORY: "repository",
    ArtifactKind.CONTROLLER: "controllers",
    ArtifactKind.SERVICE: "services",
}

# Per-operation code artifacts, in emission order.
CODE_ARTIFACTS: dict[OperationKind, tuple[ArtifactKind, ...]] = {
    OperationKind.CRUD: (
        ArtifactKind.VALIDATOR,
        ArtifactKind.HANDLER,
        ArtifactKind.REPOSITORY,
        ArtifactKind.CONTROLLER,
    ),
    OperationKind.CUSTOM: (
        ArtifactKind.VALIDATOR,
        ArtifactKind.HANDLER,
        ArtifactKind.REPOSITORY,
        ArtifactKind.CONTROLLER,
    ),
    OperationKind.SERVICES: (ArtifactKind.SERVICE,),
}


# ---------------------------------------------------------------------------
# OperationSet
# ---------------------------------------------------------------------------

class OperationSet(BaseModel):
    """The operations to generate: the CRUD five-tuple or a named list."""
    model_config = ConfigDict(frozen=True)

    kind: OperationKind = OperationKind.CRUD
    operations: tuple[str, ...] = Field(default=CRUD_OPERATIONS)

    @field_validator("operations", mode="before")
    @classmethod
    def _clean_operations(cls, value: object) -> object:
        if isinstance(value, (list, tuple)):
            return tuple(validate_operation_name(str(name)) for name in value)
        return value

    @model_validator(mode="after")
    def _check_operations(self) -> "OperationSet":
        if self.kind is OperationKind.CRUD and self.operations != CRUD_OPERATIONS:
            raise ValueError("CRUD operation sets always use create, get, list, update, delete")
        if not self.operations:
            raise ValueError("At least one operation name is required")
        if len(set(self.operations)) != len(self.operations):
            raise ValueError(f"Duplicate operation names in {list(self.operations)}")
        return self

    @classmethod
    def crud(cls) -> "OperationSet":
        return cls(kind=OperationKind.CRUD, operations=CRUD_OPERATIONS)

    @classmethod
    def custom(cls, names: list[str] | tuple[str, ...]) -> "OperationSet":
        return cls(kind=OperationKind.CUSTOM, operations=tuple(names))

    @classmethod
    def services(cls, names: list[str] | tuple[str, ...]) -> "OperationSet":
        return cls(kind=OperationKind.SERVICES, operations=tuple(names))

    @property
    def code_artifacts(self) -> tuple[ArtifactKind, ...]:
        return CODE_ARTIFACTS[self.kind]

    @property
    def has_routes(self) -> bool:
        return self.kind is not OperationKind.SERVICES


# ---------------------------------------------------------------------------
# ModuleLayout
# ---------------------------------------------------------------------------

class ModuleLayout(BaseModel):
    """Every path one module's generation touches, derived once."""
    model_config = ConfigDict(frozen=True)

    naming: ModuleNaming
    operation_set: OperationSet
    module_root: Path
    types_dir: Path
    code_dirs: list[Path] = Field(description="Subdirectories created by the code phase")
    type_files: dict[str, Path]
    artifact_files: dict[ArtifactKind, dict[str, Path]]
    routes_file: Optional[Path] = None
    tests_root: Path
    test_dirs: dict[str, Path]
    test_files: dict[str, dict[str, Path]]

    @property
    def operations(self) -> tuple[str, ...]:
        return self.operation_set.operations

    @classmethod
    def build(cls, config: Config, naming: ModuleNaming, operation_set: OperationSet) -> "ModuleLayout":
        ext = config.extension
        module_root = config.apis_root / naming.directory
        types_dir = module_root / ARTIFACT_DIRECTORIES[ArtifactKind.TYPE]

        def file_name(operation: str) -> str:
            return f"{operation}.{naming.file}.{ext}"

        code_dirs = [
            module_root / ARTIFACT_DIRECTORIES[kind] for kind in operation_set.code_artifacts
        ]
        artifact_files = {
            kind: {
                op: module_root / ARTIFACT_DIRECTORIES[kind] / file_name(op)
                for op in operation_set.operations
            }
            for kind in operation_set.code_artifacts
        }

        tests_root = config.tests_root / naming.directory
        test_dirs = {op: tests_root / op for op in operation_set.operations}
        test_files = {
            op: {category: test_dirs[op] / f"{category}.test.{ext}" for category in TEST_CATEGORIES}
            for op in operation_set.operations
        }

        return cls(
            naming=naming,
            operation_set=operation_set,
            module_root=module_root,
            types_dir=types_dir,
            code_dirs=code_dirs,
            type_files={op: types_dir / file_name(op) for op in operation_set.operations},
            artifact_files=artifact_files,
            routes_file=(
                module_root / f"{naming.file}.routes.{ext}" if operation_set.has_routes else None
            ),
            tests_root=tests_root,
            test_dirs=test_dirs,
            test_files=test_files,
        )
