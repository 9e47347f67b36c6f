"""Read-only inspection of modules that already exist on disk."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from modscaffold.config import Config

from .layout import ARTIFACT_DIRECTORIES, ArtifactKind
from .naming import to_kebab_case


class ModuleDescriptor(BaseModel):
    """What is already present for one module."""
    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    existing_files: frozenset[str] = Field(default_factory=frozenset)
    has_types_dir: bool = False


class ModuleStateInspector:
    """Reports existing modules and their generated type files.

    Never mutates the file system. A missing APIs root or a missing module
    is a normal answer (empty list / ``None``), not an error.
    """

    def __init__(self, config: Config) -> None:
        self.config = config

    @property
    def apis_root(self) -> Path:
        return self.config.apis_root

    def list_modules(self) -> list[str]:
        """Return the sorted directory names under the APIs root."""
        if not self.apis_root.is_dir():
            return []
        return sorted(entry.name for entry in self.apis_root.iterdir() if entry.is_dir())

    def module_path(self, name: str) -> Path:
        return self.apis_root / to_kebab_case(name.strip())

    def describe_module(self, name: str) -> Optional[ModuleDescriptor]:
        """Describe module *name*, or return ``None`` when it does not exist."""
        return self.describe_path(self.module_path(name))

    def describe_path(
        self, path: Path, types_dir: Optional[Path] = None
    ) -> Optional[ModuleDescriptor]:
        """Describe the module rooted at *path*, or return ``None`` when it does not exist.

        *types_dir* defaults to the ``types`` subdirectory of *path*.
        """
        path = Path(path)
        if not path.is_dir():
            return None

        types_dir = types_dir if types_dir is not None else path / ARTIFACT_DIRECTORIES[ArtifactKind.TYPE]
        has_types_dir = types_dir.is_dir()
        existing: frozenset[str] = frozenset()
        if has_types_dir:
            existing = frozenset(entry.name for entry in types_dir.iterdir() if entry.is_file())

        return ModuleDescriptor(
            name=path.name,
            path=path,
            existing_files=existing,
            has_types_dir=has_types_dir,
        )
