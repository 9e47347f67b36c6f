"""modscaffold configuration.

Centralised, typed configuration for the generation pipeline. Settings use
Pydantic v2 models so they are validated at construction time and can be
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

SupportedFramework = Literal["express", "hono"]

DEFAULT_CONFIG_FILENAME = "modscaffold.config.json"


class Config(BaseModel):
    """Global modscaffold configuration.

    Holds every tuneable parameter and the derived roots used by the
    pipeline. Instances are created once by the CLI entry point (or a test)
    and passed to ``GenerationOrchestrator``.
    """

    root_dir: Path = Field(default=Path("."))
    apis_dir: str = Field(default="src/apis", description="Module root, relative to root_dir")
    tests_dir: str = Field(default="tests", description="Test root, relative to root_dir")
    framework: SupportedFramework = Field(default="express")
    extension: str = Field(default="ts", min_length=1)
    max_parallel_operations: int = Field(
        default=4, ge=1, description="Concurrent per-operation emitters in the code phase"
    )

    # ------------------------------------------------------------------
    # Derived paths (read-only properties)
    # ------------------------------------------------------------------

    @property
    def apis_root(self) -> Path:
        """Directory that holds one subdirectory per generated module."""
        return self.root_dir / self.apis_dir

    @property
    def tests_root(self) -> Path:
        """Directory that holds the mirrored test trees."""
        return self.root_dir / self.tests_dir

    @property
    def config_path(self) -> Path:
        """Default location of the persisted configuration file."""
        return self.root_dir / DEFAULT_CONFIG_FILENAME

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to :attr:`config_path`.

        Returns:
            The path where the file was written.
        """
        target = path or self.config_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            MODSCAFFOLD_ROOT, MODSCAFFOLD_APIS_DIR, MODSCAFFOLD_TESTS_DIR,
            MODSCAFFOLD_FRAMEWORK, MODSCAFFOLD_MAX_PARALLEL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("MODSCAFFOLD_ROOT"):
            kwargs["root_dir"] = Path(os.environ["MODSCAFFOLD_ROOT"])
        if os.environ.get("MODSCAFFOLD_APIS_DIR"):
            kwargs["apis_dir"] = os.environ["MODSCAFFOLD_APIS_DIR"]
        if os.environ.get("MODSCAFFOLD_TESTS_DIR"):
            kwargs["tests_dir"] = os.environ["MODSCAFFOLD_TESTS_DIR"]
        if os.environ.get("MODSCAFFOLD_FRAMEWORK"):
            kwargs["framework"] = os.environ["MODSCAFFOLD_FRAMEWORK"]
        if os.environ.get("MODSCAFFOLD_MAX_PARALLEL"):
            kwargs["max_parallel_operations"] = int(os.environ["MODSCAFFOLD_MAX_PARALLEL"])
        return cls(**kwargs)

    @classmethod
    def discover(cls, root_dir: Path | None = None) -> "Config":
        """Return the saved config under *root_dir* if present, else env defaults."""
        base = Path(root_dir) if root_dir is not None else Path(".")
        candidate = base / DEFAULT_CONFIG_FILENAME
        config = cls.load(candidate) if candidate.is_file() else cls.from_env()
        if root_dir is not None:
            config.root_dir = base
        return config
