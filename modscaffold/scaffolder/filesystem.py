"""File I/O primitives used by every generation step.

All idempotency decisions go through :meth:`FileWriter.emit`: a target is
written when it is absent, or unconditionally when the mode is ``force``.
Blocking calls run in a worker thread so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from typing import Callable


class GenerationMode(str, Enum):
    """How existing files are treated."""
    CREATE = "create"
    APPEND = "append"
    FORCE = "force"

    @classmethod
    def from_flags(cls, *, force: bool = False, append: bool = False) -> "GenerationMode":
        """Force wins over append when both are requested."""
        if force:
            return cls.FORCE
        if append:
            return cls.APPEND
        return cls.CREATE


class FileWriter:
    """Async file-system operations with a single write-if-absent-or-forced gate."""

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def write(self, path: Path, text: str) -> None:
        await asyncio.to_thread(_write_file, Path(path), text)

    async def ensure_directory(self, path: Path) -> bool:
        """Create *path* (and parents). Returns ``True`` when it was newly created."""
        return await asyncio.to_thread(_make_dir, Path(path))

    async def emit(
        self,
        path: Path,
        render: Callable[[], str],
        mode: GenerationMode,
    ) -> bool:
        """Write ``render()`` to *path* unless it exists and mode is not ``force``.

        *render* is only called when the file is going to be written.

        Returns:
            ``True`` if the file was written, ``False`` if it was left untouched.
        """
        if mode is not GenerationMode.FORCE and await self.exists(path):
            return False
        await self.write(path, render())
        return True


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _make_dir(path: Path) -> bool:
    existed = path.is_dir()
    path.mkdir(parents=True, exist_ok=True)
    return not existed
