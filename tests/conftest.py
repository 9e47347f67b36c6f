"""Shared pytest fixtures for the modscaffold test suite.

Provides reusable fixtures for:
- Temporary project roots and a matching Config
- Module naming for a typical camel-case module
- Representative typePayload sources
- Scripted review gates (confirm / decline)
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from modscaffold.config import Config
from modscaffold.scaffolder.naming import ModuleNaming, get_module_naming


# ---------------------------------------------------------------------------
# Paths & configuration
# ---------------------------------------------------------------------------

@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Temporary project root (auto-cleanup)."""
    root = tmp_path / "service"
    root.mkdir()
    yield root


@pytest.fixture
def config(project_root: Path) -> Config:
    """Config rooted at the temporary project."""
    return Config(root_dir=project_root, max_parallel_operations=2)


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

@pytest.fixture
def naming() -> ModuleNaming:
    return get_module_naming("blogPost")


# ---------------------------------------------------------------------------
# Type-definition sources
# ---------------------------------------------------------------------------

@pytest.fixture
def three_field_source() -> str:
    """The canonical ``{ name, email?, blogPostId }`` declaration."""
    return textwrap.dedent("""\
        export type typePayload = {
          name: string;
          email?: string;
          blogPostId: string;
        };
        """)


@pytest.fixture
def rich_source() -> str:
    """A declaration exercising defaults, unions, arrays, nesting and comments."""
    return textwrap.dedent("""\
        // Generated stub, edited by hand
        export type typePayload = {
          id: string; // record id
          title: string;
          status: 'draft' | 'published' = 'draft';
          tags?: string[];
          rating: number | undefined;
          /* multi-line
             comment { with braces } */
          author: {
            name: string;
            url?: string;
          };
          onSave: (value: string) => void;
        };

        export type typeResultData = {
          id: string;
        };
        """)


# ---------------------------------------------------------------------------
# Review gates
# ---------------------------------------------------------------------------

class ScriptedReviewGate:
    """Review gate returning a fixed answer and recording each call."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    async def confirm(self, layout, operations) -> bool:
        self.calls.append((layout.naming.original, tuple(operations)))
        return self.answer


@pytest.fixture
def confirm_gate() -> ScriptedReviewGate:
    return ScriptedReviewGate(True)


@pytest.fixture
def decline_gate() -> ScriptedReviewGate:
    return ScriptedReviewGate(False)
