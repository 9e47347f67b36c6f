"""Shared console helpers for modscaffold.

Rich-based progress reporting and a couple of small file-system and
formatting helpers used by the pipeline and the CLI.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.rule import Rule
from rich.table import Table
from rich.tree import Tree

console = Console()


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def relative_to_root(path: str | Path, root: str | Path) -> str:
    """Render *path* relative to *root* when possible, for display only."""
    try:
        return str(Path(path).resolve().relative_to(Path(root).resolve()))
    except ValueError:
        return str(path)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
    """
    if seconds < 0:
        return "0.0s"

    minutes = int(seconds // 60)
    secs = seconds % 60
    if minutes > 0:
        return f"{minutes}m {int(secs)}s"
    return f"{secs:.1f}s"


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


PHASE_COLORS: dict[str, str] = {
    "types": "bright_cyan",
    "review": "bright_yellow",
    "code": "bright_green",
    "tests": "bright_magenta",
}


def print_phase_header(step: int, name: str, color_key: str = "") -> None:
    """Print a full-width rule announcing a pipeline step."""
    color = PHASE_COLORS.get(color_key, "white")
    console.print()
    console.print(
        Rule(
            f"[bold {color}] Phase {step}: {name.upper()} [/bold {color}]",
            style=color,
        )
    )
    console.print()


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


def print_file_tree(root: Path, files: list[Path], title: str) -> None:
    """Print generated files as a tree rooted at *root*."""
    tree = Tree(f"[bold]{title}[/bold]")
    branches: dict[str, Tree] = {}
    for file_path in files:
        parent = relative_to_root(file_path.parent, root)
        if parent not in branches:
            branches[parent] = tree.add(f"[cyan]{parent}/[/cyan]")
        branches[parent].add(file_path.name)
    console.print(tree)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{message}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{message}[/bold yellow]")
