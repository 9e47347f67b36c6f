"""modscaffold generation orchestrator.

Implements the phased module generator:

Phase 1: TYPES  -- Create the module root and write one ``typePayload`` stub per operation.
Phase 2: REVIEW -- (interactive only) let the operator edit the stubs, then confirm.
Phase 3: CODE   -- Parse the edited stubs and render validators, handlers, repositories,
                   controllers (or services) plus the module router.
Phase 4: TESTS  -- Render validation / success / failure test scaffolds per operation.

The phase sequence itself lives in :mod:`modscaffold.phases`; this module
only runs the side effects the planner asks for.

Usage::

    modscaffold blogPost --crud
    modscaffold payments --custom refund,capture --append
    modscaffold --list
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
import traceback
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Protocol

from pydantic import BaseModel, Field
from rich.panel import Panel
from rich.prompt import Confirm

from modscaffold.config import Config
from modscaffold.parser import EMPTY_PAYLOAD, ParsedTypePayload, parse_module_types, resolve_id_field
from modscaffold.phases import (
    ACTION_PHASES,
    Action,
    GenerationPhase,
    PhaseEvent,
    PhaseState,
    advance,
    plan,
)
from modscaffold.scaffolder import (
    TEST_CATEGORIES,
    ArtifactKind,
    EmitterSet,
    FileWriter,
    GenerationMode,
    InvalidModuleNameError,
    ModuleLayout,
    ModuleStateInspector,
    OperationSet,
    TemplateRenderer,
    get_module_naming,
)
from modscaffold.scaffolder.emitters import ID_OPERATIONS
from modscaffold.utils import (
    console,
    format_duration,
    print_error,
    print_file_tree,
    print_phase_header,
    print_success,
    print_summary_table,
    print_warning,
    relative_to_root,
)

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GenerationError(Exception):
    """Raised when a generation phase fails irrecoverably."""

    def __init__(self, phase: GenerationPhase, message: str) -> None:
        self.phase = phase
        self.message = message
        super().__init__(f"Phase {phase.value}: {message}")


class StateConflictError(Exception):
    """The module already exists and neither append nor force was requested."""

    def __init__(self, module_path: Path) -> None:
        self.module_path = module_path
        super().__init__(
            f"Module directory already exists: {module_path} "
            "(use --append to keep existing files or --force to overwrite them)"
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class GeneratedFile(BaseModel):
    """One target path and whether this run wrote it."""

    path: Path
    artifact: ArtifactKind
    operation: Optional[str] = None
    written: bool = True


class GenerationResult(BaseModel):
    """Aggregated outcome of one generation run."""

    module: str
    phase: GenerationPhase
    created_directories: list[Path] = Field(default_factory=list)
    files: list[GeneratedFile] = Field(default_factory=list)
    failed_phase: Optional[GenerationPhase] = None
    error: Optional[str] = None
    duration: str = ""

    @property
    def success(self) -> bool:
        return self.phase is GenerationPhase.COMPLETE

    @property
    def generated_files(self) -> list[Path]:
        return [f.path for f in self.files if f.written]

    @property
    def skipped_files(self) -> list[Path]:
        return [f.path for f in self.files if not f.written]


# ---------------------------------------------------------------------------
# Review gate
# ---------------------------------------------------------------------------

REVIEW_INSTRUCTIONS: dict[str, list[str]] = {
    "create": [
        "Add fields needed to create a new record:",
        "name: string",
        "description: string",
        "category?: string (optional fields use ?)",
    ],
    "get": ["Usually just needs an ID:", "id: string"],
    "list": [
        "Add pagination and filter fields:",
        "page?: number",
        "limit?: number",
        "sort_by?: string",
        "sort_order?: 'asc' | 'desc'",
        "search?: string",
    ],
    "update": [
        "Add ID and updatable fields:",
        "id: string",
        "name?: string (usually optional for updates)",
        "description?: string",
    ],
    "delete": [
        "Usually needs ID and optional permanent flag:",
        "id: string",
        "permanent?: boolean",
    ],
}

_DEFAULT_INSTRUCTIONS = [
    "Add fields specific to this operation:",
    "id?: string",
    "query?: string",
]

_TIPS = [
    "Use '?' for optional fields: name?: string",
    "Use union types: status: 'active' | 'inactive'",
    "Use arrays: tags: string[]",
    "Use nested objects: metadata: { key: string; value: number }",
]


class ReviewGate(Protocol):
    """Asks the operator whether the edited type stubs are ready."""

    async def confirm(self, layout: ModuleLayout, operations: tuple[str, ...]) -> bool: ...


class ConsoleReviewGate:
    """Review gate backed by a Rich ``Confirm`` prompt."""

    def __init__(self, prompt: Callable[..., bool] | None = None) -> None:
        self.prompt = prompt or Confirm.ask

    async def confirm(self, layout: ModuleLayout, operations: tuple[str, ...]) -> bool:
        return await asyncio.to_thread(
            self.prompt,
            f"Have you reviewed the type files for [bold]{layout.naming.original}[/bold]? "
            "Generate code now",
            default=True,
        )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class _Run:
    """Mutable bookkeeping for one invocation."""

    def __init__(self, layout: ModuleLayout, mode: GenerationMode, emitters: EmitterSet) -> None:
        self.layout = layout
        self.mode = mode
        self.emitters = emitters
        self.created_directories: list[Path] = []
        self.files: list[GeneratedFile] = []
        self.payloads: dict[str, ParsedTypePayload] = {}


class GenerationOrchestrator:
    """Drives one module through the generation phases.

    Attributes:
        config: Global configuration (roots, framework, concurrency).
        review_gate: Collaborator consulted at the interactive review step.
        writer: The single write-if-absent-or-forced primitive.
        inspector: Read-only view of existing modules.
    """

    def __init__(
        self,
        config: Config,
        review_gate: ReviewGate | None = None,
        writer: FileWriter | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config
        self.review_gate = review_gate or ConsoleReviewGate()
        self.writer = writer or FileWriter()
        self.renderer = renderer or TemplateRenderer()
        self.inspector = ModuleStateInspector(config)

    # ------------------------------------------------------------------
    # Pre-flight
    # ------------------------------------------------------------------

    async def _preflight(
        self, module_name: str, operation_set: OperationSet, mode: GenerationMode
    ) -> ModuleLayout:
        """Validate inputs and detect conflicts. Nothing is written here.

        Raises:
            InvalidModuleNameError: for names that cannot become identifiers.
            StateConflictError: when the module exists and *mode* is create.
        """
        naming = get_module_naming(module_name)
        layout = ModuleLayout.build(self.config, naming, operation_set)

        descriptor = await asyncio.to_thread(
            self.inspector.describe_path, layout.module_root, layout.types_dir
        )
        if descriptor is not None:
            if mode is GenerationMode.CREATE:
                raise StateConflictError(layout.module_root)
            console.print(
                f"  Existing module [bold]{descriptor.name}[/bold] "
                f"({len(descriptor.existing_files)} type file(s)), mode: {mode.value}"
            )
        return layout

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def generate(
        self,
        module_name: str,
        operation_set: OperationSet | None = None,
        *,
        force: bool = False,
        append: bool = False,
        interactive: bool = True,
    ) -> GenerationResult:
        """Generate (or complete) one module.

        Args:
            module_name: Raw module name; every naming form derives from it.
            operation_set: Operations to generate. Defaults to CRUD.
            force: Rewrite files that already exist.
            append: Keep files that already exist. Ignored when *force* is set.
            interactive: Pause for review between type stubs and code.

        Returns:
            The aggregated :class:`GenerationResult`. Filesystem failures are
            reported on it (phase ``FAILED``) rather than raised.

        Raises:
            InvalidModuleNameError: before anything is written.
            StateConflictError: before anything is written.
        """
        started = time.monotonic()
        operation_set = operation_set or OperationSet.crud()
        mode = GenerationMode.from_flags(force=force, append=append)
        layout = await self._preflight(module_name, operation_set, mode)

        console.print(
            Panel(
                f"[bold bright_cyan]modscaffold[/bold bright_cyan]\n"
                f"Module     : {layout.naming.original}\n"
                f"Operations : {operation_set.kind.value} ({', '.join(layout.operations)})\n"
                f"Location   : {relative_to_root(layout.module_root, self.config.root_dir)}\n"
                f"Mode       : {mode.value}",
                title="[bold]Generation Start[/bold]",
                border_style="bright_cyan",
            )
        )

        run = _Run(layout, mode, EmitterSet(operation_set.kind, self.config.framework, self.renderer))
        handlers = {
            Action.WRITE_TYPES: self._write_types,
            Action.REQUEST_REVIEW: self._request_review,
            Action.PROMPT_REVIEW: self._prompt_review,
            Action.WRITE_CODE: self._write_code,
            Action.WRITE_TESTS: self._write_tests,
            Action.FINISH: self._finish,
        }

        state = PhaseState()
        while True:
            action = plan(state, interactive)
            if action is None:
                break

            try:
                event = await handlers[action](run)
            except GenerationError as exc:
                state = advance(state, PhaseEvent.FAILED, failed_phase=exc.phase, error=exc.message)
                print_error(f"Generation FAILED during {exc.phase.value}: {exc.message}")
                break
            except OSError as exc:
                phase = ACTION_PHASES[action]
                state = advance(state, PhaseEvent.FAILED, failed_phase=phase, error=str(exc))
                print_error(f"Generation FAILED during {phase.value}: {exc}")
                break
            except Exception as exc:
                phase = ACTION_PHASES[action]
                tb = traceback.format_exc()
                state = advance(state, PhaseEvent.FAILED, failed_phase=phase, error=str(exc))
                print_error(f"Generation FAILED during {phase.value}: {exc}")
                console.print(f"[dim]{tb}[/dim]")
                break

            state = advance(state, event)

        if state.phase is GenerationPhase.CANCELLED:
            print_warning(
                "Generation cancelled. Type stubs were kept in "
                f"{relative_to_root(layout.types_dir, self.config.root_dir)}; "
                "re-run with --append to continue."
            )

        return GenerationResult(
            module=layout.naming.original,
            phase=state.phase,
            created_directories=run.created_directories,
            files=run.files,
            failed_phase=state.failed_phase,
            error=state.error,
            duration=format_duration(time.monotonic() - started),
        )

    # ------------------------------------------------------------------
    # Shared primitives
    # ------------------------------------------------------------------

    async def _ensure(self, run: _Run, directory: Path) -> None:
        if await self.writer.ensure_directory(directory):
            run.created_directories.append(directory)

    async def _emit(
        self,
        run: _Run,
        path: Path,
        artifact: ArtifactKind,
        operation: Optional[str],
        render: Callable[[], str],
    ) -> GeneratedFile:
        written = await self.writer.emit(path, render, run.mode)
        rel = relative_to_root(path, self.config.root_dir)
        if written:
            console.print(f"  [green]+[/green] {rel}")
        else:
            console.print(f"  [dim]= {rel} (kept)[/dim]")
        return GeneratedFile(path=path, artifact=artifact, operation=operation, written=written)

    # ------------------------------------------------------------------
    # Phase 1: TYPES
    # ------------------------------------------------------------------

    async def _write_types(self, run: _Run) -> PhaseEvent:
        """Create the module root and write one type stub per operation."""
        print_phase_header(1, "types", "types")
        layout = run.layout
        await self._ensure(run, layout.module_root)
        await self._ensure(run, layout.types_dir)

        for operation in layout.operations:
            render = partial(run.emitters.types.render, operation, layout.naming)
            run.files.append(
                await self._emit(run, layout.type_files[operation], ArtifactKind.TYPE, operation, render)
            )
        return PhaseEvent.TYPES_WRITTEN

    # ------------------------------------------------------------------
    # Phase 2: REVIEW
    # ------------------------------------------------------------------

    async def _request_review(self, run: _Run) -> PhaseEvent:
        """Show where the stubs are and how each should be edited."""
        print_phase_header(2, "review", "review")
        layout = run.layout
        print_file_tree(
            self.config.root_dir,
            [layout.type_files[op] for op in layout.operations],
            "Type files to review",
        )
        for operation in layout.operations:
            lines = REVIEW_INSTRUCTIONS.get(operation, _DEFAULT_INSTRUCTIONS)
            console.print(f"  [bold]{layout.type_files[operation].name}[/bold]: {lines[0]}")
            for line in lines[1:]:
                console.print(f"      - {line}")
        console.print()
        console.print("  [bold]Tips:[/bold]")
        for tip in _TIPS:
            console.print(f"      - {tip}")
        console.print()
        return PhaseEvent.REVIEW_REQUESTED

    async def _prompt_review(self, run: _Run) -> PhaseEvent:
        confirmed = await self.review_gate.confirm(run.layout, run.layout.operations)
        return PhaseEvent.REVIEW_CONFIRMED if confirmed else PhaseEvent.REVIEW_DECLINED

    # ------------------------------------------------------------------
    # Phase 3: CODE
    # ------------------------------------------------------------------

    async def _write_code(self, run: _Run) -> PhaseEvent:
        """Parse the stubs and emit every code artifact, then the router."""
        print_phase_header(3, "code", "code")
        layout = run.layout
        for directory in layout.code_dirs:
            await self._ensure(run, directory)

        outcomes = await parse_module_types(layout.type_files)
        for operation, outcome in outcomes.items():
            for note in outcome.anomalies:
                print_warning(f"  {layout.type_files[operation].name}: {note}")
            run.payloads[operation] = EMPTY_PAYLOAD if outcome.payload.is_empty else outcome.payload

        semaphore = asyncio.Semaphore(self.config.max_parallel_operations)
        aborted = asyncio.Event()
        per_operation: dict[str, list[GeneratedFile]] = {op: [] for op in layout.operations}

        async def generate_operation(operation: str) -> None:
            async with semaphore:
                if aborted.is_set():
                    return
                try:
                    await self._write_operation(run, operation, per_operation[operation], aborted)
                except Exception:
                    aborted.set()
                    raise

        results = await asyncio.gather(
            *(generate_operation(op) for op in layout.operations),
            return_exceptions=True,
        )
        for operation in layout.operations:
            run.files.extend(per_operation[operation])

        for operation, result in zip(layout.operations, results):
            if isinstance(result, BaseException):
                raise GenerationError(
                    GenerationPhase.CODE_GENERATED, f"{operation}: {result}"
                ) from result

        if layout.routes_file is not None:
            render = partial(run.emitters.routes.render_module, layout.naming, layout.operation_set)
            run.files.append(await self._emit(run, layout.routes_file, ArtifactKind.ROUTES, None, render))
        return PhaseEvent.CODE_WRITTEN

    async def _write_operation(
        self,
        run: _Run,
        operation: str,
        files: list[GeneratedFile],
        aborted: asyncio.Event,
    ) -> None:
        """Emit every code artifact of *operation*, stopping once *aborted* is set."""
        layout = run.layout
        payload = run.payloads[operation]
        id_field = resolve_id_field(payload, layout.naming.variable)
        if id_field is None and operation in ID_OPERATIONS:
            print_warning(
                f"  {operation}: no '{layout.naming.variable}Id' or 'id' field, using placeholder 'id'"
            )

        for artifact in layout.operation_set.code_artifacts:
            if aborted.is_set():
                return
            emitter = run.emitters.for_artifact(artifact)
            render = partial(emitter.render, operation, layout.naming, payload, id_field)
            path = layout.artifact_files[artifact][operation]
            files.append(await self._emit(run, path, artifact, operation, render))

    # ------------------------------------------------------------------
    # Phase 4: TESTS
    # ------------------------------------------------------------------

    async def _write_tests(self, run: _Run) -> PhaseEvent:
        """Write the validation / success / failure scaffolds per operation."""
        print_phase_header(4, "tests", "tests")
        layout = run.layout
        await self._ensure(run, layout.tests_root)

        for operation in layout.operations:
            test_dir = layout.test_dirs[operation]
            await self._ensure(run, test_dir)
            payload = run.payloads.get(operation, EMPTY_PAYLOAD)
            id_field = resolve_id_field(payload, layout.naming.variable)
            module_import = Path(os.path.relpath(layout.module_root, test_dir)).as_posix()

            for category in TEST_CATEGORIES:
                render = partial(
                    run.emitters.tests.render,
                    operation,
                    layout.naming,
                    payload,
                    id_field,
                    variant=category,
                    module_import=module_import,
                )
                path = layout.test_files[operation][category]
                run.files.append(await self._emit(run, path, ArtifactKind.TEST, operation, render))
        return PhaseEvent.TESTS_WRITTEN

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _finish(self, run: _Run) -> PhaseEvent:
        written = [f.path for f in run.files if f.written]
        skipped = [f.path for f in run.files if not f.written]
        print_summary_table(
            {
                "Module": run.layout.naming.original,
                "Operations": ", ".join(run.layout.operations),
                "Directories created": str(len(run.created_directories)),
                "Files written": str(len(written)),
                "Files kept": str(len(skipped)),
            },
            title="Generation Summary",
        )
        if written:
            print_file_tree(self.config.root_dir, written, "Generated files")
        print_success(f"Module {run.layout.naming.original} generated.")
        return PhaseEvent.FINISHED


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def _split_names(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def _list_modules(config: Config) -> None:
    inspector = ModuleStateInspector(config)
    modules = inspector.list_modules()
    if not modules:
        print_warning(f"No modules found under {config.apis_root}")
        return
    summary = {}
    for name in modules:
        descriptor = inspector.describe_module(name)
        count = len(descriptor.existing_files) if descriptor else 0
        summary[name] = f"{count} type file(s)"
    print_summary_table(summary, title=f"Modules in {config.apis_root}")


def main() -> None:
    """CLI entry point for ``python -m modscaffold``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="modscaffold",
        description="modscaffold -- phased API module generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  modscaffold blogPost\n"
            "  modscaffold payments --custom refund,capture --append\n"
            "  modscaffold mailer --services sendWelcome --no-interactive\n"
            "  modscaffold --list\n"
        ),
    )

    parser.add_argument("module", nargs="?", help="Module name (letters, digits, '-' and '_')")
    kinds = parser.add_mutually_exclusive_group()
    kinds.add_argument("--crud", action="store_true", help="Generate create/get/list/update/delete (default)")
    kinds.add_argument("--custom", metavar="NAMES", help="Comma-separated custom operation names")
    kinds.add_argument("--services", metavar="NAMES", help="Comma-separated service operation names")
    parser.add_argument("--force", action="store_true", help="Overwrite files that already exist")
    parser.add_argument("--append", action="store_true", help="Keep existing files, add missing ones")
    parser.add_argument(
        "--no-interactive",
        dest="interactive",
        action="store_false",
        help="Skip the type review pause",
    )
    parser.add_argument("--framework", choices=["express", "hono"], default=None)
    parser.add_argument("--root", default=None, help="Project root (default: current directory)")
    parser.add_argument("--list", action="store_true", help="List existing modules and exit")

    args = parser.parse_args()

    config = Config.discover(Path(args.root) if args.root else None)
    if args.framework:
        config.framework = args.framework

    if args.list:
        _list_modules(config)
        return

    if not args.module:
        parser.error("a module name is required unless --list is given")

    try:
        if args.custom:
            operation_set = OperationSet.custom(_split_names(args.custom))
        elif args.services:
            operation_set = OperationSet.services(_split_names(args.services))
        else:
            operation_set = OperationSet.crud()
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    orchestrator = GenerationOrchestrator(config)
    try:
        result = asyncio.run(
            orchestrator.generate(
                args.module,
                operation_set,
                force=args.force,
                append=args.append,
                interactive=args.interactive,
            )
        )
    except (InvalidModuleNameError, StateConflictError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    if result.phase is GenerationPhase.FAILED:
        sys.exit(1)


if __name__ == "__main__":
    main()
