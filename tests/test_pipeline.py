"""Unit tests for the generation orchestrator (modscaffold.pipeline).

Tests cover:
- GenerationError / StateConflictError
- Pre-flight validation and conflict detection (nothing written)
- Non-interactive and interactive runs to COMPLETE
- Cancellation at review keeps the type stubs
- Append keeps edited files, force rewrites them
- Failures are reported on the result with the failing phase
- Empty payloads still generate every artifact
- Custom and services operation sets
- ConsoleReviewGate and the CLI entry point
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from modscaffold.config import Config
from modscaffold.phases import GenerationPhase
from modscaffold.pipeline import (
    ConsoleReviewGate,
    GenerationError,
    GenerationOrchestrator,
    GenerationResult,
    StateConflictError,
    main,
)
from modscaffold.scaffolder import (
    ArtifactKind,
    FileWriter,
    InvalidModuleNameError,
    ModuleLayout,
    OperationSet,
    get_module_naming,
)
from modscaffold.scaffolder.templates import EMPTY_FIELDS_PLACEHOLDER


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# 5 type stubs + 5 x 4 code artifacts + routes + 5 x 3 test scaffolds
CRUD_FILE_COUNT = 41


def _layout(config: Config, name: str = "blogPost", operation_set: OperationSet | None = None) -> ModuleLayout:
    return ModuleLayout.build(config, get_module_naming(name), operation_set or OperationSet.crud())


class FailingWriter(FileWriter):
    """Writer that raises ``OSError`` for paths under one directory name.

    With *file_name* only that file under the directory fails.
    """

    def __init__(self, directory: str, file_name: str | None = None) -> None:
        self.directory = directory
        self.file_name = file_name

    async def write(self, path: Path, text: str) -> None:
        path = Path(path)
        if self.directory in path.parts and self.file_name in (None, path.name):
            raise OSError(f"permission denied: {path.name}")
        await super().write(path, text)


class TrackingWriter(FileWriter):
    """Writer recording how many writes were in flight at once."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def write(self, path: Path, text: str) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(0.001)
            await super().write(path, text)
        finally:
            self.active -= 1


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TestExceptions:
    @pytest.mark.unit
    def test_generation_error_includes_phase(self):
        err = GenerationError(GenerationPhase.CODE_GENERATED, "create: disk full")
        assert err.phase is GenerationPhase.CODE_GENERATED
        assert err.message == "create: disk full"
        assert "Phase code_generated" in str(err)

    @pytest.mark.unit
    def test_state_conflict_mentions_flags(self, tmp_path: Path):
        err = StateConflictError(tmp_path / "blog-post")
        assert err.module_path == tmp_path / "blog-post"
        assert "--append" in str(err)
        assert "--force" in str(err)


# ---------------------------------------------------------------------------
# Pre-flight
# ---------------------------------------------------------------------------

class TestPreflight:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_name_writes_nothing(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        with pytest.raises(InvalidModuleNameError):
            await orchestrator.generate("9lives")
        assert not config.apis_root.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_existing_module_conflicts(self, config: Config, confirm_gate):
        layout = _layout(config)
        layout.module_root.mkdir(parents=True)

        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        with pytest.raises(StateConflictError) as exc_info:
            await orchestrator.generate("blogPost")

        assert exc_info.value.module_path == layout.module_root
        assert list(layout.module_root.iterdir()) == []
        assert confirm_gate.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_conflict_uses_kebab_directory(self, config: Config, confirm_gate):
        (config.apis_root / "blog-post").mkdir(parents=True)
        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        with pytest.raises(StateConflictError):
            await orchestrator.generate("BlogPost")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_conflict_check_reads_the_layout_paths(self, config: Config, confirm_gate):
        layout = _layout(config)
        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        inspector = MagicMock(wraps=orchestrator.inspector)
        orchestrator.inspector = inspector

        result = await orchestrator.generate("blogPost", interactive=False)

        assert result.success
        inspector.describe_path.assert_called_once_with(layout.module_root, layout.types_dir)
        inspector.describe_module.assert_not_called()


# ---------------------------------------------------------------------------
# Full runs
# ---------------------------------------------------------------------------

class TestFullRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_interactive_run_completes(self, config: Config, decline_gate):
        orchestrator = GenerationOrchestrator(config, review_gate=decline_gate)
        result = await orchestrator.generate("blogPost", interactive=False)

        assert isinstance(result, GenerationResult)
        assert result.success
        assert result.phase is GenerationPhase.COMPLETE
        assert decline_gate.calls == []
        assert len(result.files) == CRUD_FILE_COUNT
        assert all(f.written for f in result.files)
        assert all(path.is_file() for path in result.generated_files)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_layout_on_disk(self, config: Config, confirm_gate):
        await GenerationOrchestrator(config, review_gate=confirm_gate).generate("blogPost")
        root = config.apis_root / "blog-post"

        assert (root / "types" / "create.blogPost.ts").is_file()
        assert (root / "validators" / "list.blogPost.ts").is_file()
        assert (root / "handlers" / "get.blogPost.ts").is_file()
        assert (root / "repository" / "update.blogPost.ts").is_file()
        assert (root / "controllers" / "delete.blogPost.ts").is_file()
        assert (root / "blogPost.routes.ts").is_file()
        assert (config.tests_root / "blog-post" / "create" / "failure.test.ts").is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_interactive_run_consults_gate_once(self, config: Config, confirm_gate):
        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate("blogPost")

        assert result.success
        assert confirm_gate.calls == [("blogPost", ("create", "get", "list", "update", "delete"))]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_created_directories_are_reported(self, config: Config, confirm_gate):
        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate(
            "blogPost", interactive=False
        )
        layout = _layout(config)
        assert result.created_directories[:2] == [layout.module_root, layout.types_dir]
        assert layout.tests_root in result.created_directories

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_code_files_are_grouped_by_operation(self, config: Config, confirm_gate):
        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate(
            "blogPost", interactive=False
        )
        code = [
            f.operation for f in result.files
            if f.artifact not in (ArtifactKind.TYPE, ArtifactKind.TEST, ArtifactKind.ROUTES)
        ]
        assert code == [op for op in ("create", "get", "list", "update", "delete") for _ in range(4)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, config: Config, confirm_gate):
        writer = TrackingWriter()
        result = await GenerationOrchestrator(config, review_gate=confirm_gate, writer=writer).generate(
            "blogPost", interactive=False
        )
        assert result.success
        assert 1 <= writer.peak <= config.max_parallel_operations


# ---------------------------------------------------------------------------
# Review & cancellation
# ---------------------------------------------------------------------------

class TestCancellation:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_decline_keeps_type_stubs(self, config: Config, decline_gate):
        result = await GenerationOrchestrator(config, review_gate=decline_gate).generate("blogPost")
        layout = _layout(config)

        assert result.phase is GenerationPhase.CANCELLED
        assert not result.success
        assert result.failed_phase is None
        assert [f.artifact for f in result.files] == [ArtifactKind.TYPE] * 5
        assert all(path.is_file() for path in layout.type_files.values())
        assert not (layout.module_root / "validators").exists()
        assert not layout.tests_root.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancelled_module_can_be_continued_with_append(
        self, config: Config, decline_gate, confirm_gate
    ):
        await GenerationOrchestrator(config, review_gate=decline_gate).generate("blogPost")
        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate(
            "blogPost", append=True
        )

        assert result.success
        assert len(result.skipped_files) == 5
        assert len(result.generated_files) == CRUD_FILE_COUNT - 5


# ---------------------------------------------------------------------------
# Append & force
# ---------------------------------------------------------------------------

class TestModes:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_append_is_idempotent(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        await orchestrator.generate("blogPost", interactive=False)
        stub = _layout(config).type_files["create"]
        stub.write_text("export type typePayload = { title: string };\n", encoding="utf-8")

        result = await orchestrator.generate("blogPost", append=True, interactive=False)

        assert result.success
        assert result.generated_files == []
        assert len(result.skipped_files) == CRUD_FILE_COUNT
        assert result.created_directories == []
        assert stub.read_text(encoding="utf-8") == "export type typePayload = { title: string };\n"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_append_adds_missing_files_only(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        await orchestrator.generate("blogPost", interactive=False)
        handler = _layout(config).artifact_files[ArtifactKind.HANDLER]["get"]
        handler.unlink()

        result = await orchestrator.generate("blogPost", append=True, interactive=False)

        assert result.generated_files == [handler]
        assert handler.is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_force_rewrites_everything(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        await orchestrator.generate("blogPost", interactive=False)
        stub = _layout(config).type_files["create"]
        stub.write_text("// edited\n", encoding="utf-8")

        result = await orchestrator.generate("blogPost", force=True, interactive=False)

        assert result.success
        assert len(result.generated_files) == CRUD_FILE_COUNT
        assert "export type typePayload" in stub.read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_force_wins_over_append(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(config, review_gate=confirm_gate)
        await orchestrator.generate("blogPost", interactive=False)
        result = await orchestrator.generate("blogPost", force=True, append=True, interactive=False)
        assert result.skipped_files == []


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_code_phase_failure_is_reported(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(
            config, review_gate=confirm_gate, writer=FailingWriter("validators")
        )
        result = await orchestrator.generate("blogPost", interactive=False)

        assert result.phase is GenerationPhase.FAILED
        assert result.failed_phase is GenerationPhase.CODE_GENERATED
        assert result.error.startswith("create: permission denied")
        assert all(path.is_file() for path in _layout(config).type_files.values())
        assert not _layout(config).tests_root.exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_code_phase_failure_stops_later_operations(self, project_root: Path, confirm_gate):
        config = Config(root_dir=project_root, max_parallel_operations=1)
        orchestrator = GenerationOrchestrator(
            config, review_gate=confirm_gate, writer=FailingWriter("validators", "get.blogPost.ts")
        )
        result = await orchestrator.generate("blogPost", interactive=False)
        layout = _layout(config)

        assert result.failed_phase is GenerationPhase.CODE_GENERATED
        assert result.error.startswith("get: permission denied")
        assert layout.artifact_files[ArtifactKind.CONTROLLER]["create"].is_file()
        for artifact in (
            ArtifactKind.VALIDATOR, ArtifactKind.HANDLER, ArtifactKind.REPOSITORY, ArtifactKind.CONTROLLER,
        ):
            for operation in ("get", "list", "update", "delete"):
                assert not layout.artifact_files[artifact][operation].exists()
        assert not (layout.module_root / "blogPost.routes.ts").exists()
        assert {f.operation for f in result.files if f.artifact is not ArtifactKind.TYPE} == {"create"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_types_phase_failure_is_reported(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(
            config, review_gate=confirm_gate, writer=FailingWriter("types")
        )
        result = await orchestrator.generate("blogPost", interactive=False)

        assert result.phase is GenerationPhase.FAILED
        assert result.failed_phase is GenerationPhase.TYPES_GENERATED
        assert "permission denied" in result.error
        assert confirm_gate.calls == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tests_phase_failure_is_reported(self, config: Config, confirm_gate):
        orchestrator = GenerationOrchestrator(
            config, review_gate=confirm_gate, writer=FailingWriter("create")
        )
        result = await orchestrator.generate("blogPost", interactive=False)

        assert result.failed_phase is GenerationPhase.TESTS_GENERATED
        assert (_layout(config).module_root / "blogPost.routes.ts").is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported(self, config: Config):
        gate = MagicMock()
        gate.confirm.side_effect = RuntimeError("terminal closed")
        result = await GenerationOrchestrator(config, review_gate=gate).generate("blogPost")

        assert result.phase is GenerationPhase.FAILED
        assert result.failed_phase is GenerationPhase.AWAITING_REVIEW
        assert result.error == "terminal closed"


# ---------------------------------------------------------------------------
# Payload handling
# ---------------------------------------------------------------------------

class TestPayloads:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_payloads_still_generate(self, config: Config, confirm_gate):
        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate(
            "blogPost", interactive=False
        )
        validator = _layout(config).artifact_files[ArtifactKind.VALIDATOR]["create"]

        assert result.success
        assert EMPTY_FIELDS_PLACEHOLDER in validator.read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparseable_stub_degrades(self, config: Config, decline_gate, confirm_gate):
        await GenerationOrchestrator(config, review_gate=decline_gate).generate("blogPost")
        _layout(config).type_files["update"].write_text("export type typePayload = {\n", encoding="utf-8")

        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate(
            "blogPost", append=True
        )
        handler = _layout(config).artifact_files[ArtifactKind.HANDLER]["update"]

        assert result.success
        assert "if (!payload.id)" in handler.read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_edited_stub_drives_code(
        self, config: Config, decline_gate, confirm_gate, three_field_source: str
    ):
        await GenerationOrchestrator(config, review_gate=decline_gate).generate("blogPost")
        _layout(config).type_files["update"].write_text(three_field_source, encoding="utf-8")

        await GenerationOrchestrator(config, review_gate=confirm_gate).generate("blogPost", append=True)
        handler = _layout(config).artifact_files[ArtifactKind.HANDLER]["update"]

        assert "if (!payload.blogPostId)" in handler.read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Operation kinds
# ---------------------------------------------------------------------------

class TestOperationKinds:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_custom_operations_with_hono(self, config: Config, confirm_gate):
        config.framework = "hono"
        operations = OperationSet.custom(["refund", "capture"])
        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate(
            "payments", operations, interactive=False
        )
        layout = _layout(config, "payments", operations)

        assert result.success
        assert len(result.files) == 2 + 2 * 4 + 1 + 2 * 3
        routes = layout.routes_file.read_text(encoding="utf-8")
        assert "app.post('/refund', refundPaymentsController);" in routes
        controller = layout.artifact_files[ArtifactKind.CONTROLLER]["capture"]
        assert "from 'hono'" in controller.read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_services_have_no_routes(self, config: Config, confirm_gate):
        operations = OperationSet.services(["sendWelcome"])
        result = await GenerationOrchestrator(config, review_gate=confirm_gate).generate(
            "mailer", operations, interactive=False
        )
        layout = _layout(config, "mailer", operations)

        assert result.success
        assert layout.routes_file is None
        assert not any(f.artifact is ArtifactKind.ROUTES for f in result.files)
        service = layout.artifact_files[ArtifactKind.SERVICE]["sendWelcome"]
        assert "export const sendWelcomeMailer" in service.read_text(encoding="utf-8")
        assert not (layout.module_root / "handlers").exists()


# ---------------------------------------------------------------------------
# Review gate
# ---------------------------------------------------------------------------

class TestConsoleReviewGate:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delegates_to_prompt(self, config: Config):
        prompt = MagicMock(return_value=False)
        gate = ConsoleReviewGate(prompt=prompt)

        answer = await gate.confirm(_layout(config), ("create",))

        assert answer is False
        args, kwargs = prompt.call_args
        assert "blogPost" in args[0]
        assert kwargs == {"default": True}


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestMain:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        for name in ("MODSCAFFOLD_ROOT", "MODSCAFFOLD_APIS_DIR", "MODSCAFFOLD_TESTS_DIR",
                     "MODSCAFFOLD_FRAMEWORK", "MODSCAFFOLD_MAX_PARALLEL"):
            monkeypatch.delenv(name, raising=False)

    def _run(self, *argv: str) -> None:
        with patch.object(sys, "argv", ["modscaffold", *argv]):
            main()

    @pytest.mark.unit
    def test_generates_module(self, project_root: Path):
        self._run("blogPost", "--root", str(project_root), "--no-interactive")
        assert (project_root / "src" / "apis" / "blog-post" / "blogPost.routes.ts").is_file()

    @pytest.mark.unit
    def test_conflict_exits_with_error(self, project_root: Path):
        self._run("blogPost", "--root", str(project_root), "--no-interactive")
        with pytest.raises(SystemExit) as exc_info:
            self._run("blogPost", "--root", str(project_root), "--no-interactive")
        assert exc_info.value.code == 1

    @pytest.mark.unit
    def test_append_succeeds_after_first_run(self, project_root: Path):
        self._run("blogPost", "--root", str(project_root), "--no-interactive")
        self._run("blogPost", "--root", str(project_root), "--no-interactive", "--append")

    @pytest.mark.unit
    def test_invalid_name_exits_with_error(self, project_root: Path):
        with pytest.raises(SystemExit) as exc_info:
            self._run("bad name!", "--root", str(project_root))
        assert exc_info.value.code == 1
        assert not (project_root / "src").exists()

    @pytest.mark.unit
    def test_module_name_required(self, project_root: Path):
        with pytest.raises(SystemExit) as exc_info:
            self._run("--root", str(project_root))
        assert exc_info.value.code == 2

    @pytest.mark.unit
    def test_kind_flags_are_exclusive(self, project_root: Path):
        with pytest.raises(SystemExit):
            self._run("payments", "--custom", "refund", "--services", "notify")

    @pytest.mark.unit
    def test_custom_operations(self, project_root: Path):
        self._run("payments", "--root", str(project_root), "--custom", "refund, capture",
                  "--framework", "hono", "--no-interactive")
        routes = project_root / "src" / "apis" / "payments" / "payments.routes.ts"
        assert "app.post('/capture'" in routes.read_text(encoding="utf-8")

    @pytest.mark.unit
    def test_list_modules(self, project_root: Path, capsys):
        self._run("blogPost", "--root", str(project_root), "--no-interactive")
        capsys.readouterr()
        self._run("--list", "--root", str(project_root))
        assert "blog-post" in capsys.readouterr().out

    @pytest.mark.unit
    def test_decline_exits_cleanly(self, project_root: Path):
        with patch("modscaffold.pipeline.Confirm.ask", return_value=False):
            self._run("blogPost", "--root", str(project_root))
        assert (project_root / "src" / "apis" / "blog-post" / "types").is_dir()
        assert not (project_root / "src" / "apis" / "blog-post" / "handlers").exists()
