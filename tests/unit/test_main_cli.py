"""Unit tests for the codeos CLI.

This module tests the CLI entry point including:
- init scaffolding
- run / runs / resume / retry / inspect against a real state directory
- Exit codes for codeos errors, interrupts and unexpected failures
"""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from codeos.config.settings import CONFIG_FILENAME
from codeos.engine.state_store import META_FILENAME
from codeos.main import ARTIFACT_DIRS, BLUEPRINT_TEMPLATE, blueprint_slug, cli

PASSING_CONFIG = """
gates:
  lint: "true"
engine:
  retries: 0
  retry_base_delay: 0
"""

FAILING_CONFIG = """
gates:
  lint: "false"
engine:
  retries: 1
  retry_base_delay: 0
"""


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def mock_configure_logging():
    """Keep CLI invocations from reconfiguring global logging."""
    with patch("codeos.main.configure_logging") as mock:
        yield mock


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


def _invoke(cli_runner, project: Path, *args: str):
    return cli_runner.invoke(cli, ["--root", str(project), *args])


def _run_ids(project: Path) -> list[str]:
    state_dir = project / ".codeos" / "run"
    return sorted(p.name for p in state_dir.iterdir()) if state_dir.exists() else []


def _meta(project: Path, run_id: str) -> dict:
    return json.loads((project / ".codeos" / "run" / run_id / META_FILENAME).read_text())


# =============================================================================
# Group options
# =============================================================================


class TestCliGroup:
    def test_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("init", "blueprint", "run", "runs", "resume", "retry", "inspect"):
            assert command in result.output

    def test_log_level_option(self, cli_runner, project, mock_configure_logging):
        result = _invoke(cli_runner, project, "--log-level", "DEBUG", "runs")

        assert result.exit_code == 0
        mock_configure_logging.assert_called_once_with("DEBUG")

    def test_log_level_from_config(self, cli_runner, project, mock_configure_logging):
        (project / CONFIG_FILENAME).write_text("log_level: warning\n")

        _invoke(cli_runner, project, "runs")

        mock_configure_logging.assert_called_once_with("WARNING")

    def test_invalid_config(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text("engine:\n  retries: many\n")

        result = _invoke(cli_runner, project, "runs")

        assert result.exit_code == 1
        assert "Error: Invalid codeos.yml" in result.output

    def test_explicit_config_path(self, cli_runner, project, tmp_path):
        config = tmp_path / "custom.yml"
        config.write_text("workflows:\n  solo:\n    steps:\n      - role: planner\n")

        result = cli_runner.invoke(cli, ["--root", str(project), "--config", str(config), "run", "solo"])

        assert result.exit_code == 0
        assert "Starting workflow: solo" in result.output

    def test_missing_explicit_config(self, cli_runner, project, tmp_path):
        result = cli_runner.invoke(cli, ["--root", str(project), "--config", str(tmp_path / "none.yml"), "runs"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output


# =============================================================================
# init
# =============================================================================


class TestInitCommand:
    def test_creates_layout(self, cli_runner, project):
        result = _invoke(cli_runner, project, "init")

        assert result.exit_code == 0
        for directory in ARTIFACT_DIRS:
            assert (project / directory).is_dir()
        assert (project / CONFIG_FILENAME).is_file()
        assert "Initialized codeos" in result.output

    def test_keeps_existing_config(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text("workflow: build\n")

        result = _invoke(cli_runner, project, "init")

        assert result.exit_code == 0
        assert (project / CONFIG_FILENAME).read_text() == "workflow: build\n"
        assert "already exists" in result.output

    def test_sample_config_runs(self, cli_runner, project):
        _invoke(cli_runner, project, "init")
        config = (project / CONFIG_FILENAME).read_text().replace("retry_base_delay: 1.0", "retry_base_delay: 0")
        (project / CONFIG_FILENAME).write_text(config)

        result = _invoke(cli_runner, project, "run")

        assert result.exit_code == 0
        assert (project / ".codeos" / "reports" / "lint.txt").is_file()


# =============================================================================
# blueprint
# =============================================================================


class TestBlueprintCommand:
    def test_creates_blueprint(self, cli_runner, project):
        result = _invoke(cli_runner, project, "blueprint", "Add", "User", "Login")

        assert result.exit_code == 0
        assert "Blueprint created at .codeos/blueprints/add-user-login.md" in result.output
        content = (project / ".codeos" / "blueprints" / "add-user-login.md").read_text()
        assert content == BLUEPRINT_TEMPLATE.format(title="Add User Login")
        assert content.startswith("# Add User Login\n\n## Goals\n- \n")
        assert "## Acceptance Criteria\n- [ ] \n" in content

    def test_quoted_title_whitespace_collapsed(self, cli_runner, project):
        result = _invoke(cli_runner, project, "blueprint", "  Fix   Cache\tBug ")

        assert result.exit_code == 0
        assert (project / ".codeos" / "blueprints" / "fix-cache-bug.md").is_file()

    def test_existing_blueprint_overwritten(self, cli_runner, project):
        target = project / ".codeos" / "blueprints" / "search.md"
        target.parent.mkdir(parents=True)
        target.write_text("old notes")

        result = _invoke(cli_runner, project, "blueprint", "Search")

        assert result.exit_code == 0
        assert target.read_text().startswith("# Search\n")

    def test_title_required(self, cli_runner, project):
        result = _invoke(cli_runner, project, "blueprint")

        assert result.exit_code == 2
        assert not (project / ".codeos").exists()

    @pytest.mark.parametrize(
        ("title", "slug"),
        [
            ("Add User Login", "add-user-login"),
            ("  padded  ", "padded"),
            ("tabs\tand\nnewlines", "tabs-and-newlines"),
            ("API v2", "api-v2"),
        ],
    )
    def test_blueprint_slug(self, title, slug):
        assert blueprint_slug(title) == slug


# =============================================================================
# run / runs
# =============================================================================


class TestRunCommand:
    def test_successful_run(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text(PASSING_CONFIG)

        result = _invoke(cli_runner, project, "run")

        assert result.exit_code == 0
        assert "Starting workflow: build" in result.output
        assert "Workflow completed successfully" in result.output
        assert "Steps completed: 4/4" in result.output
        assert "Step 2: Verification" in result.output
        [run_id] = _run_ids(project)
        assert _meta(project, run_id)["status"] == "completed"

    def test_failed_run(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text(FAILING_CONFIG)

        result = _invoke(cli_runner, project, "run")

        assert result.exit_code == 1
        [run_id] = _run_ids(project)
        assert "Workflow failed: lint failed" in result.output
        assert f"codeos resume {run_id}" in result.output
        meta = _meta(project, run_id)
        assert meta["status"] == "failed"
        assert meta["steps"][2]["attempts"] == 2
        assert meta["steps"][3]["status"] == "pending"

    def test_failed_run_reports_its_own_id(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text(FAILING_CONFIG)
        _invoke(cli_runner, project, "run")
        [older_id] = _run_ids(project)
        meta_path = project / ".codeos" / "run" / older_id / META_FILENAME
        document = json.loads(meta_path.read_text())
        document["started_at"] = "2999-01-01T00:00:00Z"
        meta_path.write_text(json.dumps(document))

        result = _invoke(cli_runner, project, "run")

        [new_id] = [run_id for run_id in _run_ids(project) if run_id != older_id]
        assert result.exit_code == 1
        assert "Workflow failed: lint failed" in result.output
        assert f"codeos resume {new_id}" in result.output
        assert older_id not in result.output

    def test_retries_option_overrides_config(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text(FAILING_CONFIG)

        _invoke(cli_runner, project, "run", "--retries", "0")

        [run_id] = _run_ids(project)
        assert _meta(project, run_id)["steps"][2]["attempts"] == 1

    def test_unknown_workflow(self, cli_runner, project):
        result = _invoke(cli_runner, project, "run", "deploy")

        assert result.exit_code == 1
        assert "Workflow 'deploy' not found" in result.output
        assert _run_ids(project) == []

    def test_runs_empty(self, cli_runner, project):
        result = _invoke(cli_runner, project, "runs")

        assert result.exit_code == 0
        assert "No workflow runs found" in result.output

    def test_runs_lists_runs(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text(PASSING_CONFIG)
        _invoke(cli_runner, project, "run")
        [run_id] = _run_ids(project)

        result = _invoke(cli_runner, project, "runs")

        assert result.exit_code == 0
        assert "Workflow runs (1)" in result.output
        assert f"{run_id} (build) - completed - 4/4 steps" in result.output


# =============================================================================
# resume / retry / inspect
# =============================================================================


class TestRunManagementCommands:
    def _failed_run(self, cli_runner, project) -> str:
        (project / CONFIG_FILENAME).write_text(FAILING_CONFIG)
        _invoke(cli_runner, project, "run")
        [run_id] = _run_ids(project)
        return run_id

    def test_resume_after_fix(self, cli_runner, project):
        run_id = self._failed_run(cli_runner, project)
        (project / CONFIG_FILENAME).write_text(PASSING_CONFIG)

        result = _invoke(cli_runner, project, "resume", run_id)

        assert result.exit_code == 0
        assert "Workflow resumed and completed successfully" in result.output
        assert _meta(project, run_id)["status"] == "completed"
        assert _run_ids(project) == [run_id]

    def test_resume_unknown_run(self, cli_runner, project):
        result = _invoke(cli_runner, project, "resume", "missing")

        assert result.exit_code == 1
        assert "Error: Run not found: missing" in result.output

    def test_resume_completed_run(self, cli_runner, project):
        (project / CONFIG_FILENAME).write_text(PASSING_CONFIG)
        _invoke(cli_runner, project, "run")
        [run_id] = _run_ids(project)

        result = _invoke(cli_runner, project, "resume", run_id)

        assert result.exit_code == 1
        assert f"No steps to resume in run {run_id}" in result.output

    def test_retry_from_step(self, cli_runner, project):
        run_id = self._failed_run(cli_runner, project)
        (project / CONFIG_FILENAME).write_text(PASSING_CONFIG)

        result = _invoke(cli_runner, project, "retry", run_id, "2")

        assert result.exit_code == 0
        assert "Retrying from: Step 2 - Verification (verifier)" in result.output
        assert "Previous error: lint failed" in result.output
        assert "Workflow retried and completed successfully" in result.output
        assert _meta(project, run_id)["steps"][2]["attempts"] == 1

    def test_retry_invalid_index(self, cli_runner, project):
        run_id = self._failed_run(cli_runner, project)
        before = (project / ".codeos" / "run" / run_id / META_FILENAME).read_bytes()

        result = _invoke(cli_runner, project, "retry", run_id, "9")

        assert result.exit_code == 1
        assert "Invalid step index: 9. Must be between 0 and 3" in result.output
        assert (project / ".codeos" / "run" / run_id / META_FILENAME).read_bytes() == before

    def test_inspect(self, cli_runner, project):
        run_id = self._failed_run(cli_runner, project)

        result = _invoke(cli_runner, project, "inspect", run_id)

        assert result.exit_code == 0
        assert f"Workflow Run Details: {run_id}" in result.output
        assert "Status: failed" in result.output
        assert "Error: lint failed" in result.output
        assert "Step 2: Verification (verifier)" in result.output
        assert "attempts: 2" in result.output
        assert f"codeos resume {run_id}" in result.output
        assert f"codeos retry {run_id} 2" in result.output
        assert "Events:" not in result.output

    def test_inspect_with_logs(self, cli_runner, project):
        run_id = self._failed_run(cli_runner, project)

        result = _invoke(cli_runner, project, "inspect", run_id, "--logs")

        assert result.exit_code == 0
        assert "Events:" in result.output
        assert "[info] workflow_started" in result.output
        assert "[warn] step_retry" in result.output
        assert "[error] step_retries_exhausted" in result.output

    def test_inspect_unknown_run(self, cli_runner, project):
        result = _invoke(cli_runner, project, "inspect", "missing")

        assert result.exit_code == 1
        assert "Run not found: missing" in result.output

    @pytest.mark.parametrize("command", ["inspect", "resume"])
    def test_traversal_run_id_rejected(self, cli_runner, project, command):
        outside = project.parent / "outside"
        outside.mkdir()
        (outside / META_FILENAME).write_text("{}")

        result = _invoke(cli_runner, project, command, "../../../outside")

        assert result.exit_code == 1
        assert "Run not found: ../../../outside" in result.output
        assert (outside / META_FILENAME).read_text() == "{}"


# =============================================================================
# Error mapping
# =============================================================================


class TestErrorHandling:
    def test_keyboard_interrupt_exit_code(self, cli_runner, project):
        with (
            patch("codeos.main._list_runs", MagicMock()),
            patch("codeos.main.asyncio.run", side_effect=KeyboardInterrupt),
        ):
            result = _invoke(cli_runner, project, "runs")

        assert result.exit_code == 130
        assert "Interrupted by user" in result.output

    def test_unexpected_error_exit_code(self, cli_runner, project):
        with (
            patch("codeos.main._list_runs", MagicMock()),
            patch("codeos.main.asyncio.run", side_effect=RuntimeError("disk on fire")),
        ):
            result = _invoke(cli_runner, project, "runs")

        assert result.exit_code == 1
        assert "Unexpected error: disk on fire" in result.output
