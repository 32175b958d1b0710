"""CLI entry point for codeos."""

import asyncio
import re
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import click
import structlog

from codeos.config.project import find_project_root
from codeos.config.settings import CONFIG_FILENAME, CodeOSSettings
from codeos.engine.orchestrator import WorkflowRunEngine
from codeos.engine.types import Run, StepResult
from codeos.enums import RunStatus, StepStatus
from codeos.exceptions import CodeOSError, StepFailureError
from codeos.roles.factory import build_dispatcher
from codeos.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)

ARTIFACT_DIRS = [
    ".codeos",
    ".codeos/blueprints",
    ".codeos/plan",
    ".codeos/patches",
    ".codeos/reports",
    ".codeos/review",
    ".codeos/run",
]

SAMPLE_CONFIG = """\
workflow: build
workflows:
  build:
    steps:
      - role: planner
      - role: builder
      - role: verifier
      - role: reviewer
gates:
  lint: "echo 'configure a lint command'"
  test: "echo 'configure a test command'"
engine:
  state_directory: .codeos/run
  retries: 1
  retry_base_delay: 1.0
roles:
  planner:
    output_dir: plan
  builder:
    output_dir: patches
  reviewer:
    output_dir: review
"""

STATUS_ICONS = {
    StepStatus.COMPLETED: "✅",
    StepStatus.FAILED: "❌",
    StepStatus.RUNNING: "🏃",
    StepStatus.PENDING: "⏸️",
    StepStatus.SKIPPED: "⏭️",
}

RUN_ICONS = {
    RunStatus.COMPLETED: "✅",
    RunStatus.FAILED: "❌",
    RunStatus.RUNNING: "🏃",
    RunStatus.CANCELLED: "⏸️",
}

BLUEPRINTS_DIR = ".codeos/blueprints"

BLUEPRINT_TEMPLATE = """\
# {title}

## Goals
- 

## Constraints
- 

## Acceptance Criteria
- [ ] 

## Test Plan
- 

"""


@click.group()
@click.option("--config", default=None, help=f"Path to configuration file (default: <root>/{CONFIG_FILENAME})")
@click.option("--root", default=None, type=click.Path(file_okay=False), help="Project root directory")
@click.option("--log-level", default=None, help="Logging level (overrides configuration)")
@click.pass_context
def cli(ctx: click.Context, config: str | None, root: str | None, log_level: str | None) -> None:
    """codeos: resumable plan/build/verify/review workflows."""
    project_root = Path(root).resolve() if root else find_project_root()

    try:
        if config:
            settings = CodeOSSettings.from_yaml(config)
        else:
            settings = CodeOSSettings.load(project_root)
    except CodeOSError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    try:
        configure_logging(log_level or settings.log_level)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    ctx.obj = {"settings": settings, "root": project_root}


def _create_engine(settings: CodeOSSettings, project_root: Path) -> WorkflowRunEngine:
    return WorkflowRunEngine(
        project_root,
        settings.state_dir(project_root),
        retries=settings.engine.retries,
        retry_base_delay=settings.engine.retry_base_delay,
        logger=structlog.get_logger("codeos.engine"),
    )


def _run_command(name: str, coro: Any) -> Any:
    """Run a coroutine for a command, mapping errors to exit codes."""
    try:
        return asyncio.run(coro)
    except CodeOSError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug(f"{name}_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error(f"{name}_unexpected", exc_info=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create the .codeos/ directories and a sample codeos.yml."""
    project_root: Path = ctx.obj["root"]

    for directory in ARTIFACT_DIRS:
        path = project_root / directory
        path.mkdir(parents=True, exist_ok=True)
        log.debug("ensured_directory", path=str(path))

    config_path = project_root / CONFIG_FILENAME
    if config_path.exists():
        click.echo(f"{CONFIG_FILENAME} already exists, leaving it unchanged")
    else:
        config_path.write_text(SAMPLE_CONFIG)
        click.echo(f"Wrote {CONFIG_FILENAME}")

    click.echo(f"✅ Initialized codeos in {project_root}")


@cli.command()
@click.argument("title", nargs=-1, required=True)
@click.pass_context
def blueprint(ctx: click.Context, title: tuple[str, ...]) -> None:
    """Create a blueprint skeleton named after TITLE."""
    project_root: Path = ctx.obj["root"]
    path = create_blueprint(project_root, " ".join(title))
    click.echo(f"📝 Blueprint created at {path}")


def blueprint_slug(title: str) -> str:
    """File stem for a blueprint: whitespace runs become ``-``, lowercased."""
    return re.sub(r"\s+", "-", title.strip()).lower()


def create_blueprint(project_root: Path, title: str) -> Path:
    """Write ``.codeos/blueprints/<slug>.md``, replacing any existing file.

    Returns:
        Path of the blueprint relative to the project root
    """
    relative = Path(BLUEPRINTS_DIR) / f"{blueprint_slug(title)}.md"
    target = project_root / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(BLUEPRINT_TEMPLATE.format(title=title))
    log.debug("blueprint_created", path=str(target))
    return relative


@cli.command()
@click.argument("workflow", required=False)
@click.option("--retries", type=click.IntRange(min=0), default=None, help="Retries per step")
@click.pass_context
def run(ctx: click.Context, workflow: str | None, retries: int | None) -> None:
    """Start a workflow run (default workflow from configuration)."""
    settings: CodeOSSettings = ctx.obj["settings"]
    project_root: Path = ctx.obj["root"]
    _run_command("run", _start_workflow(settings, project_root, workflow, retries))


@cli.command()
@click.pass_context
def runs(ctx: click.Context) -> None:
    """List workflow runs, newest first."""
    _run_command("runs", _list_runs(ctx.obj["settings"], ctx.obj["root"]))


@cli.command()
@click.argument("run_id")
@click.option("--retries", type=click.IntRange(min=0), default=None, help="Retries per step")
@click.pass_context
def resume(ctx: click.Context, run_id: str, retries: int | None) -> None:
    """Resume a run from its first unfinished step."""
    _run_command("resume", _resume_run(ctx.obj["settings"], ctx.obj["root"], run_id, retries))


@cli.command()
@click.argument("run_id")
@click.argument("step_index", type=int)
@click.option("--retries", type=click.IntRange(min=0), default=None, help="Retries per step")
@click.pass_context
def retry(ctx: click.Context, run_id: str, step_index: int, retries: int | None) -> None:
    """Re-run a run from STEP_INDEX (0-based) onward."""
    _run_command(
        "retry",
        _retry_run(ctx.obj["settings"], ctx.obj["root"], run_id, step_index, retries),
    )


@cli.command()
@click.argument("run_id")
@click.option("--logs", "show_logs", is_flag=True, help="Also print the run's event log")
@click.pass_context
def inspect(ctx: click.Context, run_id: str, show_logs: bool) -> None:
    """Show the details of a run."""
    _run_command("inspect", _inspect_run(ctx.obj["settings"], ctx.obj["root"], run_id, show_logs))


def _format_duration(step: StepResult) -> str:
    if step.duration_ms is None:
        return "N/A"
    return f"{step.duration_ms / 1000:.1f}s"


def _echo_step_summary(run: Run, retried_from: int | None = None) -> None:
    click.echo(f"📊 Steps completed: {run.completed_steps}/{len(run.steps)}")
    for index, step in enumerate(run.steps):
        marker = " 🔄" if retried_from is not None and index >= retried_from else ""
        click.echo(
            f"  {STATUS_ICONS[step.status]} Step {index}: {step.spec.name} ({_format_duration(step)}){marker}"
        )


def _relative_run_dir(engine: WorkflowRunEngine, project_root: Path, run_id: str) -> str:
    run_dir = engine.store.run_dir(run_id)
    try:
        return str(run_dir.relative_to(project_root))
    except ValueError:
        return str(run_dir)


async def _start_workflow(
    settings: CodeOSSettings,
    project_root: Path,
    workflow: str | None,
    retries: int | None,
) -> None:
    """Start a workflow and print its outcome.

    Args:
        settings: Loaded settings
        project_root: Project the roles operate in
        workflow: Workflow name, or None for the configured default
        retries: Retry override
    """
    definition = settings.get_workflow(workflow)
    engine = _create_engine(settings, project_root)
    dispatcher = build_dispatcher(settings)

    click.echo(f"🚀 Starting workflow: {definition.name}")
    try:
        run = await engine.start(definition, dispatcher, retries=retries)
    except StepFailureError as e:
        if e.run_id is not None:
            click.echo(f"❌ Workflow failed: {e.message}", err=True)
            click.echo(f"📁 Partial artifacts: {_relative_run_dir(engine, project_root, e.run_id)}")
            click.echo(f"💡 Resume with: codeos resume {e.run_id}")
        raise

    click.echo("✅ Workflow completed successfully")
    click.echo(f"📁 Run artifacts: {_relative_run_dir(engine, project_root, run.id)}")
    _echo_step_summary(run)


async def _list_runs(settings: CodeOSSettings, project_root: Path) -> None:
    engine = _create_engine(settings, project_root)
    all_runs = await engine.list_runs()

    if not all_runs:
        click.echo("No workflow runs found")
        return

    now = datetime.now(UTC)
    click.echo(f"📋 Workflow runs ({len(all_runs)}):")
    for item in all_runs:
        click.echo(
            f"  {RUN_ICONS[item.status]} {item.id} ({item.workflow_name}) - {item.status.value} - "
            f"{item.completed_steps}/{len(item.steps)} steps - {round(item.duration_seconds(now))}s"
        )


async def _resume_run(
    settings: CodeOSSettings,
    project_root: Path,
    run_id: str,
    retries: int | None,
) -> None:
    engine = _create_engine(settings, project_root)
    click.echo(f"🔄 Resuming workflow run: {run_id}")

    result = await engine.resume(run_id, build_dispatcher(settings), retries=retries)

    click.echo("✅ Workflow resumed and completed successfully")
    _echo_step_summary(result)


async def _retry_run(
    settings: CodeOSSettings,
    project_root: Path,
    run_id: str,
    step_index: int,
    retries: int | None,
) -> None:
    engine = _create_engine(settings, project_root)
    click.echo(f"🔄 Retrying workflow run: {run_id} from step {step_index}")

    before = await engine.inspect(run_id)
    if 0 <= step_index < len(before.steps):
        step = before.steps[step_index]
        click.echo(f"📍 Retrying from: Step {step_index} - {step.spec.name} ({step.spec.role.value})")
        if step.error:
            click.echo(f"❌ Previous error: {step.error}")

    result = await engine.retry_from_step(run_id, step_index, build_dispatcher(settings), retries=retries)

    click.echo("✅ Workflow retried and completed successfully")
    _echo_step_summary(result, retried_from=step_index)


async def _inspect_run(
    settings: CodeOSSettings,
    project_root: Path,
    run_id: str,
    show_logs: bool,
) -> None:
    engine = _create_engine(settings, project_root)
    item = await engine.inspect(run_id)

    click.echo(f"🔍 Workflow Run Details: {item.id}")
    click.echo(f"📝 Workflow: {item.workflow_name}")
    click.echo(f"⏰ Started: {item.started_at.isoformat()}")
    if item.completed_at:
        click.echo(f"🏁 Finished: {item.completed_at.isoformat()}")
    click.echo(f"📊 Status: {item.status.value}")
    if item.error:
        click.echo(f"❌ Error: {item.error}")

    click.echo(f"\n📋 Steps ({len(item.steps)}):")
    for index, step in enumerate(item.steps):
        click.echo(
            f"  {STATUS_ICONS[step.status]} Step {index}: {step.spec.name} ({step.spec.role.value}) - "
            f"{_format_duration(step)} - attempts: {step.attempts}"
        )
        if step.error:
            click.echo(f"    ❌ Error: {step.error}")
        if step.artifacts:
            click.echo(f"    📁 Artifacts: {', '.join(step.artifacts)}")

    click.echo("\n💡 Commands:")
    if item.first_resumable_index() is not None:
        click.echo(f"  Resume: codeos resume {item.id}")
    retryable = [
        (index, step)
        for index, step in enumerate(item.steps)
        if step.status in (StepStatus.FAILED, StepStatus.COMPLETED)
    ]
    if retryable:
        click.echo("  Retry from step:")
        for index, step in retryable:
            click.echo(f"    codeos retry {item.id} {index}  # {step.spec.name}")

    if show_logs:
        click.echo("\n📜 Events:")
        for event in await engine.read_log(item.id):
            extra = {k: v for k, v in event.items() if k not in ("timestamp", "level", "message", "run_id")}
            details = " ".join(f"{k}={v}" for k, v in extra.items())
            click.echo(f"  {event.get('timestamp')} [{event.get('level')}] {event.get('message')} {details}".rstrip())


if __name__ == "__main__":
    cli()
