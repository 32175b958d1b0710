"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from pathlib import Path

import pytest

from codeos.config.settings import DEFAULT_WORKFLOWS
from codeos.engine.orchestrator import WorkflowRunEngine
from codeos.engine.types import StepSpec, WorkflowDefinition
from codeos.enums import RoleName
from codeos.roles.base import Role, RoleContext, RoleResult
from codeos.roles.registry import RoleDispatcher


class StubRole(Role):
    """Role whose outcomes are scripted per call.

    Each entry of ``outcomes`` is consumed by one call: an exception instance
    is raised, a list is returned as artifact paths. Once the script runs out
    every further call succeeds with no artifacts.
    """

    def __init__(self, outcomes: list | None = None, on_execute: Callable | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.on_execute = on_execute
        self.calls: list[RoleContext] = []

    async def execute(self, context: RoleContext) -> RoleResult:
        self.calls.append(context)
        if self.on_execute is not None:
            self.on_execute(context)
        outcome = self.outcomes.pop(0) if self.outcomes else []
        if isinstance(outcome, BaseException):
            raise outcome
        return RoleResult(artifact_paths=list(outcome))


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def build_workflow() -> WorkflowDefinition:
    """Built-in four step workflow."""
    return DEFAULT_WORKFLOWS["build"]


@pytest.fixture
def two_step_workflow() -> WorkflowDefinition:
    """Planner followed by verifier."""
    return WorkflowDefinition(
        name="quick",
        steps=(
            StepSpec(role=RoleName.PLANNER, name="Plan"),
            StepSpec(role=RoleName.VERIFIER, name="Verify"),
        ),
    )


@pytest.fixture
def stub_roles() -> dict[RoleName, StubRole]:
    """One fresh StubRole per role name."""
    return {role: StubRole() for role in RoleName}


@pytest.fixture
def dispatcher(stub_roles: dict[RoleName, StubRole]) -> RoleDispatcher:
    """Dispatcher over the stub roles."""
    return RoleDispatcher(stub_roles)


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the engine."""
    return []


@pytest.fixture
def recording_sleep(sleeps: list[float]) -> Callable:
    """Sleep replacement that records delays instead of waiting."""

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def engine(project_root: Path, recording_sleep: Callable) -> WorkflowRunEngine:
    """Engine with one retry per step and no real backoff."""
    return WorkflowRunEngine(project_root, retries=1, sleep=recording_sleep)
