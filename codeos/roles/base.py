"""
Base class for workflow roles.

A role performs the actual work of a step: planning, building, verifying or
reviewing. The run engine knows nothing about what a role does; it hands the
role a RoleContext, waits for a RoleResult and records the artifact paths.

Role Contract:
    - ``execute()`` returns the files it produced (absolute or relative to
      the project root).
    - Failure is signalled by raising. The message of the exception becomes
      the step's ``error`` on the persisted run, so it should say what went
      wrong in one line (``"lint failed"``).
    - Roles impose their own timeouts; the engine imposes none.

Creating New Roles:
    1. Subclass Role
    2. Implement ``execute()``
    3. Bind it to a RoleName in a RoleDispatcher

Example:
    >>> class EchoPlanner(Role):
    ...     async def execute(self, context: RoleContext) -> RoleResult:
    ...         plan = context.project_root / ".codeos" / "plan" / "plan.md"
    ...         plan.write_text("# Plan")
    ...         return RoleResult(artifact_paths=[str(plan)])
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from codeos.engine.types import StepSpec


class ModelDriver(Protocol):
    """Language-model client a role may use to generate content.

    The engine passes the driver through to roles untouched.
    """

    name: str

    async def generate(self, messages: list[dict[str, Any]], **options: Any) -> str: ...


@dataclass(frozen=True)
class RoleContext:
    """Everything a role receives for one step execution."""

    project_root: Path
    run_id: str
    step_index: int
    step: StepSpec
    driver: ModelDriver | None = None


@dataclass
class RoleResult:
    """Outcome of a successful role execution."""

    artifact_paths: list[str] = field(default_factory=list)


class Role(ABC):
    """Abstract base class for all roles."""

    @abstractmethod
    async def execute(self, context: RoleContext) -> RoleResult:
        """Perform the role's work for one step.

        Args:
            context: Project root, run/step identity and optional model
                driver.

        Returns:
            RoleResult listing the files produced.

        Raises:
            Exception: Any exception marks the step attempt as failed.
        """
        pass
