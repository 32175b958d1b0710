"""Role dispatch table.

Maps each of the four fixed role names to a Role implementation. The table is
checked for completeness when it is built, so a workflow can never reach a
step whose role has no implementation.
"""

import os
from collections.abc import Mapping
from pathlib import Path

from codeos.engine.types import StepSpec
from codeos.enums import RoleName
from codeos.exceptions import ConfigurationError
from codeos.roles.base import ModelDriver, Role, RoleContext


class RoleDispatcher:
    """Closed, enum-keyed dispatch table of roles.

    Attributes:
        driver: Optional model driver handed to every role.

    Example:
        >>> dispatcher = RoleDispatcher({
        ...     RoleName.PLANNER: planner,
        ...     RoleName.BUILDER: builder,
        ...     RoleName.VERIFIER: verifier,
        ...     RoleName.REVIEWER: reviewer,
        ... })
        >>> artifacts = await dispatcher.dispatch(context)
    """

    def __init__(self, roles: Mapping[RoleName, Role], driver: ModelDriver | None = None) -> None:
        """Build the table.

        Raises:
            ConfigurationError: If any role name lacks an implementation.
        """
        missing = [role.value for role in RoleName if role not in roles]
        if missing:
            raise ConfigurationError(f"No implementation bound for role(s): {', '.join(missing)}")

        self._roles: dict[RoleName, Role] = {role: roles[role] for role in RoleName}
        self.driver = driver

    def __getitem__(self, role: RoleName) -> Role:
        return self._roles[role]

    def context_for(self, project_root: Path, run_id: str, step_index: int, step: StepSpec) -> RoleContext:
        return RoleContext(
            project_root=project_root,
            run_id=run_id,
            step_index=step_index,
            step=step,
            driver=self.driver,
        )

    async def dispatch(self, context: RoleContext) -> list[str]:
        """Run the role bound to ``context.step.role``.

        Returns:
            Artifact paths relative to the project root, with forward
            slashes.
        """
        result = await self._roles[context.step.role].execute(context)
        return [_relative_to(context.project_root, path) for path in result.artifact_paths]


def _relative_to(root: Path, path: str) -> str:
    candidate = Path(path)
    if not candidate.is_absolute():
        return candidate.as_posix()
    return Path(os.path.relpath(candidate, root)).as_posix()
