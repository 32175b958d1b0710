"""Role implementations and the role dispatch table.

Each workflow step is bound to one of four roles (planner, builder, verifier,
reviewer). The engine reaches a role only through a RoleDispatcher, which
maps every role name to a Role instance.

Available Roles:
    - CommandRole: runs a configured shell command and keeps its output
    - GateRole: verifier running lint/typecheck/test gates

Example:
    >>> from codeos.roles import build_dispatcher
    >>> dispatcher = build_dispatcher(settings)
"""

from codeos.roles.base import ModelDriver, Role, RoleContext, RoleResult
from codeos.roles.factory import build_dispatcher
from codeos.roles.registry import RoleDispatcher

__all__ = [
    "ModelDriver",
    "Role",
    "RoleContext",
    "RoleDispatcher",
    "RoleResult",
    "build_dispatcher",
]
