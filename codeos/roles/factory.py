"""Factory for the CLI's role dispatcher."""

import structlog

from codeos.config.settings import CodeOSSettings
from codeos.enums import RoleName
from codeos.roles.base import ModelDriver
from codeos.roles.command import CommandRole, GateRole
from codeos.roles.registry import RoleDispatcher

log = structlog.get_logger(__name__)


def build_dispatcher(settings: CodeOSSettings, driver: ModelDriver | None = None) -> RoleDispatcher:
    """Create a dispatcher binding every role to its configured command.

    Args:
        settings: Loaded codeos settings.
        driver: Optional model driver passed through to roles.

    Returns:
        RoleDispatcher covering all four roles.

    Example:
        >>> settings = CodeOSSettings.load(project_root)
        >>> dispatcher = build_dispatcher(settings)
    """
    roles = settings.roles
    redact_keys = settings.redact_keys
    log.debug("building_role_dispatcher", gates=list(settings.gates))
    return RoleDispatcher(
        {
            RoleName.PLANNER: CommandRole(
                RoleName.PLANNER,
                roles.planner.command,
                roles.planner.output_dir,
                roles.planner.timeout,
                redact_keys=redact_keys,
            ),
            RoleName.BUILDER: CommandRole(
                RoleName.BUILDER,
                roles.builder.command,
                roles.builder.output_dir,
                roles.builder.timeout,
                redact_keys=redact_keys,
            ),
            RoleName.VERIFIER: GateRole(settings.gates, timeout=roles.gate_timeout, redact_keys=redact_keys),
            RoleName.REVIEWER: CommandRole(
                RoleName.REVIEWER,
                roles.reviewer.command,
                roles.reviewer.output_dir,
                roles.reviewer.timeout,
                redact_keys=redact_keys,
            ),
        },
        driver=driver,
    )
