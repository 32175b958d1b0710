"""Command-backed role implementations used by the CLI.

The engine does not care how a role produces its artifacts. For the CLI, each
role is bound to a shell command from ``codeos.yml``; its combined output is
written under ``.codeos/`` and recorded as the step's artifact. Values of
secret environment variables are redacted before anything is written.

Example configuration::

    roles:
      planner:
        command: "my-planner --blueprint .codeos/blueprints"
        output_dir: plan
    gates:
      lint: "ruff check ."
      test: "pytest -q"
"""

from collections.abc import Iterable, Mapping
from pathlib import Path

import aiofiles
import structlog

from codeos.enums import RoleName
from codeos.exceptions import RoleError
from codeos.roles.base import Role, RoleContext, RoleResult
from codeos.utils.async_subprocess import run_shell_command
from codeos.utils.redact import redact_secrets

log = structlog.get_logger(__name__)

ARTIFACT_ROOT = ".codeos"
REPORTS_DIR = "reports"


def _format_output(
    command: str,
    stdout: str,
    stderr: str,
    returncode: int,
    redact_keys: Iterable[str] = (),
) -> str:
    text = f"$ {command}\n# exit code: {returncode}\n\n{stdout}" + (f"\n--- stderr ---\n{stderr}" if stderr else "")
    return redact_secrets(text, redact_keys)


async def _write_report(path: Path, text: str) -> None:
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(text)


class CommandRole(Role):
    """Run one shell command in the project root.

    Attributes:
        role: Role this instance is bound to, used for naming output.
        command: Shell command, or None to complete without doing anything.
        output_dir: Directory under ``.codeos/`` receiving the output log.
        timeout: Optional timeout in seconds.
        redact_keys: Extra environment variables to redact from the output.
    """

    def __init__(
        self,
        role: RoleName,
        command: str | None,
        output_dir: str,
        timeout: float | None = None,
        redact_keys: Iterable[str] = (),
    ) -> None:
        self.role = role
        self.command = command
        self.output_dir = output_dir
        self.timeout = timeout
        self.redact_keys = tuple(redact_keys)

    async def execute(self, context: RoleContext) -> RoleResult:
        if not self.command:
            log.warning("role_not_configured", role=self.role.value, run_id=context.run_id)
            return RoleResult()

        stdout, stderr, returncode = await run_shell_command(
            self.command,
            cwd=context.project_root,
            check=False,
            timeout=self.timeout,
        )

        out_dir = context.project_root / ARTIFACT_ROOT / self.output_dir
        out_dir.mkdir(parents=True, exist_ok=True)
        output_path = out_dir / f"{self.role.value}.log"
        await _write_report(output_path, _format_output(self.command, stdout, stderr, returncode, self.redact_keys))

        if returncode != 0:
            raise RoleError(f"{self.role.value} command failed (exit {returncode})", role=self.role)

        return RoleResult(artifact_paths=[str(output_path)])


class GateRole(Role):
    """Verifier that runs a series of quality gates.

    Every gate runs even when an earlier one fails, so that all reports are
    available for inspection. A report per gate is written to
    ``.codeos/reports/<gate>.txt``.
    """

    def __init__(
        self,
        gates: Mapping[str, str],
        timeout: float | None = None,
        redact_keys: Iterable[str] = (),
    ) -> None:
        self.gates = dict(gates)
        self.timeout = timeout
        self.redact_keys = tuple(redact_keys)

    async def execute(self, context: RoleContext) -> RoleResult:
        reports_dir = context.project_root / ARTIFACT_ROOT / REPORTS_DIR
        reports_dir.mkdir(parents=True, exist_ok=True)

        reports: list[Path] = []
        failed: list[str] = []

        for gate, command in self.gates.items():
            stdout, stderr, returncode = await run_shell_command(
                command,
                cwd=context.project_root,
                check=False,
                timeout=self.timeout,
            )
            report_path = reports_dir / f"{gate}.txt"
            await _write_report(report_path, _format_output(command, stdout, stderr, returncode, self.redact_keys))
            reports.append(report_path)

            log.info("gate_finished", gate=gate, returncode=returncode, run_id=context.run_id)
            if returncode != 0:
                failed.append(gate)

        if failed:
            raise RoleError(f"{', '.join(failed)} failed", role=RoleName.VERIFIER)

        return RoleResult(artifact_paths=[str(path) for path in reports])
