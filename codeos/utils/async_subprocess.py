"""Async subprocess utilities.

Provides non-blocking shell command execution for the command-backed roles,
so that a long lint or test run does not stall the event loop.

Example:
    >>> from codeos.utils.async_subprocess import run_shell_command
    >>> stdout, stderr, code = await run_shell_command("ruff check .", cwd="/repo", check=False)
    >>> if code != 0:
    ...     print(stdout)
"""

import asyncio
import subprocess
from pathlib import Path


async def run_shell_command(
    command: str,
    *,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
) -> tuple[str, str, int]:
    """Run a shell command asynchronously.

    Args:
        command: Complete shell command string, passed to ``/bin/sh -c``.
        cwd: Working directory for command execution. If None, uses the
            current working directory.
        check: If True (default), raise CalledProcessError on non-zero
            exit code. If False, return exit code without raising.
        timeout: Maximum seconds to wait. Process is killed if exceeded.
            None means wait indefinitely.

    Returns:
        Tuple of (stdout, stderr, return_code) where stdout and stderr are
        decoded UTF-8 strings, and return_code is the process exit code.

    Raises:
        subprocess.CalledProcessError: If check=True and command returns
            non-zero exit code.
        TimeoutError: If timeout is exceeded. The process is killed
            before this exception is raised.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout,
        )
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(
            process.returncode,
            command,
            stdout,
            stderr,
        )

    return stdout, stderr, process.returncode or 0
