"""
Append-only structured event log for a single workflow run.

Each run has a ``logs.jsonl`` file next to its ``meta.json``. Every event is
one JSON object per line::

    {"timestamp": "2026-10-16T09:30:00.123456+00:00", "level": "info",
     "message": "step_started", "run_id": "...", "step": 0, "role": "planner"}

The run document is the primary record of what happened; this log is the
secondary, chronological trail used for post-mortems. Events are mirrored to
the logger the engine was constructed with.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles

from codeos.enums import LogLevel
from codeos.exceptions import PersistenceError


class RunLog:
    """Append JSON-lines events for one run and mirror them to a logger.

    Attributes:
        path: Location of the log file.
        run_id: Run the events belong to.
    """

    def __init__(self, path: Path, run_id: str, logger: Any) -> None:
        self.path = path
        self.run_id = run_id
        self._logger = logger

    async def append(self, level: LogLevel, message: str, **metadata: Any) -> None:
        """Append one event.

        Args:
            level: Event severity.
            message: Snake-case event name, e.g. ``step_completed``.
            **metadata: Free-form JSON-serializable fields.

        Raises:
            PersistenceError: If the log file cannot be written.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level.value,
            "message": message,
            "run_id": self.run_id,
            **metadata,
        }

        getattr(self._logger, level.method_name)(message, run_id=self.run_id, **metadata)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.path, "a") as f:
                await f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            raise PersistenceError(f"Cannot append to run log: {e}", path=str(self.path)) from e

    async def info(self, message: str, **metadata: Any) -> None:
        await self.append(LogLevel.INFO, message, **metadata)

    async def warn(self, message: str, **metadata: Any) -> None:
        await self.append(LogLevel.WARN, message, **metadata)

    async def error(self, message: str, **metadata: Any) -> None:
        await self.append(LogLevel.ERROR, message, **metadata)

    async def read(self) -> list[dict[str, Any]]:
        """Read back every event in append order.

        Lines that are not valid JSON (e.g. a torn final write) are skipped.

        Returns:
            List of event dictionaries, empty if the log does not exist.
        """
        if not self.path.exists():
            return []

        try:
            async with aiofiles.open(self.path) as f:
                content = await f.read()
        except OSError as e:
            raise PersistenceError(f"Cannot read run log: {e}", path=str(self.path)) from e

        events = []
        for line in content.splitlines():
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events
