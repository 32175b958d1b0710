"""
Durable storage for workflow runs.

Each run lives in its own directory under the state directory::

    .codeos/run/
        2026-10-16T09-30-00-123456Z/
            meta.json     # full Run document, rewritten after every transition
            logs.jsonl    # append-only event log (see codeos.engine.run_log)

Writes are atomic: the document is serialized in memory, written to a
temporary file in the run directory and renamed over ``meta.json``. On POSIX
the rename is atomic when both paths share a filesystem, so a reader never
sees a half-written document.

Snapshot Semantics:
    ``persist()`` serializes the run before its first await. Mutations the
    engine makes to the in-memory run while the write is in flight cannot
    leak into the document being written.

Concurrency Model:
    There is no locking. A run is assumed to be driven by exactly one engine
    in one process; two processes driving the same run id race on
    ``meta.json``.

Example:
    >>> store = RunStateStore(".codeos/run")
    >>> run = await store.initialize(definition)
    >>> run.steps[0].status
    <StepStatus.PENDING: 'pending'>
    >>> (await store.load(run.id)) == run
    True
"""

import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles
import structlog
from pydantic import ValidationError

from codeos.engine.run_log import RunLog
from codeos.engine.types import Run, StepResult, WorkflowDefinition
from codeos.exceptions import PersistenceError, RunCorruptError, RunNotFoundError
from codeos.utils.logging_config import null_logger

log = structlog.get_logger(__name__)

META_FILENAME = "meta.json"
LOG_FILENAME = "logs.jsonl"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def generate_run_id(now: datetime | None = None) -> str:
    """Build a run id from a UTC timestamp.

    Non-alphanumeric characters are replaced by ``-`` so the id is safe as a
    directory name. Two runs created within the same microsecond get the same
    id; the second one overwrites the first.

    Example:
        >>> generate_run_id(datetime(2026, 10, 16, 9, 30, 0, 123456, tzinfo=UTC))
        '2026-10-16T09-30-00-123456Z'
    """
    now = now or datetime.now(UTC)
    return _NON_ALNUM.sub("-", now.strftime("%Y-%m-%dT%H:%M:%S.%fZ"))


class RunStateStore:
    """Persist and load run documents.

    Attributes:
        state_dir: Directory holding one sub-directory per run.
    """

    def __init__(self, state_dir: str | Path, logger: Any | None = None) -> None:
        """Initialize the store.

        The state directory is created lazily on the first write so that
        read-only commands (``runs``, ``inspect``) never create it.

        Args:
            state_dir: Directory for run sub-directories.
            logger: Structlog-compatible logger mirrored by every RunLog the
                store hands out. Defaults to a logger that drops events.
        """
        self.state_dir = Path(state_dir)
        self._logger = logger if logger is not None else null_logger()

    def run_dir(self, run_id: str) -> Path:
        """Directory of a run.

        Raises:
            RunNotFoundError: If the id could resolve outside the state
                directory.
        """
        if run_id in ("", ".") or ".." in run_id or "/" in run_id or "\\" in run_id:
            raise RunNotFoundError(run_id)
        return self.state_dir / run_id

    def _meta_path(self, run_id: str) -> Path:
        return self.run_dir(run_id) / META_FILENAME

    def log_for(self, run_id: str) -> RunLog:
        """Get the event log of a run."""
        return RunLog(self.run_dir(run_id) / LOG_FILENAME, run_id, self._logger)

    async def initialize(self, definition: WorkflowDefinition) -> Run:
        """Create and persist a new run with every step pending.

        Args:
            definition: Workflow to run. Its step specs are copied onto the
                run and never re-read from the definition.

        Returns:
            The freshly persisted run.

        Raises:
            PersistenceError: If the run directory or document cannot be
                written.
        """
        now = datetime.now(UTC)
        run = Run(
            id=generate_run_id(now),
            workflow_name=definition.name,
            started_at=now,
            steps=[StepResult(spec=spec) for spec in definition.steps],
        )
        await self.persist(run)
        return run

    async def persist(self, run: Run) -> None:
        """Atomically overwrite the stored document for ``run.id``.

        Raises:
            PersistenceError: If the document cannot be written. Nothing is
                retried; the in-memory run keeps whatever state it had.
        """
        # Serialize before any await so the written document is a snapshot.
        document = run.model_dump_json(indent=2)
        path = self._meta_path(run.id)
        tmp_path = path.with_suffix(".tmp")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(document)
            # Atomic rename - safe on POSIX when same filesystem
            tmp_path.replace(path)
        except OSError as e:
            log.error("run_persist_failed", run_id=run.id, error=str(e))
            raise PersistenceError(f"Cannot write run state: {e}", path=str(path)) from e

    async def load(self, run_id: str) -> Run:
        """Load a run by id.

        Raises:
            RunNotFoundError: If the run has no persisted document.
            RunCorruptError: If the document is not a valid run.
            PersistenceError: If the document exists but cannot be read.
        """
        path = self._meta_path(run_id)
        if not path.is_file():
            raise RunNotFoundError(run_id)

        try:
            async with aiofiles.open(path, "rb") as f:
                content = await f.read()
        except OSError as e:
            raise PersistenceError(f"Cannot read run state: {e}", path=str(path)) from e

        try:
            return Run.model_validate_json(content)
        except (ValidationError, UnicodeDecodeError) as e:
            raise RunCorruptError(run_id, str(e)) from e

    async def list(self) -> list[Run]:
        """Load every stored run, newest first.

        Run directories whose document is missing or unreadable are skipped
        with a warning instead of failing the whole listing.
        """
        if not self.state_dir.is_dir():
            return []

        runs = []
        for entry in sorted(self.state_dir.iterdir()):
            if not entry.is_dir():
                continue
            try:
                runs.append(await self.load(entry.name))
            except (RunNotFoundError, RunCorruptError, PersistenceError) as e:
                log.warning("run_skipped", run_id=entry.name, error=e.message)

        runs.sort(key=lambda run: run.started_at, reverse=True)
        return runs
