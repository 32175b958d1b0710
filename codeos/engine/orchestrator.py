"""
Workflow run engine.

The WorkflowRunEngine owns the lifecycle of a run: it initializes the run,
drives its steps in order through the RetryController, and exposes the
operations used to continue or redo a run later.

Run Lifecycle:
    start()            running -> completed | failed
    resume()           failed/interrupted run -> running -> completed | failed
    retry_from_step()  any run -> steps [i:] reset -> running -> completed | failed

Resume vs. Retry:
    ``resume`` continues a run from its first pending, failed or interrupted step and
    resets nothing at step level: every step's status already reflects its
    true outcome. ``retry_from_step`` deliberately redoes a run from a chosen
    index, so it resets that step and every later one to pending, including
    steps that had completed. Steps before the index are trusted as-is.

Ordering Guarantee:
    Step ``i + 1`` never starts before step ``i`` has completed. When a step
    exhausts its retries the run is marked failed and no further step runs.

Example:
    >>> engine = WorkflowRunEngine(project_root, logger=get_logger(__name__))
    >>> run = await engine.start(definition, dispatcher, retries=1)
    >>> run.status
    <RunStatus.COMPLETED: 'completed'>
"""

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from codeos.engine.executor import StepExecutor
from codeos.engine.retry import DEFAULT_BASE_DELAY, RetryController, SleepFunc
from codeos.engine.state_store import RunStateStore
from codeos.engine.types import Run, WorkflowDefinition
from codeos.enums import RunStatus
from codeos.exceptions import InvalidStepIndexError, NothingToResumeError
from codeos.roles.registry import RoleDispatcher
from codeos.utils.logging_config import null_logger

DEFAULT_STATE_SUBDIR = Path(".codeos") / "run"


class WorkflowRunEngine:
    """Drive workflow runs and persist their state.

    The engine is the only component that mutates a run. It holds the
    in-memory run exclusively for the duration of each call.

    Attributes:
        project_root: Root directory roles operate in.
        store: Run state store.
        retries: Default retry budget per step.
    """

    def __init__(
        self,
        project_root: str | Path,
        state_dir: str | Path | None = None,
        *,
        retries: int = 1,
        retry_base_delay: float = DEFAULT_BASE_DELAY,
        logger: Any | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            project_root: Root directory handed to every role.
            state_dir: Where runs are stored. Relative paths are resolved
                against ``project_root``. Defaults to ``.codeos/run``.
            retries: Default number of retries per step.
            retry_base_delay: Backoff unit in seconds.
            logger: Structlog-compatible logger. Defaults to a logger that
                drops every event.
            sleep: Backoff sleep override, mainly for tests.
        """
        if retries < 0:
            raise ValueError("retries must be >= 0")

        self.project_root = Path(project_root)
        state_path = Path(state_dir) if state_dir is not None else DEFAULT_STATE_SUBDIR
        if not state_path.is_absolute():
            state_path = self.project_root / state_path

        self.retries = retries
        self._logger = logger if logger is not None else null_logger()
        self.store = RunStateStore(state_path, logger=self._logger)
        self._executor = StepExecutor(self.store, self.project_root)
        self._retry = RetryController(self._executor, base_delay=retry_base_delay, sleep=sleep)

    async def start(
        self,
        definition: WorkflowDefinition,
        dispatcher: RoleDispatcher,
        retries: int | None = None,
    ) -> Run:
        """Create a run for ``definition`` and execute all of its steps.

        Returns:
            The completed run.

        Raises:
            StepFailureError: If a step exhausted its retries. The run stays
                persisted as failed and can be resumed or retried.
            PersistenceError: If run state cannot be written.
        """
        max_retries = self._resolve_retries(retries)
        run = await self.store.initialize(definition)
        await self.store.log_for(run.id).info(
            "workflow_started",
            workflow=run.workflow_name,
            steps=len(run.steps),
        )
        return await self._drive(run, 0, dispatcher, max_retries)

    async def resume(
        self,
        run_id: str,
        dispatcher: RoleDispatcher,
        retries: int | None = None,
    ) -> Run:
        """Continue a run from its first pending, failed or interrupted step.

        The steps recorded on the run are used, so a resumed run always has
        the shape it was started with.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunCorruptError: If the run document cannot be parsed.
            NothingToResumeError: If every step is already done.
            StepFailureError: If a step exhausted its retries again.
            ValueError: If ``retries`` is negative. Nothing is read or written.
        """
        max_retries = self._resolve_retries(retries)
        run = await self.store.load(run_id)
        resume_index = run.first_resumable_index()
        if resume_index is None:
            raise NothingToResumeError(run_id)

        run.status = RunStatus.RUNNING
        run.error = None
        run.completed_at = None
        await self.store.persist(run)
        await self.store.log_for(run.id).info(
            "workflow_resumed",
            resume_from_step=resume_index,
            step_name=run.steps[resume_index].spec.name,
        )
        return await self._drive(run, resume_index, dispatcher, max_retries)

    async def retry_from_step(
        self,
        run_id: str,
        step_index: int,
        dispatcher: RoleDispatcher,
        retries: int | None = None,
    ) -> Run:
        """Reset a run from ``step_index`` onward and execute forward.

        Raises:
            RunNotFoundError: If the run does not exist.
            RunCorruptError: If the run document cannot be parsed.
            InvalidStepIndexError: If the index is out of range. Nothing is
                written in that case.
            ValueError: If ``retries`` is negative. Nothing is read or written.
            StepFailureError: If a step exhausted its retries.
        """
        max_retries = self._resolve_retries(retries)
        run = await self.store.load(run_id)
        if not 0 <= step_index < len(run.steps):
            raise InvalidStepIndexError(step_index, len(run.steps))

        for step in run.steps[step_index:]:
            step.reset()
        run.status = RunStatus.RUNNING
        run.error = None
        run.completed_at = None
        run.current_step_index = step_index

        await self.store.persist(run)
        await self.store.log_for(run.id).info(
            "workflow_retry_from_step",
            retry_from_step=step_index,
            step_name=run.steps[step_index].spec.name,
        )
        return await self._drive(run, step_index, dispatcher, max_retries)

    async def inspect(self, run_id: str) -> Run:
        """Load a run without changing it."""
        return await self.store.load(run_id)

    async def list_runs(self) -> list[Run]:
        """All stored runs, newest first."""
        return await self.store.list()

    async def read_log(self, run_id: str) -> list[dict[str, Any]]:
        """Events logged for a run, oldest first."""
        return await self.store.log_for(run_id).read()

    def _resolve_retries(self, retries: int | None) -> int:
        if retries is None:
            return self.retries
        if retries < 0:
            raise ValueError("retries must be >= 0")
        return retries

    async def _drive(
        self,
        run: Run,
        from_index: int,
        dispatcher: RoleDispatcher,
        max_retries: int,
    ) -> Run:
        for index in range(from_index, len(run.steps)):
            await self._retry.run_step(run, index, dispatcher, max_retries)

        run.status = RunStatus.COMPLETED
        run.completed_at = datetime.now(UTC)
        await self.store.persist(run)
        await self.store.log_for(run.id).info(
            "workflow_completed",
            duration_ms=int(run.duration_seconds(run.completed_at) * 1000),
        )
        return run
