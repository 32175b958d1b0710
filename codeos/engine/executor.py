"""
Single-step execution.

The StepExecutor runs the role bound to one step of a run and records the
outcome on the run's StepResult. The run is persisted twice per execution:
once after the step is marked running, and once after it reaches completed
or failed. An observer reading ``meta.json`` mid-step therefore sees the step
as running, never a stale pending entry.
"""

import asyncio
import time
from datetime import UTC, datetime
from pathlib import Path

from codeos.engine.state_store import RunStateStore
from codeos.engine.types import Run
from codeos.enums import StepStatus
from codeos.exceptions import InvalidStepIndexError, StepFailureError
from codeos.roles.registry import RoleDispatcher

INTERRUPTED_ERROR = "interrupted"


class StepExecutor:
    """Execute one step of a run and record its outcome.

    Attributes:
        store: Store the run is persisted to after each transition.
        project_root: Root directory handed to roles.
    """

    def __init__(self, store: RunStateStore, project_root: Path) -> None:
        self.store = store
        self.project_root = project_root

    async def execute(self, run: Run, step_index: int, dispatcher: RoleDispatcher) -> None:
        """Run ``run.steps[step_index]`` once.

        Args:
            run: Run to mutate in place.
            step_index: Position of the step to execute.
            dispatcher: Role table used to look up the step's role.

        Raises:
            InvalidStepIndexError: If the index is out of range. The run is
                not touched.
            StepFailureError: If the role raised. The step is recorded as
                failed before this is raised.
            PersistenceError: If the run cannot be written.
        """
        if not 0 <= step_index < len(run.steps):
            raise InvalidStepIndexError(step_index, len(run.steps))

        step = run.steps[step_index]
        spec = step.spec
        run_log = self.store.log_for(run.id)

        run.current_step_index = step_index
        step.status = StepStatus.RUNNING
        step.started_at = datetime.now(UTC)
        step.completed_at = None
        step.duration_ms = None
        step.error = None
        step.artifacts = None
        step.attempts += 1

        await run_log.info(
            "step_started",
            step=step_index,
            role=spec.role.value,
            name=spec.name,
            attempt=step.attempts,
        )
        await self.store.persist(run)

        start = time.monotonic()
        context = dispatcher.context_for(self.project_root, run.id, step_index, spec)

        try:
            artifacts = await dispatcher.dispatch(context)
        except asyncio.CancelledError:
            self._record_failure(run, step_index, start, INTERRUPTED_ERROR)
            await self.store.persist(run)
            await run_log.error("step_interrupted", step=step_index, role=spec.role.value)
            raise
        except Exception as e:
            message = str(e) or type(e).__name__
            self._record_failure(run, step_index, start, message)
            await self.store.persist(run)
            await run_log.error(
                "step_failed",
                step=step_index,
                role=spec.role.value,
                name=spec.name,
                error=message,
                duration_ms=step.duration_ms,
            )
            raise StepFailureError(message, step_index=step_index, role=spec.role, run_id=run.id) from e

        step.status = StepStatus.COMPLETED
        step.completed_at = datetime.now(UTC)
        step.duration_ms = _elapsed_ms(start)
        step.artifacts = artifacts
        await self.store.persist(run)
        await run_log.info(
            "step_completed",
            step=step_index,
            role=spec.role.value,
            name=spec.name,
            duration_ms=step.duration_ms,
            artifacts=len(artifacts),
        )

    @staticmethod
    def _record_failure(run: Run, step_index: int, start: float, message: str) -> None:
        step = run.steps[step_index]
        step.status = StepStatus.FAILED
        step.completed_at = datetime.now(UTC)
        step.duration_ms = _elapsed_ms(start)
        step.error = message


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
