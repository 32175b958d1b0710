"""Bounded retry with linear backoff for workflow steps.

The RetryController wraps the StepExecutor. A step gets ``max_retries + 1``
attempts; between attempts the controller sleeps ``attempt * base_delay``
seconds (1s, 2s, 3s, ... with the default base delay).

Only StepFailureError is retried. Errors from the engine itself (bad index,
persistence failure) propagate on the first occurrence.

Backoff Formula:
    delay = attempt_number * base_delay
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from codeos.engine.executor import StepExecutor
from codeos.engine.types import Run
from codeos.enums import RunStatus
from codeos.exceptions import StepFailureError
from codeos.roles.registry import RoleDispatcher

SleepFunc = Callable[[float], Awaitable[None]]

DEFAULT_BASE_DELAY = 1.0


class RetryController:
    """Retry a step until it succeeds or its retry budget is spent.

    When the budget is spent, the controller marks the whole run failed and
    re-raises, which ends the workflow: no later step is started.

    Attributes:
        executor: Executor used for each attempt.
        base_delay: Seconds multiplied by the attempt number between attempts.
    """

    def __init__(
        self,
        executor: StepExecutor,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: SleepFunc | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            executor: Executor running single attempts.
            base_delay: Backoff unit in seconds.
            sleep: Awaitable used for backoff delays. Defaults to
                ``asyncio.sleep``; tests pass a recorder.
        """
        self.executor = executor
        self.base_delay = base_delay
        self._sleep = sleep or asyncio.sleep

    async def run_step(
        self,
        run: Run,
        step_index: int,
        dispatcher: RoleDispatcher,
        max_retries: int,
    ) -> None:
        """Execute a step with retries.

        Args:
            run: Run to mutate in place.
            step_index: Position of the step to execute.
            dispatcher: Role table for the step's role.
            max_retries: Retries after the first attempt.

        Raises:
            StepFailureError: The last failure, once every attempt failed.
                The run is persisted as failed first.
        """
        store = self.executor.store
        run_log = store.log_for(run.id)
        max_attempts = max_retries + 1

        for attempt in range(1, max_attempts + 1):
            try:
                await self.executor.execute(run, step_index, dispatcher)
                return
            except StepFailureError as e:
                if attempt == max_attempts:
                    await run_log.error(
                        "step_retries_exhausted",
                        step=step_index,
                        attempts=attempt,
                        error=e.message,
                    )
                    run.status = RunStatus.FAILED
                    run.error = e.message
                    run.completed_at = datetime.now(UTC)
                    await store.persist(run)
                    raise

                delay = attempt * self.base_delay
                await run_log.warn(
                    "step_retry",
                    step=step_index,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    delay=delay,
                    error=e.message,
                )
                await self._sleep(delay)
