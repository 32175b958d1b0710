"""Workflow run engine.

This package defines workflows as ordered sequences of typed steps, executes
them with retry and backoff, and persists run state after every transition so
that runs can be resumed or retried from any step.

Key Components:
    - WorkflowRunEngine (orchestrator): start, resume, retry_from_step,
      inspect and list runs
    - RunStateStore (state_store): atomic JSON persistence of runs
    - StepExecutor (executor): runs one step and records its outcome
    - RetryController (retry): bounded retries with linear backoff
    - RunLog (run_log): append-only JSON-lines event log per run

Type Definitions:
    - StepSpec, WorkflowDefinition: what to run
    - StepResult, Run: what happened

Example:
    >>> from codeos.engine.orchestrator import WorkflowRunEngine
    >>> engine = WorkflowRunEngine(project_root)
    >>> run = await engine.start(definition, dispatcher)
"""

from codeos.engine.types import Run, StepResult, StepSpec, WorkflowDefinition

__all__ = [
    "Run",
    "StepResult",
    "StepSpec",
    "WorkflowDefinition",
]
