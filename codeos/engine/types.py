"""Data model for workflow definitions and workflow runs.

The run document is persisted as JSON under ``.codeos/run/<run_id>/meta.json``
with the following shape::

    {
        "id": "2026-10-16T09-30-00-123456Z",
        "workflow_name": "build",
        "started_at": "2026-10-16T09:30:00.123456Z",
        "completed_at": null,
        "status": "running",
        "current_step_index": 1,
        "steps": [
            {
                "spec": {"role": "planner", "name": "Plan Generation", "description": "..."},
                "status": "completed",
                "started_at": "...",
                "completed_at": "...",
                "duration_ms": 1520,
                "error": null,
                "artifacts": [".codeos/plan/planner.log"],
                "attempts": 1
            },
            ...
        ],
        "error": null
    }

Example:
    >>> definition = WorkflowDefinition(
    ...     name="build",
    ...     steps=(StepSpec(role=RoleName.PLANNER, name="Plan Generation"),),
    ... )
    >>> len(definition)
    1
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from codeos.enums import RoleName, RunStatus, StepStatus


class StepSpec(BaseModel):
    """One step of a workflow definition: which role runs, and its label."""

    model_config = ConfigDict(frozen=True)

    role: RoleName = Field(..., description="Role executed by this step")
    name: str = Field(..., min_length=1, description="Human-readable step name")
    description: str = Field(default="", description="What the step does")


class WorkflowDefinition(BaseModel):
    """Ordered, immutable sequence of step specs.

    A run copies the specs of its definition at initialization; resume and
    retry always use the copy stored on the run.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Workflow label stored on each run")
    steps: tuple[StepSpec, ...] = Field(..., min_length=1, description="Steps in execution order")

    def __len__(self) -> int:
        return len(self.steps)


class StepResult(BaseModel):
    """Mutable outcome of one step within a run."""

    model_config = ConfigDict(validate_assignment=True)

    spec: StepSpec
    status: StepStatus = StepStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    error: str | None = None
    artifacts: list[str] | None = None
    attempts: int = Field(default=0, ge=0)

    def reset(self) -> None:
        """Return the step to pending, dropping every recorded outcome."""
        self.status = StepStatus.PENDING
        self.started_at = None
        self.completed_at = None
        self.duration_ms = None
        self.error = None
        self.artifacts = None
        self.attempts = 0


class Run(BaseModel):
    """One execution of a workflow definition.

    The step list is index-aligned with the definition the run was created
    from and is never resized.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(..., min_length=1)
    workflow_name: str
    started_at: datetime
    completed_at: datetime | None = None
    status: RunStatus = RunStatus.RUNNING
    current_step_index: int | None = None
    steps: list[StepResult]
    error: str | None = None

    @property
    def specs(self) -> tuple[StepSpec, ...]:
        """Step specs recorded when the run was initialized."""
        return tuple(step.spec for step in self.steps)

    @property
    def completed_steps(self) -> int:
        return sum(1 for step in self.steps if step.status == StepStatus.COMPLETED)

    def first_resumable_index(self) -> int | None:
        """Index of the first pending, failed or interrupted step, or None."""
        for index, step in enumerate(self.steps):
            if step.status.is_resumable:
                return index
        return None

    def duration_seconds(self, now: datetime) -> float:
        """Elapsed seconds from start to completion, or to ``now`` if still open."""
        end = self.completed_at or now
        return (end - self.started_at).total_seconds()
