"""Enumerations for codeos roles and run/step statuses."""

from enum import Enum


class RoleName(str, Enum):
    """The four roles a workflow step can be bound to.

    The set is closed: every role dispatcher must provide an implementation
    for each member.
    """

    PLANNER = "planner"
    BUILDER = "builder"
    VERIFIER = "verifier"
    REVIEWER = "reviewer"

    def __str__(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        """Capitalized role name, used for default step names."""
        return self.value.capitalize()


class RunStatus(str, Enum):
    """Overall status of a workflow run.

    A run starts RUNNING and ends either COMPLETED or FAILED. CANCELLED is
    part of the persisted model for external callers; the engine never
    produces it.
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        """Check if the run has stopped making progress."""
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class StepStatus(str, Enum):
    """Status of a single step within a run.

    Steps move PENDING -> RUNNING -> COMPLETED or FAILED. SKIPPED is
    reserved in the persisted model.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value

    @property
    def is_resumable(self) -> bool:
        """Check if resume should pick up execution at a step in this status.

        A persisted RUNNING step means the driving process died mid-step
        (a run has one driver at a time), so it is resumable like FAILED.
        """
        return self in (StepStatus.PENDING, StepStatus.FAILED, StepStatus.RUNNING)


class LogLevel(str, Enum):
    """Levels written to the per-run event log."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def method_name(self) -> str:
        """Name of the matching structlog method."""
        if self == LogLevel.WARN:
            return "warning"
        return self.value
