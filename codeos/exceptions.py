"""Custom exception hierarchy for codeos.

Exception Hierarchy:
    CodeOSError (base)
    ├── ConfigurationError
    ├── RoleError
    └── WorkflowError
        ├── InvalidStepIndexError
        ├── RunNotFoundError
        ├── RunCorruptError
        ├── NothingToResumeError
        ├── StepFailureError
        └── PersistenceError

Only StepFailureError is retried by the engine. Every other error surfaces
to the caller immediately.

Example Usage:
    >>> from codeos.exceptions import RunNotFoundError
    >>> try:
    ...     run = await engine.inspect("2026-01-01T00-00-00-000000Z")
    ... except RunNotFoundError as e:
    ...     print(e.message)
"""

from codeos.enums import RoleName


class CodeOSError(Exception):
    """Base exception for all codeos errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(CodeOSError):
    """Configuration-related errors.

    Examples:
        - Invalid YAML syntax in codeos.yml
        - Unknown workflow name
        - A role dispatcher missing one of the four roles
    """

    pass


class RoleError(CodeOSError):
    """Raised by role implementations when their work fails.

    The step executor turns any exception raised by a role into a
    StepFailureError; RoleError is simply the one the bundled roles use.

    Attributes:
        role: Role that failed, if known
    """

    def __init__(self, message: str, role: RoleName | str | None = None) -> None:
        super().__init__(message)
        self.role = role


class WorkflowError(CodeOSError):
    """Workflow execution errors.

    Base class for every error raised by the run engine and the run state
    store.
    """

    pass


class InvalidStepIndexError(WorkflowError):
    """A step index is outside the run's step list."""

    def __init__(self, step_index: int, step_count: int) -> None:
        self.step_index = step_index
        self.step_count = step_count
        super().__init__(
            f"Invalid step index: {step_index}. Must be between 0 and {step_count - 1}"
        )


class RunNotFoundError(WorkflowError):
    """No persisted document exists for the run id."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class RunCorruptError(WorkflowError):
    """The persisted run document cannot be parsed into a run.

    Attributes:
        run_id: Identifier of the unreadable run
        reason: Parser or validation error text
    """

    def __init__(self, run_id: str, reason: str) -> None:
        self.run_id = run_id
        self.reason = reason
        super().__init__(f"Run {run_id} is corrupt: {reason}")


class NothingToResumeError(WorkflowError):
    """Resume was requested but every step already completed."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"No steps to resume in run {run_id}")


class StepFailureError(WorkflowError):
    """A role raised while executing a step.

    The message is the underlying failure's message so that it can be stored
    verbatim on the run and on the step. The string form adds the step
    position for log readers.

    Attributes:
        step_index: Position of the failed step
        role: Role bound to the failed step
        run_id: Run the step belongs to
    """

    def __init__(
        self,
        message: str,
        step_index: int | None = None,
        role: RoleName | None = None,
        run_id: str | None = None,
    ) -> None:
        self.step_index = step_index
        self.role = role
        self.run_id = run_id

        parts = [message]
        if step_index is not None:
            parts.append(f"step: {step_index}")
        if role is not None:
            parts.append(f"role: {role}")

        full_message = message if len(parts) == 1 else f"{message} ({', '.join(parts[1:])})"
        super().__init__(full_message)
        # Preserve original message
        self.message = message


class PersistenceError(WorkflowError):
    """Reading or writing run state failed at the filesystem level.

    Attributes:
        path: File that could not be read or written
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        full_message = message if path is None else f"{message} (path: {path})"
        super().__init__(full_message)
        self.message = message
