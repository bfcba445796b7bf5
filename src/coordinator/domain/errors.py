"""Domain error taxonomy for deployment coordination."""

from __future__ import annotations


class CoordinatorError(Exception):
    """Base class for all coordinator errors."""


class PlanValidationError(CoordinatorError):
    """Raised when plan input is invalid. Nothing has been persisted."""


class PlanNotFoundError(CoordinatorError):
    """Raised when a deployment plan does not exist."""


class ExecutionNotFoundError(CoordinatorError):
    """Raised when a deployment execution does not exist."""


class ApprovalNotFoundError(CoordinatorError):
    """Raised when a plan has no approval with the requested id."""


class ApprovalIncompleteError(CoordinatorError):
    """Raised when execution is refused because approvals are outstanding."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Deployment approvals not complete: {', '.join(self.missing)}")


class ReadinessCriticalError(CoordinatorError):
    """Raised when the target environment reports critical readiness issues."""

    def __init__(self, environment: str, blockers: list[str]) -> None:
        self.environment = environment
        self.blockers = list(blockers)
        super().__init__(
            f"Environment {environment} not ready for deployment: {', '.join(self.blockers)}"
        )


class TaskExecutionError(CoordinatorError):
    """Raised by a task command executor when a task fails."""

    def __init__(self, task_id: str, message: str) -> None:
        self.task_id = task_id
        super().__init__(message)


class ValidationCheckError(CoordinatorError):
    """Raised when a phase validation check fails."""

    def __init__(self, check_id: str, message: str) -> None:
        self.check_id = check_id
        super().__init__(message)


class RollbackExecutionError(CoordinatorError):
    """Raised when a rollback fails. Always surfaced to the caller."""

    def __init__(self, execution_id: str, message: str) -> None:
        self.execution_id = execution_id
        super().__init__(message)


class ForbiddenOperationError(CoordinatorError):
    """Raised when an operation is not allowed in the execution's current state."""


class ExecutionConflictError(CoordinatorError):
    """Raised when another execution of the same plan holds the plan lock."""


class StoreError(CoordinatorError):
    """Base class for key-value store errors."""


class StoreKeyNotFoundError(StoreError):
    """Raised when a key is absent from the store."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Key not found: {key}")


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached or fails transiently."""


class InvalidStateTransitionError(CoordinatorError):
    """Raised when an invalid execution state transition is attempted."""
