"""Deployment execution aggregate with its status state machine."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from coordinator.domain.errors import InvalidStateTransitionError
from coordinator.domain.models.base import DomainEntity, generate_id, utc_now
from coordinator.domain.models.plan import DeploymentPlan


class ExecutionStatus(str, Enum):
    """Execution lifecycle states."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ROLLED_BACK = "rolled_back"


class PhaseStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ValidationStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    WARNING = "warning"


class RollbackStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class NotificationType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


# State machine transitions
VALID_TRANSITIONS: dict[ExecutionStatus, set[ExecutionStatus]] = {
    ExecutionStatus.PENDING: {ExecutionStatus.IN_PROGRESS, ExecutionStatus.CANCELLED},
    ExecutionStatus.IN_PROGRESS: {
        ExecutionStatus.COMPLETED, ExecutionStatus.FAILED,
        ExecutionStatus.CANCELLED,
    },
    ExecutionStatus.COMPLETED: {ExecutionStatus.ROLLED_BACK},
    ExecutionStatus.FAILED: {ExecutionStatus.ROLLED_BACK},
    ExecutionStatus.CANCELLED: {ExecutionStatus.ROLLED_BACK},
    ExecutionStatus.ROLLED_BACK: set(),
}

ACTIVE_STATUSES = frozenset({ExecutionStatus.PENDING, ExecutionStatus.IN_PROGRESS})


class TaskResult(DomainEntity):
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    output: str | None = None
    error: str | None = None
    duration: float | None = None  # seconds


class ValidationResult(DomainEntity):
    check_id: str
    status: ValidationStatus
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class PhaseResult(DomainEntity):
    phase_id: str
    status: PhaseStatus = PhaseStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    task_results: list[TaskResult] = Field(default_factory=list)
    validation_results: list[ValidationResult] = Field(default_factory=list)

    def get_task_result(self, task_id: str) -> TaskResult | None:
        for result in self.task_results:
            if result.task_id == task_id:
                return result
        return None


class ExecutionProgress(DomainEntity):
    phases_completed: int = 0
    total_phases: int = 0
    tasks_completed: int = 0
    total_tasks: int = 0
    percent_complete: int = 0


class ExecutionMetrics(DomainEntity):
    total_duration: float | None = None  # seconds
    deployment_size: float = 0.0  # MB
    downtime: float | None = None  # seconds
    rollback_time: float | None = None  # seconds


class ExecutionNotification(DomainEntity):
    timestamp: datetime = Field(default_factory=utc_now)
    type: NotificationType
    message: str
    recipients: list[str] = Field(default_factory=list)


class RollbackExecution(DomainEntity):
    triggered: bool = True
    reason: str
    triggered_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    status: RollbackStatus = RollbackStatus.IN_PROGRESS
    error: str | None = None


class DeploymentExecution(DomainEntity):
    """One run of a deployment plan."""

    execution_id: str = Field(default_factory=lambda: generate_id("deploy-exec"))
    plan_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    dry_run: bool = False
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
    current_phase: str | None = None
    current_task: str | None = None
    progress: ExecutionProgress = Field(default_factory=ExecutionProgress)
    phase_results: list[PhaseResult] = Field(default_factory=list)
    metrics: ExecutionMetrics = Field(default_factory=ExecutionMetrics)
    notifications: list[ExecutionNotification] = Field(default_factory=list)
    error_message: str = ""
    cancellation_reason: str | None = None
    rollback_execution: RollbackExecution | None = None

    @classmethod
    def for_plan(cls, plan: DeploymentPlan, dry_run: bool = False) -> DeploymentExecution:
        """Create a pending execution with one result skeleton per phase and task."""
        return cls(
            plan_id=plan.plan_id,
            dry_run=dry_run,
            progress=ExecutionProgress(
                total_phases=len(plan.phases),
                total_tasks=plan.total_tasks,
            ),
            phase_results=[
                PhaseResult(
                    phase_id=phase.id,
                    task_results=[TaskResult(task_id=task.id) for task in phase.tasks],
                )
                for phase in plan.phases
            ],
        )

    def _transition_to(self, new_status: ExecutionStatus) -> None:
        """Validate and execute state transition."""
        valid = VALID_TRANSITIONS.get(self.status, set())
        if new_status not in valid:
            raise InvalidStateTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}. "
                f"Valid transitions: {[s.value for s in valid]}"
            )
        self.status = new_status

    def start(self) -> None:
        self._transition_to(ExecutionStatus.IN_PROGRESS)

    def complete(self) -> None:
        """Mark the execution as successfully completed and record its duration."""
        self._transition_to(ExecutionStatus.COMPLETED)
        self.completed_at = utc_now()
        self.current_task = None
        self.metrics.total_duration = (self.completed_at - self.started_at).total_seconds()
        self.notify(NotificationType.SUCCESS, "Deployment completed successfully")

    def fail(self, error_message: str) -> None:
        """Mark the execution as failed."""
        self._transition_to(ExecutionStatus.FAILED)
        self.error_message = error_message
        self.completed_at = utc_now()
        self.notify(NotificationType.ERROR, f"Deployment failed: {error_message}")

    def cancel(self, reason: str) -> None:
        self._transition_to(ExecutionStatus.CANCELLED)
        self.cancellation_reason = reason
        self.completed_at = utc_now()
        self.notify(NotificationType.WARNING, f"Deployment cancelled: {reason}")

    def begin_rollback(self, reason: str) -> RollbackExecution:
        if ExecutionStatus.ROLLED_BACK not in VALID_TRANSITIONS[self.status]:
            raise InvalidStateTransitionError(
                f"Cannot roll back an execution in status {self.status.value}"
            )
        self.rollback_execution = RollbackExecution(reason=reason)
        self.notify(NotificationType.WARNING, f"Rollback triggered: {reason}")
        return self.rollback_execution

    def complete_rollback(self) -> None:
        rollback = self._require_rollback()
        rollback.status = RollbackStatus.COMPLETED
        rollback.completed_at = utc_now()
        self.metrics.rollback_time = (
            rollback.completed_at - rollback.triggered_at
        ).total_seconds()
        self._transition_to(ExecutionStatus.ROLLED_BACK)
        self.notify(NotificationType.INFO, "Rollback completed")

    def fail_rollback(self, error_message: str) -> None:
        rollback = self._require_rollback()
        rollback.status = RollbackStatus.FAILED
        rollback.completed_at = utc_now()
        rollback.error = error_message
        self.notify(NotificationType.ERROR, f"Rollback failed: {error_message}")

    def _require_rollback(self) -> RollbackExecution:
        if self.rollback_execution is None:
            raise InvalidStateTransitionError(
                f"Execution {self.execution_id} has no rollback in progress"
            )
        return self.rollback_execution

    def get_phase_result(self, phase_id: str) -> PhaseResult | None:
        for result in self.phase_results:
            if result.phase_id == phase_id:
                return result
        return None

    def record_task_completed(self) -> None:
        if self.progress.tasks_completed < self.progress.total_tasks:
            self.progress.tasks_completed += 1

    def record_phase_completed(self) -> None:
        progress = self.progress
        if progress.phases_completed < progress.total_phases:
            progress.phases_completed += 1
        if progress.total_phases:
            progress.percent_complete = round(
                progress.phases_completed / progress.total_phases * 100
            )

    def notify(self, notification_type: NotificationType, message: str) -> None:
        self.notifications.append(
            ExecutionNotification(type=notification_type, message=message)
        )

    def snapshot(self) -> DeploymentExecution:
        """Return an independent deep copy for external readers."""
        return self.model_copy(deep=True)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return not self.is_active
