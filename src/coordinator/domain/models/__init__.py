"""Domain models package."""

from coordinator.domain.models.base import (
    DomainEntity,
    DomainEvent,
    generate_id,
    utc_now,
    ValueObject,
)
from coordinator.domain.models.execution import (
    ACTIVE_STATUSES,
    DeploymentExecution,
    ExecutionMetrics,
    ExecutionNotification,
    ExecutionProgress,
    ExecutionStatus,
    NotificationType,
    PhaseResult,
    PhaseStatus,
    RollbackExecution,
    RollbackStatus,
    TaskResult,
    TaskStatus,
    VALID_TRANSITIONS,
    ValidationResult,
    ValidationStatus,
)
from coordinator.domain.models.plan import (
    ApprovalStatus,
    ApprovalType,
    CommunicationPlan,
    DataRecovery,
    DeploymentApproval,
    DeploymentPhase,
    DeploymentPlan,
    DeploymentTask,
    NotificationRule,
    PhaseType,
    PlanSpec,
    RiskAssessment,
    RiskLevel,
    RollbackPhase,
    RollbackPlan,
    RollbackTrigger,
    TaskType,
    TriggerCondition,
)


__all__ = [
    "ACTIVE_STATUSES",
    "ApprovalStatus",
    "ApprovalType",
    "CommunicationPlan",
    "DataRecovery",
    "DeploymentApproval",
    "DeploymentExecution",
    "DeploymentPhase",
    "DeploymentPlan",
    "DeploymentTask",
    "DomainEntity",
    "DomainEvent",
    "ExecutionMetrics",
    "ExecutionNotification",
    "ExecutionProgress",
    "ExecutionStatus",
    "NotificationRule",
    "NotificationType",
    "PhaseResult",
    "PhaseStatus",
    "PhaseType",
    "PlanSpec",
    "RiskAssessment",
    "RiskLevel",
    "RollbackExecution",
    "RollbackPhase",
    "RollbackPlan",
    "RollbackStatus",
    "RollbackTrigger",
    "TaskResult",
    "TaskStatus",
    "TaskType",
    "TriggerCondition",
    "VALID_TRANSITIONS",
    "ValidationResult",
    "ValidationStatus",
    "ValueObject",
    "generate_id",
    "utc_now",
]
