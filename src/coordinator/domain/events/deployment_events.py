"""Deployment domain events."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from coordinator.domain.models.base import DomainEvent


class DeploymentPlanCreated(DomainEvent):
    """Emitted when a deployment plan is built and stored."""

    plan_id: str
    version: str
    target_environment: str
    event_type: str = "deployment.plan.created"


class DeploymentApprovalsSkipped(DomainEvent):
    """Audit event emitted when execution bypasses the approval gate."""

    plan_id: str
    missing: list[str] = Field(default_factory=list)
    event_type: str = "deployment.approvals.skipped"


class DeploymentProgress(DomainEvent):
    """Emitted after each completed phase."""

    execution_id: str
    phase: str
    progress: dict[str, Any]
    event_type: str = "deployment.progress"


class DeploymentCompleted(DomainEvent):
    """Emitted when a deployment completes successfully."""

    execution_id: str
    plan_id: str
    total_duration: float | None = None
    event_type: str = "deployment.completed"


class DeploymentFailed(DomainEvent):
    """Emitted when a deployment fails."""

    execution_id: str
    plan_id: str
    error: str
    rollback_attempted: bool = False
    event_type: str = "deployment.failed"


class DeploymentCancelled(DomainEvent):
    """Emitted when a deployment is cancelled."""

    execution_id: str
    reason: str
    event_type: str = "deployment.cancelled"


class DeploymentRollbackCompleted(DomainEvent):
    """Emitted when a rollback completes."""

    execution_id: str
    reason: str
    rollback_time: float | None = None
    event_type: str = "deployment.rollback.completed"


class DeploymentRollbackFailed(DomainEvent):
    """Critical alert emitted when a rollback fails."""

    execution_id: str
    error: str
    severity: str = "critical"
    event_type: str = "deployment.rollback.failed"
