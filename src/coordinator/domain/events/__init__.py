"""Domain events package."""

from coordinator.domain.events.deployment_events import (
    DeploymentApprovalsSkipped,
    DeploymentCancelled,
    DeploymentCompleted,
    DeploymentFailed,
    DeploymentPlanCreated,
    DeploymentProgress,
    DeploymentRollbackCompleted,
    DeploymentRollbackFailed,
)


__all__ = [
    "DeploymentApprovalsSkipped",
    "DeploymentCancelled",
    "DeploymentCompleted",
    "DeploymentFailed",
    "DeploymentPlanCreated",
    "DeploymentProgress",
    "DeploymentRollbackCompleted",
    "DeploymentRollbackFailed",
]
