"""Read-only dashboard aggregation over active and recent executions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from coordinator.domain.models.base import utc_now, ValueObject
from coordinator.domain.models.execution import (
    DeploymentExecution,
    ExecutionProgress,
    ExecutionStatus,
)


RECENT_LIMIT = 10


class SystemStatus(str, Enum):
    DEPLOYING = "deploying"
    STABLE = "stable"


class ActiveDeploymentSummary(ValueObject):
    execution_id: str
    plan_id: str
    status: ExecutionStatus
    progress: ExecutionProgress
    current_phase: str | None = None
    started_at: datetime


class RecentDeploymentSummary(ValueObject):
    execution_id: str
    plan_id: str
    status: ExecutionStatus
    started_at: datetime
    completed_at: datetime | None = None
    duration: float | None = None  # seconds


class DashboardStatistics(ValueObject):
    total_deployments: int
    success_rate: int  # percent
    average_duration: float  # minutes
    last_deployment: datetime | None = None


class DashboardHealth(ValueObject):
    active_issues: int
    rollbacks_triggered: int
    system_status: SystemStatus


class DeploymentDashboard(ValueObject):
    timestamp: datetime = Field(default_factory=utc_now)
    active: list[ActiveDeploymentSummary] = Field(default_factory=list)
    recent: list[RecentDeploymentSummary] = Field(default_factory=list)
    statistics: DashboardStatistics
    health: DashboardHealth


def calculate_success_rate(history: list[DeploymentExecution]) -> int:
    """Percentage of completed executions in history; 100 for an empty history."""
    if not history:
        return 100
    completed = sum(1 for e in history if e.status == ExecutionStatus.COMPLETED)
    return round(completed / len(history) * 100)


def calculate_average_duration(history: list[DeploymentExecution]) -> float:
    """Mean duration in minutes of completed executions that recorded one."""
    durations = [
        e.metrics.total_duration
        for e in history
        if e.status == ExecutionStatus.COMPLETED and e.metrics.total_duration
    ]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations) / 60, 2)


def build_dashboard(
    active: list[DeploymentExecution],
    history: list[DeploymentExecution],
    recent_limit: int = RECENT_LIMIT,
) -> DeploymentDashboard:
    """Aggregate active executions and newest-first history into a dashboard."""
    recent = history[:recent_limit]

    return DeploymentDashboard(
        active=[
            ActiveDeploymentSummary(
                execution_id=e.execution_id,
                plan_id=e.plan_id,
                status=e.status,
                progress=e.progress,
                current_phase=e.current_phase,
                started_at=e.started_at,
            )
            for e in active
        ],
        recent=[
            RecentDeploymentSummary(
                execution_id=e.execution_id,
                plan_id=e.plan_id,
                status=e.status,
                started_at=e.started_at,
                completed_at=e.completed_at,
                duration=e.metrics.total_duration,
            )
            for e in recent
        ],
        statistics=DashboardStatistics(
            total_deployments=len(history) + len(active),
            success_rate=calculate_success_rate(history),
            average_duration=calculate_average_duration(history),
            last_deployment=recent[0].started_at if recent else None,
        ),
        health=DashboardHealth(
            active_issues=sum(1 for e in active if e.status == ExecutionStatus.FAILED),
            rollbacks_triggered=sum(
                1 for e in recent
                if e.rollback_execution is not None and e.rollback_execution.triggered
            ),
            system_status=SystemStatus.DEPLOYING if active else SystemStatus.STABLE,
        ),
    )
