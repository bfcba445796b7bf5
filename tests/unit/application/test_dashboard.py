"""Unit tests for dashboard aggregation."""

from __future__ import annotations

from coordinator.domain.models.execution import (
    DeploymentExecution,
    ExecutionStatus,
    RollbackExecution,
)
from coordinator.domain.services.dashboard import (
    build_dashboard,
    calculate_average_duration,
    calculate_success_rate,
    SystemStatus,
)


def _execution(
    status: ExecutionStatus,
    duration: float | None = None,
    rolled_back: bool = False,
) -> DeploymentExecution:
    execution = DeploymentExecution(plan_id="plan", status=status)
    execution.metrics.total_duration = duration
    if rolled_back:
        execution.rollback_execution = RollbackExecution(reason="manual")
    return execution


class TestStatistics:
    def test_success_rate_empty_history(self) -> None:
        assert calculate_success_rate([]) == 100

    def test_success_rate(self) -> None:
        history = [
            _execution(ExecutionStatus.COMPLETED),
            _execution(ExecutionStatus.COMPLETED),
            _execution(ExecutionStatus.FAILED),
        ]
        assert calculate_success_rate(history) == 67

    def test_average_duration_in_minutes(self) -> None:
        history = [
            _execution(ExecutionStatus.COMPLETED, duration=60),
            _execution(ExecutionStatus.COMPLETED, duration=180),
            _execution(ExecutionStatus.COMPLETED, duration=None),
            _execution(ExecutionStatus.FAILED, duration=6000),
        ]
        assert calculate_average_duration(history) == 2.0

    def test_average_duration_without_completed(self) -> None:
        assert calculate_average_duration([_execution(ExecutionStatus.FAILED)]) == 0.0


class TestBuildDashboard:
    def test_stable_dashboard(self) -> None:
        history = [
            _execution(ExecutionStatus.COMPLETED, duration=120, rolled_back=(i == 0))
            for i in range(12)
        ]

        dashboard = build_dashboard([], history)

        assert dashboard.active == []
        assert len(dashboard.recent) == 10
        assert dashboard.recent[0].execution_id == history[0].execution_id
        assert dashboard.statistics.total_deployments == 12
        assert dashboard.statistics.success_rate == 100
        assert dashboard.statistics.average_duration == 2.0
        assert dashboard.statistics.last_deployment == history[0].started_at
        assert dashboard.health.rollbacks_triggered == 1
        assert dashboard.health.system_status == SystemStatus.STABLE

    def test_deploying_dashboard(self) -> None:
        running = _execution(ExecutionStatus.IN_PROGRESS)
        running.current_phase = "phase-deployment"

        dashboard = build_dashboard([running], [])

        assert dashboard.health.system_status == SystemStatus.DEPLOYING
        assert dashboard.active[0].current_phase == "phase-deployment"
        assert dashboard.statistics.total_deployments == 1
        assert dashboard.statistics.success_rate == 100
        assert dashboard.statistics.last_deployment is None
        assert dashboard.health.active_issues == 0
