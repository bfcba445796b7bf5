"""Unit tests for the deployment execution aggregate."""

from __future__ import annotations

import pytest

from coordinator.domain.errors import InvalidStateTransitionError
from coordinator.domain.models.execution import (
    DeploymentExecution,
    ExecutionStatus,
    NotificationType,
    PhaseStatus,
    RollbackStatus,
    TaskStatus,
)
from coordinator.domain.models.plan import DeploymentPlan
from coordinator.domain.services.plan_builder import PlanBuilder


@pytest.fixture
def plan() -> DeploymentPlan:
    return PlanBuilder().create_plan({"version": "1.2.3", "target_environment": "staging"})


@pytest.fixture
def execution(plan: DeploymentPlan) -> DeploymentExecution:
    return DeploymentExecution.for_plan(plan)


class TestExecutionSkeleton:
    def test_one_result_per_phase_and_task(
        self, plan: DeploymentPlan, execution: DeploymentExecution
    ) -> None:
        assert execution.status == ExecutionStatus.PENDING
        assert [r.phase_id for r in execution.phase_results] == [p.id for p in plan.phases]
        for phase, result in zip(plan.phases, execution.phase_results):
            assert result.status == PhaseStatus.PENDING
            assert [t.task_id for t in result.task_results] == [t.id for t in phase.tasks]
            assert all(t.status == TaskStatus.PENDING for t in result.task_results)
            assert result.validation_results == []

    def test_progress_totals(self, plan: DeploymentPlan, execution: DeploymentExecution) -> None:
        assert execution.progress.total_phases == 4
        assert execution.progress.total_tasks == plan.total_tasks == 8
        assert execution.execution_id.startswith("deploy-exec-")


class TestStateMachine:
    def test_happy_path(self, execution: DeploymentExecution) -> None:
        execution.start()
        assert execution.is_active
        execution.complete()
        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.completed_at is not None
        assert execution.metrics.total_duration is not None
        assert execution.metrics.total_duration >= 0
        assert execution.is_terminal
        assert execution.notifications[-1].type == NotificationType.SUCCESS

    def test_cannot_complete_pending(self, execution: DeploymentExecution) -> None:
        with pytest.raises(InvalidStateTransitionError):
            execution.complete()

    def test_fail_records_message(self, execution: DeploymentExecution) -> None:
        execution.start()
        execution.fail("boom")
        assert execution.status == ExecutionStatus.FAILED
        assert execution.error_message == "boom"

    def test_fail_twice_is_rejected(self, execution: DeploymentExecution) -> None:
        execution.start()
        execution.fail("boom")
        with pytest.raises(InvalidStateTransitionError):
            execution.fail("again")

    def test_cancel_from_pending_and_in_progress(self, plan: DeploymentPlan) -> None:
        pending = DeploymentExecution.for_plan(plan)
        pending.cancel("not needed")
        assert pending.status == ExecutionStatus.CANCELLED
        assert pending.cancellation_reason == "not needed"

        running = DeploymentExecution.for_plan(plan)
        running.start()
        running.cancel("stop")
        assert running.status == ExecutionStatus.CANCELLED

    def test_cannot_cancel_completed(self, execution: DeploymentExecution) -> None:
        execution.start()
        execution.complete()
        with pytest.raises(InvalidStateTransitionError):
            execution.cancel("too late")

    def test_rolled_back_is_terminal(self, execution: DeploymentExecution) -> None:
        execution.start()
        execution.fail("boom")
        execution.begin_rollback("recover")
        execution.complete_rollback()
        assert execution.status == ExecutionStatus.ROLLED_BACK
        with pytest.raises(InvalidStateTransitionError):
            execution.begin_rollback("again")


class TestRollbackTracking:
    def test_cannot_roll_back_active_execution(self, execution: DeploymentExecution) -> None:
        execution.start()
        with pytest.raises(InvalidStateTransitionError):
            execution.begin_rollback("early")

    def test_complete_rollback_records_time(self, execution: DeploymentExecution) -> None:
        execution.start()
        execution.complete()
        rollback = execution.begin_rollback("manual")
        assert rollback.status == RollbackStatus.IN_PROGRESS
        assert rollback.triggered

        execution.complete_rollback()
        assert execution.rollback_execution is not None
        assert execution.rollback_execution.status == RollbackStatus.COMPLETED
        assert execution.rollback_execution.completed_at is not None
        assert execution.metrics.rollback_time is not None

    def test_fail_rollback_keeps_status(self, execution: DeploymentExecution) -> None:
        execution.start()
        execution.fail("boom")
        execution.begin_rollback("recover")
        execution.fail_rollback("rollback broke")
        assert execution.status == ExecutionStatus.FAILED
        assert execution.rollback_execution is not None
        assert execution.rollback_execution.status == RollbackStatus.FAILED
        assert execution.rollback_execution.error == "rollback broke"

    def test_complete_rollback_requires_begin(self, execution: DeploymentExecution) -> None:
        execution.start()
        execution.fail("boom")
        with pytest.raises(InvalidStateTransitionError):
            execution.complete_rollback()


class TestProgressCounters:
    def test_counters_never_exceed_totals(self, execution: DeploymentExecution) -> None:
        for _ in range(20):
            execution.record_task_completed()
            execution.record_phase_completed()
        assert execution.progress.tasks_completed == execution.progress.total_tasks
        assert execution.progress.phases_completed == execution.progress.total_phases
        assert execution.progress.percent_complete == 100

    def test_percent_complete(self, execution: DeploymentExecution) -> None:
        execution.record_phase_completed()
        assert execution.progress.percent_complete == 25


class TestSnapshot:
    def test_snapshot_is_independent(self, execution: DeploymentExecution) -> None:
        snapshot = execution.snapshot()
        execution.start()
        execution.phase_results[0].status = PhaseStatus.IN_PROGRESS

        assert snapshot.status == ExecutionStatus.PENDING
        assert snapshot.phase_results[0].status == PhaseStatus.PENDING

    def test_json_round_trip(self, execution: DeploymentExecution) -> None:
        execution.start()
        restored = DeploymentExecution.model_validate_json(execution.model_dump_json())
        assert restored.execution_id == execution.execution_id
        assert restored.status == ExecutionStatus.IN_PROGRESS
        assert len(restored.phase_results) == len(execution.phase_results)
