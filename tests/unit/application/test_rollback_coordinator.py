"""Unit tests for rollback decisioning and execution."""

from __future__ import annotations

import pytest

from coordinator.domain.errors import RollbackExecutionError, TaskExecutionError
from coordinator.domain.models.execution import (
    DeploymentExecution,
    ExecutionStatus,
    RollbackStatus,
)
from coordinator.domain.models.plan import (
    DeploymentPlan,
    RollbackPlan,
    RollbackTrigger,
    TriggerCondition,
)
from coordinator.domain.services.event_dispatch import EventDispatcher
from coordinator.domain.services.plan_builder import PlanBuilder
from coordinator.domain.services.rollback_coordinator import (
    RollbackCoordinator,
    should_trigger_automatic_rollback,
)
from coordinator.infrastructure.executors import SimulatedTaskCommandExecutor
from coordinator.infrastructure.messaging.event_publisher import InMemoryEventPublisher


@pytest.fixture
def plan() -> DeploymentPlan:
    return PlanBuilder().create_plan({"version": "3.0.0", "target_environment": "staging"})


def _with_triggers(plan: DeploymentPlan, *triggers: RollbackTrigger) -> DeploymentPlan:
    rollback = RollbackPlan(name="rb", triggers=list(triggers))
    return plan.model_copy(update={"rollback_plan": rollback})


def _failed(plan: DeploymentPlan) -> DeploymentExecution:
    execution = DeploymentExecution.for_plan(plan)
    execution.start()
    execution.fail("boom")
    return execution


class TestShouldTriggerAutomaticRollback:
    def test_deployment_failure_trigger_fires_on_any_error(self, plan: DeploymentPlan) -> None:
        plan = _with_triggers(
            plan, RollbackTrigger(condition=TriggerCondition.DEPLOYMENT_FAILURE, automatic=True)
        )
        assert should_trigger_automatic_rollback(plan, RuntimeError("disk full"))

    def test_health_trigger_needs_health_in_message(self, plan: DeploymentPlan) -> None:
        plan = _with_triggers(
            plan, RollbackTrigger(condition=TriggerCondition.HEALTH_CHECK_FAILURE, automatic=True)
        )
        assert should_trigger_automatic_rollback(plan, RuntimeError("Health endpoint returned 503"))
        assert not should_trigger_automatic_rollback(plan, RuntimeError("disk full"))

    def test_non_automatic_triggers_never_fire(self, plan: DeploymentPlan) -> None:
        plan = _with_triggers(
            plan,
            RollbackTrigger(condition=TriggerCondition.DEPLOYMENT_FAILURE, automatic=False),
            RollbackTrigger(condition=TriggerCondition.MANUAL_TRIGGER, automatic=True),
        )
        assert not should_trigger_automatic_rollback(plan, RuntimeError("health"))

    def test_template_plan_rolls_back_on_failure(self, plan: DeploymentPlan) -> None:
        assert should_trigger_automatic_rollback(plan, TaskExecutionError("t", "failed"))


class TestExecuteRollback:
    @pytest.mark.asyncio
    async def test_successful_rollback(self, plan: DeploymentPlan) -> None:
        tasks = SimulatedTaskCommandExecutor()
        publisher = InMemoryEventPublisher()
        execution = _failed(plan)

        await RollbackCoordinator(tasks, EventDispatcher(publisher)).execute_rollback(
            execution, plan, "Deployment failed: boom"
        )

        assert execution.status == ExecutionStatus.ROLLED_BACK
        rollback = execution.rollback_execution
        assert rollback is not None
        assert rollback.triggered
        assert rollback.reason == "Deployment failed: boom"
        assert rollback.status == RollbackStatus.COMPLETED
        assert execution.metrics.rollback_time is not None
        assert publisher.topics == ["deployment.rollback.completed"]

    @pytest.mark.asyncio
    async def test_rollback_tasks_are_simulated(self, plan: DeploymentPlan) -> None:
        tasks = SimulatedTaskCommandExecutor()
        execution = _failed(plan)

        coordinator = RollbackCoordinator(tasks, EventDispatcher(InMemoryEventPublisher()))
        await coordinator.execute_rollback(execution, plan, "manual")

        assert tasks.executed == [
            ("task-enable-maintenance-rollback", True),
            ("task-deploy-previous-version", True),
            ("task-disable-maintenance-rollback", True),
        ]

    @pytest.mark.asyncio
    async def test_failed_rollback_marks_and_raises(self, plan: DeploymentPlan) -> None:
        tasks = SimulatedTaskCommandExecutor(failing_task_ids={"task-deploy-previous-version"})
        publisher = InMemoryEventPublisher()
        execution = _failed(plan)

        with pytest.raises(RollbackExecutionError) as exc_info:
            await RollbackCoordinator(tasks, EventDispatcher(publisher)).execute_rollback(
                execution, plan, "Deployment failed: boom"
            )

        assert exc_info.value.execution_id == execution.execution_id
        assert isinstance(exc_info.value.__cause__, TaskExecutionError)
        assert execution.status == ExecutionStatus.FAILED
        assert execution.rollback_execution is not None
        assert execution.rollback_execution.status == RollbackStatus.FAILED
        assert execution.rollback_execution.error is not None
        failed = publisher.events_of_type("deployment.rollback.failed")
        assert len(failed) == 1
        assert failed[0]["severity"] == "critical"

    @pytest.mark.asyncio
    async def test_publisher_outage_does_not_affect_rollback(self, plan: DeploymentPlan) -> None:
        publisher = InMemoryEventPublisher(failing_topics={"deployment.rollback.completed"})
        execution = _failed(plan)

        await RollbackCoordinator(
            SimulatedTaskCommandExecutor(), EventDispatcher(publisher)
        ).execute_rollback(execution, plan, "manual")

        assert execution.status == ExecutionStatus.ROLLED_BACK
        assert publisher.published_events == []
