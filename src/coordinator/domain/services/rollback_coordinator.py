"""Rollback decisioning and execution."""

from __future__ import annotations

import time

import structlog

from coordinator.domain.errors import RollbackExecutionError
from coordinator.domain.events.deployment_events import (
    DeploymentRollbackCompleted,
    DeploymentRollbackFailed,
)
from coordinator.domain.models.execution import DeploymentExecution
from coordinator.domain.models.plan import DeploymentPlan, TriggerCondition
from coordinator.domain.ports.services import TaskCommandExecutor
from coordinator.domain.services.event_dispatch import EventDispatcher
from coordinator.infrastructure.observability.metrics import (
    ROLLBACK_DURATION,
    ROLLBACKS_TOTAL,
)


logger = structlog.get_logger(__name__)


def should_trigger_automatic_rollback(plan: DeploymentPlan, error: BaseException) -> bool:
    """Decide whether a deployment failure fires an automatic rollback.

    Only automatic triggers count. A ``deployment_failure`` trigger fires
    on any error; a ``health_check_failure`` trigger fires when the error
    message mentions health. ``manual_trigger`` never fires here.
    """
    message = str(error).lower()
    for trigger in plan.rollback_plan.automatic_triggers:
        if trigger.condition == TriggerCondition.DEPLOYMENT_FAILURE:
            return True
        if trigger.condition == TriggerCondition.HEALTH_CHECK_FAILURE and "health" in message:
            return True
    return False


class RollbackCoordinator:
    """Runs a plan's rollback phases against an execution.

    Rollback tasks are always dispatched in simulated mode, whatever the
    dry-run flag of the original execution.
    """

    def __init__(self, task_executor: TaskCommandExecutor, events: EventDispatcher) -> None:
        self._task_executor = task_executor
        self._events = events

    should_trigger_automatic_rollback = staticmethod(should_trigger_automatic_rollback)

    async def execute_rollback(
        self,
        execution: DeploymentExecution,
        plan: DeploymentPlan,
        reason: str,
        trigger: str = "automatic",
    ) -> None:
        """Roll an execution back. Raises RollbackExecutionError on any failure."""
        log = logger.bind(execution_id=execution.execution_id, plan_id=plan.plan_id)
        log.warning("rollback_started", reason=reason, trigger=trigger)

        execution.begin_rollback(reason)
        started = time.monotonic()

        try:
            for phase in plan.rollback_plan.phases:
                log.info("rollback_phase_started", rollback_phase=phase.id, name=phase.name)
                for task in phase.tasks:
                    execution.current_task = task.id
                    await self._task_executor.run(task, dry_run=True)
        except Exception as e:
            execution.fail_rollback(str(e))
            ROLLBACKS_TOTAL.labels(trigger=trigger, result="failed").inc()
            log.critical("rollback_failed", error=str(e), exc_info=True)
            await self._events.emit(
                DeploymentRollbackFailed(execution_id=execution.execution_id, error=str(e))
            )
            raise RollbackExecutionError(
                execution.execution_id,
                f"Rollback failed for deployment {execution.execution_id}: {e}",
            ) from e

        execution.current_task = None
        execution.complete_rollback()
        ROLLBACKS_TOTAL.labels(trigger=trigger, result="completed").inc()
        ROLLBACK_DURATION.observe(time.monotonic() - started)
        log.info("rollback_completed", rollback_time=execution.metrics.rollback_time)

        await self._events.emit(
            DeploymentRollbackCompleted(
                execution_id=execution.execution_id,
                reason=reason,
                rollback_time=execution.metrics.rollback_time,
            )
        )
