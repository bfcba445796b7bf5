"""Phase executor: runs a plan's phases, tasks and validation checks in order."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from coordinator.domain.errors import TaskExecutionError, ValidationCheckError
from coordinator.domain.models.base import utc_now
from coordinator.domain.models.execution import (
    DeploymentExecution,
    ExecutionStatus,
    PhaseResult,
    PhaseStatus,
    TaskResult,
    TaskStatus,
    ValidationResult,
    ValidationStatus,
)
from coordinator.domain.models.plan import (
    DeploymentPhase,
    DeploymentPlan,
    DeploymentTask,
    TaskType,
)
from coordinator.domain.ports.services import TaskCommandExecutor, ValidationExecutor
from coordinator.infrastructure.observability.metrics import (
    PHASES_TOTAL,
    TASKS_TOTAL,
    VALIDATIONS_TOTAL,
)


logger = structlog.get_logger(__name__)

PhaseCallback = Callable[[DeploymentExecution, DeploymentPhase], Awaitable[None]]


class PhaseExecutor:
    """Drives an execution through the phases of its plan.

    Phases run strictly in ascending order and tasks run one at a time in
    dependency order. ``parallelizable`` is never consulted. Cancellation
    is cooperative: an execution cancelled by another caller stops at the
    next phase boundary, and a task already dispatched always runs to
    completion.
    """

    def __init__(
        self,
        task_executor: TaskCommandExecutor,
        validation_executor: ValidationExecutor,
        dry_run_task_delay: float = 0.1,
    ) -> None:
        self._task_executor = task_executor
        self._validation_executor = validation_executor
        self._dry_run_task_delay = dry_run_task_delay

    async def run(
        self,
        execution: DeploymentExecution,
        plan: DeploymentPlan,
        on_phase_completed: PhaseCallback | None = None,
    ) -> None:
        """Run every phase. Raises the error of the first failing phase."""
        for phase in sorted(plan.phases, key=lambda p: p.order):
            if execution.status == ExecutionStatus.CANCELLED:
                logger.info(
                    "execution_cancelled_at_phase_boundary",
                    execution_id=execution.execution_id,
                    next_phase=phase.id,
                )
                return

            await self.run_phase(execution, phase)
            if on_phase_completed is not None:
                await on_phase_completed(execution, phase)

    async def run_phase(self, execution: DeploymentExecution, phase: DeploymentPhase) -> None:
        phase_result = execution.get_phase_result(phase.id)
        if phase_result is None:
            raise ValueError(f"Phase result not found: {phase.id}")

        log = logger.bind(execution_id=execution.execution_id, phase_id=phase.id)
        log.info("phase_started", phase_name=phase.name, dry_run=execution.dry_run)

        execution.current_phase = phase.id
        phase_result.status = PhaseStatus.IN_PROGRESS
        phase_result.started_at = utc_now()

        try:
            for task in phase.execution_order():
                await self._run_task(execution, phase, phase_result, task)

            for check_id in phase.validation_checks:
                await self._run_validation(execution, phase, phase_result, check_id)

        except asyncio.CancelledError:
            phase_result.status = PhaseStatus.FAILED
            phase_result.completed_at = utc_now()
            log.warning("phase_interrupted")
            raise

        except Exception as e:
            phase_result.status = PhaseStatus.FAILED
            phase_result.completed_at = utc_now()
            PHASES_TOTAL.labels(phase_type=phase.type.value, status="failed").inc()
            log.error("phase_failed", error=str(e))
            raise

        phase_result.status = PhaseStatus.COMPLETED
        phase_result.completed_at = utc_now()
        execution.record_phase_completed()
        PHASES_TOTAL.labels(phase_type=phase.type.value, status="completed").inc()
        log.info(
            "phase_completed",
            phases_completed=execution.progress.phases_completed,
            total_phases=execution.progress.total_phases,
        )

    async def _run_task(
        self,
        execution: DeploymentExecution,
        phase: DeploymentPhase,
        phase_result: PhaseResult,
        task: DeploymentTask,
    ) -> None:
        task_result = phase_result.get_task_result(task.id)
        if task_result is None:
            task_result = TaskResult(task_id=task.id)
            phase_result.task_results.append(task_result)

        execution.current_task = task.id
        task_result.status = TaskStatus.IN_PROGRESS
        started = time.monotonic()

        try:
            output = await self._dispatch(task, execution.dry_run)
        except asyncio.CancelledError:
            task_result.status = TaskStatus.FAILED
            task_result.error = "Interrupted by cancellation"
            task_result.duration = time.monotonic() - started
            raise
        except Exception as e:
            task_result.status = TaskStatus.FAILED
            task_result.error = str(e)
            task_result.duration = time.monotonic() - started
            TASKS_TOTAL.labels(task_type=task.type.value, status="failed").inc()
            logger.error(
                "task_failed",
                execution_id=execution.execution_id,
                phase_id=phase.id,
                task_id=task.id,
                error=str(e),
                continue_on_failure=phase.continue_on_failure,
            )
            if phase.continue_on_failure:
                return
            if isinstance(e, TaskExecutionError):
                raise
            raise TaskExecutionError(task.id, f"Task {task.name} failed: {e}") from e

        task_result.status = TaskStatus.COMPLETED
        task_result.output = output
        task_result.duration = time.monotonic() - started
        execution.record_task_completed()
        TASKS_TOTAL.labels(task_type=task.type.value, status="completed").inc()
        logger.debug(
            "task_completed",
            execution_id=execution.execution_id,
            task_id=task.id,
            duration=task_result.duration,
        )

    async def _dispatch(self, task: DeploymentTask, dry_run: bool) -> str:
        if dry_run:
            await asyncio.sleep(self._dry_run_task_delay)
            return f"Dry run completed for task: {task.name}"

        if task.type == TaskType.MANUAL:
            return f"Manual task completed: {task.name}"

        result = await self._task_executor.run(task, dry_run)
        return result.output

    async def _run_validation(
        self,
        execution: DeploymentExecution,
        phase: DeploymentPhase,
        phase_result: PhaseResult,
        check_id: str,
    ) -> None:
        try:
            result = await self._validation_executor.run(check_id, execution.dry_run)
        except Exception as e:
            result = ValidationResult(
                check_id=check_id,
                status=ValidationStatus.FAILED,
                message=str(e),
                details={"error": repr(e)},
            )

        phase_result.validation_results.append(result)
        VALIDATIONS_TOTAL.labels(status=result.status.value).inc()

        if result.status != ValidationStatus.FAILED:
            if result.status == ValidationStatus.WARNING:
                logger.warning(
                    "validation_check_warning",
                    execution_id=execution.execution_id,
                    check_id=check_id,
                    message=result.message,
                )
            return

        logger.error(
            "validation_check_failed",
            execution_id=execution.execution_id,
            phase_id=phase.id,
            check_id=check_id,
            message=result.message,
            continue_on_failure=phase.continue_on_failure,
        )
        if not phase.continue_on_failure:
            raise ValidationCheckError(check_id, f"Validation failed: {result.message}")
