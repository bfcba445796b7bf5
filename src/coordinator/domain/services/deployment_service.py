"""Domain service coordinating production deployments."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from coordinator.domain.errors import (
    ApprovalIncompleteError,
    ExecutionConflictError,
    ForbiddenOperationError,
    PlanValidationError,
    ReadinessCriticalError,
    RollbackExecutionError,
    StoreUnavailableError,
)
from coordinator.domain.events.deployment_events import (
    DeploymentApprovalsSkipped,
    DeploymentCancelled,
    DeploymentCompleted,
    DeploymentFailed,
    DeploymentPlanCreated,
    DeploymentProgress,
)
from coordinator.domain.models.execution import (
    ACTIVE_STATUSES,
    DeploymentExecution,
    ExecutionStatus,
)
from coordinator.domain.models.plan import (
    ApprovalStatus,
    DeploymentPhase,
    DeploymentPlan,
    PlanSpec,
)
from coordinator.domain.ports.repositories import DeploymentRepository
from coordinator.domain.ports.services import DistributedLock
from coordinator.domain.services.dashboard import build_dashboard, DeploymentDashboard
from coordinator.domain.services.event_dispatch import EventDispatcher
from coordinator.domain.services.execution_registry import ExecutionRegistry
from coordinator.domain.services.gates import check_approvals, ReadinessGate
from coordinator.domain.services.phase_executor import PhaseExecutor
from coordinator.domain.services.plan_builder import PlanBuilder
from coordinator.domain.services.rollback_coordinator import (
    RollbackCoordinator,
    should_trigger_automatic_rollback,
)
from coordinator.infrastructure.observability.metrics import (
    ACTIVE_EXECUTIONS,
    EXECUTION_DURATION,
    EXECUTIONS_REFUSED,
    EXECUTIONS_TOTAL,
)
from coordinator.infrastructure.observability.tracing import get_tracer


logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

APPROVAL_ACTIONS: dict[str, ApprovalStatus] = {
    "approve": ApprovalStatus.APPROVED,
    "reject": ApprovalStatus.REJECTED,
}


class DeploymentCoordinator:
    """Entry point for planning, executing and rolling back deployments.

    One coordinator hosts any number of concurrent executions. Each
    execution is owned by the ``execute`` call driving it; every other
    caller only ever sees snapshots.

    When a ``plan_lock`` is supplied, executions of the same plan are
    serialized: a second ``execute`` on a plan with an execution in flight
    raises ExecutionConflictError instead of starting.
    """

    def __init__(
        self,
        repository: DeploymentRepository,
        plan_builder: PlanBuilder,
        phase_executor: PhaseExecutor,
        rollback_coordinator: RollbackCoordinator,
        readiness_gate: ReadinessGate,
        registry: ExecutionRegistry,
        events: EventDispatcher,
        plan_lock: DistributedLock | None = None,
        plan_lock_ttl_seconds: int = 7200,
    ) -> None:
        self._repository = repository
        self._plan_builder = plan_builder
        self._phase_executor = phase_executor
        self._rollback_coordinator = rollback_coordinator
        self._readiness_gate = readiness_gate
        self._registry = registry
        self._events = events
        self._plan_lock = plan_lock
        self._plan_lock_ttl = plan_lock_ttl_seconds

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    async def create_plan(self, spec: PlanSpec | Mapping[str, Any]) -> DeploymentPlan:
        """Build, persist and announce a new deployment plan."""
        plan = self._plan_builder.create_plan(spec)
        await self._repository.save_plan(plan)

        await self._events.emit(
            DeploymentPlanCreated(
                plan_id=plan.plan_id,
                version=plan.version,
                target_environment=plan.target_environment,
            )
        )
        logger.info(
            "plan_created",
            plan_id=plan.plan_id,
            version=plan.version,
            environment=plan.target_environment,
        )
        return plan

    async def get_plan(self, plan_id: str) -> DeploymentPlan:
        return await self._repository.get_plan(plan_id)

    async def decide_approval(
        self,
        plan_id: str,
        approval_id: str,
        action: str | ApprovalStatus,
        approver: str | None = None,
        comments: str | None = None,
        conditions: list[str] | None = None,
    ) -> DeploymentPlan:
        """Approve or reject one of a plan's approvals and store the result."""
        if isinstance(action, ApprovalStatus):
            status = action
        else:
            status = APPROVAL_ACTIONS.get(action.lower())
            if status is None:
                raise PlanValidationError(
                    f"Unknown approval action {action!r}; expected approve or reject"
                )

        plan = await self._repository.get_plan(plan_id)
        updated = plan.with_approval_decision(
            approval_id,
            status,
            approver=approver,
            comments=comments,
            conditions=conditions,
        )
        if not await self._repository.save_plan(updated):
            raise StoreUnavailableError(
                f"Approval decision for plan {plan_id} could not be stored"
            )

        logger.info(
            "approval_decided",
            plan_id=plan_id,
            approval_id=approval_id,
            status=status.value,
            approver=approver,
        )
        return updated

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        plan_id: str,
        dry_run: bool = False,
        skip_approvals: bool = False,
    ) -> DeploymentExecution:
        """Run a plan. Gates refuse before any execution is created."""
        with tracer.start_as_current_span("deployment.execute") as span:
            span.set_attribute("deployment.plan_id", plan_id)
            span.set_attribute("deployment.dry_run", dry_run)

            plan = await self._repository.get_plan(plan_id)
            await self._run_gates(plan, dry_run=dry_run, skip_approvals=skip_approvals)

            lock_key = await self._acquire_plan_lock(plan_id)
            try:
                execution = await self._run_execution(plan, dry_run)
            finally:
                if lock_key is not None:
                    await self._release_plan_lock(lock_key)

            span.set_attribute("deployment.execution_id", execution.execution_id)
            span.set_attribute("deployment.status", execution.status.value)
            return execution

    async def _run_gates(self, plan: DeploymentPlan, dry_run: bool, skip_approvals: bool) -> None:
        approval_check = check_approvals(plan)
        if skip_approvals:
            logger.warning(
                "approval_gate_skipped",
                plan_id=plan.plan_id,
                missing=approval_check.missing,
            )
            await self._events.emit(
                DeploymentApprovalsSkipped(plan_id=plan.plan_id, missing=approval_check.missing)
            )
        elif not approval_check.approved:
            EXECUTIONS_REFUSED.labels(gate="approvals").inc()
            logger.warning(
                "execution_refused_approvals",
                plan_id=plan.plan_id,
                missing=approval_check.missing,
            )
            raise ApprovalIncompleteError(approval_check.missing)

        if dry_run:
            return

        try:
            await self._readiness_gate.ensure_ready(plan.target_environment)
        except ReadinessCriticalError:
            EXECUTIONS_REFUSED.labels(gate="readiness").inc()
            raise

    async def _acquire_plan_lock(self, plan_id: str) -> str | None:
        if self._plan_lock is None:
            return None

        lock_key = f"deployment:plan:{plan_id}:execution"
        if not await self._plan_lock.acquire(lock_key, ttl_seconds=self._plan_lock_ttl):
            EXECUTIONS_REFUSED.labels(gate="lock").inc()
            raise ExecutionConflictError(
                f"Another execution of plan {plan_id} is already in progress"
            )
        return lock_key

    async def _release_plan_lock(self, lock_key: str) -> None:
        """Release the plan lock; a failure here never masks the execution outcome."""
        if self._plan_lock is None:
            return
        try:
            await self._plan_lock.release(lock_key)
        except Exception as e:
            # The lock TTL reclaims it
            logger.error("plan_lock_release_failed", lock_key=lock_key, error=str(e))

    async def _run_execution(self, plan: DeploymentPlan, dry_run: bool) -> DeploymentExecution:
        execution = DeploymentExecution.for_plan(plan, dry_run=dry_run)
        log = logger.bind(execution_id=execution.execution_id, plan_id=plan.plan_id)

        await self._registry.register(execution)
        ACTIVE_EXECUTIONS.inc()

        try:
            if execution.status == ExecutionStatus.PENDING:
                execution.start()
            log.info("execution_started", dry_run=dry_run, total_phases=len(plan.phases))

            await self._phase_executor.run(
                execution, plan, on_phase_completed=self._on_phase_completed
            )

            if execution.status == ExecutionStatus.IN_PROGRESS:
                execution.complete()
                EXECUTION_DURATION.labels(environment=plan.target_environment).observe(
                    execution.metrics.total_duration or 0.0
                )
                log.info("execution_completed", total_duration=execution.metrics.total_duration)
                await self._events.emit(
                    DeploymentCompleted(
                        execution_id=execution.execution_id,
                        plan_id=plan.plan_id,
                        total_duration=execution.metrics.total_duration,
                    )
                )
            else:
                log.info("execution_stopped", status=execution.status.value)

        except asyncio.CancelledError:
            log.warning("execution_task_cancelled", status=execution.status.value)
            if execution.is_active:
                reason = "Execution task was cancelled"
                execution.cancel(reason)
                await self._events.emit(
                    DeploymentCancelled(execution_id=execution.execution_id, reason=reason)
                )
            raise

        except Exception as e:
            await self._handle_failure(execution, plan, e)
            raise

        finally:
            await self._registry.retire(execution)
            ACTIVE_EXECUTIONS.dec()
            EXECUTIONS_TOTAL.labels(
                status=execution.status.value,
                environment=plan.target_environment,
                dry_run=str(dry_run).lower(),
            ).inc()
            await self._repository.save_execution(execution)

        return execution.snapshot()

    async def _on_phase_completed(
        self, execution: DeploymentExecution, phase: DeploymentPhase
    ) -> None:
        await self._repository.save_execution(execution)
        await self._events.emit(
            DeploymentProgress(
                execution_id=execution.execution_id,
                phase=phase.name,
                progress=execution.progress.model_dump(),
            )
        )

    async def _handle_failure(
        self, execution: DeploymentExecution, plan: DeploymentPlan, error: Exception
    ) -> None:
        """Record a failed execution, roll back when eligible, publish the failure.

        A rollback failure is attached to ``error`` as ``rollback_error``
        and never replaces it.
        """
        message = str(error)
        log = logger.bind(execution_id=execution.execution_id, plan_id=plan.plan_id)

        if execution.status == ExecutionStatus.IN_PROGRESS:
            execution.fail(message)
        else:
            # Cancelled while the failing phase was still running
            execution.error_message = message
        log.error("execution_failed", error=message, status=execution.status.value)

        rollback_attempted = False
        if (
            not execution.dry_run
            and execution.status == ExecutionStatus.FAILED
            and should_trigger_automatic_rollback(plan, error)
        ):
            rollback_attempted = True
            try:
                await self._rollback_coordinator.execute_rollback(
                    execution, plan, f"Deployment failed: {message}"
                )
            except RollbackExecutionError as rollback_error:
                error.rollback_error = rollback_error  # type: ignore[attr-defined]
                log.critical("automatic_rollback_failed", error=str(rollback_error))

        await self._events.emit(
            DeploymentFailed(
                execution_id=execution.execution_id,
                plan_id=plan.plan_id,
                error=message,
                rollback_attempted=rollback_attempted,
            )
        )

    # ------------------------------------------------------------------
    # Execution control
    # ------------------------------------------------------------------

    async def get_status(self, execution_id: str) -> DeploymentExecution:
        """Look in the active set, then history, then the store."""
        execution = await self._registry.find(execution_id)
        if execution is not None:
            return execution
        return await self._repository.get_execution(execution_id)

    async def cancel(self, execution_id: str, reason: str) -> DeploymentExecution:
        """Cancel a pending or running execution at its next phase boundary."""
        execution = await self._registry.get_active(execution_id)
        if execution is None or not execution.is_active:
            current = execution or await self.get_status(execution_id)
            if current.status not in ACTIVE_STATUSES:
                raise ForbiddenOperationError(
                    f"Cannot cancel deployment in status: {current.status.value}"
                )
            # Active according to the store but not owned by this coordinator
            raise ForbiddenOperationError(
                f"Deployment {execution_id} is not running on this coordinator"
            )

        execution.cancel(reason)
        logger.warning("execution_cancelled", execution_id=execution_id, reason=reason)

        await self._repository.save_execution(execution)
        await self._events.emit(DeploymentCancelled(execution_id=execution_id, reason=reason))
        return execution.snapshot()

    async def rollback(
        self, execution_id: str, reason: str, force: bool = False
    ) -> DeploymentExecution:
        """Manually roll back a terminal execution.

        Completed executions need ``force``. Running executions must be
        cancelled first, and an execution is only ever rolled back once.
        """
        with tracer.start_as_current_span("deployment.rollback") as span:
            span.set_attribute("deployment.execution_id", execution_id)
            span.set_attribute("deployment.rollback.force", force)

            if await self._registry.get_active(execution_id) is not None:
                raise ForbiddenOperationError(
                    f"Deployment {execution_id} is still running and cannot be rolled back"
                )

            # Held from the status checks until the outcome is written back
            if not await self._registry.claim_rollback(execution_id):
                raise ForbiddenOperationError(
                    f"A rollback of deployment {execution_id} is already in progress"
                )
            try:
                execution = await self._rollback_claimed(execution_id, reason, force)
            finally:
                await self._registry.release_rollback(execution_id)

            span.set_attribute("deployment.status", execution.status.value)
            return execution.snapshot()

    async def _rollback_claimed(
        self, execution_id: str, reason: str, force: bool
    ) -> DeploymentExecution:
        execution = await self._registry.find(execution_id)
        in_history = execution is not None
        if execution is None:
            execution = await self._repository.get_execution(execution_id)

        if execution.status in ACTIVE_STATUSES:
            raise ForbiddenOperationError(
                f"Cannot rollback deployment in status: {execution.status.value}"
            )
        if execution.status == ExecutionStatus.ROLLED_BACK:
            raise ForbiddenOperationError(
                f"Deployment {execution_id} has already been rolled back"
            )
        if execution.status == ExecutionStatus.COMPLETED and not force:
            raise ForbiddenOperationError(
                "Cannot rollback completed deployment without force flag"
            )

        plan = await self._repository.get_plan(execution.plan_id)
        try:
            await self._rollback_coordinator.execute_rollback(
                execution, plan, reason, trigger="manual"
            )
        finally:
            if in_history:
                await self._registry.retire(execution)
            await self._repository.save_execution(execution)
        return execution

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def dashboard(self) -> DeploymentDashboard:
        active = await self._registry.active_snapshot()
        history = await self._registry.history_snapshot()
        return build_dashboard(active, history)
