"""Deployment plan model: phases, tasks, rollback plan and approvals."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, computed_field, Field, model_validator

from coordinator.domain.errors import ApprovalNotFoundError
from coordinator.domain.models.base import generate_id, utc_now, ValueObject


class PhaseType(str, Enum):
    """Kinds of deployment phases."""

    PREPARATION = "preparation"
    VALIDATION = "validation"
    DEPLOYMENT = "deployment"
    VERIFICATION = "verification"
    CLEANUP = "cleanup"


class TaskType(str, Enum):
    AUTOMATED = "automated"
    MANUAL = "manual"
    VALIDATION = "validation"


class ApprovalType(str, Enum):
    TECHNICAL = "technical"
    BUSINESS = "business"
    SECURITY = "security"
    COMPLIANCE = "compliance"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TriggerCondition(str, Enum):
    """Conditions a rollback trigger reacts to."""

    DEPLOYMENT_FAILURE = "deployment_failure"
    HEALTH_CHECK_FAILURE = "health_check_failure"
    MANUAL_TRIGGER = "manual_trigger"


class DeploymentTask(ValueObject):
    """A single unit of work inside a phase."""

    id: str
    name: str
    description: str = ""
    type: TaskType = TaskType.AUTOMATED
    command: str | None = None
    script: str | None = None
    timeout: int = Field(default=300, gt=0)  # seconds
    retry_count: int = Field(default=0, ge=0)
    rollback_command: str | None = None
    validation_command: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)


class DeploymentPhase(ValueObject):
    """An ordered stage of a plan."""

    id: str
    name: str
    description: str = ""
    order: int
    type: PhaseType
    estimated_duration: int = Field(default=0, ge=0)  # minutes
    parallelizable: bool = False
    dependencies: list[str] = Field(default_factory=list)
    tasks: list[DeploymentTask] = Field(default_factory=list)
    rollback_tasks: list[DeploymentTask] = Field(default_factory=list)
    validation_checks: list[str] = Field(default_factory=list)
    continue_on_failure: bool = False
    manual_approval_required: bool = False

    @model_validator(mode="after")
    def _check_task_graph(self) -> DeploymentPhase:
        task_ids = [task.id for task in self.tasks]
        duplicates = {task_id for task_id in task_ids if task_ids.count(task_id) > 1}
        if duplicates:
            raise ValueError(
                f"Phase {self.id} has duplicate task ids: {sorted(duplicates)}"
            )

        known = set(task_ids)
        for task in self.tasks:
            for dep in task.dependencies:
                if dep == task.id:
                    raise ValueError(f"Task {task.id} depends on itself")
                if dep not in known:
                    raise ValueError(
                        f"Task {task.id} in phase {self.id} depends on unknown task {dep}"
                    )

        self.execution_order()
        return self

    def execution_order(self) -> list[DeploymentTask]:
        """Return tasks in dependency order.

        Stable topological sort: among the tasks whose dependencies are
        satisfied, the one declared first runs first, so a task array that
        already respects its dependencies is returned unchanged.
        """
        remaining = list(self.tasks)
        done: set[str] = set()
        ordered: list[DeploymentTask] = []

        while remaining:
            ready = next(
                (t for t in remaining if all(dep in done for dep in t.dependencies)),
                None,
            )
            if ready is None:
                cycle = ", ".join(t.id for t in remaining)
                raise ValueError(f"Task dependency cycle in phase {self.id}: {cycle}")
            ordered.append(ready)
            done.add(ready.id)
            remaining.remove(ready)

        return ordered


class RollbackTrigger(ValueObject):
    """Rule deciding whether a failure should provoke a rollback."""

    condition: TriggerCondition
    automatic: bool = False
    threshold: dict[str, Any] = Field(default_factory=dict)


class RollbackPhase(ValueObject):
    id: str
    name: str
    tasks: list[DeploymentTask] = Field(default_factory=list)
    estimated_duration: int = Field(default=0, ge=0)  # minutes


class DataRecovery(ValueObject):
    backup_required: bool = False
    backup_location: str = ""
    recovery_procedure: list[str] = Field(default_factory=list)


class RollbackPlan(ValueObject):
    """Independently authored rollback procedure for a plan."""

    id: str = Field(default_factory=lambda: generate_id("rollback"))
    name: str
    description: str = ""
    triggers: list[RollbackTrigger] = Field(default_factory=list)
    phases: list[RollbackPhase] = Field(default_factory=list)
    data_recovery: DataRecovery = Field(default_factory=DataRecovery)
    max_rollback_time: int = 0  # minutes
    validation_checks: list[str] = Field(default_factory=list)

    @property
    def automatic_triggers(self) -> list[RollbackTrigger]:
        return [t for t in self.triggers if t.automatic]


class DeploymentApproval(ValueObject):
    id: str
    type: ApprovalType
    approver: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    approved_at: datetime | None = None
    comments: str | None = None
    conditions: list[str] = Field(default_factory=list)


class RiskAssessment(ValueObject):
    level: RiskLevel
    factors: list[str] = Field(default_factory=list)
    mitigations: list[str] = Field(default_factory=list)


class NotificationRule(ValueObject):
    phase: str
    recipients: list[str] = Field(default_factory=list)
    template: str


class CommunicationPlan(ValueObject):
    stakeholders: list[str] = Field(default_factory=list)
    notifications: list[NotificationRule] = Field(default_factory=list)


class DeploymentPlan(ValueObject):
    """Immutable deployment blueprint.

    Only approvals change after creation, and only by producing a new
    plan through :meth:`with_approval_decision`.
    """

    plan_id: str = Field(default_factory=lambda: generate_id("deploy-plan"))
    name: str
    description: str = ""
    version: str
    target_environment: str
    created_by: str = "system"
    created_at: datetime = Field(default_factory=utc_now)
    scheduled_at: datetime | None = None
    phases: list[DeploymentPhase] = Field(default_factory=list)
    rollback_plan: RollbackPlan
    approvals: list[DeploymentApproval] = Field(default_factory=list)
    risk_assessment: RiskAssessment
    dependencies: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    validation_criteria: list[str] = Field(default_factory=list)
    communication_plan: CommunicationPlan = Field(default_factory=CommunicationPlan)

    @model_validator(mode="after")
    def _check_phase_topology(self) -> DeploymentPlan:
        seen: set[str] = set()
        previous_order: int | None = None
        for phase in self.phases:
            if phase.id in seen:
                raise ValueError(f"Duplicate phase id: {phase.id}")
            if previous_order is not None and phase.order <= previous_order:
                raise ValueError(
                    f"Phase {phase.id} order {phase.order} must be greater than {previous_order}"
                )
            for dep in phase.dependencies:
                if dep not in seen:
                    raise ValueError(
                        f"Phase {phase.id} depends on {dep}, which is not an earlier phase"
                    )
            seen.add(phase.id)
            previous_order = phase.order
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def estimated_duration(self) -> int:
        """Total estimated duration in minutes (informational)."""
        return sum(phase.estimated_duration for phase in self.phases)

    @property
    def total_tasks(self) -> int:
        return sum(len(phase.tasks) for phase in self.phases)

    def get_phase(self, phase_id: str) -> DeploymentPhase | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def with_approval_decision(
        self,
        approval_id: str,
        status: ApprovalStatus,
        approver: str | None = None,
        comments: str | None = None,
        conditions: list[str] | None = None,
    ) -> DeploymentPlan:
        """Return a copy of the plan with one approval decided."""
        if not any(a.id == approval_id for a in self.approvals):
            raise ApprovalNotFoundError(
                f"Approval {approval_id} not found on plan {self.plan_id}"
            )

        approvals: list[DeploymentApproval] = []
        for approval in self.approvals:
            if approval.id == approval_id:
                approval = approval.model_copy(update={
                    "status": status,
                    "approver": approver or approval.approver,
                    "approved_at": utc_now() if status == ApprovalStatus.APPROVED else None,
                    "comments": comments,
                    "conditions": list(conditions or []),
                })
            approvals.append(approval)
        return self.model_copy(update={"approvals": approvals})


class PlanSpec(BaseModel):
    """Caller input for building a deployment plan."""

    name: str = "Production Deployment"
    description: str = "Production deployment"
    version: str = "1.0.0"
    target_environment: str = "production"
    created_by: str = "system"
    scheduled_at: datetime | None = None
    dependencies: list[str] = Field(default_factory=list)
    phases: list[dict[str, Any]] | None = None
