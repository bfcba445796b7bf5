"""Pre-execution gates: approvals and environment readiness."""

from __future__ import annotations

import structlog
from pydantic import Field

from coordinator.domain.errors import ReadinessCriticalError
from coordinator.domain.models.base import ValueObject
from coordinator.domain.models.plan import ApprovalStatus, DeploymentPlan
from coordinator.domain.ports.services import ReadinessAssessor, ReadinessReport


logger = structlog.get_logger(__name__)


class ApprovalCheck(ValueObject):
    approved: bool
    missing: list[str] = Field(default_factory=list)


def check_approvals(plan: DeploymentPlan) -> ApprovalCheck:
    """A plan is approved only when every one of its approvals is approved.

    ``missing`` lists the approval types still pending or rejected.
    """
    missing = [
        approval.type.value
        for approval in plan.approvals
        if approval.status != ApprovalStatus.APPROVED
    ]
    return ApprovalCheck(approved=not missing, missing=missing)


class ReadinessGate:
    """Refuses real executions against an environment in a critical state."""

    def __init__(self, assessor: ReadinessAssessor) -> None:
        self._assessor = assessor

    async def ensure_ready(self, environment: str) -> ReadinessReport:
        report = await self._assessor.assess(environment)
        if report.is_critical:
            logger.error(
                "readiness_gate_refused",
                environment=environment,
                blockers=report.critical_blockers,
            )
            raise ReadinessCriticalError(environment, report.critical_blockers)

        logger.info("readiness_gate_passed", environment=environment, status=report.status.value)
        return report
