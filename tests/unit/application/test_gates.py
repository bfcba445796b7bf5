"""Unit tests for the approval and readiness gates."""

from __future__ import annotations

import pytest

from coordinator.domain.errors import ReadinessCriticalError
from coordinator.domain.models.plan import ApprovalStatus, PlanSpec
from coordinator.domain.ports.services import ReadinessReport, ReadinessStatus
from coordinator.domain.services.gates import check_approvals, ReadinessGate
from coordinator.domain.services.plan_builder import PlanBuilder
from coordinator.infrastructure.readiness import StaticReadinessAssessor


class TestApprovalGate:
    def test_pending_approvals_are_missing(
        self, plan_builder: PlanBuilder, production_spec: PlanSpec
    ) -> None:
        check = check_approvals(plan_builder.create_plan(production_spec))
        assert not check.approved
        assert check.missing == ["technical", "security", "compliance"]

    def test_all_approved(self, plan_builder: PlanBuilder, production_spec: PlanSpec) -> None:
        plan = plan_builder.create_plan(production_spec)
        for approval in plan.approvals:
            plan = plan.with_approval_decision(approval.id, ApprovalStatus.APPROVED)

        check = check_approvals(plan)
        assert check.approved
        assert check.missing == []

    def test_rejected_approval_is_missing(
        self, plan_builder: PlanBuilder, production_spec: PlanSpec
    ) -> None:
        plan = plan_builder.create_plan(production_spec)
        plan = plan.with_approval_decision("approval-technical", ApprovalStatus.APPROVED)
        plan = plan.with_approval_decision("approval-compliance", ApprovalStatus.APPROVED)
        plan = plan.with_approval_decision("approval-security", ApprovalStatus.REJECTED)

        check = check_approvals(plan)
        assert not check.approved
        assert check.missing == ["security"]


class TestReadinessGate:
    @pytest.mark.asyncio
    async def test_ready_environment_passes(self) -> None:
        assessor = StaticReadinessAssessor()
        report = await ReadinessGate(assessor).ensure_ready("production")
        assert report.status == ReadinessStatus.READY
        assert assessor.assessed == ["production"]

    @pytest.mark.asyncio
    async def test_needs_attention_passes(self) -> None:
        assessor = StaticReadinessAssessor(default_status=ReadinessStatus.NEEDS_ATTENTION)
        report = await ReadinessGate(assessor).ensure_ready("staging")
        assert report.status == ReadinessStatus.NEEDS_ATTENTION

    @pytest.mark.asyncio
    async def test_critical_issues_refuse(self) -> None:
        assessor = StaticReadinessAssessor()
        assessor.set_report(ReadinessReport(
            environment="production",
            status=ReadinessStatus.CRITICAL_ISSUES,
            critical_blockers=["database replication lag", "certificate expired"],
        ))

        with pytest.raises(ReadinessCriticalError) as exc_info:
            await ReadinessGate(assessor).ensure_ready("production")

        assert exc_info.value.blockers == ["database replication lag", "certificate expired"]
        assert "certificate expired" in str(exc_info.value)
