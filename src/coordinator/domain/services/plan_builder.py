"""Template-based deployment plan builder."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, ClassVar

import structlog
from pydantic import ValidationError

from coordinator.domain.errors import PlanValidationError
from coordinator.domain.models.plan import (
    ApprovalType,
    CommunicationPlan,
    DataRecovery,
    DeploymentApproval,
    DeploymentPhase,
    DeploymentPlan,
    DeploymentTask,
    NotificationRule,
    PhaseType,
    PlanSpec,
    RiskAssessment,
    RiskLevel,
    RollbackPhase,
    RollbackPlan,
    RollbackTrigger,
    TriggerCondition,
)


logger = structlog.get_logger(__name__)

SEMVER_PATTERN = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def _task(
    task_id: str,
    name: str,
    description: str,
    command: str,
    timeout: int,
    retry_count: int,
    environment: str | None = None,
    dependencies: tuple[str, ...] = (),
    **extra: Any,
) -> DeploymentTask:
    return DeploymentTask(
        id=task_id,
        name=name,
        description=description,
        command=command,
        timeout=timeout,
        retry_count=retry_count,
        dependencies=list(dependencies),
        environment={"ENVIRONMENT": environment} if environment else {},
        **extra,
    )


class PlanBuilder:
    """Builds deployment plans from an environment template.

    The phase skeleton, rollback plan, approvals and communication plan are
    deterministic for a given target environment. Callers may replace the
    phase skeleton with their own phases, which go through the same
    topology validation.
    """

    ENVIRONMENTS: ClassVar[tuple[str, ...]] = ("development", "staging", "production", "test")

    RISK_LEVELS: ClassVar[dict[str, RiskLevel]] = {
        "development": RiskLevel.LOW,
        "test": RiskLevel.LOW,
        "staging": RiskLevel.MEDIUM,
        "production": RiskLevel.HIGH,
    }

    def create_plan(self, spec: PlanSpec | Mapping[str, Any]) -> DeploymentPlan:
        """Build and validate a plan. Raises PlanValidationError on bad input."""
        if not isinstance(spec, PlanSpec):
            try:
                spec = PlanSpec.model_validate(spec)
            except ValidationError as e:
                raise PlanValidationError(f"Invalid plan spec: {e}") from e

        version = self._resolve_version(spec.version)
        environment = self._resolve_environment(spec.target_environment)

        try:
            if spec.phases is not None:
                if not spec.phases:
                    raise PlanValidationError("A deployment plan needs at least one phase")
                phases = [DeploymentPhase.model_validate(p) for p in spec.phases]
            else:
                phases = self._generate_phases(environment)

            plan = DeploymentPlan(
                name=spec.name,
                description=spec.description,
                version=version,
                target_environment=environment,
                created_by=spec.created_by,
                scheduled_at=spec.scheduled_at,
                phases=phases,
                rollback_plan=self._generate_rollback_plan(environment),
                approvals=self._generate_approvals(environment),
                risk_assessment=self._assess_risk(environment, phases),
                dependencies=list(spec.dependencies),
                prerequisites=self._generate_prerequisites(),
                validation_criteria=self._generate_validation_criteria(),
                communication_plan=self._generate_communication_plan(),
            )
        except ValidationError as e:
            raise PlanValidationError(f"Invalid deployment plan: {e}") from e

        logger.info(
            "plan_built",
            plan_id=plan.plan_id,
            version=plan.version,
            environment=environment,
            phase_count=len(plan.phases),
            task_count=plan.total_tasks,
            estimated_duration=plan.estimated_duration,
        )
        return plan

    def _resolve_version(self, version: str) -> str:
        version = (version or "").strip()
        if not version:
            raise PlanValidationError("Deployment version is required")
        if not SEMVER_PATTERN.match(version):
            raise PlanValidationError(f"Version {version!r} is not a semantic version")
        return version

    def _resolve_environment(self, environment: str) -> str:
        environment = (environment or "").strip().lower()
        if not environment:
            raise PlanValidationError("Target environment is required")
        if environment not in self.ENVIRONMENTS:
            raise PlanValidationError(
                f"Unknown target environment {environment!r}; "
                f"expected one of {', '.join(self.ENVIRONMENTS)}"
            )
        return environment

    def _generate_phases(self, environment: str) -> list[DeploymentPhase]:
        """Preparation, deployment, verification and finalization phases."""
        return [
            DeploymentPhase(
                id="phase-preparation",
                name="Preparation",
                description="Pre-deployment preparation and validation",
                order=1,
                type=PhaseType.PREPARATION,
                estimated_duration=15,
                tasks=[
                    _task(
                        "task-backup-database", "Backup Database",
                        "Create full database backup",
                        "npm run db:backup", timeout=600, retry_count=2,
                        environment=environment,
                        rollback_command="npm run db:restore",
                    ),
                    _task(
                        "task-enable-maintenance", "Enable Maintenance Mode",
                        "Enable maintenance mode to prevent user access",
                        "npm run maintenance:enable", timeout=30, retry_count=1,
                        environment=environment,
                        rollback_command="npm run maintenance:disable",
                    ),
                ],
                rollback_tasks=[
                    _task(
                        "rollback-disable-maintenance", "Disable Maintenance Mode",
                        "Disable maintenance mode to restore access",
                        "npm run maintenance:disable", timeout=30, retry_count=1,
                        environment=environment,
                    ),
                ],
                validation_checks=["backup-integrity", "maintenance-mode-active"],
            ),
            DeploymentPhase(
                id="phase-deployment",
                name="Deployment",
                description=f"Deploy application to {environment} environment",
                order=2,
                type=PhaseType.DEPLOYMENT,
                estimated_duration=30,
                dependencies=["phase-preparation"],
                tasks=[
                    _task(
                        "task-deploy-application", "Deploy Application",
                        "Deploy new application version",
                        f"npm run deploy:{environment}", timeout=1800, retry_count=1,
                        environment=environment,
                        rollback_command="npm run deploy:rollback",
                    ),
                    # Migrations are not retried
                    _task(
                        "task-migrate-database", "Migrate Database",
                        "Apply database migrations",
                        "npm run db:migrate:deploy", timeout=300, retry_count=0,
                        environment=environment,
                        dependencies=("task-deploy-application",),
                    ),
                ],
                rollback_tasks=[
                    _task(
                        "rollback-deploy-previous", "Deploy Previous Version",
                        "Deploy previous application version",
                        "npm run deploy:rollback", timeout=1800, retry_count=1,
                        environment=environment,
                    ),
                ],
                validation_checks=["application-deployed", "migrations-applied"],
            ),
            DeploymentPhase(
                id="phase-verification",
                name="Verification",
                description="Verify deployment success and system health",
                order=3,
                type=PhaseType.VERIFICATION,
                estimated_duration=20,
                parallelizable=True,
                dependencies=["phase-deployment"],
                tasks=[
                    _task(
                        "task-health-check", "Health Check",
                        "Verify application health endpoints",
                        "npm run health:check", timeout=120, retry_count=3,
                        environment=environment,
                        validation_command="npm run health:validate",
                    ),
                    _task(
                        "task-smoke-tests", "Smoke Tests",
                        "Execute smoke test suite",
                        "npm run test:smoke", timeout=600, retry_count=1,
                        environment=environment,
                        dependencies=("task-health-check",),
                    ),
                ],
                validation_checks=["health-endpoints-responding", "smoke-tests-passing"],
            ),
            DeploymentPhase(
                id="phase-finalization",
                name="Finalization",
                description="Complete deployment and restore normal operations",
                order=4,
                type=PhaseType.CLEANUP,
                estimated_duration=10,
                dependencies=["phase-verification"],
                tasks=[
                    _task(
                        "task-disable-maintenance", "Disable Maintenance Mode",
                        "Disable maintenance mode and restore user access",
                        "npm run maintenance:disable", timeout=30, retry_count=1,
                        environment=environment,
                    ),
                    _task(
                        "task-notify-completion", "Notify Completion",
                        "Send deployment completion notifications",
                        "npm run notify:deployment-complete", timeout=60, retry_count=2,
                        environment=environment,
                        dependencies=("task-disable-maintenance",),
                    ),
                ],
                validation_checks=["maintenance-mode-disabled", "notifications-sent"],
                continue_on_failure=True,
            ),
        ]

    def _generate_rollback_plan(self, environment: str) -> RollbackPlan:
        return RollbackPlan(
            name=f"{environment.capitalize()} Rollback Plan",
            description=f"Automated rollback procedure for {environment} deployments",
            triggers=[
                RollbackTrigger(
                    condition=TriggerCondition.DEPLOYMENT_FAILURE,
                    automatic=True,
                    threshold={"failed_tasks": 1, "critical_phase": True},
                ),
                RollbackTrigger(
                    condition=TriggerCondition.HEALTH_CHECK_FAILURE,
                    automatic=True,
                    threshold={"consecutive_failures": 3},
                ),
                RollbackTrigger(condition=TriggerCondition.MANUAL_TRIGGER),
            ],
            phases=[
                RollbackPhase(
                    id="rollback-phase-1",
                    name="Stop Traffic",
                    estimated_duration=2,
                    tasks=[
                        _task(
                            "task-enable-maintenance-rollback", "Enable Maintenance Mode",
                            "Stop incoming traffic during rollback",
                            "npm run maintenance:enable", timeout=30, retry_count=1,
                        ),
                    ],
                ),
                RollbackPhase(
                    id="rollback-phase-2",
                    name="Restore Application",
                    estimated_duration=15,
                    tasks=[
                        _task(
                            "task-deploy-previous-version", "Deploy Previous Version",
                            "Deploy the last known good version",
                            "npm run deploy:rollback", timeout=1200, retry_count=1,
                        ),
                    ],
                ),
                RollbackPhase(
                    id="rollback-phase-3",
                    name="Restore Service",
                    estimated_duration=2,
                    tasks=[
                        _task(
                            "task-disable-maintenance-rollback", "Disable Maintenance Mode",
                            "Restore user access after rollback",
                            "npm run maintenance:disable", timeout=30, retry_count=1,
                        ),
                    ],
                ),
            ],
            data_recovery=DataRecovery(
                backup_required=True,
                backup_location=f"{environment}-backups/",
                recovery_procedure=[
                    "Identify data corruption scope",
                    "Restore from latest backup",
                    "Apply incremental changes if available",
                    "Validate data integrity",
                ],
            ),
            max_rollback_time=20,
            validation_checks=[
                "previous-version-deployed",
                "health-checks-passing",
                "maintenance-mode-disabled",
            ],
        )

    def _generate_approvals(self, environment: str) -> list[DeploymentApproval]:
        approvals = [
            DeploymentApproval(
                id="approval-technical", type=ApprovalType.TECHNICAL, approver="tech-lead"
            ),
            DeploymentApproval(
                id="approval-security", type=ApprovalType.SECURITY, approver="security-team"
            ),
        ]
        if environment == "production":
            approvals.append(
                DeploymentApproval(
                    id="approval-compliance",
                    type=ApprovalType.COMPLIANCE,
                    approver="compliance-officer",
                )
            )
        return approvals

    def _assess_risk(
        self, environment: str, phases: list[DeploymentPhase]
    ) -> RiskAssessment:
        factors: list[str] = []
        if any(
            "migrat" in task.id for phase in phases for task in phase.tasks
        ):
            factors.append("Database migrations included")
        factors.extend([
            "External service integrations affected",
            "Performance optimizations implemented",
        ])
        if environment == "production":
            factors.append("Customer-facing environment")

        return RiskAssessment(
            level=self.RISK_LEVELS[environment],
            factors=factors,
            mitigations=[
                "Comprehensive testing completed",
                "Rollback plan validated",
                "Monitoring enhanced",
            ],
        )

    def _generate_prerequisites(self) -> list[str]:
        return [
            "Production readiness assessment completed",
            "All required approvals obtained",
            "Backup and rollback procedures verified",
            "Monitoring and alerting configured",
            "Communication plan activated",
        ]

    def _generate_validation_criteria(self) -> list[str]:
        return [
            "All health checks passing",
            "Response times within acceptable limits",
            "Error rates below threshold",
            "Core functionality verified",
            "External integrations functional",
        ]

    def _generate_communication_plan(self) -> CommunicationPlan:
        return CommunicationPlan(
            stakeholders=[
                "development-team",
                "operations-team",
                "product-management",
                "customer-support",
            ],
            notifications=[
                NotificationRule(
                    phase="start",
                    recipients=["development-team", "operations-team"],
                    template="deployment-started",
                ),
                NotificationRule(
                    phase="completion",
                    recipients=["all-stakeholders"],
                    template="deployment-completed",
                ),
                NotificationRule(
                    phase="failure",
                    recipients=["development-team", "operations-team"],
                    template="deployment-failed",
                ),
            ],
        )
