"""Readiness assessor implementations."""

from __future__ import annotations

from coordinator.domain.ports.services import (
    ReadinessAssessor,
    ReadinessReport,
    ReadinessStatus,
)


class StaticReadinessAssessor(ReadinessAssessor):
    """Reports a fixed readiness status per environment.

    Environments without an explicit entry are reported with the default
    status. Useful for development and for wiring a real assessment
    service behind the same port later.
    """

    def __init__(
        self,
        default_status: ReadinessStatus = ReadinessStatus.READY,
        overrides: dict[str, ReadinessReport] | None = None,
    ) -> None:
        self._default_status = default_status
        self._overrides = dict(overrides or {})
        self.assessed: list[str] = []

    def set_report(self, report: ReadinessReport) -> None:
        self._overrides[report.environment] = report

    async def assess(self, environment: str) -> ReadinessReport:
        self.assessed.append(environment)
        report = self._overrides.get(environment)
        if report is not None:
            return report
        return ReadinessReport(environment=environment, status=self._default_status)
