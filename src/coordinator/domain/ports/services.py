"""Service port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import Field

from coordinator.domain.models.base import ValueObject
from coordinator.domain.models.execution import ValidationResult
from coordinator.domain.models.plan import DeploymentTask


class ReadinessStatus(str, Enum):
    READY = "ready"
    NEEDS_ATTENTION = "needs_attention"
    NOT_READY = "not_ready"
    CRITICAL_ISSUES = "critical_issues"


class ReadinessReport(ValueObject):
    """Outcome of an environment readiness assessment."""

    environment: str
    status: ReadinessStatus
    critical_blockers: list[str] = Field(default_factory=list)

    @property
    def is_critical(self) -> bool:
        return self.status == ReadinessStatus.CRITICAL_ISSUES


class TaskOutput(ValueObject):
    output: str = ""


class ReadinessAssessor(ABC):
    """Port for the external environment readiness assessment."""

    @abstractmethod
    async def assess(self, environment: str) -> ReadinessReport:
        """Assess whether an environment is ready for deployment."""


class TaskCommandExecutor(ABC):
    """Port for running a deployment task against real infrastructure.

    Implementations own timeout and retry enforcement using the task's
    ``timeout`` and ``retry_count`` fields.
    """

    @abstractmethod
    async def run(self, task: DeploymentTask, dry_run: bool) -> TaskOutput:
        """Run a task. Raises TaskExecutionError on failure."""


class ValidationExecutor(ABC):
    """Port for running a phase validation check."""

    @abstractmethod
    async def run(self, check_id: str, dry_run: bool) -> ValidationResult:
        """Run a validation check and report its outcome."""


class EventPublisher(ABC):
    """Port for publishing domain events."""

    @abstractmethod
    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        """Publish an event."""

    @abstractmethod
    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        """Publish a batch of events."""


class DistributedLock(ABC):
    """Port for distributed locking."""

    @abstractmethod
    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        """Acquire a distributed lock."""

    @abstractmethod
    async def release(self, resource_id: str) -> bool:
        """Release a distributed lock."""

    @abstractmethod
    async def is_locked(self, resource_id: str) -> bool:
        """Check if a resource is locked."""
