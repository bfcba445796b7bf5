"""Persistence port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from coordinator.domain.models.execution import DeploymentExecution
from coordinator.domain.models.plan import DeploymentPlan


class KeyValueStore(ABC):
    """Port for the external key-value store holding plans and executions.

    ``get`` distinguishes a missing key (StoreKeyNotFoundError) from a
    transient failure (StoreUnavailableError).
    """

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with an expiry. Raises StoreUnavailableError."""

    @abstractmethod
    async def get(self, key: str) -> str:
        """Retrieve a value. Raises StoreKeyNotFoundError or StoreUnavailableError."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a value if present."""


class DeploymentRepository(ABC):
    """Port for plan and execution persistence.

    Saves are best effort and report success as a bool instead of raising.
    """

    @abstractmethod
    async def save_plan(self, plan: DeploymentPlan) -> bool:
        """Persist a plan."""

    @abstractmethod
    async def get_plan(self, plan_id: str) -> DeploymentPlan:
        """Load a plan. Raises PlanNotFoundError or StoreUnavailableError."""

    @abstractmethod
    async def save_execution(self, execution: DeploymentExecution) -> bool:
        """Persist an execution."""

    @abstractmethod
    async def get_execution(self, execution_id: str) -> DeploymentExecution:
        """Load an execution. Raises ExecutionNotFoundError or StoreUnavailableError."""
