"""Plan and execution persistence on top of a key-value store."""

from __future__ import annotations

import structlog
from pydantic import ValidationError

from coordinator.domain.errors import (
    ExecutionNotFoundError,
    PlanNotFoundError,
    StoreKeyNotFoundError,
    StoreUnavailableError,
)
from coordinator.domain.models.execution import DeploymentExecution
from coordinator.domain.models.plan import DeploymentPlan
from coordinator.domain.ports.repositories import DeploymentRepository, KeyValueStore
from coordinator.infrastructure.observability.metrics import STORE_OPERATIONS_TOTAL


logger = structlog.get_logger(__name__)

PLAN_KEY_PREFIX = "deployment:plan:"
EXECUTION_KEY_PREFIX = "deployment:execution:"

DEFAULT_PLAN_TTL_SECONDS = 30 * 24 * 60 * 60
DEFAULT_EXECUTION_TTL_SECONDS = 7 * 24 * 60 * 60


class KeyValueDeploymentRepository(DeploymentRepository):
    """Stores plans and executions as JSON documents.

    Writes are best effort: a store failure is logged and swallowed so that
    a running deployment is never affected by persistence problems. Reads
    keep "not found" and "store unavailable" apart.
    """

    def __init__(
        self,
        store: KeyValueStore,
        plan_ttl_seconds: int = DEFAULT_PLAN_TTL_SECONDS,
        execution_ttl_seconds: int = DEFAULT_EXECUTION_TTL_SECONDS,
    ) -> None:
        self._store = store
        self._plan_ttl = plan_ttl_seconds
        self._execution_ttl = execution_ttl_seconds

    async def save_plan(self, plan: DeploymentPlan) -> bool:
        return await self._put(
            f"{PLAN_KEY_PREFIX}{plan.plan_id}", plan.model_dump_json(), self._plan_ttl
        )

    async def save_execution(self, execution: DeploymentExecution) -> bool:
        return await self._put(
            f"{EXECUTION_KEY_PREFIX}{execution.execution_id}",
            execution.model_dump_json(),
            self._execution_ttl,
        )

    async def get_plan(self, plan_id: str) -> DeploymentPlan:
        """Load a plan. Raises PlanNotFoundError or StoreUnavailableError."""
        try:
            raw = await self._get(f"{PLAN_KEY_PREFIX}{plan_id}")
        except StoreKeyNotFoundError as e:
            raise PlanNotFoundError(f"Deployment plan not found: {plan_id}") from e
        try:
            return DeploymentPlan.model_validate_json(raw)
        except ValidationError as e:
            raise StoreUnavailableError(f"Stored plan {plan_id} is unreadable: {e}") from e

    async def get_execution(self, execution_id: str) -> DeploymentExecution:
        """Load an execution. Raises ExecutionNotFoundError or StoreUnavailableError."""
        try:
            raw = await self._get(f"{EXECUTION_KEY_PREFIX}{execution_id}")
        except StoreKeyNotFoundError as e:
            raise ExecutionNotFoundError(
                f"Deployment execution not found: {execution_id}"
            ) from e
        try:
            return DeploymentExecution.model_validate_json(raw)
        except ValidationError as e:
            raise StoreUnavailableError(
                f"Stored execution {execution_id} is unreadable: {e}"
            ) from e

    async def _put(self, key: str, value: str, ttl_seconds: int) -> bool:
        try:
            await self._store.put(key, value, ttl_seconds)
        except StoreUnavailableError as e:
            STORE_OPERATIONS_TOTAL.labels(operation="put", result="failure").inc()
            logger.error("store_write_failed", key=key, error=str(e))
            return False
        STORE_OPERATIONS_TOTAL.labels(operation="put", result="success").inc()
        return True

    async def _get(self, key: str) -> str:
        try:
            value = await self._store.get(key)
        except StoreKeyNotFoundError:
            STORE_OPERATIONS_TOTAL.labels(operation="get", result="miss").inc()
            raise
        except StoreUnavailableError as e:
            STORE_OPERATIONS_TOTAL.labels(operation="get", result="failure").inc()
            logger.error("store_read_failed", key=key, error=str(e))
            raise
        STORE_OPERATIONS_TOTAL.labels(operation="get", result="hit").inc()
        return value
