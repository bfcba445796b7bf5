"""Composition root wiring adapters into the deployment coordinator."""

from __future__ import annotations

from typing import Any

import redis.asyncio

from coordinator.config import get_settings, Settings, StoreBackend
from coordinator.domain.ports.repositories import DeploymentRepository, KeyValueStore
from coordinator.domain.ports.services import (
    DistributedLock,
    EventPublisher,
    ReadinessAssessor,
    TaskCommandExecutor,
    ValidationExecutor,
)
from coordinator.domain.services.deployment_service import DeploymentCoordinator
from coordinator.domain.services.event_dispatch import EventDispatcher
from coordinator.domain.services.execution_registry import ExecutionRegistry
from coordinator.domain.services.gates import ReadinessGate
from coordinator.domain.services.phase_executor import PhaseExecutor
from coordinator.domain.services.plan_builder import PlanBuilder
from coordinator.domain.services.rollback_coordinator import RollbackCoordinator
from coordinator.infrastructure.cache.in_memory_lock import InMemoryDistributedLock
from coordinator.infrastructure.cache.redis_store import (
    create_redis_client,
    RedisDistributedLock,
    RedisKeyValueStore,
)
from coordinator.infrastructure.executors import (
    SimulatedTaskCommandExecutor,
    SimulatedValidationExecutor,
)
from coordinator.infrastructure.messaging.event_publisher import (
    InMemoryEventPublisher,
    KafkaEventPublisher,
)
from coordinator.infrastructure.observability.logging import setup_logging
from coordinator.infrastructure.observability.metrics import setup_metrics
from coordinator.infrastructure.observability.tracing import setup_tracing
from coordinator.infrastructure.persistence import (
    InMemoryKeyValueStore,
    KeyValueDeploymentRepository,
)
from coordinator.infrastructure.readiness import StaticReadinessAssessor


class ServiceContainer:
    """Simple dependency injection container.

    Builds every collaborator lazily from settings. Any adapter can be
    supplied up front instead, which is how tests and embedding
    applications plug in real task runners, publishers or assessors.

    Each container owns its own coordinator and execution registry.
    ``get_instance`` is an opt-in process-wide default for applications
    that want one; nothing inside the package calls it.
    """

    _instance: ServiceContainer | None = None

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        event_publisher: EventPublisher | None = None,
        task_executor: TaskCommandExecutor | None = None,
        validation_executor: ValidationExecutor | None = None,
        readiness_assessor: ReadinessAssessor | None = None,
        store: KeyValueStore | None = None,
        kafka_producer: Any = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._event_publisher = event_publisher or self._default_publisher(kafka_producer)
        self._task_executor = task_executor or SimulatedTaskCommandExecutor()
        self._validation_executor = validation_executor or SimulatedValidationExecutor()
        self._readiness_assessor = readiness_assessor or StaticReadinessAssessor()

        # Redis-backed services (lazy init)
        self._redis_client: redis.asyncio.Redis | None = None
        self._store = store
        self._plan_lock: DistributedLock | None = None
        self._coordinator: DeploymentCoordinator | None = None

    @classmethod
    def get_instance(cls) -> ServiceContainer:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def _default_publisher(self, kafka_producer: Any) -> EventPublisher:
        kafka = self._settings.kafka
        if kafka.enabled:
            if kafka_producer is None:
                raise ValueError("KAFKA_ENABLED is set but no Kafka producer was supplied")
            return KafkaEventPublisher(kafka_producer, topic_prefix=kafka.topic_prefix)
        return InMemoryEventPublisher()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def event_publisher(self) -> EventPublisher:
        return self._event_publisher

    @property
    def task_executor(self) -> TaskCommandExecutor:
        return self._task_executor

    @property
    def uses_redis(self) -> bool:
        return self._settings.coordinator.store_backend == StoreBackend.REDIS

    @property
    def redis_client(self) -> redis.asyncio.Redis:
        if self._redis_client is None:
            self._redis_client = create_redis_client(self._settings.redis)
        return self._redis_client

    @property
    def store(self) -> KeyValueStore:
        if self._store is None:
            if self.uses_redis:
                self._store = RedisKeyValueStore(self.redis_client)
            else:
                self._store = InMemoryKeyValueStore()
        return self._store

    @property
    def plan_lock(self) -> DistributedLock:
        if self._plan_lock is None:
            if self.uses_redis:
                self._plan_lock = RedisDistributedLock(self.redis_client)
            else:
                self._plan_lock = InMemoryDistributedLock()
        return self._plan_lock

    @property
    def repository(self) -> DeploymentRepository:
        coordinator_settings = self._settings.coordinator
        return KeyValueDeploymentRepository(
            self.store,
            plan_ttl_seconds=coordinator_settings.plan_ttl_seconds,
            execution_ttl_seconds=coordinator_settings.execution_ttl_seconds,
        )

    @property
    def coordinator(self) -> DeploymentCoordinator:
        if self._coordinator is None:
            self._coordinator = self._build_coordinator()
        return self._coordinator

    def _build_coordinator(self) -> DeploymentCoordinator:
        coordinator_settings = self._settings.coordinator
        events = EventDispatcher(self._event_publisher)

        return DeploymentCoordinator(
            repository=self.repository,
            plan_builder=PlanBuilder(),
            phase_executor=PhaseExecutor(
                self._task_executor,
                self._validation_executor,
                dry_run_task_delay=coordinator_settings.dry_run_task_delay,
            ),
            rollback_coordinator=RollbackCoordinator(self._task_executor, events),
            readiness_gate=ReadinessGate(self._readiness_assessor),
            registry=ExecutionRegistry(history_limit=coordinator_settings.history_limit),
            events=events,
            plan_lock=self.plan_lock if coordinator_settings.serialize_plan_executions else None,
            plan_lock_ttl_seconds=coordinator_settings.plan_lock_ttl_seconds,
        )

    def bootstrap(self) -> None:
        """Configure process-wide logging, metrics export and tracing from settings."""
        observability = self._settings.observability
        setup_logging(observability.log_level, json_output=not self._settings.debug)
        setup_metrics(observability)
        setup_tracing(observability)

    async def close(self) -> None:
        if self._redis_client is not None:
            await self._redis_client.aclose()
            self._redis_client = None


def get_service_container() -> ServiceContainer:
    """Shared container for entry points that want a single process-wide coordinator."""
    return ServiceContainer.get_instance()
