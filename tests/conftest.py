"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from coordinator.config import Environment, Settings
from coordinator.domain.models.plan import PlanSpec
from coordinator.domain.ports.services import DistributedLock
from coordinator.domain.services.deployment_service import DeploymentCoordinator
from coordinator.domain.services.event_dispatch import EventDispatcher
from coordinator.domain.services.execution_registry import ExecutionRegistry
from coordinator.domain.services.gates import ReadinessGate
from coordinator.domain.services.phase_executor import PhaseExecutor
from coordinator.domain.services.plan_builder import PlanBuilder
from coordinator.domain.services.rollback_coordinator import RollbackCoordinator
from coordinator.infrastructure.executors import (
    SimulatedTaskCommandExecutor,
    SimulatedValidationExecutor,
)
from coordinator.infrastructure.messaging.event_publisher import InMemoryEventPublisher
from coordinator.infrastructure.persistence import (
    InMemoryKeyValueStore,
    KeyValueDeploymentRepository,
)
from coordinator.infrastructure.readiness import StaticReadinessAssessor


@pytest.fixture
def settings() -> Settings:
    return Settings(environment=Environment.TESTING, debug=True)


@pytest.fixture
def event_publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def events(event_publisher: InMemoryEventPublisher) -> EventDispatcher:
    return EventDispatcher(event_publisher)


@pytest.fixture
def task_executor() -> SimulatedTaskCommandExecutor:
    return SimulatedTaskCommandExecutor()


@pytest.fixture
def validation_executor() -> SimulatedValidationExecutor:
    return SimulatedValidationExecutor()


@pytest.fixture
def readiness_assessor() -> StaticReadinessAssessor:
    return StaticReadinessAssessor()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store: InMemoryKeyValueStore) -> KeyValueDeploymentRepository:
    return KeyValueDeploymentRepository(store)


@pytest.fixture
def registry() -> ExecutionRegistry:
    return ExecutionRegistry(history_limit=100)


@pytest.fixture
def plan_builder() -> PlanBuilder:
    return PlanBuilder()


@pytest.fixture
def production_spec() -> PlanSpec:
    return PlanSpec(name="Release 2.1.0", version="2.1.0", target_environment="production")


@pytest.fixture
def make_coordinator(
    repository: KeyValueDeploymentRepository,
    plan_builder: PlanBuilder,
    task_executor: SimulatedTaskCommandExecutor,
    validation_executor: SimulatedValidationExecutor,
    readiness_assessor: StaticReadinessAssessor,
    registry: ExecutionRegistry,
    events: EventDispatcher,
) -> Callable[..., DeploymentCoordinator]:
    """Factory building a coordinator around the shared test doubles.

    Keyword arguments override individual collaborators.
    """

    def _make(
        *,
        task_executor_override: Any = None,
        validation_executor_override: Any = None,
        plan_lock: DistributedLock | None = None,
        dry_run_task_delay: float = 0.0,
    ) -> DeploymentCoordinator:
        tasks = task_executor_override or task_executor
        return DeploymentCoordinator(
            repository=repository,
            plan_builder=plan_builder,
            phase_executor=PhaseExecutor(
                tasks,
                validation_executor_override or validation_executor,
                dry_run_task_delay=dry_run_task_delay,
            ),
            rollback_coordinator=RollbackCoordinator(tasks, events),
            readiness_gate=ReadinessGate(readiness_assessor),
            registry=registry,
            events=events,
            plan_lock=plan_lock,
        )

    return _make


@pytest.fixture
def coordinator(
    make_coordinator: Callable[..., DeploymentCoordinator],
) -> DeploymentCoordinator:
    return make_coordinator()
