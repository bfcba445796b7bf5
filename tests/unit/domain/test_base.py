"""Unit tests for base domain models and events."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from coordinator.domain.events.deployment_events import (
    DeploymentFailed,
    DeploymentRollbackFailed,
)
from coordinator.domain.models.base import (
    DomainEntity,
    DomainEvent,
    generate_id,
    utc_now,
    ValueObject,
)


class TestGenerateId:
    def test_unique(self) -> None:
        ids = {generate_id() for _ in range(100)}
        assert len(ids) == 100

    def test_prefix(self) -> None:
        assert generate_id("deploy-plan").startswith("deploy-plan-")


class TestUtcNow:
    def test_returns_aware_datetime(self) -> None:
        assert utc_now().tzinfo is not None


class TestEntitiesAndValueObjects:
    def test_entity_validates_assignment(self) -> None:
        class Counter(DomainEntity):
            value: int = 0

        counter = Counter()
        counter.value = 3
        with pytest.raises(ValidationError):
            counter.value = "three"  # type: ignore[assignment]

    def test_value_object_is_frozen(self) -> None:
        class Price(ValueObject):
            amount: float

        price = Price(amount=9.99)
        with pytest.raises(ValidationError):
            price.amount = 1.0  # type: ignore[misc]


class TestDomainEvent:
    def test_defaults(self) -> None:
        event = DomainEvent()
        assert event.event_id
        assert event.occurred_at is not None

    def test_payload_is_json_compatible(self) -> None:
        event = DeploymentFailed(
            execution_id="e-1", plan_id="p-1", error="boom", rollback_attempted=True
        )
        payload = event.to_payload()
        assert payload["event_type"] == "deployment.failed"
        assert payload["rollback_attempted"] is True
        assert isinstance(payload["occurred_at"], str)

    def test_rollback_failure_is_critical(self) -> None:
        event = DeploymentRollbackFailed(execution_id="e-1", error="boom")
        assert event.severity == "critical"
        assert event.event_type == "deployment.rollback.failed"
