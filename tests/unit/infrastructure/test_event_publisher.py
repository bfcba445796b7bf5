"""Unit tests for event publishers and fire-and-forget dispatch."""

from __future__ import annotations

import json
from typing import Any

import pytest

from coordinator.domain.events.deployment_events import DeploymentCancelled
from coordinator.domain.services.event_dispatch import EventDispatcher
from coordinator.infrastructure.messaging.event_publisher import (
    InMemoryEventPublisher,
    KafkaEventPublisher,
)


class FakeProducer:
    """Records what would have been sent to Kafka."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, bytes]] = []
        self.flushed = 0

    async def send_and_wait(self, topic: str, value: bytes) -> None:
        self.sent.append((topic, value))

    async def send(self, topic: str, value: bytes) -> None:
        self.sent.append((topic, value))

    async def flush(self) -> None:
        self.flushed += 1


class TestInMemoryEventPublisher:
    @pytest.mark.asyncio
    async def test_publish(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish("test.event", {"key": "value"})
        assert len(publisher.published_events) == 1
        assert publisher.published_events[0] == ("test.event", {"key": "value"})

    @pytest.mark.asyncio
    async def test_publish_batch(self) -> None:
        publisher = InMemoryEventPublisher()
        events = [
            ("event.1", {"id": 1}),
            ("event.2", {"id": 2}),
        ]
        await publisher.publish_batch(events)
        assert publisher.topics == ["event.1", "event.2"]

    @pytest.mark.asyncio
    async def test_subscribe_and_receive(self) -> None:
        publisher = InMemoryEventPublisher()
        received: list = []

        async def handler(payload: dict) -> None:
            received.append(payload)

        publisher.subscribe("test.event", handler)
        await publisher.publish("test.event", {"data": "hello"})
        assert len(received) == 1
        assert received[0]["data"] == "hello"

    @pytest.mark.asyncio
    async def test_failing_topic(self) -> None:
        publisher = InMemoryEventPublisher(failing_topics={"broken"})
        with pytest.raises(ConnectionError):
            await publisher.publish("broken", {})
        assert publisher.published_events == []

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        publisher = InMemoryEventPublisher()
        await publisher.publish("test", {})
        publisher.clear()
        assert len(publisher.published_events) == 0


class TestKafkaEventPublisher:
    @pytest.mark.asyncio
    async def test_publish_prefixes_topic(self) -> None:
        producer = FakeProducer()
        publisher = KafkaEventPublisher(producer, topic_prefix="deploys")

        await publisher.publish("deployment.completed", {"execution_id": "e-1"})

        topic, value = producer.sent[0]
        assert topic == "deploys.deployment.completed"
        assert json.loads(value) == {"execution_id": "e-1"}

    @pytest.mark.asyncio
    async def test_batch_is_flushed_once(self) -> None:
        producer = FakeProducer()
        publisher = KafkaEventPublisher(producer)

        await publisher.publish_batch([("a", {}), ("b", {})])

        assert [topic for topic, _ in producer.sent] == ["coordinator.a", "coordinator.b"]
        assert producer.flushed == 1


class TestEventDispatcher:
    @pytest.mark.asyncio
    async def test_emit_publishes_payload(self) -> None:
        publisher = InMemoryEventPublisher()
        event = DeploymentCancelled(execution_id="e-1", reason="stop")

        assert await EventDispatcher(publisher).emit(event)

        payload: dict[str, Any] = publisher.events_of_type("deployment.cancelled")[0]
        assert payload["execution_id"] == "e-1"
        assert payload["event_id"] == event.event_id
        assert isinstance(payload["occurred_at"], str)

    @pytest.mark.asyncio
    async def test_emit_swallows_publisher_errors(self) -> None:
        publisher = InMemoryEventPublisher(failing_topics={"deployment.cancelled"})

        delivered = await EventDispatcher(publisher).emit(
            DeploymentCancelled(execution_id="e-1", reason="stop")
        )

        assert delivered is False
