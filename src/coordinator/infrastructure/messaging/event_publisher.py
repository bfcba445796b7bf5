"""Event publisher implementations."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from coordinator.domain.ports.services import EventPublisher


logger = structlog.get_logger(__name__)

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class InMemoryEventPublisher(EventPublisher):
    """In-memory event publisher for development/testing.

    Topics listed in ``failing_topics`` raise ConnectionError on publish,
    which lets callers exercise their delivery-failure handling.
    """

    def __init__(self, failing_topics: set[str] | None = None) -> None:
        self._events: list[tuple[str, dict[str, Any]]] = []
        self._handlers: dict[str, list[EventHandler]] = {}
        self._failing_topics = set(failing_topics or ())

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        if event_type in self._failing_topics:
            raise ConnectionError(f"Event sink unavailable for {event_type}")

        self._events.append((event_type, payload))
        logger.info("event_published", event_type=event_type, payload_keys=list(payload.keys()))

        for handler in self._handlers.get(event_type, []):
            await handler(payload)

    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        for event_type, payload in events:
            await self.publish(event_type, payload)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    @property
    def published_events(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self._events)

    @property
    def topics(self) -> list[str]:
        return [topic for topic, _ in self._events]

    def events_of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [payload for topic, payload in self._events if topic == event_type]

    def clear(self) -> None:
        self._events.clear()


class KafkaEventPublisher(EventPublisher):
    """Kafka implementation of EventPublisher.

    Takes an already started producer exposing ``send``, ``send_and_wait``
    and ``flush`` (the aiokafka ``AIOKafkaProducer`` interface).
    """

    def __init__(self, producer: Any, topic_prefix: str = "coordinator") -> None:
        self._producer = producer
        self._topic_prefix = topic_prefix

    def _encode(self, event_type: str, payload: dict[str, Any]) -> tuple[str, bytes]:
        topic = f"{self._topic_prefix}.{event_type}"
        return topic, json.dumps(payload, default=str).encode("utf-8")

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        topic, value = self._encode(event_type, payload)
        await self._producer.send_and_wait(topic, value=value)
        logger.info("kafka_event_published", topic=topic)

    async def publish_batch(self, events: list[tuple[str, dict[str, Any]]]) -> None:
        for event_type, payload in events:
            topic, value = self._encode(event_type, payload)
            await self._producer.send(topic, value=value)

        await self._producer.flush()
        logger.info("kafka_batch_published", event_count=len(events))
