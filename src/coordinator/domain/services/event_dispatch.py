"""Fire-and-forget delivery of domain events."""

from __future__ import annotations

import structlog

from coordinator.domain.models.base import DomainEvent
from coordinator.domain.ports.services import EventPublisher
from coordinator.infrastructure.observability.metrics import EVENT_PUBLISH_FAILURES


logger = structlog.get_logger(__name__)


class EventDispatcher:
    """Publishes domain events without letting publisher errors escape.

    A failed publish is logged and counted. It never changes the outcome
    of the operation that emitted the event.
    """

    def __init__(self, publisher: EventPublisher) -> None:
        self._publisher = publisher

    async def emit(self, event: DomainEvent) -> bool:
        try:
            await self._publisher.publish(event.event_type, event.to_payload())
        except Exception:
            EVENT_PUBLISH_FAILURES.labels(event_type=event.event_type).inc()
            logger.exception("event_publish_failed", event_type=event.event_type)
            return False
        return True
