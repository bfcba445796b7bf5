"""Base domain model classes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def generate_id(prefix: str = "") -> str:
    """Generate a unique identifier, optionally namespaced by a prefix."""
    value = uuid.uuid4().hex
    return f"{prefix}-{value}" if prefix else value


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


class DomainEntity(BaseModel):
    """Base class for mutable domain entities."""

    model_config = {"frozen": False, "validate_assignment": True}


class ValueObject(BaseModel):
    """Base class for value objects (immutable)."""

    model_config = {"frozen": True}


class DomainEvent(BaseModel):
    """Base class for domain events."""

    event_id: str = Field(default_factory=generate_id)
    event_type: str = ""
    occurred_at: datetime = Field(default_factory=utc_now)
    correlation_id: str = Field(default_factory=generate_id)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    def to_payload(self) -> dict[str, Any]:
        """Serialize the event into a JSON-compatible publisher payload."""
        return self.model_dump(mode="json")
