"""Persistence implementations."""

from coordinator.infrastructure.persistence.deployment_repo import KeyValueDeploymentRepository
from coordinator.infrastructure.persistence.in_memory import InMemoryKeyValueStore


__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueDeploymentRepository",
]
