"""Process-local distributed lock for development and testing."""

from __future__ import annotations

import time

from coordinator.domain.ports.services import DistributedLock


class InMemoryDistributedLock(DistributedLock):
    """Lock table with expiry, scoped to one process."""

    def __init__(self) -> None:
        self._locks: dict[str, float] = {}

    def _expire(self, resource_id: str) -> None:
        expires_at = self._locks.get(resource_id)
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._locks[resource_id]

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        self._expire(resource_id)
        if resource_id in self._locks:
            return False
        self._locks[resource_id] = time.monotonic() + ttl_seconds
        return True

    async def release(self, resource_id: str) -> bool:
        return self._locks.pop(resource_id, None) is not None

    async def is_locked(self, resource_id: str) -> bool:
        self._expire(resource_id)
        return resource_id in self._locks
