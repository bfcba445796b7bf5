"""In-memory key-value store for development and testing."""

from __future__ import annotations

import time
from collections.abc import Callable

from coordinator.domain.errors import StoreKeyNotFoundError, StoreUnavailableError
from coordinator.domain.ports.repositories import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store with per-key expiry.

    Each instance owns its data, so tests get isolation by constructing a
    new store. ``available`` can be flipped to simulate an outage.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float]] = {}
        self.available = True

    def _ensure_available(self) -> None:
        if not self.available:
            raise StoreUnavailableError("In-memory store is marked unavailable")

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self._ensure_available()
        self._data[key] = (value, self._clock() + ttl_seconds)

    async def get(self, key: str) -> str:
        self._ensure_available()
        entry = self._data.get(key)
        if entry is None:
            raise StoreKeyNotFoundError(key)
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            raise StoreKeyNotFoundError(key)
        return value

    async def delete(self, key: str) -> None:
        self._ensure_available()
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)
