"""Redis key-value store and distributed lock implementations."""

from __future__ import annotations

import uuid

import redis.asyncio
import structlog
from redis.exceptions import RedisError

from coordinator.config import RedisSettings
from coordinator.domain.errors import StoreKeyNotFoundError, StoreUnavailableError
from coordinator.domain.ports.repositories import KeyValueStore
from coordinator.domain.ports.services import DistributedLock


logger = structlog.get_logger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisKeyValueStore(KeyValueStore):
    """Redis implementation of KeyValueStore using SETEX/GET."""

    def __init__(self, client: redis.asyncio.Redis) -> None:
        self._client = client

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.setex(key, ttl_seconds, value)
        except RedisError as e:
            raise StoreUnavailableError(f"Redis write failed for {key}: {e}") from e

    async def get(self, key: str) -> str:
        try:
            value = await self._client.get(key)
        except RedisError as e:
            raise StoreUnavailableError(f"Redis read failed for {key}: {e}") from e
        if value is None:
            raise StoreKeyNotFoundError(key)
        return value.decode("utf-8") if isinstance(value, bytes) else value

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as e:
            raise StoreUnavailableError(f"Redis delete failed for {key}: {e}") from e


class RedisDistributedLock(DistributedLock):
    """Redis implementation of distributed locking using SET NX."""

    def __init__(self, client: redis.asyncio.Redis) -> None:
        self._client = client
        self._lock_values: dict[str, str] = {}

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> bool:
        lock_key = f"lock:{resource_id}"
        lock_value = str(uuid.uuid4())

        try:
            acquired = await self._client.set(
                lock_key, lock_value, nx=True, ex=ttl_seconds
            )
        except RedisError as e:
            raise StoreUnavailableError(f"Redis lock acquire failed for {lock_key}: {e}") from e
        if acquired:
            self._lock_values[resource_id] = lock_value
            logger.debug("lock_acquired", resource_id=resource_id, ttl=ttl_seconds)
            return True

        logger.debug("lock_not_acquired", resource_id=resource_id)
        return False

    async def release(self, resource_id: str) -> bool:
        lock_key = f"lock:{resource_id}"
        lock_value = self._lock_values.pop(resource_id, None)
        if lock_value is None:
            return False

        # Atomic check-and-delete so a lock re-acquired elsewhere after expiry survives
        try:
            result = await self._client.eval(_RELEASE_SCRIPT, 1, lock_key, lock_value)
        except RedisError as e:
            raise StoreUnavailableError(f"Redis lock release failed for {lock_key}: {e}") from e
        if result:
            logger.debug("lock_released", resource_id=resource_id)
            return True
        return False

    async def is_locked(self, resource_id: str) -> bool:
        try:
            return bool(await self._client.exists(f"lock:{resource_id}"))
        except RedisError as e:
            raise StoreUnavailableError(f"Redis lock lookup failed for {resource_id}: {e}") from e


def create_redis_client(settings: RedisSettings) -> redis.asyncio.Redis:
    """Factory function to create a Redis client."""
    return redis.asyncio.Redis.from_url(
        settings.url,
        decode_responses=False,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
    )
