"""State managers: the key/value document store behind every service."""

import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncGenerator

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError
from redis.exceptions import TimeoutError as RedisTimeoutError

from labmaint.config import Settings, get_settings
from labmaint.errors import StorageUnavailable
from labmaint.state.locks import KeyedLocks
from labmaint.utils.logging import get_logger

logger = get_logger(__name__)


class StateManager(ABC):
    """Document store interface used by the services.

    Values are JSON-serializable dicts; every ``get`` returns a fresh copy, so
    callers never share mutable state through the store.
    """

    async def connect(self) -> None:
        """Open the backend connection."""

    async def disconnect(self) -> None:
        """Close the backend connection."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a value."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value or None."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key; returns whether it existed."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists."""

    @abstractmethod
    async def keys(self, prefix: str) -> list[str]:
        """List keys starting with ``prefix``."""

    @abstractmethod
    async def increment(self, key: str, amount: int = 1) -> int:
        """Increment a counter and return the new value."""

    @abstractmethod
    async def flush(self) -> None:
        """Remove every key."""

    @abstractmethod
    def lock(self, key: str) -> AsyncContextManager[None]:
        """Exclusive lock on ``key`` shared by every client of this store."""

    async def list_values(self, prefix: str) -> list[Any]:
        """Return all values whose key starts with ``prefix``."""
        values = []
        for key in await self.keys(prefix):
            value = await self.get(key)
            if value is not None:
                values.append(value)
        return values

    async def next_id(self, collection: str) -> int:
        """Allocate the next numeric id for a collection."""
        return await self.increment(f"seq:{collection}")


class MemoryStateManager(StateManager):
    """In-process store; one instance per process or per test."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._counters: dict[str, int] = {}
        self._locks = KeyedLocks()

    async def set(self, key: str, value: Any) -> None:
        """Store a JSON copy of the value."""
        self._data[key] = json.dumps(value)
        logger.debug("state_set", key=key)

    async def get(self, key: str) -> Any:
        """Get a fresh copy of a value."""
        value = self._data.get(key)
        if value is None:
            return None
        return json.loads(value)

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        existed = self._data.pop(key, None) is not None
        logger.debug("state_deleted", key=key, existed=existed)
        return existed

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        return key in self._data

    async def keys(self, prefix: str) -> list[str]:
        """List keys by prefix."""
        return sorted(
            (key for key in self._data if key.startswith(prefix)), key=_key_sort_value
        )

    async def increment(self, key: str, amount: int = 1) -> int:
        """Increment a counter."""
        self._counters[key] = self._counters.get(key, 0) + amount
        return self._counters[key]

    async def flush(self) -> None:
        """Remove every key and counter."""
        self._data.clear()
        self._counters.clear()

    def lock(self, key: str) -> AsyncContextManager[None]:
        """Lock shared by every service graph built over this store."""
        return self._locks.hold(key)


class RedisStateManager(StateManager):
    """State management using Redis."""

    def __init__(
        self,
        redis_url: str | None = None,
        lock_timeout: float | None = None,
        lock_wait_timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = None
        self.redis_url = redis_url or settings.redis_url
        self.lock_timeout = lock_timeout or settings.lock_timeout
        self.lock_wait_timeout = lock_wait_timeout or settings.lock_wait_timeout

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("redis_disconnected")

    async def _client(self) -> redis.Redis:
        if not self.redis_client:
            await self.connect()
        return self.redis_client

    async def set(self, key: str, value: Any) -> None:
        """Set a value in Redis."""
        client = await self._client()
        try:
            await client.set(key, json.dumps(value))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable(f"Redis write failed for {key}", key=key) from e

        logger.debug("state_set", key=key)

    async def get(self, key: str) -> Any:
        """Get a value from Redis."""
        client = await self._client()
        try:
            value = await client.get(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable(f"Redis read failed for {key}", key=key) from e

        if value is None:
            return None
        return json.loads(value)

    async def delete(self, key: str) -> bool:
        """Delete a key from Redis."""
        client = await self._client()
        try:
            removed = await client.delete(key)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable(f"Redis delete failed for {key}", key=key) from e

        logger.debug("state_deleted", key=key, existed=bool(removed))
        return bool(removed)

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        client = await self._client()
        try:
            return bool(await client.exists(key))
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable(f"Redis read failed for {key}", key=key) from e

    async def keys(self, prefix: str) -> list[str]:
        """List keys by prefix using SCAN."""
        client = await self._client()
        try:
            keys = [key async for key in client.scan_iter(match=f"{prefix}*")]
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable(f"Redis scan failed for {prefix}", prefix=prefix) from e

        # SCAN order is arbitrary; sort numerically where the suffix is an id
        return sorted(keys, key=_key_sort_value)

    async def increment(self, key: str, amount: int = 1) -> int:
        """Increment a counter."""
        client = await self._client()
        try:
            return await client.incrby(key, amount)
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable(f"Redis increment failed for {key}", key=key) from e

    async def flush(self) -> None:
        """Clear the current database."""
        client = await self._client()
        try:
            await client.flushdb()
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable("Redis flush failed") from e

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncGenerator[None, None]:
        """
        Hold a Redis lock on ``key`` for a read-modify-write.

        The lock expires after ``lock_timeout`` seconds so a crashed worker
        cannot block the entity forever. Waiting longer than
        ``lock_wait_timeout`` raises ``StorageUnavailable``.
        """
        client = await self._client()
        redis_lock = client.lock(
            key, timeout=self.lock_timeout, blocking_timeout=self.lock_wait_timeout
        )
        try:
            acquired = await redis_lock.acquire()
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise StorageUnavailable(f"Redis lock failed for {key}", key=key) from e
        if not acquired:
            raise StorageUnavailable(f"Timed out waiting for lock {key}", key=key)

        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except (LockError, RedisConnectionError, RedisTimeoutError) as e:
                # expired or unreachable; the key's TTL frees it
                logger.error("lock_release_failed", key=key, error=str(e))


def _key_sort_value(key: str) -> tuple[str, int, str]:
    prefix, _, suffix = key.rpartition(":")
    if suffix.isdigit():
        return (prefix, int(suffix), "")
    return (prefix, 0, suffix)


def create_state_manager(settings: Settings | None = None) -> StateManager:
    """Build the state manager selected by configuration."""
    settings = settings or get_settings()
    if settings.storage_backend == "redis":
        return RedisStateManager(
            settings.redis_url,
            lock_timeout=settings.lock_timeout,
            lock_wait_timeout=settings.lock_wait_timeout,
        )
    return MemoryStateManager()
