"""Per-entity locks serializing writers of the same record."""

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncGenerator

if TYPE_CHECKING:
    from labmaint.state.manager import StateManager


class KeyedLocks:
    """
    Hands out one lock per entity key.

    The asyncio lock serializes writers inside this process. When a state
    manager is given, its store-level lock is taken as well, so writers in
    other processes sharing the same store are serialized too.
    """

    def __init__(self, state_manager: "StateManager | None" = None) -> None:
        self.state = state_manager
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncGenerator[None, None]:
        """Hold the lock for ``key``; the local lock is dropped once nobody waits on it."""
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                if self.state is None:
                    yield
                else:
                    async with self.state.lock(key):
                        yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        """Check whether a key is currently held in this process."""
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
