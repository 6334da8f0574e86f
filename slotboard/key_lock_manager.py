import logging
from asyncio import Lock
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class KeyLockManager:
    """Hands out one asyncio.Lock per key and forgets it once nobody holds or waits on it."""

    def __init__(self, name: str):
        self.name = name
        self.locks: Dict[Hashable, Lock] = {}  # key -> lock
        self.waiters: Dict[Hashable, int] = {}  # key -> holders and waiters
        self.lock = Lock()  # guards locks and waiters

    async def _acquire_entry(self, key: Hashable) -> Lock:
        async with self.lock:
            if key not in self.locks:
                self.locks[key] = Lock()
                self.waiters[key] = 0
            self.waiters[key] += 1
            return self.locks[key]

    async def _release_entry(self, key: Hashable):
        async with self.lock:
            self.waiters[key] -= 1
            if self.waiters[key] == 0:
                del self.locks[key]
                del self.waiters[key]

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Serialize every block entered with the same key

        Args:
            key (Hashable): e.g. (email, slot_id) or a location
        """
        key_lock = await self._acquire_entry(key)
        try:
            async with key_lock:
                logging.debug(f"{self.name}: holding {key}")
                yield
        finally:
            await self._release_entry(key)

    def __len__(self) -> int:
        return len(self.locks)
