"""Per-user mutual exclusion for settlement read-modify-write sequences."""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator


class UserLocks:
    """One asyncio.Lock per user id; idle locks are garbage-collected."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _get_lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, user_id: str) -> AsyncIterator[None]:
        lock = self._get_lock(user_id)
        async with lock:
            yield
