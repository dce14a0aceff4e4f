"""Per-entity asyncio locks acquired in a fixed global order."""

import asyncio
import logging
import time
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, NamedTuple
from uuid import UUID

from .config import settings
from .exceptions import LockTimeoutError
from .observability import metrics_collector

logger = logging.getLogger(__name__)

# Lower rank is acquired first: a tour always before any of its rooms.
_KIND_RANK = {"tour": 0, "room": 1}


class LockKey(NamedTuple):
    """Identifies one lockable entity."""

    kind: str
    entity_id: str

    @classmethod
    def tour(cls, tour_id: UUID | str) -> "LockKey":
        return cls("tour", str(tour_id))

    @classmethod
    def room(cls, room_id: UUID | str) -> "LockKey":
        return cls("room", str(room_id))

    @property
    def sort_key(self) -> tuple[int, str]:
        return (_KIND_RANK[self.kind], self.entity_id)

    def __str__(self) -> str:
        return f"{self.kind}:{self.entity_id}"


class EntityLockRegistry:
    """
    Registry of one ``asyncio.Lock`` per tour or room.

    Locks are held weakly so the registry does not grow with every entity
    ever touched; a lock lives as long as someone holds or waits on it.
    Acquisition order is fixed (tours, then rooms, each by ascending id),
    which rules out deadlocks between multi-entity requests.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[LockKey, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def is_locked(self, key: LockKey) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def acquire(self, *keys: LockKey, timeout: float | None = None) -> AsyncIterator[None]:
        """
        Acquire the locks for ``keys`` in global order under one deadline.

        Raises:
            LockTimeoutError: If the locks are not all held within ``timeout``
                seconds; locks already taken are released first.
        """
        if timeout is None:
            timeout = settings.lock_timeout_seconds

        ordered = sorted(set(keys), key=lambda k: k.sort_key)
        deadline = time.monotonic() + timeout

        async with AsyncExitStack() as stack:
            for key in ordered:
                lock = self._lock_for(key)
                remaining = deadline - time.monotonic()
                try:
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    await asyncio.wait_for(lock.acquire(), timeout=remaining)
                except asyncio.TimeoutError:
                    logger.warning(
                        "Timed out acquiring entity lock",
                        extra={
                            "lock": str(key),
                            "requested_locks": [str(k) for k in ordered],
                            "timeout_seconds": timeout,
                        }
                    )
                    metrics_collector.record_lock_timeout()
                    raise LockTimeoutError([str(k) for k in ordered], timeout) from None
                stack.callback(lock.release)

            yield


# Global lock registry instance
lock_registry = EntityLockRegistry()
