"""Per-user serialization for mutating progression operations.

Two layers: an in-process asyncio.Lock per user id (always), and a Redis
lock on ``lock:user:{id}`` when Redis is configured so that several API
workers serialize against each other.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from weakref import WeakValueDictionary

from redis.asyncio import Redis
from redis.exceptions import LockError

from comentor.exceptions import RaceLost

logger = logging.getLogger(__name__)


def user_lock_key(user_id: int) -> str:
    return f"lock:user:{user_id}"


class UserLockRegistry:
    """Hands out per-user locks. Entries vanish once no caller holds them."""

    def __init__(
        self,
        redis: Redis | None = None,
        *,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ) -> None:
        self.redis = redis
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self._locks: WeakValueDictionary[int, asyncio.Lock] = WeakValueDictionary()

    def local_lock(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, user_id: int) -> AsyncIterator[None]:
        """Hold the user's lock for the duration of the block."""
        local = self.local_lock(user_id)
        async with local:
            if self.redis is None:
                yield
                return

            lock = self.redis.lock(
                user_lock_key(user_id),
                timeout=self.timeout,
                blocking_timeout=self.blocking_timeout,
            )
            if not await lock.acquire():
                raise RaceLost(
                    f"Timed out waiting for the progression lock of user {user_id}",
                    user_id=user_id,
                    operation="lock",
                )
            try:
                yield
            finally:
                try:
                    await lock.release()
                except LockError:
                    # Lock expired before release; the next holder already owns it.
                    logger.warning("User lock for %d expired before release", user_id)


_registry: UserLockRegistry | None = None


def configure_user_locks(
    redis: Redis | None,
    *,
    timeout: float = 10.0,
    blocking_timeout: float = 5.0,
) -> UserLockRegistry:
    """Install the process-wide lock registry (called from the app lifespan)."""
    global _registry  # noqa: PLW0603
    _registry = UserLockRegistry(redis, timeout=timeout, blocking_timeout=blocking_timeout)
    return _registry


def get_user_locks() -> UserLockRegistry:
    """Get the process-wide lock registry, creating an in-process one if needed."""
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = UserLockRegistry()
    return _registry
