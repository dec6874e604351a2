"""Per-user lock registry."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from comentor.exceptions import RaceLost
from comentor.locks import UserLockRegistry, user_lock_key


class TestLocalLocks:
    def test_same_lock_per_user(self):
        registry = UserLockRegistry()
        assert registry.local_lock(1) is registry.local_lock(1)
        assert registry.local_lock(1) is not registry.local_lock(2)

    @pytest.mark.asyncio
    async def test_serializes_same_user(self):
        registry = UserLockRegistry()
        order: list[str] = []

        async def worker(tag: str):
            async with registry.hold(1):
                order.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                order.append(f"{tag}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]


class TestRedisLocks:
    def _redis(self, acquired: bool) -> MagicMock:
        lock = MagicMock()
        lock.acquire = AsyncMock(return_value=acquired)
        lock.release = AsyncMock()
        redis = MagicMock()
        redis.lock.return_value = lock
        return redis

    @pytest.mark.asyncio
    async def test_acquires_and_releases(self):
        redis = self._redis(acquired=True)
        registry = UserLockRegistry(redis, timeout=3, blocking_timeout=1)

        async with registry.hold(5):
            pass

        redis.lock.assert_called_once_with(user_lock_key(5), timeout=3, blocking_timeout=1)
        redis.lock.return_value.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_is_a_lost_race(self):
        registry = UserLockRegistry(self._redis(acquired=False))
        with pytest.raises(RaceLost):
            async with registry.hold(5):
                pass

    def test_key_format(self):
        assert user_lock_key(12) == "lock:user:12"
