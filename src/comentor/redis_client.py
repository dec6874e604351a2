"""Optional Redis connection.

The progression engine runs without Redis: per-user locks stay in-process,
events are not fanned out and rate limiting is skipped. With a URL
configured the same client backs all three.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Connect the shared client. Commands fail later if Redis is unreachable."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_optional_redis() -> redis.Redis | None:
    """The shared client, or None when Redis is not configured (FastAPI dependency)."""
    return _client


async def redis_status() -> str:
    """Readiness of the shared client: ``ok``, ``disabled`` or ``error: ...``."""
    if _client is None:
        return "disabled"
    try:
        await _client.ping()
    except RedisError as exc:
        return f"error: {exc}"
    return "ok"
