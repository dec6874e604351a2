"""Shared FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.database import get_session
from comentor.gamification.coordinator import ProgressionCoordinator
from comentor.locks import get_user_locks
from comentor.redis_client import get_optional_redis


async def get_coordinator(
    db: AsyncSession = Depends(get_session),  # noqa: B008
    redis: object = Depends(get_optional_redis),  # noqa: B008
) -> ProgressionCoordinator:
    """A coordinator bound to the request's session."""
    return ProgressionCoordinator(db, redis, get_user_locks())
