"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.config import get_settings
from comentor.database import get_session
from comentor.redis_client import redis_status

router = APIRouter()

_READY_STATES = frozenset({"ok", "disabled"})


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """The database must answer. Redis only counts when it is configured."""
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        database = f"error: {exc}"

    checks = {"database": database, "redis": await redis_status()}
    ready = all(state in _READY_STATES for state in checks.values())
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"version": settings.app_version, "environment": settings.environment}
