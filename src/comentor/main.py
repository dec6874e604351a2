"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from comentor.activity.router import router as activity_router
from comentor.competition.router import router as competition_router
from comentor.config import get_settings
from comentor.database import close_db, get_session, init_db
from comentor.gamification.router import router as gamification_router
from comentor.gamification.seed import seed_achievements, seed_leagues
from comentor.health.router import router as health_router
from comentor.locks import configure_user_locks
from comentor.middleware import setup_middleware
from comentor.redis_client import close_redis, get_optional_redis, init_redis

logger = logging.getLogger(__name__)


async def seed_reference_data() -> None:
    """Insert league bands and the builtin achievement catalog (idempotent)."""
    async for db in get_session():
        await seed_leagues(db)
        await seed_achievements(db)
        await db.commit()
        break


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)
    configure_user_locks(
        get_optional_redis(),
        timeout=settings.user_lock_timeout_seconds,
        blocking_timeout=settings.user_lock_blocking_timeout_seconds,
    )

    try:
        await seed_reference_data()
    except SQLAlchemyError:
        logger.warning("Reference data seeding failed (tables may not exist yet)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CoMentor Progression API",
        description="XP ledger, study streaks, leagues, leaderboards and achievements",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(competition_router)
    app.include_router(activity_router)

    return app


app = create_app()
