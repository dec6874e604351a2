"""Achievement and streak API endpoints: 6 routes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.auth.dependencies import get_current_user, require_admin
from comentor.auth.jwt import TokenClaims
from comentor.database import get_session
from comentor.db.models import Achievement, User
from comentor.dependencies import get_coordinator
from comentor.gamification.achievement_engine import create_achievement, list_achievements, list_earned
from comentor.gamification.coordinator import ProgressionCoordinator
from comentor.gamification.schemas import (
    AchievementListResponse,
    AchievementResponse,
    CheckAchievementsResponse,
    CheckInResponse,
    CreateAchievementRequest,
    EarnedAchievementsResponse,
    StreakPeriodResponse,
    StreakStatusResponse,
    UserAchievementResponse,
)
from comentor.gamification.streak_service import get_streak_status

router = APIRouter(prefix="/api/v1", tags=["Achievements"])


def _user_achievement(a: Achievement, earned_at: datetime | None) -> UserAchievementResponse:
    return UserAchievementResponse(
        **AchievementResponse.model_validate(a).model_dump(),
        is_earned=earned_at is not None,
        earned_at=earned_at,
    )


# ── Achievements ──


@router.get("/achievements", response_model=AchievementListResponse)
async def get_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Active catalog with the caller's earned flags."""
    rows = await list_achievements(db, user.id)
    items = [_user_achievement(r["achievement"], r["earned_at"]) for r in rows]
    return AchievementListResponse(
        achievements=items,
        total_available=len(items),
        total_earned=sum(1 for i in items if i.is_earned),
    )


@router.get("/achievements/earned", response_model=EarnedAchievementsResponse)
async def get_earned_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    grants = await list_earned(db, user.id)
    return EarnedAchievementsResponse(
        earned=[_user_achievement(g.achievement, g.earned_at) for g in grants],
    )


@router.post("/achievements/check", response_model=CheckAchievementsResponse)
async def check_achievements(
    user: User = Depends(get_current_user),
    coordinator: ProgressionCoordinator = Depends(get_coordinator),
):
    """Evaluate the catalog for the caller and grant anything newly earned."""
    result = await coordinator.check_achievements(user.id)
    return CheckAchievementsResponse(
        granted=[AchievementResponse.model_validate(a) for a in result.granted],
    )


@router.post("/achievements", response_model=AchievementResponse, status_code=201)
async def post_achievement(
    body: CreateAchievementRequest,
    _admin: TokenClaims = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Create a threshold-only achievement (admin)."""
    achievement = await create_achievement(db, **body.model_dump())
    await db.commit()
    return AchievementResponse.model_validate(achievement)


# ── Streaks ──


@router.get("/streaks/status", response_model=StreakStatusResponse)
async def streak_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    status = await get_streak_status(db, user.id)
    return StreakStatusResponse(
        current_streak=status["current_streak"],
        longest_streak=status["longest_streak"],
        has_studied_today=status["has_studied_today"],
        history=[StreakPeriodResponse.model_validate(s) for s in status["history"]],
    )


@router.post("/streaks/check-in", response_model=CheckInResponse)
async def streak_check_in(
    user: User = Depends(get_current_user),
    coordinator: ProgressionCoordinator = Depends(get_coordinator),
):
    """Register today's study check-in."""
    result = await coordinator.check_in(user.id)
    return CheckInResponse(
        current_streak=result.streak.current_streak,
        changed=result.streak.changed,
        bonus_xp=result.bonus.transaction.amount if result.bonus else 0,
        total_xp=result.bonus.total_xp if result.bonus else None,
        league_changed=bool(result.league and result.league.has_changed),
        league_message=result.league.message if result.league and result.league.has_changed else None,
    )
