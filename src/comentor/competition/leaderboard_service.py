"""Leaderboard service: ranked cohorts (global, school, grade) and XP summaries.

Cohorts are built from the users table on every read; ranks are positional
over (total_xp desc, current_streak desc). When the caller is outside the
requested window their rank falls back to count(strictly more XP) + 1,
which ignores the streak tie-break.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.competition.league_service import (
    classify,
    compute_progress,
    get_rank_in_league,
    league_info,
    list_leagues,
    next_league,
)
from comentor.competition.ranking import rank_users
from comentor.db.models import League, User
from comentor.gamification.xp_service import get_period_xp, get_user

logger = logging.getLogger(__name__)

COHORT_GENERAL = "general"
COHORT_SCHOOL = "school"
COHORT_GRADE = "grade"


def cohort_query(user: User, cohort: str) -> Select | None:
    """Select the users sharing ``cohort`` with user. None means an empty cohort."""
    query = select(User)
    if cohort == COHORT_GENERAL:
        return query
    if cohort == COHORT_SCHOOL:
        if not user.school_name:
            return None
        return query.where(User.school_name == user.school_name)
    if cohort == COHORT_GRADE:
        if user.grade_level is None:
            return None
        return query.where(User.grade_level == user.grade_level)
    raise ValueError(f"Unknown cohort: {cohort}")


def build_entry(rank: int, user: User, current_user_id: int | None, leagues: Sequence[League]) -> dict:
    return {
        "rank": rank,
        "user_id": user.id,
        "name": user.name,
        "surname": user.surname,
        "avatar_url": user.avatar_url,
        "school_name": user.school_name,
        "grade_level": user.grade_level,
        "total_xp": user.total_xp,
        "current_streak": user.current_streak,
        "is_current_user": user.id == current_user_id,
        "league": league_info(classify(leagues, user.total_xp)),
    }


async def rank_of(db: AsyncSession, user: User, cohort: str) -> int | None:
    """Fallback rank: users in the cohort with strictly more XP, plus one."""
    query = cohort_query(user, cohort)
    if query is None:
        return None
    greater = await db.scalar(
        select(func.count()).select_from(
            query.where(User.total_xp > user.total_xp).subquery()
        )
    )
    return (greater or 0) + 1


async def cohort_size(db: AsyncSession, user: User, cohort: str) -> int:
    query = cohort_query(user, cohort)
    if query is None:
        return 0
    count = await db.scalar(select(func.count()).select_from(query.subquery()))
    return count or 0


async def top(db: AsyncSession, user_id: int, cohort: str, limit: int = 100) -> dict:
    """First ``limit`` entries of a cohort, the caller's rank and the cohort size."""
    user = await get_user(db, user_id)
    query = cohort_query(user, cohort)
    if query is None:
        return {"cohort": cohort, "entries": [], "total_users": 0, "current_user_rank": None}

    result = await db.execute(query.order_by(User.id))
    ranked = rank_users(result.scalars().all())
    leagues = await list_leagues(db)

    entries = [
        build_entry(i, u, user_id, leagues)
        for i, u in enumerate(ranked[:limit], start=1)
    ]
    current_rank = next((e["rank"] for e in entries if e["is_current_user"]), None)
    if current_rank is None:
        current_rank = await rank_of(db, user, cohort)

    return {
        "cohort": cohort,
        "entries": entries,
        "total_users": len(ranked),
        "current_user_rank": current_rank,
    }


async def get_general_leaderboard(db: AsyncSession, user_id: int, limit: int = 100) -> dict:
    return await top(db, user_id, COHORT_GENERAL, limit)


async def get_school_leaderboard(db: AsyncSession, user_id: int, limit: int = 100) -> dict:
    return await top(db, user_id, COHORT_SCHOOL, limit)


async def get_grade_leaderboard(db: AsyncSession, user_id: int, limit: int = 100) -> dict:
    return await top(db, user_id, COHORT_GRADE, limit)


async def get_all_cohorts(db: AsyncSession, user_id: int, limit: int = 50) -> dict:
    """General board always; school and grade boards only when they have members."""
    boards: dict[str, dict | None] = {
        COHORT_GENERAL: await get_general_leaderboard(db, user_id, limit),
        COHORT_SCHOOL: None,
        COHORT_GRADE: None,
    }
    for cohort in (COHORT_SCHOOL, COHORT_GRADE):
        board = await top(db, user_id, cohort, limit)
        if board["entries"]:
            boards[cohort] = board
    return boards


async def get_xp_summary(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict:
    """Totals by period, cohort ranks and league position for one user."""
    if now is None:
        now = datetime.now(timezone.utc)

    user = await get_user(db, user_id)
    periods = await get_period_xp(db, user_id, now)

    summary: dict = {
        "user_id": user_id,
        "total_xp": user.total_xp,
        "current_streak": user.current_streak,
        **periods,
        "general_rank": await rank_of(db, user, COHORT_GENERAL),
        "total_users": await cohort_size(db, user, COHORT_GENERAL),
        "school_rank": await rank_of(db, user, COHORT_SCHOOL),
        "school_total_users": await cohort_size(db, user, COHORT_SCHOOL) if user.school_name else None,
        "grade_rank": await rank_of(db, user, COHORT_GRADE),
        "grade_total_users": await cohort_size(db, user, COHORT_GRADE) if user.grade_level is not None else None,
        "league": None,
    }

    leagues = await list_leagues(db)
    league = classify(leagues, user.total_xp)
    if league is not None:
        upcoming = next_league(leagues, league)
        progress = compute_progress(user.total_xp, league, upcoming)
        rank, member_count = await get_rank_in_league(db, user_id, league)
        summary["league"] = {
            **league_info(league),
            "rank_in_league": rank,
            "users_in_league": member_count,
            "xp_to_next_league": progress.xp_to_next,
            "progress_pct": progress.progress_pct,
            "next_league_name": upcoming.name if upcoming else None,
        }
    return summary
