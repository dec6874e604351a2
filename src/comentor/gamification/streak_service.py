"""Daily study-streak tracking.

A user's streak moves through NoStreak -> ActiveToday -> ActiveStale (last
check-in yesterday) -> Broken. Only an explicit check-in advances it. The
tracker never touches XP: an extension is reported as a StreakExtended
event and the coordinator converts it into a STREAK_BONUS ledger entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.db.models import StudyStreak
from comentor.exceptions import InvalidState, RaceLost
from comentor.gamification.events import (
    ProgressionEvent,
    StreakExtended,
    StreakRestarted,
    StreakStarted,
)
from comentor.gamification.xp_service import get_user, get_user_for_update

logger = logging.getLogger(__name__)


@dataclass
class StreakUpdate:
    streak: StudyStreak
    current_streak: int
    changed: bool
    events: list[ProgressionEvent] = field(default_factory=list)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


async def get_active_streak(db: AsyncSession, user_id: int) -> StudyStreak | None:
    """The user's active streak row, or None. More than one is a lost race."""
    result = await db.execute(
        select(StudyStreak).where(
            StudyStreak.user_id == user_id,
            StudyStreak.is_active.is_(True),
        )
    )
    rows = list(result.scalars().all())
    if len(rows) > 1:
        raise RaceLost(
            f"User {user_id} has {len(rows)} active streaks",
            user_id=user_id, operation="streak", context={"rows": [r.id for r in rows]},
        )
    return rows[0] if rows else None


async def _start_streak(db: AsyncSession, user_id: int, today: date) -> StudyStreak:
    streak = StudyStreak(
        user_id=user_id,
        start_date=today,
        end_date=today,
        current_days=1,
        is_active=True,
    )
    db.add(streak)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise RaceLost(
            f"Concurrent streak start for user {user_id}", user_id=user_id, operation="streak",
        ) from exc
    return streak


async def update_streak(db: AsyncSession, user_id: int, today: date | None = None) -> StreakUpdate:
    """Register a study check-in for ``today`` (UTC calendar day)."""
    if today is None:
        today = utc_today()

    user = await get_user_for_update(db, user_id)
    active = await get_active_streak(db, user_id)

    if active is None:
        streak = await _start_streak(db, user_id, today)
        user.current_streak = 1
        await db.flush()
        logger.info("User %d started a streak on %s", user_id, today)
        return StreakUpdate(
            streak=streak, current_streak=1, changed=True,
            events=[StreakStarted(user_id=user_id, start_date=today)],
        )

    if active.end_date == today:
        return StreakUpdate(streak=active, current_streak=user.current_streak, changed=False)

    if today < active.end_date:
        raise InvalidState(
            f"Check-in for {today} is before the last check-in on {active.end_date}",
            user_id=user_id, operation="check_in",
            context={"today": today.isoformat(), "last_check_in": active.end_date.isoformat()},
        )

    if active.end_date == today - timedelta(days=1):
        active.end_date = today
        active.current_days += 1
        user.current_streak = active.current_days
        await db.flush()
        logger.info("User %d extended streak to %d days", user_id, active.current_days)
        return StreakUpdate(
            streak=active, current_streak=active.current_days, changed=True,
            events=[StreakExtended(user_id=user_id, current_days=active.current_days, day=today)],
        )

    # Gap of more than one day.
    previous_days = active.current_days
    active.is_active = False
    await db.flush()

    streak = await _start_streak(db, user_id, today)
    user.current_streak = 1
    await db.flush()
    logger.info("User %d broke a %d-day streak, restarting on %s", user_id, previous_days, today)
    return StreakUpdate(
        streak=streak, current_streak=1, changed=True,
        events=[StreakRestarted(user_id=user_id, previous_days=previous_days, start_date=today)],
    )


async def get_streak_history(db: AsyncSession, user_id: int) -> list[StudyStreak]:
    """All streak runs, newest first."""
    result = await db.execute(
        select(StudyStreak)
        .where(StudyStreak.user_id == user_id)
        .order_by(StudyStreak.start_date.desc(), StudyStreak.id.desc())
    )
    return list(result.scalars().all())


async def get_streak_status(db: AsyncSession, user_id: int, today: date | None = None) -> dict:
    """Read-only streak overview for a user."""
    if today is None:
        today = utc_today()

    user = await get_user(db, user_id)
    history = await get_streak_history(db, user_id)
    active = next((s for s in history if s.is_active), None)

    return {
        "current_streak": user.current_streak,
        "longest_streak": max((s.current_days for s in history), default=0),
        "has_studied_today": active is not None and active.end_date == today,
        "history": history,
    }
