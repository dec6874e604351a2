"""Achievement engine: evaluates the catalog against a user's progress signals."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.competition.league_service import classify, get_rank_in_league, list_leagues
from comentor.db.models import Achievement, StudySession, TrialExam, User, UserAchievement
from comentor.db.upsert import insert_or_ignore
from comentor.gamification.achievement_rules import ExamSignal, ProgressSignals, SessionSignal, evaluate
from comentor.gamification.events import AchievementGranted, ProgressionEvent
from comentor.gamification.seed import seed_achievements
from comentor.gamification.xp_service import get_user

logger = logging.getLogger(__name__)


@dataclass
class GrantResult:
    granted: list[Achievement] = field(default_factory=list)
    events: list[ProgressionEvent] = field(default_factory=list)


class AchievementEngine:
    """Loads progress signals once per check and grants what the rules allow."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def load_signals(self, user: User) -> ProgressSignals:
        """Snapshot of everything the rules read for one user."""
        sessions_result = await self.db.execute(
            select(StudySession).where(StudySession.user_id == user.id)
        )
        exams_result = await self.db.execute(
            select(TrialExam).where(TrialExam.user_id == user.id)
        )

        leagues = await list_leagues(self.db)
        league = classify(leagues, user.total_xp)
        league_rank = None
        if league is not None:
            league_rank, _ = await get_rank_in_league(self.db, user.id, league)

        return ProgressSignals(
            total_xp=user.total_xp,
            current_streak=user.current_streak,
            sessions=[
                SessionSignal(
                    session_type=s.session_type,
                    start_time=s.start_time,
                    end_time=s.end_time,
                    actual_minutes=s.actual_duration_minutes,
                    is_completed=s.is_completed,
                )
                for s in sessions_result.scalars()
            ],
            exams=[
                ExamSignal(exam_type=e.exam_type, exam_date=e.exam_date, total_score=e.total_score)
                for e in exams_result.scalars()
            ],
            league_rank=league_rank,
            league_rank_order=league.rank_order if league is not None else None,
            top_league_rank_order=max((lg.rank_order for lg in leagues), default=None),
        )

    async def _earned_ids(self, user_id: int) -> set[int]:
        result = await self.db.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars())

    async def _ensure_catalog(self) -> None:
        builtins = await self.db.scalar(
            select(func.count()).select_from(Achievement).where(Achievement.code.is_not(None))
        )
        if not builtins:
            await seed_achievements(self.db)

    async def check_and_grant(self, user_id: int, now: datetime | None = None) -> GrantResult:
        """Grant every active, not-yet-earned achievement the user now qualifies for.

        Each rule is evaluated independently; a second run with unchanged
        signals grants nothing.
        """
        if now is None:
            now = datetime.now(timezone.utc)

        user = await get_user(self.db, user_id)
        await self._ensure_catalog()

        earned = await self._earned_ids(user_id)
        catalog = await self.db.execute(
            select(Achievement)
            .where(Achievement.is_active.is_(True))
            .order_by(Achievement.id)
        )
        candidates = [a for a in catalog.scalars() if a.id not in earned]
        if not candidates:
            return GrantResult()

        signals = await self.load_signals(user)
        result = GrantResult()

        for achievement in candidates:
            if not evaluate(
                signals,
                achievement.code,
                achievement.xp_requirement,
                achievement.streak_requirement,
                achievement.study_hours_requirement,
            ):
                continue

            inserted = await insert_or_ignore(
                self.db, UserAchievement,
                user_id=user_id,
                achievement_id=achievement.id,
                earned_at=now,
            )
            if inserted is None:
                continue

            result.granted.append(achievement)
            result.events.append(AchievementGranted(
                user_id=user_id,
                achievement_id=achievement.id,
                code=achievement.code,
                name=achievement.name,
            ))

        await self.db.flush()
        if result.granted:
            logger.info(
                "Granted %d achievements to user %d: %s",
                len(result.granted), user_id, [a.code or a.name for a in result.granted],
            )
        return result


# ---------------------------------------------------------------------------
# Catalog reads and admin writes
# ---------------------------------------------------------------------------


async def list_achievements(db: AsyncSession, user_id: int) -> list[dict]:
    """Active catalog with the user's earned flag and date."""
    await get_user(db, user_id)
    catalog = await db.execute(
        select(Achievement).where(Achievement.is_active.is_(True)).order_by(Achievement.id)
    )
    earned_result = await db.execute(
        select(UserAchievement).where(UserAchievement.user_id == user_id)
    )
    earned = {ua.achievement_id: ua.earned_at for ua in earned_result.scalars()}

    return [
        {
            "achievement": a,
            "is_earned": a.id in earned,
            "earned_at": earned.get(a.id),
        }
        for a in catalog.scalars()
    ]


async def list_earned(db: AsyncSession, user_id: int) -> list[UserAchievement]:
    """The user's grants, most recent first."""
    await get_user(db, user_id)
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.earned_at.desc(), UserAchievement.id.desc())
    )
    return list(result.scalars().unique().all())


async def create_achievement(
    db: AsyncSession,
    name: str,
    description: str = "",
    icon: str | None = None,
    badge_color: str | None = None,
    xp_requirement: int | None = None,
    streak_requirement: int | None = None,
    study_hours_requirement: int | None = None,
) -> Achievement:
    """Create an admin-defined, threshold-only achievement.

    Any of the three thresholds grants on its own. That includes
    ``study_hours_requirement`` (completed study minutes / 60), so an
    achievement with only a study-hours threshold is grantable.
    """
    achievement = Achievement(
        name=name,
        description=description,
        icon=icon,
        badge_color=badge_color,
        xp_requirement=xp_requirement,
        streak_requirement=streak_requirement,
        study_hours_requirement=study_hours_requirement,
        is_active=True,
    )
    db.add(achievement)
    await db.flush()
    logger.info("Created achievement %d (%s)", achievement.id, name)
    return achievement
