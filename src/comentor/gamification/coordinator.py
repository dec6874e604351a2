"""Progression coordinator: the transaction boundary for every mutating operation.

Each public method holds the user's lock, runs the leaf services, reacts to
the events they emit, commits once and only then publishes the events.
Any error rolls the whole operation back.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from comentor.activity import service as activity
from comentor.competition import league_service
from comentor.competition.league_service import LeagueChange
from comentor.db.models import StudySession, TrialExam
from comentor.gamification.achievement_engine import AchievementEngine, GrantResult
from comentor.gamification.events import ProgressionEvent, StreakExtended, publish_events
from comentor.gamification.streak_service import StreakUpdate, update_streak
from comentor.gamification.xp_service import (
    SOURCE_STREAK_BONUS,
    STREAK_BONUS_XP,
    XpRecordResult,
    record_xp,
)
from comentor.locks import UserLockRegistry, get_user_locks

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CheckInResult:
    streak: StreakUpdate
    bonus: XpRecordResult | None = None
    league: LeagueChange | None = None


@dataclass
class SessionResult:
    session: StudySession
    xp_earned: int
    league: LeagueChange | None = None
    events: list[ProgressionEvent] = field(default_factory=list)


class ProgressionCoordinator:
    """Serializes and commits per-user progression updates."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object = None,
        locks: UserLockRegistry | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        self.locks = locks or get_user_locks()

    async def _run(
        self,
        user_id: int,
        operation: str,
        work: Callable[[list[ProgressionEvent]], Awaitable[T]],
    ) -> T:
        events: list[ProgressionEvent] = []
        async with self.locks.hold(user_id):
            try:
                result = await work(events)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                logger.warning("Progression %s rolled back for user %d", operation, user_id)
                raise
        await publish_events(self.redis, events)
        return result

    async def _react(self, user_id: int, emitted: list[ProgressionEvent], events: list[ProgressionEvent]) -> XpRecordResult | None:
        """Apply cross-component reactions to freshly emitted events."""
        events.extend(emitted)
        bonus = None
        for event in emitted:
            if isinstance(event, StreakExtended):
                bonus = await record_xp(
                    self.db, user_id, STREAK_BONUS_XP, SOURCE_STREAK_BONUS,
                    description=f"{event.current_days}-day study streak bonus",
                )
                events.extend(bonus.events)
        return bonus

    # ── XP ──

    async def record_xp(
        self,
        user_id: int,
        amount: int,
        source_type: str,
        source_id: int | None = None,
        description: str | None = None,
    ) -> XpRecordResult:
        """Append to the ledger. League re-evaluation is a separate, explicit call."""
        async def work(events: list[ProgressionEvent]) -> XpRecordResult:
            recorded = await record_xp(self.db, user_id, amount, source_type, source_id, description)
            events.extend(recorded.events)
            return recorded

        return await self._run(user_id, "record_xp", work)

    # ── Streaks ──

    async def check_in(self, user_id: int, today: date | None = None) -> CheckInResult:
        """Advance the streak; an extension earns the streak bonus and a league check."""
        async def work(events: list[ProgressionEvent]) -> CheckInResult:
            streak = await update_streak(self.db, user_id, today)
            bonus = await self._react(user_id, streak.events, events)
            league = None
            if bonus is not None:
                league = await league_service.check_and_update_user_league(self.db, user_id)
                events.extend(league.events)
            return CheckInResult(streak=streak, bonus=bonus, league=league)

        return await self._run(user_id, "check_in", work)

    # ── Leagues ──

    async def initialize_league(self, user_id: int) -> LeagueChange:
        async def work(events: list[ProgressionEvent]) -> LeagueChange:
            change = await league_service.initialize_user_league(self.db, user_id)
            events.extend(change.events)
            return change

        return await self._run(user_id, "initialize_league", work)

    async def check_league(self, user_id: int) -> LeagueChange:
        async def work(events: list[ProgressionEvent]) -> LeagueChange:
            change = await league_service.check_and_update_user_league(self.db, user_id)
            events.extend(change.events)
            return change

        return await self._run(user_id, "check_league", work)

    # ── Achievements ──

    async def check_achievements(self, user_id: int) -> GrantResult:
        async def work(events: list[ProgressionEvent]) -> GrantResult:
            granted = await AchievementEngine(self.db).check_and_grant(user_id)
            events.extend(granted.events)
            return granted

        return await self._run(user_id, "check_achievements", work)

    # ── Activity ──

    async def start_session(self, user_id: int, **kwargs: Any) -> StudySession:
        async def work(events: list[ProgressionEvent]) -> StudySession:
            return await activity.start_session(self.db, user_id, **kwargs)

        return await self._run(user_id, "start_session", work)

    async def complete_session(
        self,
        user_id: int,
        session_id: int,
        actual_duration_minutes: int | None = None,
        notes: str | None = None,
    ) -> SessionResult:
        """Close a session, record its XP and re-evaluate the league."""
        async def work(events: list[ProgressionEvent]) -> SessionResult:
            completion = await activity.complete_session(
                self.db, user_id, session_id, actual_duration_minutes, notes,
            )
            events.extend(completion.events)
            league = None
            if completion.xp_earned > 0:
                league = await league_service.check_and_update_user_league(self.db, user_id)
                events.extend(league.events)
            return SessionResult(
                session=completion.session,
                xp_earned=completion.xp_earned,
                league=league,
                events=list(events),
            )

        return await self._run(user_id, "complete_session", work)

    async def submit_trial_exam(self, user_id: int, **kwargs: Any) -> TrialExam:
        async def work(events: list[ProgressionEvent]) -> TrialExam:
            return await activity.submit_trial_exam(self.db, user_id, **kwargs)

        return await self._run(user_id, "submit_trial_exam", work)
