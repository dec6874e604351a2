"""Integration tests for the streak tracker and the streak bonus."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy import select

from comentor.db.models import StudyStreak, XpTransaction
from comentor.exceptions import InvalidState
from comentor.gamification.coordinator import ProgressionCoordinator
from comentor.gamification.events import StreakExtended, StreakRestarted, StreakStarted
from comentor.gamification.invariants import check_invariants
from comentor.gamification.streak_service import get_streak_status, update_streak
from comentor.gamification.xp_service import SOURCE_STREAK_BONUS, STREAK_BONUS_XP

pytestmark = pytest.mark.asyncio

DAY1 = date(2026, 3, 2)


async def _streaks(db, user_id: int) -> list[StudyStreak]:
    result = await db.execute(
        select(StudyStreak).where(StudyStreak.user_id == user_id).order_by(StudyStreak.id)
    )
    return list(result.scalars().all())


class TestUpdateStreak:
    """Check-in transitions on the tracker alone (no XP involved)."""

    async def test_first_check_in_starts_streak(self, db, make_user):
        user = await make_user()
        update = await update_streak(db, user.id, DAY1)
        await db.commit()

        assert update.current_streak == 1
        assert update.changed is True
        assert isinstance(update.events[0], StreakStarted)
        assert user.current_streak == 1
        rows = await _streaks(db, user.id)
        assert len(rows) == 1
        assert rows[0].start_date == DAY1
        assert rows[0].end_date == DAY1

    async def test_same_day_is_a_no_op(self, db, make_user):
        user = await make_user()
        await update_streak(db, user.id, DAY1)
        update = await update_streak(db, user.id, DAY1)
        await db.commit()

        assert update.changed is False
        assert update.events == []
        assert update.current_streak == 1
        assert len(await _streaks(db, user.id)) == 1

    async def test_consecutive_days_extend(self, db, make_user):
        user = await make_user()
        for offset in range(5):
            update = await update_streak(db, user.id, DAY1 + timedelta(days=offset))
        await db.commit()

        assert update.current_streak == 5
        assert isinstance(update.events[0], StreakExtended)
        assert user.current_streak == 5
        rows = await _streaks(db, user.id)
        assert len(rows) == 1
        assert rows[0].current_days == 5
        assert rows[0].end_date == DAY1 + timedelta(days=4)

    async def test_gap_restarts(self, db, make_user):
        user = await make_user()
        await update_streak(db, user.id, DAY1)
        await update_streak(db, user.id, DAY1 + timedelta(days=1))
        update = await update_streak(db, user.id, DAY1 + timedelta(days=4))
        await db.commit()

        assert update.current_streak == 1
        event = update.events[0]
        assert isinstance(event, StreakRestarted)
        assert event.previous_days == 2

        old, new = await _streaks(db, user.id)
        assert old.is_active is False
        assert old.current_days == 2
        assert new.is_active is True
        assert new.start_date == DAY1 + timedelta(days=4)

    async def test_back_dated_check_in_is_rejected(self, db, make_user):
        user = await make_user()
        await update_streak(db, user.id, DAY1)
        await update_streak(db, user.id, DAY1 + timedelta(days=1))
        await db.commit()

        with pytest.raises(InvalidState) as exc_info:
            await update_streak(db, user.id, DAY1)
        assert exc_info.value.status_code == 409

        (streak,) = await _streaks(db, user.id)
        assert streak.is_active is True
        assert streak.current_days == 2
        assert user.current_streak == 2

    async def test_status(self, db, make_user):
        user = await make_user()
        for offset in (0, 1, 2, 6):
            await update_streak(db, user.id, DAY1 + timedelta(days=offset))
        await db.commit()

        status = await get_streak_status(db, user.id, today=DAY1 + timedelta(days=6))
        assert status["current_streak"] == 1
        assert status["longest_streak"] == 3
        assert status["has_studied_today"] is True
        assert len(status["history"]) == 2

        later = await get_streak_status(db, user.id, today=DAY1 + timedelta(days=7))
        assert later["has_studied_today"] is False


class TestCheckInBonus:
    """Every extension is worth STREAK_BONUS_XP through the coordinator."""

    async def test_bonus_only_on_extension(self, db, make_user, leagues, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)

        first = await coordinator.check_in(user.id, DAY1)
        assert first.bonus is None
        assert first.league is None

        second = await coordinator.check_in(user.id, DAY1 + timedelta(days=1))
        assert second.streak.current_streak == 2
        assert second.bonus is not None
        assert second.bonus.transaction.amount == STREAK_BONUS_XP
        assert second.bonus.transaction.source_type == SOURCE_STREAK_BONUS
        assert second.league is not None

        again = await coordinator.check_in(user.id, DAY1 + timedelta(days=1))
        assert again.bonus is None

    async def test_week_of_check_ins(self, db, make_user, leagues, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)

        for offset in range(7):
            await coordinator.check_in(user.id, DAY1 + timedelta(days=offset))

        assert user.current_streak == 7
        assert user.total_xp == 6 * STREAK_BONUS_XP
        bonuses = (await db.execute(
            select(XpTransaction).where(
                XpTransaction.user_id == user.id,
                XpTransaction.source_type == SOURCE_STREAK_BONUS,
            )
        )).scalars().all()
        assert len(bonuses) == 6
        assert await check_invariants(db, user.id) == 1

    async def test_restart_earns_no_bonus(self, db, make_user, leagues, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)

        await coordinator.check_in(user.id, DAY1)
        result = await coordinator.check_in(user.id, DAY1 + timedelta(days=3))

        assert result.bonus is None
        assert result.streak.current_streak == 1
        assert user.total_xp == 0
