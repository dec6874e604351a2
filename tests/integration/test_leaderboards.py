"""Integration tests for cohort leaderboards and the XP summary."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from comentor.competition.leaderboard_service import (
    COHORT_GENERAL,
    COHORT_SCHOOL,
    get_all_cohorts,
    get_general_leaderboard,
    get_grade_leaderboard,
    get_school_leaderboard,
    get_xp_summary,
    rank_of,
)
from comentor.competition.league_service import initialize_user_league
from comentor.gamification.xp_service import SOURCE_POMODORO, record_xp

pytestmark = pytest.mark.asyncio


class TestGeneralLeaderboard:
    async def test_ties_get_consecutive_ranks(self, db, make_user, leagues):
        a = await make_user(total_xp=500)
        b = await make_user(total_xp=500)
        c = await make_user(total_xp=300)

        board = await get_general_leaderboard(db, c.id)

        assert [(e["rank"], e["user_id"]) for e in board["entries"]] == [(1, a.id), (2, b.id), (3, c.id)]
        assert board["total_users"] == 3
        assert board["current_user_rank"] == 3
        assert board["entries"][2]["is_current_user"] is True

    async def test_streak_breaks_ties(self, db, make_user, leagues):
        a = await make_user(total_xp=500, current_streak=1)
        b = await make_user(total_xp=500, current_streak=4)

        board = await get_general_leaderboard(db, a.id)
        assert [e["user_id"] for e in board["entries"]] == [b.id, a.id]

    async def test_entries_carry_league_badge(self, db, make_user, leagues):
        user = await make_user(total_xp=5200)
        entry = (await get_general_leaderboard(db, user.id))["entries"][0]
        assert entry["league"]["name"] == "Gold"
        assert entry["league"]["color"] == "#FFD700"

    async def test_rank_outside_window_falls_back_to_count(self, db, make_user, leagues):
        await make_user(total_xp=900)
        await make_user(total_xp=800)
        user = await make_user(total_xp=100)

        board = await get_general_leaderboard(db, user.id, limit=2)
        assert len(board["entries"]) == 2
        assert board["total_users"] == 3
        assert board["current_user_rank"] == 3

    async def test_fallback_ignores_streak_tie_break(self, db, make_user, leagues):
        await make_user(total_xp=500, current_streak=9)
        user = await make_user(total_xp=500, current_streak=0)

        board = await get_general_leaderboard(db, user.id, limit=1)
        assert board["entries"][0]["user_id"] != user.id
        assert board["current_user_rank"] == 1
        assert await rank_of(db, user, COHORT_GENERAL) == 1


class TestCohorts:
    async def test_school_cohort(self, db, make_user, leagues):
        user = await make_user(total_xp=100, school_name="Ankara Fen")
        mate = await make_user(total_xp=400, school_name="Ankara Fen")
        await make_user(total_xp=900, school_name="Izmir Fen")

        board = await get_school_leaderboard(db, user.id)
        assert [e["user_id"] for e in board["entries"]] == [mate.id, user.id]
        assert board["current_user_rank"] == 2

    async def test_grade_cohort(self, db, make_user, leagues):
        user = await make_user(total_xp=100, grade_level=12)
        await make_user(total_xp=50, grade_level=12)
        await make_user(total_xp=900, grade_level=11)

        board = await get_grade_leaderboard(db, user.id)
        assert board["total_users"] == 2
        assert board["current_user_rank"] == 1

    async def test_no_school_means_empty_cohort(self, db, make_user, leagues):
        user = await make_user(total_xp=100)
        await make_user(total_xp=400, school_name="Ankara Fen")

        board = await get_school_leaderboard(db, user.id)
        assert board == {"cohort": COHORT_SCHOOL, "entries": [], "total_users": 0, "current_user_rank": None}
        assert await rank_of(db, user, COHORT_SCHOOL) is None

    async def test_all_cohorts_omits_empty(self, db, make_user, leagues):
        user = await make_user(total_xp=100, grade_level=12)

        boards = await get_all_cohorts(db, user.id)
        assert boards["general"]["total_users"] == 1
        assert boards["school"] is None
        assert boards["grade"]["current_user_rank"] == 1


class TestXpSummary:
    async def test_summary(self, db, make_user, leagues):
        now = datetime(2026, 3, 11, 18, 0, tzinfo=timezone.utc)
        await make_user(total_xp=5000, school_name="Ankara Fen")
        user = await make_user(school_name="Ankara Fen")
        await record_xp(db, user.id, 1000, SOURCE_POMODORO, now=now - timedelta(days=4))
        await record_xp(db, user.id, 200, SOURCE_POMODORO, now=now - timedelta(hours=1))
        await db.commit()

        summary = await get_xp_summary(db, user.id, now)

        assert summary["total_xp"] == 1200
        assert summary["today_xp"] == 200
        assert summary["week_xp"] == 200
        assert summary["month_xp"] == 1200
        assert summary["general_rank"] == 2
        assert summary["total_users"] == 2
        assert summary["school_rank"] == 2
        assert summary["school_total_users"] == 2
        assert summary["grade_rank"] is None
        assert summary["grade_total_users"] is None
        assert summary["league"]["name"] == "Silver"
        assert summary["league"]["next_league_name"] == "Gold"
        assert summary["league"]["xp_to_next_league"] == 3800
        assert summary["league"]["rank_in_league"] == 1

    async def test_summary_league_follows_xp_before_league_check(self, db, make_user, leagues):
        user = await make_user()
        await initialize_user_league(db, user.id)
        await record_xp(db, user.id, 1500, SOURCE_POMODORO)
        await db.commit()

        league = (await get_xp_summary(db, user.id))["league"]
        assert league["name"] == "Silver"
        assert league["xp_to_next_league"] == 3500
        assert league["rank_in_league"] == 1
        assert league["users_in_league"] == 1
