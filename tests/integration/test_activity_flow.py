"""Integration tests for study sessions and trial exams feeding the progression engine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from comentor.activity.service import complete_session, start_session, submit_trial_exam
from comentor.db.models import XpTransaction
from comentor.exceptions import InvalidState, NotFound, ValidationError
from comentor.gamification.coordinator import ProgressionCoordinator
from comentor.gamification.events import LeagueChanged, XpRecorded
from comentor.gamification.invariants import check_invariants
from comentor.gamification.xp_service import SOURCE_POMODORO

pytestmark = pytest.mark.asyncio


class TestStudySessions:
    async def test_completion_records_xp(self, db, make_user, leagues, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)

        session = await coordinator.start_session(user.id, planned_duration_minutes=25)
        result = await coordinator.complete_session(user.id, session.id, actual_duration_minutes=25)

        assert result.xp_earned == 60
        assert result.session.is_completed is True
        assert result.session.xp_earned == 60
        assert user.total_xp == 60

        tx = (await db.execute(select(XpTransaction).where(XpTransaction.user_id == user.id))).scalar_one()
        assert tx.source_type == SOURCE_POMODORO
        assert tx.source_id == session.id
        assert {type(e) for e in result.events} == {XpRecorded, LeagueChanged}
        assert await check_invariants(db, user.id) == 1

    async def test_completion_can_promote(self, db, make_user, leagues, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)
        await coordinator.initialize_league(user.id)

        session = await coordinator.start_session(user.id, planned_duration_minutes=500)
        result = await coordinator.complete_session(user.id, session.id, actual_duration_minutes=500)

        assert result.xp_earned == 1010
        assert result.league.has_changed is True
        assert result.league.is_promotion is True
        assert result.league.new_league.name == "Silver"

    async def test_breaks_earn_nothing(self, db, make_user, leagues, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)

        session = await coordinator.start_session(user.id, planned_duration_minutes=5, session_type="SHORT_BREAK")
        result = await coordinator.complete_session(user.id, session.id, actual_duration_minutes=5)

        assert result.xp_earned == 0
        assert result.league is None
        assert user.total_xp == 0

    async def test_elapsed_minutes_by_default(self, db, make_user):
        user = await make_user()
        t0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        session = await start_session(db, user.id, 25, now=t0)

        completion = await complete_session(db, user.id, session.id, now=t0 + timedelta(minutes=30, seconds=40))
        await db.commit()

        assert completion.session.actual_duration_minutes == 30
        assert completion.xp_earned == 70

    async def test_minimum_one_minute(self, db, make_user):
        user = await make_user()
        t0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
        session = await start_session(db, user.id, 25, now=t0)

        completion = await complete_session(db, user.id, session.id, now=t0 + timedelta(seconds=10))
        assert completion.session.actual_duration_minutes == 1
        assert completion.xp_earned == 12

    async def test_second_completion_is_rejected(self, db, make_user, leagues, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)
        session = await coordinator.start_session(user.id, planned_duration_minutes=25)
        await coordinator.complete_session(user.id, session.id, actual_duration_minutes=25)

        with pytest.raises(InvalidState):
            await coordinator.complete_session(user.id, session.id, actual_duration_minutes=25)
        await db.refresh(user)
        assert user.total_xp == 60

    async def test_one_open_session_per_user(self, db, make_user, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)
        await coordinator.start_session(user.id, planned_duration_minutes=25)

        with pytest.raises(InvalidState):
            await coordinator.start_session(user.id, planned_duration_minutes=25)

    async def test_other_users_session(self, db, make_user):
        owner = await make_user()
        other = await make_user()
        session = await start_session(db, owner.id, 25)

        with pytest.raises(NotFound):
            await complete_session(db, other.id, session.id)

    async def test_unknown_session_type(self, db, make_user):
        user = await make_user()
        with pytest.raises(ValidationError):
            await start_session(db, user.id, 25, session_type="NAP")


class TestTrialExams:
    async def test_total_is_summed_net(self, db, make_user):
        user = await make_user()
        exam = await submit_trial_exam(
            db, user.id,
            name="Mock TYT 1",
            exam_type="TYT",
            exam_date=datetime(2026, 3, 1, 10, 0),
            subject_scores=[
                {"subject_code": "TR", "correct_answers": 30, "wrong_answers": 8, "empty_answers": 2},
                {"subject_code": "MAT", "correct_answers": 50, "wrong_answers": 12},
            ],
        )
        await db.commit()

        assert exam.total_score == 75.0
        assert exam.exam_date.tzinfo is not None
        assert {s.subject_code for s in exam.subject_scores} == {"TR", "MAT"}

    async def test_exam_awards_no_xp(self, db, make_user, locks):
        user = await make_user()
        coordinator = ProgressionCoordinator(db, locks=locks)
        await coordinator.submit_trial_exam(
            user.id,
            name="Mock AYT",
            exam_type="AYT",
            exam_date=datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc),
            subject_scores=[{"subject_code": "FIZ", "correct_answers": 10}],
        )
        assert user.total_xp == 0

    async def test_rejects_unknown_type(self, db, make_user):
        user = await make_user()
        with pytest.raises(ValidationError):
            await submit_trial_exam(
                db, user.id, name="x", exam_type="LGS",
                exam_date=datetime(2026, 3, 1, tzinfo=timezone.utc), subject_scores=[],
            )

    async def test_rejects_negative_counts(self, db, make_user):
        user = await make_user()
        with pytest.raises(ValidationError):
            await submit_trial_exam(
                db, user.id, name="x", exam_type="TYT",
                exam_date=datetime(2026, 3, 1, tzinfo=timezone.utc),
                subject_scores=[{"subject_code": "TR", "correct_answers": -1}],
            )
