"""Activity signals: study sessions and trial exams.

These are the producers the progression engine listens to. Completing a
study session records XP; trial exams only feed the achievement rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.activity.exam_scoring import total_net
from comentor.db.models import StudySession, TrialExam, TrialSubjectScore
from comentor.exceptions import InvalidState, NotFound, ValidationError
from comentor.gamification.events import ProgressionEvent
from comentor.gamification.xp_service import SOURCE_POMODORO, get_user, record_xp

logger = logging.getLogger(__name__)

SESSION_TYPES = ("STUDY", "SHORT_BREAK", "LONG_BREAK")
EXAM_TYPES = ("TYT", "AYT")

XP_PER_MINUTE = 2
COMPLETION_BONUS_XP = 10


def session_xp(session_type: str, actual_minutes: int) -> int:
    """XP for a completed session: 2 per minute plus a 10 XP bonus, STUDY only."""
    if session_type != "STUDY":
        return 0
    return actual_minutes * XP_PER_MINUTE + COMPLETION_BONUS_XP


@dataclass
class SessionCompletion:
    session: StudySession
    xp_earned: int
    events: list[ProgressionEvent] = field(default_factory=list)


async def get_active_session(db: AsyncSession, user_id: int) -> StudySession | None:
    result = await db.execute(
        select(StudySession).where(
            StudySession.user_id == user_id,
            StudySession.is_completed.is_(False),
            StudySession.end_time.is_(None),
        )
    )
    return result.scalars().first()


async def start_session(
    db: AsyncSession,
    user_id: int,
    planned_duration_minutes: int,
    session_type: str = "STUDY",
    notes: str | None = None,
    now: datetime | None = None,
) -> StudySession:
    """Open a new session. A user can only have one open session."""
    if session_type not in SESSION_TYPES:
        raise ValidationError(f"Unknown session type {session_type!r}", field="session_type", value=session_type)
    if planned_duration_minutes <= 0:
        raise ValidationError(
            "Planned duration must be positive", field="planned_duration_minutes", value=planned_duration_minutes,
        )
    if now is None:
        now = datetime.now(timezone.utc)

    await get_user(db, user_id)
    if await get_active_session(db, user_id) is not None:
        raise InvalidState(f"User {user_id} already has an open session", user_id=user_id, operation="start_session")

    session = StudySession(
        user_id=user_id,
        session_type=session_type,
        planned_duration_minutes=planned_duration_minutes,
        start_time=now,
        is_completed=False,
        xp_earned=0,
        notes=notes,
    )
    db.add(session)
    await db.flush()
    return session


async def complete_session(
    db: AsyncSession,
    user_id: int,
    session_id: int,
    actual_duration_minutes: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> SessionCompletion:
    """Close a session and record its XP. Duration defaults to elapsed minutes, at least 1."""
    if now is None:
        now = datetime.now(timezone.utc)

    result = await db.execute(
        select(StudySession).where(StudySession.id == session_id, StudySession.user_id == user_id)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise NotFound("StudySession", session_id, user_id=user_id)
    if session.is_completed:
        raise InvalidState(f"Session {session_id} is already completed", user_id=user_id, operation="complete_session")

    if actual_duration_minutes is None:
        actual_duration_minutes = int((now - session.start_time).total_seconds() // 60)
    actual_duration_minutes = max(1, actual_duration_minutes)

    xp = session_xp(session.session_type, actual_duration_minutes)
    session.end_time = now
    session.actual_duration_minutes = actual_duration_minutes
    session.is_completed = True
    session.xp_earned = xp
    if notes is not None:
        session.notes = notes
    await db.flush()

    completion = SessionCompletion(session=session, xp_earned=xp)
    if xp > 0:
        recorded = await record_xp(
            db, user_id, xp, SOURCE_POMODORO,
            source_id=session.id,
            description=f"{actual_duration_minutes} minute study session completed",
            now=now,
        )
        completion.events.extend(recorded.events)
    return completion


async def submit_trial_exam(
    db: AsyncSession,
    user_id: int,
    name: str,
    exam_type: str,
    exam_date: datetime,
    subject_scores: list[dict],
    duration_minutes: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> TrialExam:
    """Store a trial exam with per-subject answer counts; total_score is the summed net."""
    if exam_type not in EXAM_TYPES:
        raise ValidationError(f"Unknown exam type {exam_type!r}", field="exam_type", value=exam_type)
    for score in subject_scores:
        for key in ("correct_answers", "wrong_answers", "empty_answers"):
            if score.get(key, 0) < 0:
                raise ValidationError(f"{key} must not be negative", field=key, value=score.get(key))
    if now is None:
        now = datetime.now(timezone.utc)
    if exam_date.tzinfo is None:
        exam_date = exam_date.replace(tzinfo=timezone.utc)

    await get_user(db, user_id)
    exam = TrialExam(
        user_id=user_id,
        name=name,
        exam_type=exam_type,
        exam_date=exam_date,
        total_score=total_net((s.get("correct_answers", 0), s.get("wrong_answers", 0)) for s in subject_scores),
        duration_minutes=duration_minutes,
        notes=notes,
        created_at=now,
        subject_scores=[
            TrialSubjectScore(
                subject_code=s["subject_code"],
                correct_answers=s.get("correct_answers", 0),
                wrong_answers=s.get("wrong_answers", 0),
                empty_answers=s.get("empty_answers", 0),
            )
            for s in subject_scores
        ],
    )
    db.add(exam)
    await db.flush()
    logger.info("User %d submitted %s exam %r, net=%.2f", user_id, exam_type, name, exam.total_score)
    return exam
