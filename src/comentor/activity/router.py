"""Activity API endpoints: study sessions and trial exams."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from comentor.activity.exam_scoring import net_score
from comentor.activity.schemas import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    StartSessionRequest,
    StudySessionResponse,
    SubjectScoreResponse,
    SubmitTrialExamRequest,
    TrialExamResponse,
)
from comentor.auth.dependencies import get_current_user
from comentor.db.models import User
from comentor.dependencies import get_coordinator
from comentor.gamification.coordinator import ProgressionCoordinator

router = APIRouter(prefix="/api/v1", tags=["Activity"])


@router.post("/sessions", response_model=StudySessionResponse, status_code=201)
async def start_session(
    body: StartSessionRequest,
    user: User = Depends(get_current_user),
    coordinator: ProgressionCoordinator = Depends(get_coordinator),
):
    session = await coordinator.start_session(user.id, **body.model_dump())
    return StudySessionResponse.model_validate(session)


@router.post("/sessions/{session_id}/complete", response_model=CompleteSessionResponse)
async def complete_session(
    session_id: int,
    body: CompleteSessionRequest | None = None,
    user: User = Depends(get_current_user),
    coordinator: ProgressionCoordinator = Depends(get_coordinator),
):
    """Finish a session; STUDY sessions earn 2 XP per minute plus a 10 XP bonus."""
    body = body or CompleteSessionRequest()
    result = await coordinator.complete_session(
        user.id, session_id, body.actual_duration_minutes, body.notes,
    )
    changed = result.league is not None and result.league.has_changed
    return CompleteSessionResponse(
        session=StudySessionResponse.model_validate(result.session),
        xp_earned=result.xp_earned,
        league_changed=changed,
        league_message=result.league.message if changed else None,
    )


@router.post("/trial-exams", response_model=TrialExamResponse, status_code=201)
async def submit_trial_exam(
    body: SubmitTrialExamRequest,
    user: User = Depends(get_current_user),
    coordinator: ProgressionCoordinator = Depends(get_coordinator),
):
    exam = await coordinator.submit_trial_exam(
        user.id,
        name=body.name,
        exam_type=body.exam_type,
        exam_date=body.exam_date,
        duration_minutes=body.duration_minutes,
        notes=body.notes,
        subject_scores=[s.model_dump() for s in body.subject_scores],
    )
    return TrialExamResponse(
        id=exam.id,
        name=exam.name,
        exam_type=exam.exam_type,
        exam_date=exam.exam_date,
        total_score=exam.total_score,
        duration_minutes=exam.duration_minutes,
        subject_scores=[
            SubjectScoreResponse(
                subject_code=s.subject_code,
                correct_answers=s.correct_answers,
                wrong_answers=s.wrong_answers,
                empty_answers=s.empty_answers,
                net_score=net_score(s.correct_answers, s.wrong_answers),
            )
            for s in exam.subject_scores
        ],
    )
