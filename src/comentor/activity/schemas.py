"""Pydantic request/response models for study sessions and trial exams."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class StartSessionRequest(BaseModel):
    session_type: Literal["STUDY", "SHORT_BREAK", "LONG_BREAK"] = "STUDY"
    planned_duration_minutes: int = Field(gt=0, le=600)
    notes: str | None = None


class CompleteSessionRequest(BaseModel):
    actual_duration_minutes: int | None = Field(default=None, ge=0, le=1440)
    notes: str | None = None


class StudySessionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    session_type: str
    planned_duration_minutes: int
    actual_duration_minutes: int | None = None
    start_time: datetime
    end_time: datetime | None = None
    is_completed: bool
    xp_earned: int
    notes: str | None = None


class CompleteSessionResponse(BaseModel):
    session: StudySessionResponse
    xp_earned: int
    league_changed: bool = False
    league_message: str | None = None


class SubjectScoreRequest(BaseModel):
    subject_code: str = Field(min_length=1, max_length=32)
    correct_answers: int = Field(default=0, ge=0)
    wrong_answers: int = Field(default=0, ge=0)
    empty_answers: int = Field(default=0, ge=0)


class SubmitTrialExamRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    exam_type: Literal["TYT", "AYT"]
    exam_date: datetime
    duration_minutes: int | None = Field(default=None, gt=0)
    notes: str | None = None
    subject_scores: list[SubjectScoreRequest] = Field(min_length=1)


class SubjectScoreResponse(BaseModel):
    model_config = {"from_attributes": True}

    subject_code: str
    correct_answers: int
    wrong_answers: int
    empty_answers: int
    net_score: float


class TrialExamResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    exam_type: str
    exam_date: datetime
    total_score: float
    duration_minutes: int | None = None
    subject_scores: list[SubjectScoreResponse]
