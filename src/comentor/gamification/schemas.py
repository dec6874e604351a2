"""Pydantic request/response models for achievement and streak endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


# --- Achievement ---


class AchievementResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    code: str | None = None
    name: str
    description: str
    icon: str | None = None
    badge_color: str | None = None
    xp_requirement: int | None = None
    streak_requirement: int | None = None
    study_hours_requirement: int | None = None


class UserAchievementResponse(AchievementResponse):
    is_earned: bool = False
    earned_at: datetime | None = None


class AchievementListResponse(BaseModel):
    achievements: list[UserAchievementResponse]
    total_available: int
    total_earned: int


class EarnedAchievementsResponse(BaseModel):
    earned: list[UserAchievementResponse]


class CheckAchievementsResponse(BaseModel):
    granted: list[AchievementResponse]


class CreateAchievementRequest(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    description: str = ""
    icon: str | None = None
    badge_color: str | None = None
    xp_requirement: int | None = Field(default=None, ge=0)
    streak_requirement: int | None = Field(default=None, ge=1)
    study_hours_requirement: int | None = Field(default=None, ge=1)


# --- Streak ---


class StreakPeriodResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    start_date: date
    end_date: date | None = None
    current_days: int
    is_active: bool


class StreakStatusResponse(BaseModel):
    current_streak: int
    longest_streak: int
    has_studied_today: bool
    history: list[StreakPeriodResponse]


class CheckInResponse(BaseModel):
    current_streak: int
    changed: bool
    bonus_xp: int = 0
    total_xp: int | None = None
    league_changed: bool = False
    league_message: str | None = None
