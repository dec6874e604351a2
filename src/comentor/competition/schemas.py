"""Pydantic response models for league and leaderboard endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


# --- League ---


class LeagueResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    min_xp: int
    max_xp: int | None = None
    rank_order: int
    league_color: str | None = None
    icon: str | None = None


class LeagueListResponse(BaseModel):
    leagues: list[LeagueResponse]


class LeagueBadge(BaseModel):
    id: int
    name: str
    icon: str | None = None
    color: str | None = None


class UserLeagueResponse(BaseModel):
    current_league: LeagueResponse
    next_league: LeagueResponse | None = None
    total_xp: int
    xp_in_league: int
    xp_to_next_league: int
    progress_pct: float
    rank_in_league: int | None = None
    users_in_league: int
    joined_at: datetime | None = None


class LeagueHistoryEntry(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    league: LeagueResponse
    start_date: datetime
    end_date: datetime | None = None
    final_xp: int | None = None
    final_rank: int | None = None
    is_current: bool


class LeagueHistoryResponse(BaseModel):
    history: list[LeagueHistoryEntry]


class LeagueChangeResponse(BaseModel):
    has_changed: bool
    previous_league: LeagueResponse | None = None
    new_league: LeagueResponse | None = None
    is_promotion: bool = False
    message: str = ""


class LeagueOverviewEntry(BaseModel):
    league: LeagueResponse
    user_count: int
    is_user_league: bool


class LeagueOverviewResponse(BaseModel):
    leagues: list[LeagueOverviewEntry]


# --- Leaderboard ---


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: int
    name: str
    surname: str
    avatar_url: str | None = None
    school_name: str | None = None
    grade_level: int | None = None
    total_xp: int
    current_streak: int
    is_current_user: bool = False
    league: LeagueBadge | None = None


class LeaderboardResponse(BaseModel):
    cohort: str
    entries: list[LeaderboardEntryResponse]
    total_users: int
    current_user_rank: int | None = None


class LeagueLeaderboardResponse(BaseModel):
    league: LeagueResponse
    entries: list[LeaderboardEntryResponse]
    total_users: int
    current_user_entry: LeaderboardEntryResponse | None = None


class AllLeaderboardsResponse(BaseModel):
    general: LeaderboardResponse
    school: LeaderboardResponse | None = None
    grade: LeaderboardResponse | None = None


# --- XP ---


class XpTransactionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    amount: int
    source_type: str
    source_id: int | None = None
    description: str | None = None
    earned_at: datetime


class XpHistoryResponse(BaseModel):
    transactions: list[XpTransactionResponse]


class SummaryLeague(LeagueBadge):
    rank_in_league: int | None = None
    users_in_league: int
    xp_to_next_league: int
    progress_pct: float
    next_league_name: str | None = None


class XpSummaryResponse(BaseModel):
    user_id: int
    total_xp: int
    current_streak: int
    today_xp: int
    week_xp: int
    month_xp: int
    general_rank: int
    total_users: int
    school_rank: int | None = None
    school_total_users: int | None = None
    grade_rank: int | None = None
    grade_total_users: int | None = None
    league: SummaryLeague | None = None
