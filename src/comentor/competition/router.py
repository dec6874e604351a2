"""League and leaderboard API endpoints: 14 routes.

League (8), Leaderboard (6).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.auth.dependencies import get_current_user
from comentor.competition import league_service
from comentor.competition.leaderboard_service import (
    build_entry,
    get_all_cohorts,
    get_general_leaderboard,
    get_grade_leaderboard,
    get_school_leaderboard,
    get_xp_summary,
)
from comentor.competition.league_service import LeagueChange
from comentor.competition.schemas import (
    AllLeaderboardsResponse,
    LeaderboardResponse,
    LeagueChangeResponse,
    LeagueHistoryEntry,
    LeagueHistoryResponse,
    LeagueLeaderboardResponse,
    LeagueListResponse,
    LeagueOverviewEntry,
    LeagueOverviewResponse,
    LeagueResponse,
    UserLeagueResponse,
    XpHistoryResponse,
    XpSummaryResponse,
    XpTransactionResponse,
)
from comentor.config import get_settings
from comentor.database import get_session
from comentor.db.models import User
from comentor.dependencies import get_coordinator
from comentor.gamification.coordinator import ProgressionCoordinator
from comentor.gamification.xp_service import get_xp_history

router = APIRouter(prefix="/api/v1", tags=["Competition"])

_settings = get_settings()


def _change_response(change: LeagueChange) -> LeagueChangeResponse:
    return LeagueChangeResponse(
        has_changed=change.has_changed,
        previous_league=LeagueResponse.model_validate(change.previous_league) if change.previous_league else None,
        new_league=LeagueResponse.model_validate(change.new_league) if change.new_league else None,
        is_promotion=change.is_promotion,
        message=change.message,
    )


# ── Leagues ──


@router.get("/leagues", response_model=LeagueListResponse)
async def list_leagues(db: AsyncSession = Depends(get_session)):
    """All league bands, lowest first."""
    leagues = await league_service.list_leagues(db)
    return LeagueListResponse(leagues=[LeagueResponse.model_validate(lg) for lg in leagues])


@router.get("/leagues/overview", response_model=LeagueOverviewResponse)
async def leagues_overview(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await league_service.get_all_leagues_overview(db, user.id)
    return LeagueOverviewResponse(leagues=[
        LeagueOverviewEntry(
            league=LeagueResponse.model_validate(r["league"]),
            user_count=r["user_count"],
            is_user_league=r["is_user_league"],
        )
        for r in rows
    ])


@router.get("/leagues/me", response_model=UserLeagueResponse)
async def my_league(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    info = await league_service.get_user_league(db, user.id)
    progress = info["progress"]
    return UserLeagueResponse(
        current_league=LeagueResponse.model_validate(info["league"]),
        next_league=LeagueResponse.model_validate(info["next_league"]) if info["next_league"] else None,
        total_xp=info["total_xp"],
        xp_in_league=progress.xp_in_band,
        xp_to_next_league=progress.xp_to_next,
        progress_pct=progress.progress_pct,
        rank_in_league=info["rank_in_league"],
        users_in_league=info["users_in_league"],
        joined_at=info["joined_at"],
    )


@router.get("/leagues/me/history", response_model=LeagueHistoryResponse)
async def my_league_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await league_service.get_user_league_history(db, user.id)
    return LeagueHistoryResponse(history=[LeagueHistoryEntry.model_validate(r) for r in rows])


@router.post("/leagues/me/initialize", response_model=LeagueChangeResponse)
async def initialize_my_league(
    user: User = Depends(get_current_user),
    coordinator: ProgressionCoordinator = Depends(get_coordinator),
):
    return _change_response(await coordinator.initialize_league(user.id))


@router.post("/leagues/me/check", response_model=LeagueChangeResponse)
async def check_my_league(
    user: User = Depends(get_current_user),
    coordinator: ProgressionCoordinator = Depends(get_coordinator),
):
    """Re-classify the caller's XP and move them between leagues if needed."""
    return _change_response(await coordinator.check_league(user.id))


@router.get("/leagues/{league_id}", response_model=LeagueResponse)
async def get_league(league_id: int, db: AsyncSession = Depends(get_session)):
    return LeagueResponse.model_validate(await league_service.get_league(db, league_id))


@router.get("/leagues/{league_id}/leaderboard", response_model=LeagueLeaderboardResponse)
async def league_leaderboard(
    league_id: int,
    limit: int = Query(_settings.leaderboard_default_limit, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    board = await league_service.get_league_leaderboard(db, league_id, user.id, limit)
    leagues = [board["league"]]
    current = board["current_user_entry"]
    return LeagueLeaderboardResponse(
        league=LeagueResponse.model_validate(board["league"]),
        entries=[build_entry(e["rank"], e["user"], user.id, leagues) for e in board["entries"]],
        total_users=board["total_users"],
        current_user_entry=build_entry(current["rank"], current["user"], user.id, leagues) if current else None,
    )


# ── Leaderboards ──


@router.get("/leaderboard/general", response_model=LeaderboardResponse)
async def general_leaderboard(
    limit: int = Query(_settings.leaderboard_default_limit, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await get_general_leaderboard(db, user.id, limit)


@router.get("/leaderboard/school", response_model=LeaderboardResponse)
async def school_leaderboard(
    limit: int = Query(_settings.leaderboard_default_limit, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await get_school_leaderboard(db, user.id, limit)


@router.get("/leaderboard/grade", response_model=LeaderboardResponse)
async def grade_leaderboard(
    limit: int = Query(_settings.leaderboard_default_limit, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await get_grade_leaderboard(db, user.id, limit)


@router.get("/leaderboard/all", response_model=AllLeaderboardsResponse)
async def all_leaderboards(
    limit: int = Query(_settings.all_cohorts_default_limit, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """General board plus school and grade boards when the caller has classmates."""
    return await get_all_cohorts(db, user.id, limit)


@router.get("/leaderboard/xp-history", response_model=XpHistoryResponse)
async def xp_history(
    limit: int = Query(_settings.xp_history_default_limit, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await get_xp_history(db, user.id, limit)
    return XpHistoryResponse(transactions=[XpTransactionResponse.model_validate(r) for r in rows])


@router.get("/leaderboard/xp-summary", response_model=XpSummaryResponse)
async def xp_summary(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await get_xp_summary(db, user.id)
