"""League classification: XP bands, membership history and promotion/demotion."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import ColumnElement, and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.competition.ranking import position_of, rank_users
from comentor.db.models import League, User, UserLeagueHistory
from comentor.db.upsert import insert_or_ignore
from comentor.exceptions import InvalidState, NotFound, RaceLost
from comentor.gamification.events import LeagueChanged, ProgressionEvent
from comentor.gamification.xp_service import get_user, get_user_for_update

logger = logging.getLogger(__name__)


@dataclass
class LeagueProgress:
    xp_in_band: int
    xp_to_next: int
    progress_pct: float


@dataclass
class LeagueChange:
    has_changed: bool
    previous_league: League | None = None
    new_league: League | None = None
    is_promotion: bool = False
    message: str = ""
    events: list[ProgressionEvent] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Pure band logic
# ---------------------------------------------------------------------------


def classify(leagues: Sequence[League], xp: int) -> League | None:
    """Highest-ranked band whose [min_xp, max_xp] range contains xp."""
    for league in sorted(leagues, key=lambda lg: lg.rank_order, reverse=True):
        if league.min_xp <= xp and (league.max_xp is None or xp <= league.max_xp):
            return league
    return None


def next_league(leagues: Sequence[League], league: League) -> League | None:
    """The band directly above league, or None for the top band."""
    higher = [lg for lg in leagues if lg.rank_order > league.rank_order]
    return min(higher, key=lambda lg: lg.rank_order) if higher else None


def compute_progress(xp: int, league: League, upcoming: League | None) -> LeagueProgress:
    """Progress through the current band towards the next one."""
    xp_in_band = xp - league.min_xp
    if upcoming is None:
        return LeagueProgress(xp_in_band=xp_in_band, xp_to_next=0, progress_pct=100.0)

    span = upcoming.min_xp - league.min_xp
    pct = (xp_in_band / span) * 100 if span > 0 else 100.0
    return LeagueProgress(
        xp_in_band=xp_in_band,
        xp_to_next=upcoming.min_xp - xp,
        progress_pct=round(min(100.0, max(0.0, pct)), 1),
    )


def band_filter(league: League) -> ColumnElement[bool]:
    """SQL predicate selecting users whose total XP lies in league's band."""
    if league.max_xp is None:
        return User.total_xp >= league.min_xp
    return and_(User.total_xp >= league.min_xp, User.total_xp <= league.max_xp)


def league_info(league: League | None) -> dict | None:
    if league is None:
        return None
    return {
        "id": league.id,
        "name": league.name,
        "icon": league.icon,
        "color": league.league_color,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_leagues(db: AsyncSession) -> list[League]:
    """All bands ordered by rank."""
    result = await db.execute(select(League).order_by(League.rank_order))
    return list(result.scalars().all())


async def get_league(db: AsyncSession, league_id: int) -> League:
    result = await db.execute(select(League).where(League.id == league_id))
    league = result.scalar_one_or_none()
    if league is None:
        raise NotFound("League", league_id)
    return league


async def get_current_membership(db: AsyncSession, user_id: int) -> UserLeagueHistory | None:
    """The user's current history row. More than one is a lost race."""
    result = await db.execute(
        select(UserLeagueHistory).where(
            UserLeagueHistory.user_id == user_id,
            UserLeagueHistory.is_current.is_(True),
        )
    )
    rows = list(result.scalars().all())
    if len(rows) > 1:
        raise RaceLost(
            f"User {user_id} has {len(rows)} current league rows",
            user_id=user_id, operation="league", context={"rows": [r.id for r in rows]},
        )
    return rows[0] if rows else None


async def get_band_members(db: AsyncSession, league: League) -> list[User]:
    """Users in league's band, ranked."""
    result = await db.execute(select(User).where(band_filter(league)).order_by(User.id))
    return rank_users(result.scalars().all())


async def get_rank_in_league(db: AsyncSession, user_id: int, league: League) -> tuple[int | None, int]:
    """(live position, member count) of a user within a band."""
    members = await get_band_members(db, league)
    return position_of(members, user_id), len(members)


async def get_user_league(db: AsyncSession, user_id: int) -> dict:
    """Current band, progress to the next band and live rank within the band.

    The band always follows total XP. The open history row only supplies
    ``joined_at`` and may lag until the next league check.
    """
    user = await get_user(db, user_id)
    leagues = await list_leagues(db)
    membership = await get_current_membership(db, user_id)
    league = classify(leagues, user.total_xp)
    if league is None:
        raise InvalidState(f"No league band covers {user.total_xp} XP", user_id=user_id)

    upcoming = next_league(leagues, league)
    progress = compute_progress(user.total_xp, league, upcoming)
    rank, member_count = await get_rank_in_league(db, user_id, league)

    return {
        "user_id": user_id,
        "total_xp": user.total_xp,
        "league": league,
        "next_league": upcoming,
        "progress": progress,
        "rank_in_league": rank,
        "users_in_league": member_count,
        "joined_at": (
            membership.start_date
            if membership is not None and membership.league_id == league.id
            else None
        ),
    }


async def get_user_league_history(db: AsyncSession, user_id: int) -> list[UserLeagueHistory]:
    """All membership periods, newest first."""
    result = await db.execute(
        select(UserLeagueHistory)
        .where(UserLeagueHistory.user_id == user_id)
        .order_by(UserLeagueHistory.start_date.desc(), UserLeagueHistory.id.desc())
    )
    return list(result.scalars().all())


async def get_league_leaderboard(
    db: AsyncSession,
    league_id: int,
    current_user_id: int | None = None,
    limit: int = 100,
) -> dict:
    """Ranked members of one band plus the caller's own entry."""
    league = await get_league(db, league_id)
    members = await get_band_members(db, league)

    entries = [
        {"rank": i, "user": u, "is_current_user": u.id == current_user_id}
        for i, u in enumerate(members[:limit], start=1)
    ]
    current_entry = None
    if current_user_id is not None:
        rank = position_of(members, current_user_id)
        if rank is not None:
            current_entry = {"rank": rank, "user": members[rank - 1], "is_current_user": True}

    return {
        "league": league,
        "entries": entries,
        "total_users": len(members),
        "current_user_entry": current_entry,
    }


async def get_all_leagues_overview(db: AsyncSession, current_user_id: int | None = None) -> list[dict]:
    """Every band with its member count, flagging the caller's band."""
    leagues = await list_leagues(db)
    user_league: League | None = None
    if current_user_id is not None:
        user = await get_user(db, current_user_id)
        user_league = classify(leagues, user.total_xp)

    overview = []
    for league in leagues:
        count = await db.scalar(select(func.count()).select_from(User).where(band_filter(league)))
        overview.append({
            "league": league,
            "user_count": count or 0,
            "is_user_league": user_league is not None and user_league.id == league.id,
        })
    return overview


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


async def initialize_user_league(db: AsyncSession, user_id: int, now: datetime | None = None) -> LeagueChange:
    """Place a user with no league history into the lowest band."""
    if now is None:
        now = datetime.now(timezone.utc)

    await get_user(db, user_id)
    has_history = await db.scalar(
        select(func.count()).select_from(UserLeagueHistory).where(UserLeagueHistory.user_id == user_id)
    )
    if has_history:
        return LeagueChange(has_changed=False, message="User already has a league")

    leagues = await list_leagues(db)
    if not leagues:
        raise InvalidState("No leagues configured", user_id=user_id, operation="initialize_league")
    lowest = leagues[0]

    inserted = await insert_or_ignore(
        db, UserLeagueHistory,
        user_id=user_id,
        league_id=lowest.id,
        start_date=now,
        is_current=True,
    )
    if inserted is None:
        return LeagueChange(has_changed=False, message="User already has a league")

    logger.info("User %d initialized into league %s", user_id, lowest.name)
    return LeagueChange(
        has_changed=True,
        new_league=lowest,
        is_promotion=True,
        message=f"Welcome to the {lowest.name} league",
        events=[LeagueChanged(user_id=user_id, previous_league_id=None, new_league_id=lowest.id, is_promotion=True)],
    )


async def check_and_update_user_league(
    db: AsyncSession, user_id: int, now: datetime | None = None,
) -> LeagueChange:
    """Re-classify the user's total XP and move them between bands if it changed.

    The closed row records end date, final XP and the user's rank in the old
    band at close time.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    user = await get_user_for_update(db, user_id)
    leagues = await list_leagues(db)
    target = classify(leagues, user.total_xp)
    if target is None:
        raise InvalidState(
            f"No league band covers {user.total_xp} XP", user_id=user_id, operation="check_league",
        )

    current = await get_current_membership(db, user_id)
    if current is not None and current.league_id == target.id:
        return LeagueChange(has_changed=False, previous_league=current.league, new_league=current.league)

    previous = current.league if current is not None else None
    if current is not None:
        # The user's XP has already left the old band; rank them against its members.
        members = [m for m in await get_band_members(db, previous) if m.id != user_id]
        final_rank = position_of(rank_users([*members, user]), user_id)
        current.is_current = False
        current.end_date = now
        current.final_xp = user.total_xp
        current.final_rank = final_rank
        await db.flush()

    db.add(UserLeagueHistory(
        user_id=user_id,
        league_id=target.id,
        league=target,
        start_date=now,
        is_current=True,
    ))
    try:
        await db.flush()
    except IntegrityError as exc:
        raise RaceLost(
            f"Concurrent league change for user {user_id}", user_id=user_id, operation="check_league",
        ) from exc

    is_promotion = previous is None or target.rank_order > previous.rank_order
    if is_promotion:
        message = f"Congratulations! You were promoted to the {target.name} league"
    else:
        message = f"You moved down to the {target.name} league"

    logger.info(
        "User %d league %s -> %s (xp=%d)",
        user_id, previous.name if previous else None, target.name, user.total_xp,
    )
    return LeagueChange(
        has_changed=True,
        previous_league=previous,
        new_league=target,
        is_promotion=is_promotion,
        message=message,
        events=[LeagueChanged(
            user_id=user_id,
            previous_league_id=previous.id if previous else None,
            new_league_id=target.id,
            is_promotion=is_promotion,
        )],
    )
