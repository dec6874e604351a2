"""XP ledger: append-only transactions and the denormalized user total."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.db.models import User, XpTransaction
from comentor.exceptions import NotFound, ValidationError
from comentor.gamification.events import ProgressionEvent, XpRecorded

logger = logging.getLogger(__name__)

SOURCE_POMODORO = "POMODORO"
SOURCE_TRIAL_EXAM = "TRIAL_EXAM"
SOURCE_STREAK_BONUS = "STREAK_BONUS"

STREAK_BONUS_XP = 10


@dataclass
class XpRecordResult:
    transaction: XpTransaction
    total_xp: int
    events: list[ProgressionEvent] = field(default_factory=list)


async def get_user(db: AsyncSession, user_id: int) -> User:
    """Load a user or raise NotFound."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User", user_id)
    return user


async def get_user_for_update(db: AsyncSession, user_id: int) -> User:
    """Load a user with a row lock (SELECT ... FOR UPDATE where supported)."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User", user_id)
    return user


async def record_xp(
    db: AsyncSession,
    user_id: int,
    amount: int,
    source_type: str,
    source_id: int | None = None,
    description: str | None = None,
    now: datetime | None = None,
) -> XpRecordResult:
    """Append a ledger entry and increment the user's total by the same amount.

    Does not re-evaluate the user's league; callers that need it ask the
    league classifier explicitly.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(
            "XP amount must be a positive integer",
            field="amount", value=amount, user_id=user_id, operation="record_xp",
        )
    if now is None:
        now = datetime.now(timezone.utc)

    user = await get_user_for_update(db, user_id)

    entry = XpTransaction(
        user_id=user_id,
        amount=amount,
        source_type=source_type,
        source_id=source_id,
        description=description,
        earned_at=now,
    )
    db.add(entry)

    user.total_xp += amount
    user.updated_at = now

    await db.flush()

    logger.info(
        "Recorded %d XP for user %d (%s), total=%d", amount, user_id, source_type, user.total_xp,
    )
    return XpRecordResult(
        transaction=entry,
        total_xp=user.total_xp,
        events=[
            XpRecorded(
                user_id=user_id,
                transaction_id=entry.id,
                amount=amount,
                source_type=source_type,
                total_xp=user.total_xp,
            )
        ],
    )


async def get_xp_history(db: AsyncSession, user_id: int, limit: int = 50) -> list[XpTransaction]:
    """Most recent ledger entries first."""
    result = await db.execute(
        select(XpTransaction)
        .where(XpTransaction.user_id == user_id)
        .order_by(XpTransaction.earned_at.desc(), XpTransaction.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Period totals
# ---------------------------------------------------------------------------


def get_sunday(d: date) -> date:
    """Get the Sunday that starts the week containing d."""
    return d - timedelta(days=(d.weekday() + 1) % 7)


def get_period_starts(now: datetime) -> tuple[datetime, datetime, datetime]:
    """Get (day start, week start, month start) in UTC for the instant now.

    Weeks start on Sunday, months on day 1.
    """
    today = now.astimezone(timezone.utc).date()
    day_start = datetime.combine(today, time.min, tzinfo=timezone.utc)
    week_start = datetime.combine(get_sunday(today), time.min, tzinfo=timezone.utc)
    month_start = datetime.combine(today.replace(day=1), time.min, tzinfo=timezone.utc)
    return day_start, week_start, month_start


def summarize_period_xp(transactions: list[XpTransaction], now: datetime) -> dict[str, int]:
    """Sum today/week/month XP from a user's full transaction list."""
    day_start, week_start, month_start = get_period_starts(now)
    totals = {"today_xp": 0, "week_xp": 0, "month_xp": 0}
    for tx in transactions:
        if tx.earned_at >= day_start:
            totals["today_xp"] += tx.amount
        if tx.earned_at >= week_start:
            totals["week_xp"] += tx.amount
        if tx.earned_at >= month_start:
            totals["month_xp"] += tx.amount
    return totals


async def get_period_xp(db: AsyncSession, user_id: int, now: datetime | None = None) -> dict[str, int]:
    """Recompute the user's period totals from the ledger."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(select(XpTransaction).where(XpTransaction.user_id == user_id))
    return summarize_period_xp(list(result.scalars().all()), now)
