"""Consistency checks over the progression tables."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.db.models import StudyStreak, User, UserLeagueHistory, XpTransaction
from comentor.exceptions import InvariantViolation, RaceLost

logger = logging.getLogger(__name__)


async def check_invariants(db: AsyncSession, user_id: int | None = None) -> int:
    """Verify ledger totals and single active/current rows.

    Checks one user, or every user when user_id is None. Raises
    InvariantViolation when total_xp differs from the ledger sum, RaceLost
    when a user has more than one active streak or current league row.
    Returns the number of users checked.
    """
    ledger = (
        select(XpTransaction.user_id, func.sum(XpTransaction.amount).label("ledger_xp"))
        .group_by(XpTransaction.user_id)
        .subquery()
    )
    totals_query = (
        select(User.id, User.total_xp, func.coalesce(ledger.c.ledger_xp, 0))
        .outerjoin(ledger, ledger.c.user_id == User.id)
    )
    if user_id is not None:
        totals_query = totals_query.where(User.id == user_id)

    checked = 0
    for uid, total_xp, ledger_xp in (await db.execute(totals_query)).all():
        checked += 1
        if total_xp != ledger_xp:
            raise InvariantViolation(
                f"User {uid} total_xp={total_xp} but ledger sums to {ledger_xp}",
                user_id=uid,
                operation="check_invariants",
                context={"total_xp": total_xp, "ledger_xp": ledger_xp},
            )

    for model, flag, label in (
        (StudyStreak, StudyStreak.is_active, "active streaks"),
        (UserLeagueHistory, UserLeagueHistory.is_current, "current league rows"),
    ):
        dupes = (
            select(model.user_id, func.count().label("n"))
            .where(flag.is_(True))
            .group_by(model.user_id)
            .having(func.count() > 1)
        )
        if user_id is not None:
            dupes = dupes.where(model.user_id == user_id)
        row = (await db.execute(dupes)).first()
        if row is not None:
            raise RaceLost(
                f"User {row.user_id} has {row.n} {label}",
                user_id=row.user_id,
                operation="check_invariants",
            )

    logger.debug("Invariants hold for %d users", checked)
    return checked
