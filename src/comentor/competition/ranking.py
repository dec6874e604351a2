"""Pure ranking helpers shared by leaderboards and leagues."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar


class Rankable(Protocol):
    id: int
    total_xp: int
    current_streak: int


R = TypeVar("R", bound=Rankable)


def rank_users(users: Iterable[R]) -> list[R]:
    """Order by total XP desc, then current streak desc.

    The sort is stable, so full ties keep their input order (storage order by
    user id). Ranks are positional: tied users get consecutive ranks.
    """
    return sorted(users, key=lambda u: (-u.total_xp, -u.current_streak))


def position_of(ranked: Sequence[Rankable], user_id: int) -> int | None:
    """1-based position of a user in an already ranked list."""
    for i, u in enumerate(ranked, start=1):
        if u.id == user_id:
            return i
    return None
