"""Progression events emitted by the leaf services.

Leaf services never call each other for side effects. They return the
events they produced; the coordinator reacts to them (a streak extension
becomes a STREAK_BONUS ledger entry) and publishes every event to
``pubsub:<channel>`` after the transaction commits.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import date
from typing import ClassVar, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class XpRecorded:
    channel: ClassVar[str] = "xp_recorded"

    user_id: int
    transaction_id: int
    amount: int
    source_type: str
    total_xp: int


@dataclass(frozen=True)
class StreakStarted:
    channel: ClassVar[str] = "streak_update"

    user_id: int
    start_date: date


@dataclass(frozen=True)
class StreakExtended:
    channel: ClassVar[str] = "streak_update"

    user_id: int
    current_days: int
    day: date


@dataclass(frozen=True)
class StreakRestarted:
    channel: ClassVar[str] = "streak_update"

    user_id: int
    previous_days: int
    start_date: date


@dataclass(frozen=True)
class LeagueChanged:
    channel: ClassVar[str] = "league_change"

    user_id: int
    previous_league_id: int | None
    new_league_id: int
    is_promotion: bool


@dataclass(frozen=True)
class AchievementGranted:
    channel: ClassVar[str] = "achievement_granted"

    user_id: int
    achievement_id: int
    code: str | None
    name: str


ProgressionEvent = Union[
    XpRecorded, StreakStarted, StreakExtended, StreakRestarted, LeagueChanged, AchievementGranted,
]


def event_payload(event: ProgressionEvent) -> dict:
    """Serialize an event for pub/sub. ``event`` names the concrete type."""
    payload = asdict(event)
    payload["event"] = type(event).__name__
    return payload


async def publish_events(redis: object, events: Iterable[ProgressionEvent]) -> int:
    """Publish committed events. Delivery failures are logged, never raised.

    Returns the number of events published.
    """
    if redis is None:
        return 0

    published = 0
    for event in events:
        try:
            await redis.publish(  # type: ignore[attr-defined]
                f"pubsub:{event.channel}",
                json.dumps(event_payload(event), default=str),
            )
            published += 1
        except Exception:
            logger.warning("Failed to publish %s event", type(event).__name__, exc_info=True)
    return published
