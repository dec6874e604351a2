"""Seed data: league bands and the builtin achievement catalog."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from comentor.db.models import Achievement, League
from comentor.db.upsert import insert_or_ignore

logger = logging.getLogger(__name__)

LEAGUE_SEED_DATA: list[dict] = [
    {"name": "Bronze", "min_xp": 0, "max_xp": 999, "rank_order": 1, "league_color": "#CD7F32", "icon": "\U0001f949"},
    {"name": "Silver", "min_xp": 1000, "max_xp": 4999, "rank_order": 2, "league_color": "#C0C0C0", "icon": "\U0001f948"},
    {"name": "Gold", "min_xp": 5000, "max_xp": 14999, "rank_order": 3, "league_color": "#FFD700", "icon": "\U0001f947"},
    {"name": "Platinum", "min_xp": 15000, "max_xp": 49999, "rank_order": 4, "league_color": "#E5E4E2", "icon": "\U0001f48e"},
    {"name": "Diamond", "min_xp": 50000, "max_xp": None, "rank_order": 5, "league_color": "#B9F2FF", "icon": "\U0001f451"},
]

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Streaks
    {
        "code": "streak_7",
        "name": "Warm-up Laps",
        "description": "Check in 7 days in a row without missing a day.",
        "streak_requirement": 7,
        "icon": "⚡",
        "badge_color": "#FFC107",
    },
    {
        "code": "streak_30",
        "name": "Campfire",
        "description": "Keep your streak alive for a full month (30 days).",
        "streak_requirement": 30,
        "icon": "\U0001f3d4️",
        "badge_color": "#FF5722",
    },
    {
        "code": "streak_90",
        "name": "Legendary Willpower",
        "description": "Study every day for 90 days straight.",
        "streak_requirement": 90,
        "icon": "\U0001f451",
        "badge_color": "#9C27B0",
    },
    {
        "code": "marathon_30",
        "name": "Steady Marathoner",
        "description": "Check in for 30 days without skipping a single day.",
        "streak_requirement": 30,
        "icon": "\U0001f680",
        "badge_color": "#2196F3",
    },
    # Trial exams
    {
        "code": "club_100",
        "name": "100 Club",
        "description": "Score 100 or more net in a TYT trial exam.",
        "icon": "\U0001f4af",
        "badge_color": "#f44336",
    },
    {
        "code": "exam_volume",
        "name": "Exam Monster",
        "description": "Record 20 trial exam results.",
        "icon": "\U0001f4da",
        "badge_color": "#795548",
    },
    {
        "code": "consistent_growth",
        "name": "No Stopping",
        "description": "Improve your net score on each of your last 3 trial exams.",
        "icon": "\U0001f4c8",
        "badge_color": "#4CAF50",
    },
    # Study sessions
    {
        "code": "focus_master",
        "name": "Focus Master",
        "description": "Complete 50 hours of Pomodoro study in total.",
        "study_hours_requirement": 50,
        "icon": "⏱️",
        "badge_color": "#607D8B",
    },
    {
        "code": "night_owl",
        "name": "Night Owl",
        "description": "Finish a study session between 22:00 and 04:00.",
        "icon": "\U0001f989",
        "badge_color": "#3F51B5",
    },
    {
        "code": "early_bird",
        "name": "Early Bird",
        "description": "Start a study session between 06:00 and 08:00.",
        "icon": "\U0001f305",
        "badge_color": "#FF9800",
    },
    {
        "code": "daily_record",
        "name": "Subject Expert",
        "description": "Study for 6 hours (360 minutes) in a single day.",
        "icon": "\U0001f4dd",
        "badge_color": "#009688",
    },
    # Leagues
    {
        "code": "weekly_top3",
        "name": "Star of the Week",
        "description": "Finish the week in the top 3 of your league.",
        "icon": "\U0001f525",
        "badge_color": "#E91E63",
    },
    {
        "code": "top_tier",
        "name": "Diamond League",
        "description": "Reach Diamond, the highest league.",
        "icon": "\U0001f48e",
        "badge_color": "#00BCD4",
    },
]


async def seed_leagues(db: AsyncSession) -> int:
    """Insert missing league bands (idempotent on name). Returns rows inserted."""
    count = 0
    for data in LEAGUE_SEED_DATA:
        if await insert_or_ignore(db, League, **data) is not None:
            count += 1
    await db.flush()
    logger.info("Seeded %d league bands", count)
    return count


async def seed_achievements(db: AsyncSession) -> int:
    """Insert missing builtin achievements (idempotent on code). Returns rows inserted."""
    count = 0
    for data in ACHIEVEMENT_SEED_DATA:
        values = {
            "description": "",
            "xp_requirement": None,
            "streak_requirement": None,
            "study_hours_requirement": None,
            "is_active": True,
            **data,
        }
        if await insert_or_ignore(db, Achievement, **values) is not None:
            count += 1
    await db.flush()
    logger.info("Seeded %d achievements", count)
    return count
