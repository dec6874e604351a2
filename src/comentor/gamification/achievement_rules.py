"""Achievement rule registry.

Builtin achievements are matched by their stable ``code``. Each code maps to
a pure predicate over a ``ProgressSignals`` snapshot, so rules can be unit
tested without a database. Time-of-day rules read session timestamps in the
learners' local time, a fixed UTC+3 offset.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

LOCAL_UTC_OFFSET = timedelta(hours=3)

SESSION_STUDY = "STUDY"
EXAM_TYT = "TYT"


@dataclass(frozen=True)
class SessionSignal:
    session_type: str
    start_time: datetime
    end_time: datetime | None
    actual_minutes: int | None
    is_completed: bool


@dataclass(frozen=True)
class ExamSignal:
    exam_type: str
    exam_date: datetime
    total_score: float


@dataclass
class ProgressSignals:
    """Everything the rules look at for one user."""

    total_xp: int = 0
    current_streak: int = 0
    sessions: list[SessionSignal] = field(default_factory=list)
    exams: list[ExamSignal] = field(default_factory=list)
    league_rank: int | None = None
    league_rank_order: int | None = None
    top_league_rank_order: int | None = None

    @property
    def completed_study_minutes(self) -> int:
        return sum(
            s.actual_minutes or 0
            for s in self.sessions
            if s.is_completed and s.session_type == SESSION_STUDY
        )

    @property
    def study_hours(self) -> float:
        return self.completed_study_minutes / 60


Rule = Callable[[ProgressSignals], bool]

RULES: dict[str, Rule] = {}


def rule(code: str) -> Callable[[Rule], Rule]:
    """Register a predicate under a stable achievement code."""
    def decorator(fn: Rule) -> Rule:
        RULES[code] = fn
        return fn
    return decorator


def local_hour(ts: datetime) -> int:
    return (ts + LOCAL_UTC_OFFSET).hour


def is_night_owl_time(ts: datetime) -> bool:
    """22:00-04:00 local."""
    hour = local_hour(ts)
    return hour >= 22 or hour < 4


def is_early_bird_time(ts: datetime) -> bool:
    """06:00-08:00 local."""
    return 6 <= local_hour(ts) < 8


def daily_study_minutes(sessions: list[SessionSignal]) -> dict[date, int]:
    """Completed study minutes per UTC start date."""
    totals: dict[date, int] = defaultdict(int)
    for s in sessions:
        if s.is_completed and s.session_type == SESSION_STUDY:
            totals[s.start_time.date()] += s.actual_minutes or 0
    return dict(totals)


def _streak_at_least(days: int) -> Rule:
    def check(signals: ProgressSignals) -> bool:
        return signals.current_streak >= days
    return check


rule("streak_7")(_streak_at_least(7))
rule("streak_30")(_streak_at_least(30))
rule("streak_90")(_streak_at_least(90))
rule("marathon_30")(_streak_at_least(30))


@rule("club_100")
def club_100(signals: ProgressSignals) -> bool:
    return any(e.exam_type == EXAM_TYT and e.total_score >= 100 for e in signals.exams)


@rule("focus_master")
def focus_master(signals: ProgressSignals) -> bool:
    return signals.completed_study_minutes >= 3000


@rule("exam_volume")
def exam_volume(signals: ProgressSignals) -> bool:
    return len(signals.exams) >= 20


@rule("night_owl")
def night_owl(signals: ProgressSignals) -> bool:
    return any(
        s.is_completed and is_night_owl_time(s.end_time or s.start_time)
        for s in signals.sessions
    )


@rule("early_bird")
def early_bird(signals: ProgressSignals) -> bool:
    return any(is_early_bird_time(s.start_time) for s in signals.sessions)


@rule("consistent_growth")
def consistent_growth(signals: ProgressSignals) -> bool:
    """Three most recent exams strictly increasing from oldest to newest."""
    if len(signals.exams) < 3:
        return False
    newest, middle, oldest = sorted(signals.exams, key=lambda e: e.exam_date, reverse=True)[:3]
    return newest.total_score > middle.total_score > oldest.total_score


@rule("weekly_top3")
def weekly_top3(signals: ProgressSignals) -> bool:
    return signals.league_rank is not None and signals.league_rank <= 3


@rule("daily_record")
def daily_record(signals: ProgressSignals) -> bool:
    return any(total >= 360 for total in daily_study_minutes(signals.sessions).values())


@rule("top_tier")
def top_tier(signals: ProgressSignals) -> bool:
    return (
        signals.league_rank_order is not None
        and signals.league_rank_order == signals.top_league_rank_order
    )


def meets_thresholds(
    signals: ProgressSignals,
    xp_requirement: int | None,
    streak_requirement: int | None,
    study_hours_requirement: int | None,
) -> bool:
    """Generic catalog thresholds. Any one satisfied threshold is enough."""
    if xp_requirement is not None and signals.total_xp >= xp_requirement:
        return True
    if streak_requirement is not None and signals.current_streak >= streak_requirement:
        return True
    if study_hours_requirement is not None and signals.study_hours >= study_hours_requirement:
        return True
    return False


def evaluate(
    signals: ProgressSignals,
    code: str | None,
    xp_requirement: int | None = None,
    streak_requirement: int | None = None,
    study_hours_requirement: int | None = None,
) -> bool:
    """Generic thresholds OR the coded predicate. Unknown codes only use thresholds."""
    if meets_thresholds(signals, xp_requirement, streak_requirement, study_hours_requirement):
        return True
    predicate = RULES.get(code) if code else None
    return predicate is not None and predicate(signals)
