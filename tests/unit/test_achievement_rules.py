"""Achievement rule predicates over in-memory progress snapshots."""

from datetime import datetime, timedelta, timezone

import pytest

from comentor.gamification.achievement_rules import (
    RULES,
    ExamSignal,
    ProgressSignals,
    SessionSignal,
    daily_study_minutes,
    evaluate,
    is_early_bird_time,
    is_night_owl_time,
    meets_thresholds,
)
from comentor.gamification.seed import ACHIEVEMENT_SEED_DATA


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _study(start: datetime, minutes: int, *, session_type: str = "STUDY", completed: bool = True) -> SessionSignal:
    return SessionSignal(
        session_type=session_type,
        start_time=start,
        end_time=start + timedelta(minutes=minutes) if completed else None,
        actual_minutes=minutes if completed else None,
        is_completed=completed,
    )


def _exam(day: int, score: float, exam_type: str = "TYT") -> ExamSignal:
    return ExamSignal(exam_type=exam_type, exam_date=_utc(2026, 3, day, 10), total_score=score)


class TestRegistry:
    def test_every_seeded_code_has_a_rule(self):
        codes = {a["code"] for a in ACHIEVEMENT_SEED_DATA}
        assert codes <= set(RULES)

    def test_thirteen_builtin_rules(self):
        assert len(RULES) == 13


class TestTimeWindows:
    """Windows are evaluated in UTC+3 local time."""

    @pytest.mark.parametrize(
        ("utc_hour", "expected"),
        [(18, False), (19, True), (23, True), (0, True), (1, False)],
    )
    def test_night_owl(self, utc_hour, expected):
        assert is_night_owl_time(_utc(2026, 3, 1, utc_hour, 30)) is expected

    @pytest.mark.parametrize(
        ("utc_hour", "expected"),
        [(2, False), (3, True), (4, True), (5, False)],
    )
    def test_early_bird(self, utc_hour, expected):
        assert is_early_bird_time(_utc(2026, 3, 1, utc_hour, 0)) is expected


class TestStreakRules:
    @pytest.mark.parametrize(
        ("code", "days"),
        [("streak_7", 7), ("streak_30", 30), ("streak_90", 90), ("marathon_30", 30)],
    )
    def test_threshold(self, code, days):
        assert RULES[code](ProgressSignals(current_streak=days)) is True
        assert RULES[code](ProgressSignals(current_streak=days - 1)) is False


class TestSessionRules:
    def test_night_owl_uses_end_time(self):
        late = _study(_utc(2026, 3, 1, 18, 30), 60)  # ends 22:30 local
        assert RULES["night_owl"](ProgressSignals(sessions=[late])) is True

    def test_night_owl_ignores_open_sessions(self):
        open_session = _study(_utc(2026, 3, 1, 20, 0), 0, completed=False)
        assert RULES["night_owl"](ProgressSignals(sessions=[open_session])) is False

    def test_early_bird(self):
        assert RULES["early_bird"](ProgressSignals(sessions=[_study(_utc(2026, 3, 1, 3, 45), 25)])) is True
        assert RULES["early_bird"](ProgressSignals(sessions=[_study(_utc(2026, 3, 1, 9, 0), 25)])) is False

    def test_focus_master_counts_completed_study_only(self):
        sessions = [_study(_utc(2026, 3, d, 9), 600) for d in range(1, 5)]
        sessions.append(_study(_utc(2026, 3, 6, 9), 600, session_type="LONG_BREAK"))
        assert RULES["focus_master"](ProgressSignals(sessions=sessions)) is False
        sessions.append(_study(_utc(2026, 3, 7, 9), 600))
        assert RULES["focus_master"](ProgressSignals(sessions=sessions)) is True

    def test_daily_record(self):
        day = [_study(_utc(2026, 3, 2, h), 60) for h in range(6, 12)]
        assert daily_study_minutes(day) == {_utc(2026, 3, 2).date(): 360}
        assert RULES["daily_record"](ProgressSignals(sessions=day)) is True
        assert RULES["daily_record"](ProgressSignals(sessions=day[:-1])) is False

    def test_study_hours(self):
        signals = ProgressSignals(sessions=[_study(_utc(2026, 3, 1, 9), 90)])
        assert signals.study_hours == 1.5


class TestExamRules:
    def test_club_100_requires_tyt(self):
        assert RULES["club_100"](ProgressSignals(exams=[_exam(1, 100.0)])) is True
        assert RULES["club_100"](ProgressSignals(exams=[_exam(1, 120.0, "AYT")])) is False
        assert RULES["club_100"](ProgressSignals(exams=[_exam(1, 99.75)])) is False

    def test_exam_volume(self):
        assert RULES["exam_volume"](ProgressSignals(exams=[_exam(1, 50)] * 20)) is True
        assert RULES["exam_volume"](ProgressSignals(exams=[_exam(1, 50)] * 19)) is False

    def test_consistent_growth_uses_three_most_recent(self):
        exams = [_exam(1, 90), _exam(5, 60), _exam(9, 70), _exam(12, 80)]
        assert RULES["consistent_growth"](ProgressSignals(exams=exams)) is True

    def test_consistent_growth_requires_strict_increase(self):
        exams = [_exam(5, 60), _exam(9, 60), _exam(12, 80)]
        assert RULES["consistent_growth"](ProgressSignals(exams=exams)) is False

    def test_consistent_growth_needs_three_exams(self):
        assert RULES["consistent_growth"](ProgressSignals(exams=[_exam(1, 10), _exam(2, 20)])) is False


class TestLeagueRules:
    def test_weekly_top3(self):
        assert RULES["weekly_top3"](ProgressSignals(league_rank=3)) is True
        assert RULES["weekly_top3"](ProgressSignals(league_rank=4)) is False
        assert RULES["weekly_top3"](ProgressSignals()) is False

    def test_top_tier(self):
        assert RULES["top_tier"](ProgressSignals(league_rank_order=5, top_league_rank_order=5)) is True
        assert RULES["top_tier"](ProgressSignals(league_rank_order=4, top_league_rank_order=5)) is False
        assert RULES["top_tier"](ProgressSignals(top_league_rank_order=5)) is False


class TestThresholds:
    """Catalog thresholds are alternatives: any one met is enough."""

    def test_any_threshold_suffices(self):
        signals = ProgressSignals(total_xp=50, current_streak=8)
        assert meets_thresholds(signals, 1000, 7, None) is True

    def test_none_met(self):
        assert meets_thresholds(ProgressSignals(total_xp=50), 1000, 7, 10) is False

    def test_no_thresholds(self):
        assert meets_thresholds(ProgressSignals(total_xp=10_000), None, None, None) is False

    def test_study_hours_threshold(self):
        signals = ProgressSignals(sessions=[_study(_utc(2026, 3, 1, 9), 120)])
        assert meets_thresholds(signals, None, None, 2) is True


class TestEvaluate:
    def test_unknown_code_falls_back_to_thresholds(self):
        assert evaluate(ProgressSignals(total_xp=600), "custom_badge", xp_requirement=500) is True
        assert evaluate(ProgressSignals(total_xp=400), "custom_badge", xp_requirement=500) is False

    def test_no_code_no_thresholds(self):
        assert evaluate(ProgressSignals(total_xp=10_000), None) is False

    def test_coded_predicate(self):
        assert evaluate(ProgressSignals(current_streak=7), "streak_7") is True
