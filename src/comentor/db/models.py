"""ORM models for the progression engine.

Uniqueness that the services rely on for insert-or-ignore writes is declared
here (and mirrored in the Alembic migration):
  - one active study streak per user (partial unique index)
  - one current league membership per user (partial unique index)
  - one grant per (user, achievement)
  - achievement codes and league rank orders are unique
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from comentor.db.base import Base, BigIntPK, UTCDateTime


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """User aggregate. total_xp and current_streak are owned by the ledger and streak tracker."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    surname: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    school_name: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    grade_level: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}".strip()


# ---------------------------------------------------------------------------
# XP Ledger
# ---------------------------------------------------------------------------


class XpTransaction(Base):
    """Immutable XP transaction log. Rows are never updated or deleted."""

    __tablename__ = "xp_transactions"
    __table_args__ = (Index("idx_xp_transactions_user_earned", "user_id", "earned_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source_type: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------


class StudyStreak(Base):
    """One row per streak run. At most one active row per user."""

    __tablename__ = "study_streaks"
    __table_args__ = (
        Index(
            "uq_study_streaks_user_active",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# ---------------------------------------------------------------------------
# Leagues
# ---------------------------------------------------------------------------


class League(Base):
    """XP band. max_xp NULL marks the open top band."""

    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    min_xp: Mapped[int] = mapped_column(Integer, nullable=False)
    max_xp: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rank_order: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    league_color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    icon: Mapped[str | None] = mapped_column(String(16), nullable=True)


class UserLeagueHistory(Base):
    """League membership periods. At most one current row per user."""

    __tablename__ = "user_league_history"
    __table_args__ = (
        Index(
            "uq_user_league_history_current",
            "user_id",
            unique=True,
            postgresql_where=text("is_current"),
            sqlite_where=text("is_current = 1"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id"), nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    final_xp: Mapped[int | None] = mapped_column(Integer, nullable=True)
    final_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    league: Mapped[League] = relationship("League", lazy="joined")


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Catalog entry. Builtin entries carry a stable rule code; admin-created ones do not."""

    __tablename__ = "achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    icon: Mapped[str | None] = mapped_column(String(16), nullable=True)
    badge_color: Mapped[str | None] = mapped_column(String(16), nullable=True)
    xp_requirement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    streak_requirement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    study_hours_requirement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class UserAchievement(Base):
    """Permanent grant. UNIQUE(user_id, achievement_id) prevents duplicates."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements_user_achievement"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    achievement_id: Mapped[int] = mapped_column(ForeignKey("achievements.id"), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    achievement: Mapped[Achievement] = relationship("Achievement", lazy="joined")


# ---------------------------------------------------------------------------
# Activity signals
# ---------------------------------------------------------------------------


class StudySession(Base):
    """Pomodoro-style session. Only completed STUDY sessions earn XP."""

    __tablename__ = "study_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_type: Mapped[str] = mapped_column(String(16), nullable=False, default="STUDY")
    planned_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class TrialExam(Base):
    """Practice exam result. total_score is the summed net score."""

    __tablename__ = "trial_exams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    exam_type: Mapped[str] = mapped_column(String(8), nullable=False)
    exam_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    total_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    subject_scores: Mapped[list[TrialSubjectScore]] = relationship(
        "TrialSubjectScore", lazy="selectin", cascade="all, delete-orphan",
    )


class TrialSubjectScore(Base):
    """Per-subject answer counts for a trial exam."""

    __tablename__ = "trial_subject_scores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trial_exam_id: Mapped[int] = mapped_column(
        ForeignKey("trial_exams.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject_code: Mapped[str] = mapped_column(String(32), nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wrong_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    empty_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
