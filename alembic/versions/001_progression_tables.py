"""Progression tables.

Creates users, xp_transactions, study_streaks, leagues, user_league_history,
achievements, user_achievements, study_sessions, trial_exams and
trial_subject_scores, and seeds the five league bands.

Revision ID: 001_progression_tables
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_progression_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE,
            name VARCHAR(64) NOT NULL,
            surname VARCHAR(64) NOT NULL DEFAULT '',
            avatar_url TEXT,
            school_name VARCHAR(128),
            grade_level INTEGER,
            total_xp INTEGER NOT NULL DEFAULT 0 CHECK (total_xp >= 0),
            current_streak INTEGER NOT NULL DEFAULT 0 CHECK (current_streak >= 0),
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_school_name ON users(school_name)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_grade_level ON users(grade_level)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_total_xp ON users(total_xp DESC, current_streak DESC)")

    # --- XP Transactions (append-only) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL CHECK (amount > 0),
            source_type VARCHAR(32) NOT NULL,
            source_id INTEGER,
            description VARCHAR(256),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_user_earned
        ON xp_transactions(user_id, earned_at)
    """)

    # --- Study Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS study_streaks (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            start_date DATE NOT NULL,
            end_date DATE,
            current_days INTEGER NOT NULL DEFAULT 1 CHECK (current_days >= 1),
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_study_streaks_user_id ON study_streaks(user_id)")
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_study_streaks_user_active
        ON study_streaks(user_id) WHERE is_active
    """)

    # --- Leagues ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS leagues (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            min_xp INTEGER NOT NULL,
            max_xp INTEGER,
            rank_order INTEGER UNIQUE NOT NULL,
            league_color VARCHAR(16),
            icon VARCHAR(16)
        )
    """)
    op.execute("""
        INSERT INTO leagues (name, min_xp, max_xp, rank_order, league_color, icon) VALUES
            ('Bronze', 0, 999, 1, '#CD7F32', '\U0001f949'),
            ('Silver', 1000, 4999, 2, '#C0C0C0', '\U0001f948'),
            ('Gold', 5000, 14999, 3, '#FFD700', '\U0001f947'),
            ('Platinum', 15000, 49999, 4, '#E5E4E2', '\U0001f48e'),
            ('Diamond', 50000, NULL, 5, '#B9F2FF', '\U0001f451')
        ON CONFLICT (name) DO NOTHING
    """)

    # --- User League History ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_league_history (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            league_id INTEGER NOT NULL REFERENCES leagues(id),
            start_date TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            end_date TIMESTAMPTZ,
            final_xp INTEGER,
            final_rank INTEGER,
            is_current BOOLEAN NOT NULL DEFAULT false
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_league_history_user_id ON user_league_history(user_id)")
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_user_league_history_current
        ON user_league_history(user_id) WHERE is_current
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            code VARCHAR(64) UNIQUE,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            icon VARCHAR(16),
            badge_color VARCHAR(16),
            xp_requirement INTEGER,
            streak_requirement INTEGER,
            study_hours_requirement INTEGER,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_achievements_user_achievement UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id ON user_achievements(user_id)")

    # --- Study Sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS study_sessions (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            session_type VARCHAR(16) NOT NULL DEFAULT 'STUDY',
            planned_duration_minutes INTEGER NOT NULL,
            actual_duration_minutes INTEGER,
            start_time TIMESTAMPTZ NOT NULL,
            end_time TIMESTAMPTZ,
            is_completed BOOLEAN NOT NULL DEFAULT false,
            xp_earned INTEGER NOT NULL DEFAULT 0,
            notes TEXT
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_study_sessions_user_id ON study_sessions(user_id)")

    # --- Trial Exams ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS trial_exams (
            id SERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            name VARCHAR(128) NOT NULL,
            exam_type VARCHAR(8) NOT NULL,
            exam_date TIMESTAMPTZ NOT NULL,
            total_score DOUBLE PRECISION NOT NULL DEFAULT 0,
            duration_minutes INTEGER,
            notes TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_trial_exams_user_id ON trial_exams(user_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS trial_subject_scores (
            id SERIAL PRIMARY KEY,
            trial_exam_id INTEGER NOT NULL REFERENCES trial_exams(id) ON DELETE CASCADE,
            subject_code VARCHAR(32) NOT NULL,
            correct_answers INTEGER NOT NULL DEFAULT 0,
            wrong_answers INTEGER NOT NULL DEFAULT 0,
            empty_answers INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_trial_subject_scores_trial_exam_id
        ON trial_subject_scores(trial_exam_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS trial_subject_scores CASCADE")
    op.execute("DROP TABLE IF EXISTS trial_exams CASCADE")
    op.execute("DROP TABLE IF EXISTS study_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS user_league_history CASCADE")
    op.execute("DROP TABLE IF EXISTS leagues CASCADE")
    op.execute("DROP TABLE IF EXISTS study_streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
