"""Initial schema: users, workouts, scoring ledger, badges, competitions

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _ts(name: str, **kw) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), **kw)


def _user_fk(**kw) -> sa.Column:
    return sa.Column(
        "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), **kw
    )


def upgrade() -> None:
    """Create every BuddyFit table."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("avatar_url", sa.String(500)),
        sa.Column("starting_weight", sa.Float()),
        sa.Column("timezone", sa.String(50), server_default="UTC"),
        _ts("created_at", server_default=sa.func.now()),
        _ts("updated_at", server_default=sa.func.now()),
    )

    op.create_table(
        "pairings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user1_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user2_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        _ts("started_at"),
        _ts("ended_at"),
        _ts("created_at", server_default=sa.func.now()),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_pairings_users"),
    )

    op.create_table(
        "workouts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(nullable=False),
        sa.Column("pairing_id", sa.Integer(), sa.ForeignKey("pairings.id", ondelete="SET NULL")),
        _ts("completed_at", nullable=False, server_default=sa.func.now()),
        sa.Column("duration_minutes", sa.Integer()),
        sa.Column("notes", sa.Text()),
        sa.Column("exercises", postgresql.JSONB(), server_default="[]"),
        sa.Column("total_volume", sa.Float(), server_default="0"),
        sa.Column("photo_count", sa.Integer(), server_default="0"),
        sa.Column("records_awarded", sa.Boolean(), server_default=sa.false()),
        _ts("created_at", server_default=sa.func.now()),
        _ts("updated_at", server_default=sa.func.now()),
    )
    op.create_index("ix_workouts_user_completed", "workouts", ["user_id", "completed_at"])
    op.create_index("ix_workouts_pairing", "workouts", ["pairing_id"])

    op.create_table(
        "progress_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("weight", sa.Float()),
        sa.Column("body_fat_percentage", sa.Float()),
        sa.UniqueConstraint("user_id", "date", name="uq_progress_snapshots_user_date"),
    )

    op.create_table(
        "streaks",
        _user_fk(primary_key=True),
        sa.Column("current_streak", sa.Integer(), server_default="0"),
        sa.Column("longest_streak", sa.Integer(), server_default="0"),
        sa.Column("last_workout_date", sa.Date()),
        _ts("updated_at", server_default=sa.func.now()),
        sa.CheckConstraint("longest_streak >= current_streak", name="ck_streaks_longest"),
        sa.CheckConstraint("current_streak >= 0", name="ck_streaks_current_nonneg"),
    )

    op.create_table(
        "points_ledger",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("source_key", sa.String(120)),
        sa.Column("metadata", postgresql.JSONB(), server_default="{}"),
        _ts("created_at", nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("points >= 0", name="ck_points_ledger_nonneg"),
    )
    op.create_index(
        "ix_points_ledger_source_key",
        "points_ledger",
        ["source_key"],
        unique=True,
        postgresql_where=sa.text("source_key IS NOT NULL"),
    )
    op.create_index("ix_points_ledger_user_time", "points_ledger", ["user_id", "created_at"])

    op.create_table(
        "user_stats",
        _user_fk(primary_key=True),
        sa.Column("total_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("weekly_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("monthly_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("consistency_multiplier", sa.Float(), server_default="1.0"),
        _ts("last_workout_points"),
        _ts("updated_at", server_default=sa.func.now()),
    )
    op.create_index("ix_user_stats_total", "user_stats", ["total_points"])
    op.create_index("ix_user_stats_weekly", "user_stats", ["weekly_points"])
    op.create_index("ix_user_stats_monthly", "user_stats", ["monthly_points"])

    op.create_table(
        "exercise_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(nullable=False),
        sa.Column("exercise_name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), server_default="other"),
        sa.Column("personal_record", postgresql.JSONB(), server_default="{}"),
        sa.Column("last_performed", sa.Date()),
        _ts("updated_at", server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "exercise_name", name="uq_exercise_records_user_exercise"),
    )

    op.create_table(
        "comeback_mechanics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _user_fk(nullable=False),
        sa.Column("competition_type", sa.String(20), nullable=False),
        sa.Column("competition_id", sa.Integer(), nullable=False),
        sa.Column("behind_by_percentage", sa.Float(), nullable=False, server_default="0"),
        sa.Column("multiplier", sa.Float(), nullable=False, server_default="1.0"),
        _ts("last_calculated", nullable=False, server_default=sa.func.now()),
        sa.Column("bonus_active", sa.Boolean(), server_default=sa.false()),
        _ts("bonus_expires_at"),
        sa.UniqueConstraint(
            "user_id", "competition_type", "competition_id",
            name="uq_comeback_user_competition",
        ),
        sa.CheckConstraint("multiplier >= 1.0", name="ck_comeback_multiplier_min"),
    )
    op.create_index("ix_comeback_user_active", "comeback_mechanics", ["user_id", "bonus_active"])

    op.create_table(
        "badge_definitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("icon", sa.String(50), nullable=False),
        sa.Column("criteria", postgresql.JSONB(), nullable=False),
        sa.Column("color", sa.String(20), nullable=False, server_default="#9e9e9e"),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        _ts("created_at", server_default=sa.func.now()),
    )

    op.create_table(
        "user_badges",
        _user_fk(primary_key=True),
        sa.Column(
            "badge_id", sa.Integer(),
            sa.ForeignKey("badge_definitions.id", ondelete="CASCADE"), primary_key=True,
        ),
        _ts("earned_at", nullable=False, server_default=sa.func.now()),
        sa.Column("progress", sa.Float(), server_default="100"),
        sa.Column("metadata", postgresql.JSONB(), server_default="{}"),
    )

    op.create_table(
        "challenges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("challenge_type", sa.String(30), nullable=False),
        sa.Column("category", sa.String(30), nullable=False, server_default="special"),
        sa.Column("icon", sa.String(50), nullable=False, server_default="trophy"),
        _ts("start_date", nullable=False),
        _ts("end_date", nullable=False),
        sa.Column("requirements", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("points_reward", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("comeback_enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column("max_participants", sa.Integer()),
        sa.Column("visibility", sa.String(20), nullable=False, server_default="public"),
        sa.Column("status", sa.String(20), nullable=False, server_default="upcoming"),
        _ts("created_at", server_default=sa.func.now()),
    )
    op.create_index("ix_challenges_status", "challenges", ["status"])
    op.create_index("ix_challenges_dates", "challenges", ["start_date", "end_date"])

    op.create_table(
        "challenge_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "challenge_id", sa.Integer(),
            sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(nullable=False),
        _ts("joined_at", nullable=False, server_default=sa.func.now()),
        sa.Column("progress", postgresql.JSONB(), nullable=False, server_default="{}"),
        _ts("completed_at"),
        sa.Column("rank", sa.Integer()),
        sa.Column("points_earned", sa.Integer(), server_default="0"),
        sa.Column("comeback_bonus_applied", sa.Boolean(), server_default=sa.false()),
        sa.UniqueConstraint("challenge_id", "user_id", name="uq_challenge_participants"),
    )
    op.create_index("ix_challenge_participants_user", "challenge_participants", ["user_id"])

    op.create_table(
        "seasonal_competitions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("theme", sa.String(100), nullable=False, server_default=""),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("scoring_rules", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("prizes", postgresql.JSONB()),
        sa.Column("min_participants", sa.Integer(), server_default="2"),
        sa.Column("status", sa.String(20), nullable=False, server_default="upcoming"),
        sa.UniqueConstraint("month", "year", name="uq_seasonal_competitions_month_year"),
    )
    op.create_index("ix_seasonal_competitions_status", "seasonal_competitions", ["status"])

    op.create_table(
        "seasonal_competition_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "competition_id", sa.Integer(),
            sa.ForeignKey("seasonal_competitions.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk(nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("rank", sa.Integer()),
        sa.Column("comeback_multiplier", sa.Float(), server_default="1.0"),
        _ts("last_activity", nullable=False, server_default=sa.func.now()),
        sa.Column("stats", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.UniqueConstraint("competition_id", "user_id", name="uq_seasonal_participants"),
    )
    op.create_index(
        "ix_seasonal_participants_points",
        "seasonal_competition_participants",
        ["competition_id", "points_earned"],
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text()),
        _ts("updated_at", server_default=sa.func.now()),
    )
    op.create_index("ix_settings_category", "settings", ["category"])


def downgrade() -> None:
    """Drop every BuddyFit table in reverse dependency order."""
    for table in (
        "settings",
        "seasonal_competition_participants",
        "seasonal_competitions",
        "challenge_participants",
        "challenges",
        "user_badges",
        "badge_definitions",
        "comeback_mechanics",
        "exercise_records",
        "user_stats",
        "points_ledger",
        "streaks",
        "progress_snapshots",
        "workouts",
        "pairings",
        "users",
    ):
        op.drop_table(table)
