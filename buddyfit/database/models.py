"""
buddyfit.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users              — Member profiles
- pairings           — Buddy pairs (two users, one active pairing each)
- workouts           — Logged workouts with embedded exercise sets
- progress_snapshots — Dated body-weight entries
- streaks            — Current/longest streak per user
- points_ledger      — Append-only record of every point award
- user_stats         — Aggregate totals derived from the ledger
- exercise_records   — Personal record per (user, exercise)
- comeback_mechanics — Behind-the-leader bonus per (user, competition)
- badge_definitions  — Immutable badge catalog with typed criteria
- user_badges        — Earned badges
- challenges         — Timed challenges + participants
- seasonal_competitions — Monthly competitions + participants
- settings           — Gameplay tuning key/value store
"""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all BuddyFit ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PairingStatus(enum.StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"


class CompetitionType(enum.StrEnum):
    """Competition kinds a comeback bonus can be computed for."""
    CHALLENGE = "challenge"
    SEASONAL = "seasonal"
    BUDDY = "buddy"


class ChallengeType(enum.StrEnum):
    BODYWEIGHT_LIFT = "bodyweight_lift"
    PR_RACE = "pr_race"
    CONSISTENCY = "consistency"
    VOLUME = "volume"
    CUSTOM = "custom"


class ChallengeStatus(enum.StrEnum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CriteriaType(enum.StrEnum):
    """Badge criteria kinds understood by the progress evaluator."""
    STREAK = "streak"
    TOTAL_WORKOUTS = "total_workouts"
    WEIGHT_LOSS = "weight_loss"
    WEIGHT_GAIN = "weight_gain"
    STRENGTH_INCREASE = "strength_increase"


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), default=None)
    starting_weight: Mapped[float | None] = mapped_column(Float, default=None)
    timezone: Mapped[str] = mapped_column(String(50), default="UTC")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    workouts: Mapped[list[Workout]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    stats: Mapped[UserStats | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    badges: Mapped[list[UserBadge]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"


# ---------------------------------------------------------------------------
# Pairings — buddy pairs
# ---------------------------------------------------------------------------
class Pairing(Base):
    __tablename__ = "pairings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user1_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    user2_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PairingStatus.PENDING.value
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user1_id", "user2_id", name="uq_pairings_users"),
    )

    def buddy_of(self, user_id: int) -> int | None:
        """Return the other member of the pair, or None if *user_id* isn't in it."""
        if user_id == self.user1_id:
            return self.user2_id
        if user_id == self.user2_id:
            return self.user1_id
        return None

    def __repr__(self) -> str:
        return f"<Pairing id={self.id} {self.user1_id}<->{self.user2_id} {self.status}>"


# ---------------------------------------------------------------------------
# Workouts
# ---------------------------------------------------------------------------
class Workout(Base):
    """One logged workout.

    ``exercises`` is a JSON list of ``{"name": str, "sets": [{"reps": int,
    "weight": float, "unit": "kg"|"lbs"}]}``.  ``records_awarded`` flips once
    the personal-record bonus for this workout has been paid out.
    """
    __tablename__ = "workouts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    pairing_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("pairings.id", ondelete="SET NULL"), nullable=True
    )
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    duration_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    exercises: Mapped[list | None] = mapped_column(JSONB, default=list)
    total_volume: Mapped[float] = mapped_column(Float, default=0.0)
    photo_count: Mapped[int] = mapped_column(Integer, default=0)
    records_awarded: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="workouts")

    __table_args__ = (
        Index("ix_workouts_user_completed", "user_id", "completed_at"),
        Index("ix_workouts_pairing", "pairing_id"),
    )

    def __repr__(self) -> str:
        return f"<Workout id={self.id} user={self.user_id} at={self.completed_at}>"


# ---------------------------------------------------------------------------
# ProgressSnapshot — dated body-weight entries
# ---------------------------------------------------------------------------
class ProgressSnapshot(Base):
    __tablename__ = "progress_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    weight: Mapped[float | None] = mapped_column(Float, default=None)
    body_fat_percentage: Mapped[float | None] = mapped_column(Float, default=None)

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_progress_snapshots_user_date"),
    )


# ---------------------------------------------------------------------------
# Streak — one row per user
# ---------------------------------------------------------------------------
class Streak(Base):
    __tablename__ = "streaks"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_workout_date: Mapped[date | None] = mapped_column(Date, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("longest_streak >= current_streak", name="ck_streaks_longest"),
        CheckConstraint("current_streak >= 0", name="ck_streaks_current_nonneg"),
    )

    def __repr__(self) -> str:
        return (
            f"<Streak user={self.user_id} current={self.current_streak} "
            f"longest={self.longest_streak}>"
        )


# ---------------------------------------------------------------------------
# PointsLedgerEntry — append-only, source of truth for totals
# ---------------------------------------------------------------------------
class PointsLedgerEntry(Base):
    __tablename__ = "points_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    # Natural key for idempotent awards (e.g. "workout:42:completion")
    source_key: Mapped[str | None] = mapped_column(String(120), nullable=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index(
            "ix_points_ledger_source_key",
            "source_key",
            unique=True,
            postgresql_where=text("source_key IS NOT NULL"),
            sqlite_where=text("source_key IS NOT NULL"),
        ),
        Index("ix_points_ledger_user_time", "user_id", "created_at"),
        CheckConstraint("points >= 0", name="ck_points_ledger_nonneg"),
    )

    def __repr__(self) -> str:
        return f"<PointsLedgerEntry id={self.id} user={self.user_id} points={self.points}>"


# ---------------------------------------------------------------------------
# UserStats — aggregate totals
# ---------------------------------------------------------------------------
class UserStats(Base):
    __tablename__ = "user_stats"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    weekly_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    monthly_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    consistency_multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    last_workout_points: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="stats")

    __table_args__ = (
        Index("ix_user_stats_total", "total_points"),
        Index("ix_user_stats_weekly", "weekly_points"),
        Index("ix_user_stats_monthly", "monthly_points"),
    )

    def __repr__(self) -> str:
        return f"<UserStats user={self.user_id} total={self.total_points} lvl={self.level}>"


# ---------------------------------------------------------------------------
# ExerciseRecord — personal record per exercise
# ---------------------------------------------------------------------------
class ExerciseRecord(Base):
    __tablename__ = "exercise_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    exercise_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="other")
    # {"weight": float, "reps": int, "unit": "kg"|"lbs"}
    personal_record: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    last_performed: Mapped[date | None] = mapped_column(Date, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "exercise_name", name="uq_exercise_records_user_exercise"),
    )

    def __repr__(self) -> str:
        return f"<ExerciseRecord user={self.user_id} exercise={self.exercise_name!r}>"


# ---------------------------------------------------------------------------
# ComebackMechanic — one per (user, competition)
# ---------------------------------------------------------------------------
class ComebackMechanic(Base):
    __tablename__ = "comeback_mechanics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    competition_type: Mapped[str] = mapped_column(String(20), nullable=False)
    competition_id: Mapped[int] = mapped_column(Integer, nullable=False)
    behind_by_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    last_calculated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    bonus_active: Mapped[bool] = mapped_column(Boolean, default=False)
    bonus_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "competition_type", "competition_id",
            name="uq_comeback_user_competition",
        ),
        Index("ix_comeback_user_active", "user_id", "bonus_active"),
        CheckConstraint("multiplier >= 1.0", name="ck_comeback_multiplier_min"),
    )

    def __repr__(self) -> str:
        return (
            f"<ComebackMechanic user={self.user_id} "
            f"{self.competition_type}:{self.competition_id} x{self.multiplier}>"
        )


# ---------------------------------------------------------------------------
# BadgeDefinition — immutable catalog
# ---------------------------------------------------------------------------
class BadgeDefinition(Base):
    __tablename__ = "badge_definitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    icon: Mapped[str] = mapped_column(String(50), nullable=False)
    # {"type": "streak", "days": 7} — see buddyfit.engine.badges
    criteria: Mapped[dict] = mapped_column(JSONB, nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False, default="#9e9e9e")
    rarity: Mapped[str] = mapped_column(String(20), nullable=False, default="common")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    earned_by: Mapped[list[UserBadge]] = relationship(back_populates="badge")

    def __repr__(self) -> str:
        return f"<BadgeDefinition id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# UserBadge — earned badges
# ---------------------------------------------------------------------------
class UserBadge(Base):
    __tablename__ = "user_badges"

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    badge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("badge_definitions.id", ondelete="CASCADE"), primary_key=True
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    progress: Mapped[float] = mapped_column(Float, default=100.0)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONB, default=dict)

    user: Mapped[User] = relationship(back_populates="badges")
    badge: Mapped[BadgeDefinition] = relationship(back_populates="earned_by")

    def __repr__(self) -> str:
        return f"<UserBadge user={self.user_id} badge={self.badge_id}>"


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    challenge_type: Mapped[str] = mapped_column(String(30), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="special")
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="trophy")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    requirements: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    points_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    comeback_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    max_participants: Mapped[int | None] = mapped_column(Integer, default=None)
    visibility: Mapped[str] = mapped_column(String(20), nullable=False, default="public")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChallengeStatus.UPCOMING.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    participants: Mapped[list[ChallengeParticipant]] = relationship(
        back_populates="challenge", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_challenges_status", "status"),
        Index("ix_challenges_dates", "start_date", "end_date"),
    )

    def __repr__(self) -> str:
        return f"<Challenge id={self.id} name={self.name!r} type={self.challenge_type}>"


class ChallengeParticipant(Base):
    __tablename__ = "challenge_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    progress: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    rank: Mapped[int | None] = mapped_column(Integer, default=None)
    points_earned: Mapped[int] = mapped_column(Integer, default=0)
    comeback_bonus_applied: Mapped[bool] = mapped_column(Boolean, default=False)

    challenge: Mapped[Challenge] = relationship(back_populates="participants")

    __table_args__ = (
        UniqueConstraint("challenge_id", "user_id", name="uq_challenge_participants"),
        Index("ix_challenge_participants_user", "user_id"),
    )


# ---------------------------------------------------------------------------
# Seasonal competitions
# ---------------------------------------------------------------------------
class SeasonalCompetition(Base):
    __tablename__ = "seasonal_competitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    theme: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    scoring_rules: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    prizes: Mapped[dict | None] = mapped_column(JSONB, default=None)
    min_participants: Mapped[int] = mapped_column(Integer, default=2)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ChallengeStatus.UPCOMING.value
    )

    participants: Mapped[list[SeasonalCompetitionParticipant]] = relationship(
        back_populates="competition", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_seasonal_competitions_month_year"),
        Index("ix_seasonal_competitions_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<SeasonalCompetition id={self.id} {self.year}-{self.month:02d}>"


class SeasonalCompetitionParticipant(Base):
    __tablename__ = "seasonal_competition_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("seasonal_competitions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rank: Mapped[int | None] = mapped_column(Integer, default=None)
    comeback_multiplier: Mapped[float] = mapped_column(Float, default=1.0)
    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    stats: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    competition: Mapped[SeasonalCompetition] = relationship(back_populates="participants")

    __table_args__ = (
        UniqueConstraint("competition_id", "user_id", name="uq_seasonal_participants"),
        Index("ix_seasonal_participants_points", "competition_id", "points_earned"),
    )


# ---------------------------------------------------------------------------
# Setting — key/value configuration store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Every gameplay tuning knob (base points, bonuses, comeback curve) lives
    here so values can be adjusted without redeploying.  Values are stored as
    JSON strings; typed accessors live in
    :class:`~buddyfit.engine.cache.ConfigCache`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"
