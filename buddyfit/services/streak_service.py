"""
buddyfit.services.streak_service — Streak Persistence & Workout Stats
======================================================================

Session-level helpers take an open :class:`Session` so they can run inside
a caller's unit of work (workout create/delete).  Engine-level readers open
their own session.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from buddyfit.constants import as_utc
from buddyfit.database.models import Streak, Workout
from buddyfit.engine.streaks import (
    StreakResult,
    advance_streak,
    compute_streaks,
    effective_current_streak,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def get_streak(session: Session, user_id: int) -> Streak | None:
    return session.get(Streak, user_id)


def upsert_streak(session: Session, user_id: int, result: StreakResult) -> Streak:
    """Write *result* to the user's single streak row."""
    streak = session.get(Streak, user_id)
    if streak is None:
        streak = Streak(user_id=user_id)
        session.add(streak)
    streak.current_streak = result.current
    streak.longest_streak = result.longest
    streak.last_workout_date = result.last_workout_date
    session.flush()
    return streak


def recalculate_streak(session: Session, user_id: int, today: date | None = None) -> StreakResult:
    """Rescan every workout the user has and rewrite the streak row.

    Used after a deletion or a backdated entry, where an incremental
    update could miss a gap.
    """
    stamps = session.scalars(
        select(Workout.completed_at).where(Workout.user_id == user_id)
    ).all()
    result = compute_streaks(stamps, today=today)
    upsert_streak(session, user_id, result)
    logger.debug(
        "Streak rescanned for user %d: current=%d longest=%d",
        user_id, result.current, result.longest,
    )
    return result


def record_workout_day(
    session: Session,
    user_id: int,
    workout_date: date | datetime,
    today: date | None = None,
) -> StreakResult:
    """Fold a newly logged workout into the user's streak."""
    streak = get_streak(session, user_id)
    if streak is None:
        result = advance_streak(0, 0, None, workout_date)
    else:
        day = workout_date.date() if isinstance(workout_date, datetime) else workout_date
        if streak.last_workout_date is not None and day < streak.last_workout_date:
            return recalculate_streak(session, user_id, today=today)
        result = advance_streak(
            streak.current_streak,
            streak.longest_streak,
            streak.last_workout_date,
            workout_date,
        )
    upsert_streak(session, user_id, result)
    return result


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _start_of_week(today: date) -> datetime:
    # Weeks start on Sunday
    sunday = today - timedelta(days=(today.weekday() + 1) % 7)
    return datetime.combine(sunday, time.min, tzinfo=UTC)


def _count_since(session: Session, user_id: int, since: datetime) -> int:
    return session.scalar(
        select(func.count(Workout.id)).where(
            Workout.user_id == user_id, Workout.completed_at >= since
        )
    ) or 0


def get_workout_stats(engine: Engine, user_id: int, today: date | None = None) -> dict:
    """Streak and workout counts for the stats panel.

    A user with no workouts gets
    ``{"current_streak": 0, "longest_streak": 0, "total_workouts": 0, ...}``.
    """
    today = today or datetime.now(UTC).date()
    with Session(engine) as session:
        total = session.scalar(
            select(func.count(Workout.id)).where(Workout.user_id == user_id)
        ) or 0
        streak = get_streak(session, user_id)
        last_workout = session.scalar(
            select(func.max(Workout.completed_at)).where(Workout.user_id == user_id)
        )

        stats = {
            "current_streak": 0,
            "longest_streak": 0,
            "total_workouts": total,
            "weekly_workouts": 0,
            "monthly_workouts": 0,
            "last_workout_at": None,
        }
        if total == 0:
            return stats

        if streak is not None:
            stats["current_streak"] = effective_current_streak(
                streak.current_streak, streak.last_workout_date, today
            )
            stats["longest_streak"] = streak.longest_streak
        stats["weekly_workouts"] = _count_since(session, user_id, _start_of_week(today))
        stats["monthly_workouts"] = _count_since(
            session, user_id, datetime.combine(today.replace(day=1), time.min, tzinfo=UTC)
        )
        stats["last_workout_at"] = as_utc(last_workout).isoformat() if last_workout else None
        return stats
