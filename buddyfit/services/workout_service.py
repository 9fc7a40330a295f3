"""
buddyfit.services.workout_service — Workout Lifecycle & Scoring
================================================================

Creating a workout is one unit of work in one session:

    pairing lookup → insert workout → streak → personal records
    → comeback multiplier → points → ledger + stats → commit

Either every step lands or none does.  Auxiliary reads (pairing, exercise
history, comeback rows) degrade to "no bonus" instead of failing the
workout.  Badge checks run after the commit and never undo it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buddyfit.constants import as_utc
from buddyfit.database.models import Workout
from buddyfit.engine.points import (
    PR_BONUS_POINTS,
    ExerciseSet,
    PointsBreakdown,
    calculate_workout_points,
)
from buddyfit.engine.streaks import StreakResult
from buddyfit.errors import NotFoundError
from buddyfit.services import badge_service
from buddyfit.services.pairing_service import find_active_pairing
from buddyfit.services.points_service import (
    award_points,
    detect_personal_records,
    get_active_multiplier,
)
from buddyfit.services.streak_service import recalculate_streak, record_workout_day

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from buddyfit.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


@dataclass
class WorkoutResult:
    workout: dict
    points: PointsBreakdown
    streak: StreakResult
    new_badges: list[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "workout": self.workout,
            "points": self.points.as_dict(),
            "streak": {
                "current": self.streak.current,
                "longest": self.streak.longest,
                "last_workout_date": (
                    self.streak.last_workout_date.isoformat()
                    if self.streak.last_workout_date else None
                ),
            },
            "new_badges": self.new_badges,
        }


def total_volume(exercises: list[dict[str, Any]] | None) -> float:
    """Σ weight × reps over every valid set, in kilograms."""
    volume = 0.0
    for exercise in exercises or []:
        for raw in exercise.get("sets") or []:
            parsed = ExerciseSet.from_dict(raw)
            if parsed is not None:
                volume += parsed.volume
    return round(volume, 2)


def workout_dict(w: Workout) -> dict:
    return {
        "id": w.id,
        "user_id": w.user_id,
        "pairing_id": w.pairing_id,
        "completed_at": as_utc(w.completed_at).isoformat() if w.completed_at else None,
        "duration_minutes": w.duration_minutes,
        "notes": w.notes,
        "exercises": w.exercises or [],
        "total_volume": w.total_volume,
        "photo_count": w.photo_count,
    }


def _check_badges(engine: Engine, user_id: int, cache: ConfigCache | None) -> list[dict]:
    try:
        return badge_service.check_and_award_badges(engine, user_id, cache)
    except SQLAlchemyError:
        logger.warning("Badge check failed for user %d", user_id, exc_info=True)
        return []


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------
def create_workout(
    engine: Engine,
    cache: ConfigCache | None,
    user_id: int,
    *,
    completed_at: datetime | None = None,
    duration_minutes: int | None = None,
    notes: str | None = None,
    exercises: list[dict[str, Any]] | None = None,
    photo_count: int = 0,
    now: datetime | None = None,
) -> WorkoutResult:
    """Log a workout and award its points.

    Parameters
    ----------
    completed_at:
        When the workout happened (defaults to *now*).
    exercises:
        ``[{"name": str, "sets": [{"reps", "weight", "unit"}]}]``.
    photo_count:
        Number of photos attached.
    now:
        Clock override for tests.
    """
    now = as_utc(now or datetime.now(UTC))
    completed_at = as_utc(completed_at) if completed_at else now
    exercises = list(exercises or [])

    with Session(engine, expire_on_commit=False) as session:
        pairing = find_active_pairing(session, user_id)

        workout = Workout(
            user_id=user_id,
            pairing_id=pairing.id if pairing else None,
            completed_at=completed_at,
            duration_minutes=duration_minutes,
            notes=notes,
            exercises=exercises,
            total_volume=total_volume(exercises),
            photo_count=max(photo_count, 0),
            records_awarded=bool(exercises),
        )
        session.add(workout)
        session.flush()

        streak = record_workout_day(session, user_id, completed_at, today=now.date())
        pr_count = detect_personal_records(session, user_id, exercises, today=completed_at.date())
        comeback = get_active_multiplier(session, user_id, now)

        points = calculate_workout_points(
            streak.current,
            paired=pairing is not None,
            photo_count=workout.photo_count,
            pr_count=pr_count,
            comeback_multiplier=comeback,
            cache=cache,
        )
        award_points(
            session,
            user_id,
            points.total_points,
            "Workout completed",
            {"workout_id": workout.id, "breakdown": points.breakdown},
            source_key=f"workout:{workout.id}:completion",
            consistency_multiplier=points.consistency_multiplier,
            now=now,
        )
        session.commit()
        result = WorkoutResult(workout=workout_dict(workout), points=points, streak=streak)

    logger.info(
        "Workout %d logged for user %d: %d points (streak %d)",
        result.workout["id"], user_id, points.total_points, streak.current,
    )
    result.new_badges = _check_badges(engine, user_id, cache)
    return result


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------
def update_workout(
    engine: Engine,
    cache: ConfigCache | None,
    user_id: int,
    workout_id: int,
    *,
    duration_minutes: int | None = None,
    notes: str | None = None,
    exercises: list[dict[str, Any]] | None = None,
    now: datetime | None = None,
) -> dict:
    """Edit a workout the caller owns.

    The first time exercises are attached the personal-record bonus is
    paid, once; later edits never pay it again.

    Raises
    ------
    NotFoundError
        If the workout does not exist or belongs to someone else.
    """
    now = as_utc(now or datetime.now(UTC))
    with Session(engine, expire_on_commit=False) as session:
        workout = session.get(Workout, workout_id)
        if workout is None or workout.user_id != user_id:
            raise NotFoundError(f"Workout {workout_id} not found")

        if duration_minutes is not None:
            workout.duration_minutes = duration_minutes
        if notes is not None:
            workout.notes = notes

        records_points = 0
        if exercises is not None:
            exercises = list(exercises)
            workout.exercises = exercises
            workout.total_volume = total_volume(exercises)

            if exercises and not workout.records_awarded:
                pr_count = detect_personal_records(
                    session, user_id, exercises, today=as_utc(workout.completed_at).date()
                )
                pr_value = cache.get_int("points.pr_bonus", PR_BONUS_POINTS) if cache else PR_BONUS_POINTS
                records_points = pr_count * pr_value
                if records_points:
                    award_points(
                        session,
                        user_id,
                        records_points,
                        "Personal records achieved",
                        {"workout_id": workout.id, "pr_count": pr_count},
                        source_key=f"workout:{workout.id}:records",
                        now=now,
                    )
                workout.records_awarded = True

        session.commit()
        return {**workout_dict(workout), "records_points": records_points}


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------
def delete_workout(
    engine: Engine,
    user_id: int,
    workout_id: int,
    today: date | None = None,
) -> StreakResult:
    """Delete a workout the caller owns and rescan their streak.

    Points already awarded stay in the ledger.

    Raises
    ------
    NotFoundError
        If the workout does not exist or belongs to someone else.
    """
    with Session(engine) as session:
        workout = session.get(Workout, workout_id)
        if workout is None or workout.user_id != user_id:
            raise NotFoundError(f"Workout {workout_id} not found")
        session.delete(workout)
        session.flush()
        streak = recalculate_streak(session, user_id, today=today)
        session.commit()
    logger.info("Workout %d deleted for user %d", workout_id, user_id)
    return streak


# ---------------------------------------------------------------------------
# List
# ---------------------------------------------------------------------------
def list_workouts(engine: Engine, user_id: int, limit: int = 20, offset: int = 0) -> list[dict]:
    """The caller's workouts, newest first."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Workout)
            .where(Workout.user_id == user_id)
            .order_by(Workout.completed_at.desc(), Workout.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return [workout_dict(w) for w in rows]
