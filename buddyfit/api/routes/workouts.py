"""
buddyfit.api.routes.workouts — Workout logging endpoints
=========================================================
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from buddyfit.api.deps import get_cache, get_current_user, get_engine
from buddyfit.engine.cache import ConfigCache
from buddyfit.errors import NotFoundError
from buddyfit.services import streak_service, workout_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workouts", tags=["workouts"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SetIn(BaseModel):
    reps: int = Field(gt=0)
    weight: float = Field(ge=0)
    unit: Literal["kg", "lbs"] = "kg"


class ExerciseIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    sets: list[SetIn] = Field(default_factory=list)


class WorkoutCreate(BaseModel):
    completed_at: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=0)
    notes: str | None = None
    exercises: list[ExerciseIn] = Field(default_factory=list)
    photo_count: int = Field(default=0, ge=0)


class WorkoutUpdate(BaseModel):
    duration_minutes: int | None = Field(default=None, ge=0)
    notes: str | None = None
    exercises: list[ExerciseIn] | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("", status_code=201)
def create_workout(
    body: WorkoutCreate,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    """Log a workout; returns the points breakdown and updated streak."""
    try:
        result = workout_service.create_workout(
            engine,
            cache,
            user_id,
            completed_at=body.completed_at,
            duration_minutes=body.duration_minutes,
            notes=body.notes,
            exercises=[e.model_dump() for e in body.exercises],
            photo_count=body.photo_count,
        )
    except Exception:
        logger.exception("Workout creation failed for user %d", user_id)
        raise HTTPException(500, "Failed to log workout")
    return result.as_dict()


@router.get("")
def list_workouts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return workout_service.list_workouts(engine, user_id, limit=limit, offset=offset)


@router.get("/stats")
def workout_stats(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """Streaks and workout counts for the caller."""
    return streak_service.get_workout_stats(engine, user_id)


@router.patch("/{workout_id}")
def update_workout(
    workout_id: int,
    body: WorkoutUpdate,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    exercises = None
    if body.exercises is not None:
        exercises = [e.model_dump() for e in body.exercises]
    try:
        return workout_service.update_workout(
            engine,
            cache,
            user_id,
            workout_id,
            duration_minutes=body.duration_minutes,
            notes=body.notes,
            exercises=exercises,
        )
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    except Exception:
        logger.exception("Workout %d update failed", workout_id)
        raise HTTPException(500, "Failed to update workout")


@router.delete("/{workout_id}")
def delete_workout(
    workout_id: int,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        streak = workout_service.delete_workout(engine, user_id, workout_id)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    except Exception:
        logger.exception("Workout %d delete failed", workout_id)
        raise HTTPException(500, "Failed to delete workout")
    return {
        "deleted": workout_id,
        "current_streak": streak.current,
        "longest_streak": streak.longest,
    }
