"""
buddyfit.engine.challenges — Challenge Progress Handlers
=========================================================

Handler-registry implementation for challenge progress.  Each challenge
type maps to a pure handler that folds one workout into the participant's
progress blob and reports whether the target is now met.

This module is pure calculation — no database I/O.

Progress blob keys: ``workout_ids`` (workouts already counted),
``workout_count``, ``total_volume``, ``qualifying_set``, ``completed``,
``completed_at``.  Completion is monotonic: once ``completed`` is set it is
never cleared, and a completed blob is never re-completed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from buddyfit.database.models import ChallengeType
from buddyfit.engine.points import ExerciseSet

logger = logging.getLogger(__name__)

DEFAULT_BODY_WEIGHT_KG = 70.0


@dataclass(frozen=True, slots=True)
class ChallengeWorkout:
    """The slice of a workout that challenge handlers look at."""
    id: int
    exercises: list[dict[str, Any]] = field(default_factory=list)
    total_volume: float = 0.0


@dataclass
class ProgressUpdate:
    progress: dict[str, Any]
    newly_completed: bool = False
    counted: bool = True


# ---------------------------------------------------------------------------
# Handlers — pure functions (requirements, progress, workout, body_weight) → bool
# Each mutates the *progress* copy it is given and returns True when the
# challenge target is met.
# ---------------------------------------------------------------------------
def _bodyweight_lift(
    requirements: dict, progress: dict, workout: ChallengeWorkout, body_weight: float
) -> bool:
    """Config: {"exercise": "Bench Press", "reps": 1, "multiplier": 1.0}

    Met by any set of the named exercise lifting at least
    ``body_weight × multiplier`` kg for at least ``reps`` reps.
    """
    target_name = str(requirements.get("exercise") or "").strip().lower()
    if not target_name:
        return False
    target_reps = int(requirements.get("reps") or 1)
    target_weight = body_weight * float(requirements.get("multiplier") or 1.0)

    for exercise in workout.exercises:
        if str(exercise.get("name") or "").strip().lower() != target_name:
            continue
        for raw in exercise.get("sets") or []:
            parsed = ExerciseSet.from_dict(raw)
            if parsed and parsed.weight_kg >= target_weight and parsed.reps >= target_reps:
                progress["qualifying_set"] = parsed.as_record()
                return True
    return False


def _consistency(
    requirements: dict, progress: dict, workout: ChallengeWorkout, body_weight: float
) -> bool:
    """Config: {"workout_count": 12}"""
    progress["workout_count"] = int(progress.get("workout_count", 0)) + 1
    target = int(requirements.get("workout_count") or 0)
    return target > 0 and progress["workout_count"] >= target


def _volume(
    requirements: dict, progress: dict, workout: ChallengeWorkout, body_weight: float
) -> bool:
    """Config: {"total_volume": 10000} (kg)"""
    progress["total_volume"] = round(
        float(progress.get("total_volume", 0.0)) + float(workout.total_volume or 0.0), 2
    )
    target = float(requirements.get("total_volume") or 0)
    return target > 0 and progress["total_volume"] >= target


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------
PROGRESS_HANDLERS: dict[str, Callable[[dict, dict, ChallengeWorkout, float], bool]] = {
    ChallengeType.BODYWEIGHT_LIFT: _bodyweight_lift,
    ChallengeType.CONSISTENCY: _consistency,
    ChallengeType.VOLUME: _volume,
    # PR_RACE and CUSTOM are judged manually
}


def apply_workout(
    challenge_type: str,
    requirements: dict | None,
    progress: dict | None,
    workout: ChallengeWorkout,
    *,
    body_weight: float | None = None,
    now: datetime | None = None,
) -> ProgressUpdate:
    """Fold *workout* into a participant's *progress*.

    Returns a fresh progress dict (the input is never mutated).  A workout
    already counted, a completed challenge, or an unknown challenge type
    leaves progress unchanged with ``counted=False``.
    """
    current = dict(progress or {})
    handler = PROGRESS_HANDLERS.get(challenge_type)
    seen = list(current.get("workout_ids") or [])

    if handler is None or current.get("completed") or workout.id in seen:
        return ProgressUpdate(progress=current, newly_completed=False, counted=False)

    current["workout_ids"] = [*seen, workout.id]
    met = handler(requirements or {}, current, workout, body_weight or DEFAULT_BODY_WEIGHT_KG)
    if met:
        current["completed"] = True
        current["completed_at"] = (now or datetime.now(UTC)).isoformat()
    return ProgressUpdate(progress=current, newly_completed=met, counted=True)


def progress_score(progress: dict | None) -> float:
    """Single number used to compare participants (comeback gap)."""
    progress = progress or {}
    if "total_volume" in progress:
        return float(progress.get("total_volume") or 0.0)
    return float(progress.get("workout_count") or 0)
