"""
buddyfit.engine.points — Workout Points Calculation
====================================================

Pure calculation — no DB I/O.  Tuning values are read from the
:class:`~buddyfit.engine.cache.ConfigCache` when one is given, otherwise
the module constants apply.

Pipeline (additive, then one multiplicative step):

  base → + buddy bonus → + photo bonus → consistency bonus on that subtotal
  → + personal-record bonus → × comeback multiplier → PointsBreakdown

The consistency multiplier never touches the personal-record bonus.  The
comeback multiplier applies to everything.  All rounding is half-up so
``94.5`` becomes ``95``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from buddyfit.constants import (
    LBS_TO_KG,
    level_for_points,
    points_for_next_level,
)

if TYPE_CHECKING:
    from buddyfit.engine.cache import ConfigCache

logger = logging.getLogger(__name__)

__all__ = [
    "BASE_WORKOUT_POINTS",
    "BUDDY_WORKOUT_BONUS",
    "CONSISTENCY_MULTIPLIERS",
    "ExerciseSet",
    "PHOTO_BONUS",
    "PR_BONUS_POINTS",
    "PointsBreakdown",
    "best_set",
    "calculate_workout_points",
    "consistency_multiplier",
    "find_personal_records",
    "is_new_record",
    "level_for_points",
    "points_for_next_level",
    "round_half_up",
]

BASE_WORKOUT_POINTS = 10
BUDDY_WORKOUT_BONUS = 15
PHOTO_BONUS = 5
PR_BONUS_POINTS = 25

# Streak length → multiplier, ascending.  The highest tier met wins.
CONSISTENCY_MULTIPLIERS: dict[int, float] = {
    7: 1.1,
    14: 1.25,
    30: 1.5,
    60: 1.75,
    100: 2.0,
    365: 3.0,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def consistency_multiplier(streak: int) -> float:
    """Multiplier for the highest streak tier *streak* meets or exceeds."""
    multiplier = 1.0
    for days, mult in sorted(CONSISTENCY_MULTIPLIERS.items()):
        if streak >= days:
            multiplier = mult
    return multiplier


# ---------------------------------------------------------------------------
# Personal records
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ExerciseSet:
    reps: int
    weight: float
    unit: str = "kg"

    @property
    def weight_kg(self) -> float:
        return self.weight * LBS_TO_KG if self.unit == "lbs" else self.weight

    @property
    def volume(self) -> float:
        return self.weight_kg * self.reps

    def as_record(self) -> dict[str, Any]:
        return {"weight": self.weight, "reps": self.reps, "unit": self.unit}

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> ExerciseSet | None:
        """Parse a JSON set; malformed entries (reps <= 0, negative weight) → None."""
        try:
            reps = int(raw.get("reps", 0))
            weight = float(raw.get("weight", 0))
        except (TypeError, ValueError):
            return None
        unit = raw.get("unit") or "kg"
        if reps <= 0 or weight < 0 or unit not in ("kg", "lbs"):
            return None
        return cls(reps=reps, weight=weight, unit=unit)


def best_set(sets: Iterable[Mapping[str, Any] | ExerciseSet]) -> ExerciseSet | None:
    """The set with the largest ``weight × reps``.

    The first set wins ties.  Sets with zero volume never qualify, so a
    body-weight-only exercise yields ``None``.
    """
    best: ExerciseSet | None = None
    for raw in sets:
        candidate = raw if isinstance(raw, ExerciseSet) else ExerciseSet.from_dict(raw)
        if candidate is None or candidate.volume <= 0:
            continue
        if best is None or candidate.volume > best.volume:
            best = candidate
    return best


def is_new_record(candidate: ExerciseSet, existing: Mapping[str, Any] | None) -> bool:
    """True when *candidate* strictly beats *existing*: heavier wins, equal
    weight with more reps wins.  No stored record means any set is a record."""
    if not existing:
        return True
    previous = ExerciseSet.from_dict(existing)
    if previous is None:
        return True
    if candidate.weight_kg != previous.weight_kg:
        return candidate.weight_kg > previous.weight_kg
    return candidate.reps > previous.reps


def find_personal_records(
    exercises: Iterable[Mapping[str, Any]],
    records: Mapping[str, Mapping[str, Any]],
) -> dict[str, ExerciseSet]:
    """Exercise name → new best set, for every exercise that beats its record.

    Sets of an exercise listed twice in one workout are pooled, so each
    exercise yields at most one record per workout.
    """
    pooled: dict[str, list[Any]] = {}
    for exercise in exercises:
        name = str(exercise.get("name") or "").strip()
        if not name:
            continue
        pooled.setdefault(name, []).extend(exercise.get("sets") or [])

    found: dict[str, ExerciseSet] = {}
    for name, sets in pooled.items():
        top = best_set(sets)
        if top is not None and is_new_record(top, records.get(name)):
            found[name] = top
    return found


# ---------------------------------------------------------------------------
# PointsBreakdown — output of the calculator
# ---------------------------------------------------------------------------
@dataclass
class PointsBreakdown:
    """Every component of one workout's award.

    ``breakdown`` maps a label to its amount for each nonzero component and
    always sums to ``total_points``.
    """

    base_points: int = 0
    buddy_bonus: int = 0
    photo_bonus: int = 0
    consistency_multiplier: float = 1.0
    consistency_bonus: int = 0
    progress_bonus: int = 0
    pr_count: int = 0
    comeback_multiplier: float = 1.0
    subtotal: int = 0
    total_points: int = 0
    breakdown: dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "base_points": self.base_points,
            "buddy_bonus": self.buddy_bonus,
            "photo_bonus": self.photo_bonus,
            "consistency_multiplier": self.consistency_multiplier,
            "consistency_bonus": self.consistency_bonus,
            "progress_bonus": self.progress_bonus,
            "pr_count": self.pr_count,
            "comeback_multiplier": self.comeback_multiplier,
            "subtotal": self.subtotal,
            "total_points": self.total_points,
            "breakdown": dict(self.breakdown),
        }


def calculate_workout_points(
    current_streak: int,
    *,
    paired: bool,
    photo_count: int = 0,
    pr_count: int = 0,
    comeback_multiplier: float = 1.0,
    cache: ConfigCache | None = None,
) -> PointsBreakdown:
    """Compute the award for one completed workout.

    Parameters
    ----------
    current_streak:
        The user's streak *including* this workout.
    paired:
        Whether the user has an active buddy.
    photo_count:
        Photos attached to the workout.
    pr_count:
        New personal records set in this workout.
    comeback_multiplier:
        Highest active comeback multiplier (1.0 when none).
    cache:
        Optional settings cache for tuned point values.
    """
    if cache is not None:
        base_value = cache.get_int("points.base_workout", BASE_WORKOUT_POINTS)
        buddy_value = cache.get_int("points.buddy_bonus", BUDDY_WORKOUT_BONUS)
        photo_value = cache.get_int("points.photo_bonus", PHOTO_BONUS)
        pr_value = cache.get_int("points.pr_bonus", PR_BONUS_POINTS)
    else:
        base_value, buddy_value = BASE_WORKOUT_POINTS, BUDDY_WORKOUT_BONUS
        photo_value, pr_value = PHOTO_BONUS, PR_BONUS_POINTS

    photo_count = max(photo_count, 0)
    pr_count = max(pr_count, 0)
    comeback_multiplier = max(comeback_multiplier, 1.0)

    base = base_value
    buddy = buddy_value if paired else 0
    photo = photo_value * photo_count
    additive = base + buddy + photo

    multiplier = consistency_multiplier(current_streak)
    consistency = round_half_up(additive * (multiplier - 1))

    progress = pr_value * pr_count
    subtotal = additive + consistency + progress
    total = round_half_up(subtotal * comeback_multiplier)

    components = {
        "base": base,
        "buddy_workout": buddy,
        "photo_upload": photo,
        "personal_records": progress,
        "consistency_bonus": consistency,
        "comeback_bonus": total - subtotal,
    }
    result = PointsBreakdown(
        base_points=base,
        buddy_bonus=buddy,
        photo_bonus=photo,
        consistency_multiplier=multiplier,
        consistency_bonus=consistency,
        progress_bonus=progress,
        pr_count=pr_count,
        comeback_multiplier=comeback_multiplier,
        subtotal=subtotal,
        total_points=total,
        breakdown={label: amount for label, amount in components.items() if amount},
    )
    logger.debug("Workout points: streak=%d total=%d %s", current_streak, total, result.breakdown)
    return result
