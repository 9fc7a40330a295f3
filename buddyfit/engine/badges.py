"""
buddyfit.engine.badges — Badge Progress Evaluation
===================================================

Parser-registry implementation for badge criteria.  A badge definition
stores loosely-typed JSON criteria (``{"type": "streak", "days": 7}``);
:func:`parse_criteria` turns it into one of a small set of frozen criteria
classes, each of which knows how to score itself against a
:class:`BadgeStats` snapshot.

This module is pure calculation — no database I/O.  New criteria types are
added by writing a class plus a parser and registering it in
``CRITERIA_PARSERS``; no schema change is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from buddyfit.database.models import CriteriaType

logger = logging.getLogger(__name__)

MAX_PROGRESS = 100.0


# ---------------------------------------------------------------------------
# BadgeStats — passed to every criteria
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeStats:
    """Snapshot of user statistics that badge criteria are scored against.

    ``current_weight`` is the latest progress-snapshot weight, falling back
    to ``starting_weight`` when the user has never logged one.
    """

    current_streak: int = 0
    longest_streak: int = 0
    total_workouts: int = 0
    total_photos: int = 0
    starting_weight: float | None = None
    current_weight: float | None = None


def _ratio(value: float, target: float) -> float:
    if target <= 0:
        return 0.0
    return max(0.0, min(MAX_PROGRESS, value / target * 100))


# ---------------------------------------------------------------------------
# Criteria variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class StreakCriteria:
    """Config: {"type": "streak", "days": 30} — scored on the longest streak."""
    days: int

    def progress(self, stats: BadgeStats) -> float:
        return _ratio(stats.longest_streak, self.days)


@dataclass(frozen=True, slots=True)
class TotalWorkoutsCriteria:
    """Config: {"type": "total_workouts", "count": 50}"""
    count: int

    def progress(self, stats: BadgeStats) -> float:
        return _ratio(stats.total_workouts, self.count)


@dataclass(frozen=True, slots=True)
class WeightChangeCriteria:
    """Config: {"type": "weight_loss"|"weight_gain", "percentage": 5}

    A loss badge only accrues progress while weight is below the starting
    weight; a gain badge only while above it.
    """
    direction: str
    percentage: float

    def progress(self, stats: BadgeStats) -> float:
        start, now = stats.starting_weight, stats.current_weight
        if not start or start <= 0 or now is None:
            return 0.0
        change_pct = (now - start) / start * 100
        if self.direction == CriteriaType.WEIGHT_LOSS:
            return _ratio(-change_pct, self.percentage) if change_pct < 0 else 0.0
        return _ratio(change_pct, self.percentage) if change_pct > 0 else 0.0


@dataclass(frozen=True, slots=True)
class UnsupportedCriteria:
    """Unknown or not-yet-wired criteria type.  Always scores 0."""
    type: str

    def progress(self, stats: BadgeStats) -> float:
        return 0.0


BadgeCriteria = StreakCriteria | TotalWorkoutsCriteria | WeightChangeCriteria | UnsupportedCriteria


# ---------------------------------------------------------------------------
# Parser registry
# ---------------------------------------------------------------------------
def _number(raw: Mapping[str, Any], key: str) -> float:
    try:
        return float(raw.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


def _parse_streak(raw: Mapping[str, Any]) -> BadgeCriteria:
    return StreakCriteria(days=int(_number(raw, "days")))


def _parse_total_workouts(raw: Mapping[str, Any]) -> BadgeCriteria:
    return TotalWorkoutsCriteria(count=int(_number(raw, "count")))


def _parse_weight_change(raw: Mapping[str, Any]) -> BadgeCriteria:
    return WeightChangeCriteria(direction=str(raw["type"]), percentage=_number(raw, "percentage"))


CRITERIA_PARSERS: dict[str, Callable[[Mapping[str, Any]], BadgeCriteria]] = {
    CriteriaType.STREAK: _parse_streak,
    CriteriaType.TOTAL_WORKOUTS: _parse_total_workouts,
    CriteriaType.WEIGHT_LOSS: _parse_weight_change,
    CriteriaType.WEIGHT_GAIN: _parse_weight_change,
    # CriteriaType.STRENGTH_INCREASE has no parser yet — needs lift history
}


def parse_criteria(raw: Mapping[str, Any] | None) -> BadgeCriteria:
    """Turn a definition's JSON criteria into a typed criteria object."""
    raw = raw or {}
    kind = str(raw.get("type") or "")
    parser = CRITERIA_PARSERS.get(kind)
    if parser is None:
        return UnsupportedCriteria(type=kind)
    return parser(raw)


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeProgress:
    progress: float
    earned: bool


def badge_progress(criteria: BadgeCriteria | Mapping[str, Any], stats: BadgeStats) -> float:
    """Progress toward a badge in ``[0, 100]``."""
    if not isinstance(criteria, BadgeCriteria):
        criteria = parse_criteria(criteria)
    return round(criteria.progress(stats), 2)


def evaluate_badge(
    definition_criteria: BadgeCriteria | Mapping[str, Any],
    stats: BadgeStats,
    earned: bool,
) -> BadgeProgress:
    """Score one badge; an earned badge always reads 100."""
    if earned:
        return BadgeProgress(progress=MAX_PROGRESS, earned=True)
    return BadgeProgress(progress=badge_progress(definition_criteria, stats), earned=False)
