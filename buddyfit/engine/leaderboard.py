"""
buddyfit.engine.leaderboard — Ranking & Podium
===============================================

Pure ranking over ``(user_id, points)`` rows.  Ranks follow strictly
descending points; equal points keep their input order, so the caller's
query order is the tie-break.  The store queries order ties by
``user_id`` ascending, which makes every ranking deterministic.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from buddyfit.constants import RANK_BADGES


class LeaderboardPeriod(enum.StrEnum):
    ALL_TIME = "all_time"
    MONTHLY = "monthly"
    WEEKLY = "weekly"

    @property
    def column(self) -> str:
        """The ``user_stats`` column this period ranks on."""
        return _PERIOD_COLUMNS[self]


_PERIOD_COLUMNS: dict[LeaderboardPeriod, str] = {
    LeaderboardPeriod.ALL_TIME: "total_points",
    LeaderboardPeriod.MONTHLY: "monthly_points",
    LeaderboardPeriod.WEEKLY: "weekly_points",
}


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    user_id: int
    points: int
    display_name: str | None = None
    level: int | None = None


@dataclass(frozen=True, slots=True)
class RankedEntry:
    rank: int
    user_id: int
    points: int
    display_name: str | None = None
    level: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "user_id": self.user_id,
            "points": self.points,
            "display_name": self.display_name,
            "level": self.level,
        }


@dataclass
class LeaderboardView:
    period: str
    entries: list[RankedEntry] = field(default_factory=list)
    podium: list[dict[str, Any]] = field(default_factory=list)
    viewer_position: RankedEntry | None = None


def rank_entries(
    entries: Iterable[LeaderboardEntry],
    limit: int | None = None,
) -> list[RankedEntry]:
    """Rank *entries* by points, highest first.

    ``sorted`` is stable, so ties keep their input order.  Ranks are
    positional (1, 2, 3, ...).
    """
    ordered = sorted(entries, key=lambda e: e.points, reverse=True)
    if limit is not None:
        ordered = ordered[: max(limit, 0)]
    return [
        RankedEntry(
            rank=i + 1,
            user_id=e.user_id,
            points=e.points,
            display_name=e.display_name,
            level=e.level,
        )
        for i, e in enumerate(ordered)
    ]


def podium(ranked: list[RankedEntry]) -> list[dict[str, Any]]:
    """Top three entries decorated with their medal."""
    return [
        {**entry.as_dict(), "medal": RANK_BADGES[i]}
        for i, entry in enumerate(ranked[: len(RANK_BADGES)])
    ]
