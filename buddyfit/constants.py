"""
buddyfit.constants — Shared Constants & Helpers
================================================

Single source of truth for presentation constants and the leveling table.
Import from here instead of duplicating in services and routers.
"""

from __future__ import annotations

from datetime import UTC, datetime

# ---------------------------------------------------------------------------
# Rarity presentation (badge catalog)
# ---------------------------------------------------------------------------
RARITY_EMOJI: dict[str, str] = {
    "common": "⚪",        # ⚪
    "uncommon": "\U0001f7e2",  # 🟢
    "rare": "\U0001f535",      # 🔵
    "epic": "\U0001f7e3",      # 🟣
    "legendary": "\U0001f7e1", # 🟡
}

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

LBS_TO_KG = 0.453592


# ---------------------------------------------------------------------------
# Leveling table — THE single canonical implementation
# ---------------------------------------------------------------------------
# Minimum total points for levels 1..11.  Past the table every level costs
# another LEVEL_STEP_AFTER_TABLE points.
LEVEL_THRESHOLDS: tuple[int, ...] = (
    0, 100, 300, 600, 1000, 1500, 2100, 2800, 3600, 4500, 5500,
)
LEVEL_STEP_AFTER_TABLE = 1000


def level_for_points(total_points: int) -> int:
    """Level reached with *total_points*.

    Monotonic step function: 0–99 → 1, 100–299 → 2, … 4500–6499 → 10,
    6500 → 11, 7500 → 12 and so on.
    """
    last = LEVEL_THRESHOLDS[-1]
    if total_points >= last:
        return 10 + (total_points - last) // LEVEL_STEP_AFTER_TABLE
    level = 1
    for idx, threshold in enumerate(LEVEL_THRESHOLDS[1:], start=2):
        if total_points < threshold:
            break
        level = idx
    return level


def points_for_next_level(level: int) -> int:
    """Total points required to reach ``level + 1``."""
    level = max(level, 1)
    if level < len(LEVEL_THRESHOLDS) - 1:
        return LEVEL_THRESHOLDS[level]
    return LEVEL_THRESHOLDS[-1] + (level - 9) * LEVEL_STEP_AFTER_TABLE


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
