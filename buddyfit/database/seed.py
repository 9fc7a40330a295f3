"""
buddyfit.database.seed — Default Settings & Badge Catalog Seeder
=================================================================

Baseline gameplay settings and the starter badge catalog, seeded on first
startup so the API is immediately usable.

Idempotent — only inserts keys / badge names that don't already exist.
Settings changed later by an admin are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from buddyfit.database.models import BadgeDefinition, Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "points.base_workout": (10, "points", "Points for completing any workout"),
    "points.buddy_bonus": (15, "points", "Bonus when the user has an active buddy"),
    "points.photo_bonus": (5, "points", "Bonus per attached photo"),
    "points.pr_bonus": (25, "points", "Bonus per new personal record"),
    "comeback.threshold_pct": (
        20.0, "comeback", "Percent behind the leader before a comeback bonus activates",
    ),
    "comeback.max_multiplier": (2.0, "comeback", "Upper bound for the comeback multiplier"),
    "comeback.duration_hours": (72, "comeback", "Hours a newly activated bonus stays live"),
    "comeback.cooldown_hours": (
        48, "comeback", "Hours after a bonus expires before it can activate again",
    ),
    "leaderboard.default_limit": (10, "display", "Default number of leaderboard rows"),
}


# ---------------------------------------------------------------------------
# Starter badge catalog — (name, description, category, icon, criteria, color, rarity)
# ---------------------------------------------------------------------------
DEFAULT_BADGES: list[tuple[str, str, str, str, dict, str, str]] = [
    ("First Steps", "Log your very first workout", "milestone", "footprints",
     {"type": "total_workouts", "count": 1}, "#4caf50", "common"),
    ("Ten Down", "Complete 10 workouts", "milestone", "dumbbell",
     {"type": "total_workouts", "count": 10}, "#4caf50", "common"),
    ("Half Century", "Complete 50 workouts", "milestone", "medal",
     {"type": "total_workouts", "count": 50}, "#2196f3", "rare"),
    ("Centurion", "Complete 100 workouts", "milestone", "crown",
     {"type": "total_workouts", "count": 100}, "#9c27b0", "epic"),
    ("Week Warrior", "Work out 7 days in a row", "streak", "flame",
     {"type": "streak", "days": 7}, "#ff9800", "uncommon"),
    ("Fortnight Fighter", "Work out 14 days in a row", "streak", "flame",
     {"type": "streak", "days": 14}, "#ff5722", "rare"),
    ("Iron Month", "Work out 30 days in a row", "streak", "fire",
     {"type": "streak", "days": 30}, "#f44336", "epic"),
    ("Unbreakable", "Work out 100 days in a row", "streak", "infinity",
     {"type": "streak", "days": 100}, "#ffc107", "legendary"),
    ("Lighter Load", "Lose 5% of your starting weight", "progress", "scale",
     {"type": "weight_loss", "percentage": 5}, "#00bcd4", "uncommon"),
    ("Transformation", "Lose 10% of your starting weight", "progress", "sparkles",
     {"type": "weight_loss", "percentage": 10}, "#3f51b5", "epic"),
    ("Bulking Up", "Gain 5% of your starting weight", "progress", "trending-up",
     {"type": "weight_gain", "percentage": 5}, "#795548", "uncommon"),
    ("Stronger Every Day", "Increase your strength across lifts", "strength", "zap",
     {"type": "strength_increase", "percentage": 10}, "#607d8b", "rare"),
]


def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist.

    Runs on every startup but only writes rows for keys that are missing,
    so it is safe to call repeatedly.
    """
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            if session.get(Setting, key) is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)


def seed_default_badges(engine: Engine) -> None:
    """Insert catalog badges whose name is not yet present.

    Existing definitions are never modified; the catalog is append-only.
    """
    with Session(engine) as session:
        existing = set(session.scalars(select(BadgeDefinition.name)).all())
        inserted = 0
        for name, desc, category, icon, criteria, color, rarity in DEFAULT_BADGES:
            if name in existing:
                continue
            session.add(BadgeDefinition(
                name=name,
                description=desc,
                category=category,
                icon=icon,
                criteria=criteria,
                color=color,
                rarity=rarity,
            ))
            inserted += 1
        session.commit()

    if inserted:
        logger.info("Seeded %d badge definitions.", inserted)
