"""
buddyfit.services.progress_service — Body Progress Snapshots
=============================================================

Weigh-ins are stored one per user per day; logging a second snapshot for
the same date replaces the first.  The latest snapshot weight is what the
weight-change badges compare against the user's starting weight, so every
snapshot write is followed by a badge check.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from buddyfit.database.models import ProgressSnapshot, User
from buddyfit.errors import NotFoundError
from buddyfit.services import badge_service

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from buddyfit.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


def _change(weight: float | None, baseline: float | None) -> tuple[float | None, float | None]:
    if weight is None or not baseline or baseline <= 0:
        return None, None
    delta = weight - baseline
    return round(delta, 2), round(delta / baseline * 100, 2)


def snapshot_dict(s: ProgressSnapshot, baseline: float | None = None) -> dict:
    change, change_pct = _change(s.weight, baseline)
    return {
        "id": s.id,
        "date": s.date.isoformat(),
        "weight": s.weight,
        "body_fat_percentage": s.body_fat_percentage,
        "weight_change": change,
        "weight_change_pct": change_pct,
    }


def create_snapshot(
    engine: Engine,
    user_id: int,
    snapshot_date: date,
    weight: float,
    body_fat_percentage: float | None = None,
    cache: ConfigCache | None = None,
) -> dict:
    """Record a weigh-in and award any weight badge it completes.

    Returns the stored snapshot plus ``new_badges``.

    Raises
    ------
    NotFoundError
        If the user does not exist.
    ValueError
        If *weight* is not positive or the body-fat figure is outside 0-100.
    """
    if weight <= 0:
        raise ValueError("Weight must be positive")
    if body_fat_percentage is not None and not 0 <= body_fat_percentage <= 100:
        raise ValueError("Body fat percentage must be between 0 and 100")

    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        snapshot = session.scalar(
            select(ProgressSnapshot).where(
                ProgressSnapshot.user_id == user_id,
                ProgressSnapshot.date == snapshot_date,
            )
        )
        if snapshot is None:
            snapshot = ProgressSnapshot(user_id=user_id, date=snapshot_date)
            session.add(snapshot)
        snapshot.weight = weight
        snapshot.body_fat_percentage = body_fat_percentage
        session.commit()
        out = snapshot_dict(snapshot, user.starting_weight)
    logger.info("Progress snapshot for user %d on %s: %.1f", user_id, snapshot_date, weight)

    try:
        out["new_badges"] = badge_service.check_and_award_badges(engine, user_id, cache)
    except SQLAlchemyError:
        logger.warning("Badge check failed after snapshot for user %d", user_id, exc_info=True)
        out["new_badges"] = []
    return out


def get_progress_history(
    engine: Engine,
    user_id: int,
    start: date | None = None,
    end: date | None = None,
    limit: int = 50,
) -> dict:
    """Snapshots newest first, each with its change against the starting weight."""
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        stmt = select(ProgressSnapshot).where(ProgressSnapshot.user_id == user_id)
        if start is not None:
            stmt = stmt.where(ProgressSnapshot.date >= start)
        if end is not None:
            stmt = stmt.where(ProgressSnapshot.date <= end)
        rows = session.scalars(stmt.order_by(ProgressSnapshot.date.desc()).limit(limit)).all()
        return {
            "baseline": {"weight": user.starting_weight},
            "snapshots": [snapshot_dict(s, user.starting_weight) for s in rows],
        }


def update_baseline(engine: Engine, user_id: int, starting_weight: float) -> dict:
    """Set the starting weight every weight badge and change figure is measured from."""
    if starting_weight <= 0:
        raise ValueError("Starting weight must be positive")
    with Session(engine) as session:
        user = session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        user.starting_weight = starting_weight
        session.commit()
    logger.info("Baseline weight for user %d set to %.1f", user_id, starting_weight)
    return {"starting_weight": starting_weight}
