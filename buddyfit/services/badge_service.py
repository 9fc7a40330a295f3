"""
buddyfit.services.badge_service — Badge Catalog, Progress & Awards
===================================================================

Collects the live statistics badges are scored against, evaluates every
catalog entry through :mod:`buddyfit.engine.badges`, and awards badges
idempotently.  ``(user_id, badge_id)`` is the primary key of
``user_badges``, so a second award is a silent no-op and ``earned_at``
never changes.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buddyfit.constants import RARITY_EMOJI
from buddyfit.database.models import (
    BadgeDefinition,
    ProgressSnapshot,
    Streak,
    User,
    UserBadge,
    Workout,
)
from buddyfit.engine.badges import MAX_PROGRESS, BadgeStats, evaluate_badge
from buddyfit.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from buddyfit.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


def _definition_dict(badge: BadgeDefinition) -> dict:
    return {
        "id": badge.id,
        "name": badge.name,
        "description": badge.description,
        "category": badge.category,
        "icon": badge.icon,
        "criteria": badge.criteria,
        "color": badge.color,
        "rarity": badge.rarity,
        "rarity_emoji": RARITY_EMOJI.get(badge.rarity, ""),
    }


# ---------------------------------------------------------------------------
# Catalog reads
# ---------------------------------------------------------------------------
def list_badge_definitions(engine: Engine, cache: ConfigCache | None = None) -> list[dict]:
    """Every badge in the catalog, ordered by category then id."""
    if cache is not None:
        badges = cache.get_badge_definitions()
    else:
        with Session(engine) as session:
            badges = list(session.scalars(select(BadgeDefinition).order_by(BadgeDefinition.id)))
            for b in badges:
                session.expunge(b)
    return [_definition_dict(b) for b in sorted(badges, key=lambda b: (b.category, b.id))]


def get_user_badges(engine: Engine, user_id: int) -> list[dict]:
    """Badges *user_id* has earned, newest first."""
    with Session(engine) as session:
        rows = session.execute(
            select(UserBadge, BadgeDefinition)
            .join(BadgeDefinition, UserBadge.badge_id == BadgeDefinition.id)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc(), UserBadge.badge_id)
        ).all()
        return [
            {
                **_definition_dict(badge),
                "earned_at": ub.earned_at.isoformat() if ub.earned_at else None,
                "progress": MAX_PROGRESS,
            }
            for ub, badge in rows
        ]


# ---------------------------------------------------------------------------
# Stats & progress
# ---------------------------------------------------------------------------
def collect_badge_stats(session: Session, user_id: int) -> BadgeStats:
    """Snapshot the statistics badge criteria are scored against.

    Current weight is the latest progress snapshot, or the starting weight
    when none has been logged.
    """
    streak = session.get(Streak, user_id)
    user = session.get(User, user_id)
    total_workouts = session.scalar(
        select(func.count(Workout.id)).where(Workout.user_id == user_id)
    ) or 0
    total_photos = session.scalar(
        select(func.coalesce(func.sum(Workout.photo_count), 0)).where(Workout.user_id == user_id)
    ) or 0
    latest_weight = session.scalar(
        select(ProgressSnapshot.weight)
        .where(ProgressSnapshot.user_id == user_id, ProgressSnapshot.weight.is_not(None))
        .order_by(ProgressSnapshot.date.desc())
        .limit(1)
    )
    starting = user.starting_weight if user else None
    return BadgeStats(
        current_streak=streak.current_streak if streak else 0,
        longest_streak=streak.longest_streak if streak else 0,
        total_workouts=int(total_workouts),
        total_photos=int(total_photos),
        starting_weight=starting,
        current_weight=latest_weight if latest_weight is not None else starting,
    )


def _definitions(session: Session, cache: ConfigCache | None) -> list[BadgeDefinition]:
    if cache is not None:
        return cache.get_badge_definitions()
    return list(session.scalars(select(BadgeDefinition).order_by(BadgeDefinition.id)))


def get_badge_progress(engine: Engine, user_id: int, cache: ConfigCache | None = None) -> list[dict]:
    """Progress toward every badge in the catalog.

    Earned badges report 100 and carry their ``earned_at``.
    """
    with Session(engine) as session:
        stats = collect_badge_stats(session, user_id)
        earned = dict(session.execute(
            select(UserBadge.badge_id, UserBadge.earned_at).where(UserBadge.user_id == user_id)
        ).all())

        out: list[dict] = []
        for badge in _definitions(session, cache):
            result = evaluate_badge(badge.criteria, stats, earned=badge.id in earned)
            earned_at = earned.get(badge.id)
            out.append({
                **_definition_dict(badge),
                "progress": result.progress,
                "earned": result.earned,
                "earned_at": earned_at.isoformat() if earned_at else None,
            })
        return out


# ---------------------------------------------------------------------------
# Awarding
# ---------------------------------------------------------------------------
def award_badge(
    session: Session,
    user_id: int,
    badge_id: int,
    metadata: dict | None = None,
    now: datetime | None = None,
) -> bool:
    """Award a badge once.

    Returns ``True`` if newly awarded, ``False`` if the user already had it.
    Does not commit.

    Raises
    ------
    NotFoundError
        If *badge_id* is not in the catalog.
    """
    if session.get(BadgeDefinition, badge_id) is None:
        raise NotFoundError(f"Badge {badge_id} not found")
    if session.get(UserBadge, (user_id, badge_id)) is not None:
        return False
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(UserBadge(
                user_id=user_id,
                badge_id=badge_id,
                earned_at=now or datetime.now(UTC),
                progress=MAX_PROGRESS,
                metadata_=metadata or {},
            ))
            session.flush()
    except IntegrityError:
        # Concurrent award won the race
        return False
    logger.info("Badge %d awarded to user %d", badge_id, user_id)
    return True


def check_and_award_badges(
    engine: Engine,
    user_id: int,
    cache: ConfigCache | None = None,
) -> list[dict]:
    """Award every badge the user has reached 100% on.  Returns the new ones."""
    newly: list[dict] = []
    with Session(engine) as session:
        stats = collect_badge_stats(session, user_id)
        earned = set(session.scalars(
            select(UserBadge.badge_id).where(UserBadge.user_id == user_id)
        ))
        for badge in _definitions(session, cache):
            if badge.id in earned:
                continue
            result = evaluate_badge(badge.criteria, stats, earned=False)
            if result.progress < MAX_PROGRESS:
                continue
            if award_badge(session, user_id, badge.id, metadata={"criteria": badge.criteria}):
                newly.append(_definition_dict(badge))
        session.commit()
    return newly


# ---------------------------------------------------------------------------
# Feeds & rankings
# ---------------------------------------------------------------------------
def get_recent_badges(engine: Engine, limit: int = 10) -> list[dict]:
    """Most recently earned badges across all users."""
    with Session(engine) as session:
        rows = session.execute(
            select(UserBadge, BadgeDefinition, User)
            .join(BadgeDefinition, UserBadge.badge_id == BadgeDefinition.id)
            .join(User, UserBadge.user_id == User.id)
            .order_by(UserBadge.earned_at.desc())
            .limit(limit)
        ).all()
        return [
            {
                "user_id": user.id,
                "username": user.username,
                "full_name": user.full_name,
                "badge": _definition_dict(badge),
                "earned_at": ub.earned_at.isoformat() if ub.earned_at else None,
            }
            for ub, badge, user in rows
        ]


def get_badge_leaderboard(engine: Engine, limit: int = 10) -> list[dict]:
    """Users ranked by number of badges earned (ties → lower user id)."""
    with Session(engine) as session:
        count_col = func.count(UserBadge.badge_id).label("badge_count")
        rows = session.execute(
            select(User.id, User.username, User.full_name, count_col)
            .join(UserBadge, UserBadge.user_id == User.id)
            .group_by(User.id, User.username, User.full_name)
            .order_by(count_col.desc(), User.id)
            .limit(limit)
        ).all()
        return [
            {
                "rank": i + 1,
                "user_id": uid,
                "username": username,
                "full_name": full_name,
                "badge_count": count,
            }
            for i, (uid, username, full_name, count) in enumerate(rows)
        ]
