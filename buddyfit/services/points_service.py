"""
buddyfit.services.points_service — Ledger, Stats & Personal Records
====================================================================

The points ledger is append-only and is the source of truth; ``user_stats``
holds derived totals updated with atomic ``SET col = col + :delta``
statements so concurrent awards never lose an increment.

Awards that carry a ``source_key`` are idempotent: the key has a partial
unique index, and a duplicate insert is caught inside a SAVEPOINT so the
caller's transaction survives.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from buddyfit.constants import level_for_points, points_for_next_level
from buddyfit.database.models import (
    ChallengeStatus,
    ComebackMechanic,
    ExerciseRecord,
    PointsLedgerEntry,
    SeasonalCompetition,
    SeasonalCompetitionParticipant,
    UserStats,
)
from buddyfit.engine.comeback import is_bonus_active
from buddyfit.engine.points import find_personal_records
from buddyfit.errors import InvariantViolation

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


def get_or_create_stats(session: Session, user_id: int) -> UserStats:
    """Fetch or insert the UserStats row for *user_id*."""
    stats = session.get(UserStats, user_id)
    if stats is None:
        stats = UserStats(user_id=user_id, total_points=0, weekly_points=0, monthly_points=0)
        session.add(stats)
        session.flush()
    return stats


# ---------------------------------------------------------------------------
# Personal records
# ---------------------------------------------------------------------------
def detect_personal_records(
    session: Session,
    user_id: int,
    exercises: Iterable[Mapping[str, Any]] | None,
    today: date | None = None,
) -> int:
    """Count new personal records in *exercises* and persist them.

    Exercise history is an auxiliary read: if the store fails the workout
    is scored with no PR bonus rather than failing the award.
    """
    exercises = list(exercises or [])
    if not exercises:
        return 0
    today = today or datetime.now(UTC).date()

    try:
        with session.begin_nested():
            names = {str(e.get("name") or "").strip() for e in exercises} - {""}
            existing = {
                r.exercise_name: r
                for r in session.scalars(
                    select(ExerciseRecord).where(
                        ExerciseRecord.user_id == user_id,
                        ExerciseRecord.exercise_name.in_(names),
                    )
                )
            }
            records = {name: row.personal_record or {} for name, row in existing.items()}
            found = find_personal_records(exercises, records)

            for name, top in found.items():
                row = existing.get(name)
                if row is None:
                    row = ExerciseRecord(user_id=user_id, exercise_name=name)
                    session.add(row)
                row.personal_record = top.as_record()
                row.last_performed = today
            session.flush()
    except SQLAlchemyError:
        logger.warning(
            "Exercise history unavailable for user %d — scoring without PR bonus",
            user_id, exc_info=True,
        )
        return 0

    if found:
        logger.info("User %d set %d personal record(s): %s", user_id, len(found), sorted(found))
    return len(found)


# ---------------------------------------------------------------------------
# Comeback multiplier lookup
# ---------------------------------------------------------------------------
def get_active_multiplier(session: Session, user_id: int, now: datetime | None = None) -> float:
    """Highest live comeback multiplier for *user_id*; 1.0 when none.

    Bonuses don't stack.  Rows found expired are switched off on the way.
    """
    now = now or datetime.now(UTC)
    best = 1.0
    try:
        with session.begin_nested():
            rows = session.scalars(
                select(ComebackMechanic).where(
                    ComebackMechanic.user_id == user_id,
                    ComebackMechanic.bonus_active.is_(True),
                )
            ).all()
            for row in rows:
                if is_bonus_active(row.bonus_active, row.bonus_expires_at, now):
                    best = max(best, row.multiplier)
                else:
                    row.bonus_active = False
            session.flush()
    except SQLAlchemyError:
        logger.warning("Comeback lookup failed for user %d — using 1.0", user_id, exc_info=True)
        return 1.0
    return best


# ---------------------------------------------------------------------------
# Awarding
# ---------------------------------------------------------------------------
def _credit_seasonal(session: Session, user_id: int, points: int, now: datetime) -> None:
    """Add *points* to the user's entry in any running seasonal competition."""
    today = now.date()
    running = select(SeasonalCompetition.id).where(
        SeasonalCompetition.status == ChallengeStatus.ACTIVE.value,
        SeasonalCompetition.start_date <= today,
        SeasonalCompetition.end_date >= today,
    )
    session.execute(
        update(SeasonalCompetitionParticipant)
        .where(
            SeasonalCompetitionParticipant.user_id == user_id,
            SeasonalCompetitionParticipant.competition_id.in_(running.scalar_subquery()),
        )
        .values(
            points_earned=SeasonalCompetitionParticipant.points_earned + points,
            last_activity=now,
        )
        .execution_options(synchronize_session=False)
    )


def award_points(
    session: Session,
    user_id: int,
    points: int,
    reason: str,
    metadata: dict | None = None,
    *,
    source_key: str | None = None,
    consistency_multiplier: float | None = None,
    now: datetime | None = None,
) -> bool:
    """Append a ledger entry and fold it into the user's aggregate stats.

    Returns ``False`` (and changes nothing) when an entry with the same
    *source_key* already exists.  Does not commit; the caller owns the
    transaction.

    Raises
    ------
    InvariantViolation
        If *points* is negative.
    """
    if points < 0:
        raise InvariantViolation(f"negative points award: {points}")
    now = now or datetime.now(UTC)

    entry = PointsLedgerEntry(
        user_id=user_id,
        points=points,
        reason=reason,
        source_key=source_key,
        metadata_=metadata or {},
        created_at=now,
    )
    if source_key is not None:
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(entry)
                session.flush()
        except IntegrityError:
            logger.info("Duplicate award %s for user %d — skipped", source_key, user_id)
            return False
    else:
        session.add(entry)
        session.flush()

    get_or_create_stats(session, user_id)
    values: dict[str, Any] = {
        "total_points": UserStats.total_points + points,
        "weekly_points": UserStats.weekly_points + points,
        "monthly_points": UserStats.monthly_points + points,
        "last_workout_points": now,
    }
    if consistency_multiplier is not None:
        values["consistency_multiplier"] = consistency_multiplier
    session.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    new_total = session.scalar(
        select(UserStats.total_points).where(UserStats.user_id == user_id)
    ) or 0
    session.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id)
        .values(level=level_for_points(new_total))
        .execution_options(synchronize_session=False)
    )
    stats = session.get(UserStats, user_id)
    if stats is not None:
        session.refresh(stats)

    if points:
        _credit_seasonal(session, user_id, points, now)
    logger.info("Awarded %d points to user %d (%s)", points, user_id, reason)
    return True


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_user_stats(engine: Engine, user_id: int) -> dict:
    """Aggregate stats with global rank and level progress.

    Users who have never scored get zeroed defaults at level 1.
    """
    with Session(engine) as session:
        stats = session.get(UserStats, user_id)
        total = stats.total_points if stats else 0
        level = stats.level if stats else 1

        rank = None
        if stats is not None:
            ahead = session.scalar(
                select(func.count()).select_from(UserStats).where(
                    or_(
                        UserStats.total_points > total,
                        and_(UserStats.total_points == total, UserStats.user_id < user_id),
                    )
                )
            ) or 0
            rank = ahead + 1

        next_level = points_for_next_level(level)
        return {
            "user_id": user_id,
            "total_points": total,
            "weekly_points": stats.weekly_points if stats else 0,
            "monthly_points": stats.monthly_points if stats else 0,
            "level": level,
            "consistency_multiplier": stats.consistency_multiplier if stats else 1.0,
            "last_workout_points": (
                stats.last_workout_points.isoformat()
                if stats and stats.last_workout_points else None
            ),
            "rank": rank,
            "next_level_points": next_level,
            "points_to_next_level": max(next_level - total, 0),
        }


# ---------------------------------------------------------------------------
# Periodic resets & rebuild
# ---------------------------------------------------------------------------
def reset_weekly_points(engine: Engine) -> int:
    """Zero every user's weekly total.  Returns the number of rows touched."""
    with Session(engine) as session:
        result = session.execute(update(UserStats).values(weekly_points=0))
        session.commit()
    logger.info("Weekly points reset for %d users", result.rowcount)
    return result.rowcount


def reset_monthly_points(engine: Engine) -> int:
    """Zero every user's monthly total.  Returns the number of rows touched."""
    with Session(engine) as session:
        result = session.execute(update(UserStats).values(monthly_points=0))
        session.commit()
    logger.info("Monthly points reset for %d users", result.rowcount)
    return result.rowcount


def _ledger_sum(session: Session, user_id: int, since: datetime | None = None) -> int:
    stmt = select(func.coalesce(func.sum(PointsLedgerEntry.points), 0)).where(
        PointsLedgerEntry.user_id == user_id
    )
    if since is not None:
        stmt = stmt.where(PointsLedgerEntry.created_at >= since)
    return int(session.scalar(stmt) or 0)


def rebuild_user_stats(engine: Engine, user_id: int, now: datetime | None = None) -> dict:
    """Recompute a user's totals from the ledger and overwrite ``user_stats``.

    Weekly totals cover the calendar week starting Sunday, monthly totals
    the current calendar month.
    """
    now = now or datetime.now(UTC)
    today = now.date()
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)

    with Session(engine) as session:
        total = _ledger_sum(session, user_id)
        weekly = _ledger_sum(session, user_id, datetime.combine(week_start, time.min, tzinfo=UTC))
        monthly = _ledger_sum(
            session, user_id, datetime.combine(today.replace(day=1), time.min, tzinfo=UTC)
        )
        stats = get_or_create_stats(session, user_id)
        stats.total_points = total
        stats.weekly_points = weekly
        stats.monthly_points = monthly
        stats.level = level_for_points(total)
        session.commit()
        logger.info("Rebuilt stats for user %d from ledger: total=%d", user_id, total)
        return {
            "user_id": user_id,
            "total_points": total,
            "weekly_points": weekly,
            "monthly_points": monthly,
            "level": level_for_points(total),
        }
