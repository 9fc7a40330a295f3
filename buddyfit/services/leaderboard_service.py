"""
buddyfit.services.leaderboard_service — Points & Seasonal Leaderboards
=======================================================================

Each call ranks on exactly one metric column.  Rows come back ordered by
``points DESC, user_id ASC`` and are ranked positionally by
:func:`~buddyfit.engine.leaderboard.rank_entries`.  A viewer outside the
top N gets their true position from two indexed counts rather than a scan.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from buddyfit.database.models import (
    SeasonalCompetition,
    SeasonalCompetitionParticipant,
    User,
    UserStats,
)
from buddyfit.engine.leaderboard import (
    LeaderboardEntry,
    LeaderboardPeriod,
    LeaderboardView,
    RankedEntry,
    podium,
    rank_entries,
)
from buddyfit.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MAX_LIMIT = 100


def _clamp(limit: int) -> int:
    return max(1, min(limit, MAX_LIMIT))


def _viewer_position(session: Session, metric, id_col, viewer_id: int, base_filter=None):
    """Rank of *viewer_id* on *metric*, or None if they have no row."""
    conditions = [id_col == viewer_id]
    if base_filter is not None:
        conditions.append(base_filter)
    mine = session.scalar(select(metric).where(*conditions))
    if mine is None:
        return None, None

    ahead = select(func.count()).where(
        or_(metric > mine, and_(metric == mine, id_col < viewer_id))
    )
    if base_filter is not None:
        ahead = ahead.where(base_filter)
    return (session.scalar(ahead) or 0) + 1, int(mine)


def get_leaderboard(
    engine: Engine,
    period: str | LeaderboardPeriod = LeaderboardPeriod.ALL_TIME,
    limit: int = 10,
    viewer_id: int | None = None,
) -> LeaderboardView:
    """Top *limit* users by the period's points column.

    Raises
    ------
    ValueError
        If *period* is not ``all_time``, ``monthly`` or ``weekly``.
    """
    period = LeaderboardPeriod(period)
    metric = getattr(UserStats, period.column)
    limit = _clamp(limit)

    with Session(engine) as session:
        rows = session.execute(
            select(UserStats.user_id, metric, UserStats.level, User.full_name)
            .join(User, User.id == UserStats.user_id)
            .order_by(metric.desc(), UserStats.user_id)
            .limit(limit)
        ).all()
        ranked = rank_entries(
            [
                LeaderboardEntry(user_id=uid, points=points, display_name=name, level=level)
                for uid, points, level, name in rows
            ],
            limit,
        )
        view = LeaderboardView(period=period.value, entries=ranked, podium=podium(ranked))

        if viewer_id is not None:
            view.viewer_position = next((e for e in ranked if e.user_id == viewer_id), None)
            if view.viewer_position is None:
                rank, points = _viewer_position(session, metric, UserStats.user_id, viewer_id)
                if rank is not None:
                    view.viewer_position = RankedEntry(rank=rank, user_id=viewer_id, points=points)
        return view


def get_seasonal_leaderboard(
    engine: Engine,
    competition_id: int,
    limit: int = 10,
    viewer_id: int | None = None,
) -> LeaderboardView:
    """Top *limit* participants of a seasonal competition by points earned.

    Raises
    ------
    NotFoundError
        If the competition does not exist.
    """
    limit = _clamp(limit)
    metric = SeasonalCompetitionParticipant.points_earned
    in_competition = SeasonalCompetitionParticipant.competition_id == competition_id

    with Session(engine) as session:
        if session.get(SeasonalCompetition, competition_id) is None:
            raise NotFoundError(f"Seasonal competition {competition_id} not found")

        rows = session.execute(
            select(SeasonalCompetitionParticipant.user_id, metric, User.full_name)
            .join(User, User.id == SeasonalCompetitionParticipant.user_id)
            .where(in_competition)
            .order_by(metric.desc(), SeasonalCompetitionParticipant.user_id)
            .limit(limit)
        ).all()
        ranked = rank_entries(
            [LeaderboardEntry(user_id=uid, points=pts, display_name=name) for uid, pts, name in rows],
            limit,
        )
        view = LeaderboardView(period="seasonal", entries=ranked, podium=podium(ranked))

        if viewer_id is not None:
            view.viewer_position = next((e for e in ranked if e.user_id == viewer_id), None)
            if view.viewer_position is None:
                rank, points = _viewer_position(
                    session, metric, SeasonalCompetitionParticipant.user_id, viewer_id,
                    base_filter=in_competition,
                )
                if rank is not None:
                    view.viewer_position = RankedEntry(rank=rank, user_id=viewer_id, points=points)
        return view
