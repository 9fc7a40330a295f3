"""
buddyfit.api.routes.gamification — Points, leaderboards, comeback & challenges
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from buddyfit.api.deps import get_cache, get_current_user, get_engine
from buddyfit.engine.cache import ConfigCache
from buddyfit.engine.leaderboard import LeaderboardView
from buddyfit.errors import ConflictError, NotFoundError
from buddyfit.services import challenge_service, comeback_service, leaderboard_service, points_service

router = APIRouter(prefix="/gamification", tags=["gamification"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ComebackRequest(BaseModel):
    competition_type: str
    competition_id: int


class ProgressRequest(BaseModel):
    workout_id: int = Field(gt=0)


def _view_dict(view: LeaderboardView) -> dict:
    return {
        "period": view.period,
        "leaderboard": [e.as_dict() for e in view.entries],
        "podium": view.podium,
        "user_position": view.viewer_position.as_dict() if view.viewer_position else None,
    }


# ---------------------------------------------------------------------------
# Points & leaderboards
# ---------------------------------------------------------------------------
@router.get("/stats")
def my_stats(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return points_service.get_user_stats(engine, user_id)


@router.get("/leaderboard")
def leaderboard(
    period: str = Query("all_time"),
    limit: int | None = Query(None, ge=1, le=100),
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    if limit is None:
        limit = cache.get_int("leaderboard.default_limit", 10)
    try:
        view = leaderboard_service.get_leaderboard(engine, period, limit, viewer_id=user_id)
    except ValueError:
        raise HTTPException(422, f"Unknown leaderboard period: {period}")
    return _view_dict(view)


@router.post("/comeback")
def comeback(
    body: ComebackRequest,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    """Recalculate the caller's comeback bonus for one competition."""
    try:
        result = comeback_service.calculate_comeback(
            engine, user_id, body.competition_type, body.competition_id, cache=cache,
        )
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    except ValueError as exc:
        raise HTTPException(422, str(exc))
    return result.as_dict()


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------
@router.get("/challenges")
def active_challenges(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return challenge_service.get_active_challenges(engine, user_id)


@router.post("/challenges/{challenge_id}/join")
def join_challenge(
    challenge_id: int,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        return challenge_service.join_challenge(engine, user_id, challenge_id)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    except ConflictError as exc:
        raise HTTPException(409, str(exc))


@router.post("/challenges/{challenge_id}/progress")
def challenge_progress(
    challenge_id: int,
    body: ProgressRequest,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        return challenge_service.update_challenge_progress(
            engine, user_id, challenge_id, body.workout_id,
        )
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))


# ---------------------------------------------------------------------------
# Seasonal competitions
# ---------------------------------------------------------------------------
@router.get("/seasonal")
def current_seasonal(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    """The running seasonal competition, or ``{"competition": null}``."""
    competition = challenge_service.get_current_seasonal_competition(engine, user_id)
    return {"competition": competition}


@router.get("/seasonal/{competition_id}/leaderboard")
def seasonal_leaderboard(
    competition_id: int,
    limit: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        view = leaderboard_service.get_seasonal_leaderboard(
            engine, competition_id, limit, viewer_id=user_id,
        )
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    return _view_dict(view)


@router.post("/seasonal/{competition_id}/join")
def join_seasonal(
    competition_id: int,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        return challenge_service.join_seasonal_competition(engine, user_id, competition_id)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
    except ConflictError as exc:
        raise HTTPException(409, str(exc))
