"""
buddyfit.api.routes.badges — Badge catalog, progress & feeds
=============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Engine

from buddyfit.api.deps import get_cache, get_current_user, get_engine
from buddyfit.engine.cache import ConfigCache
from buddyfit.services import badge_service

router = APIRouter(prefix="/badges", tags=["badges"])


@router.get("")
def list_badges(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    return badge_service.list_badge_definitions(engine, cache)


@router.get("/mine")
def my_badges(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return badge_service.get_user_badges(engine, user_id)


@router.get("/progress")
def my_progress(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    """Progress (0-100) toward every badge in the catalog."""
    return badge_service.get_badge_progress(engine, user_id, cache)


@router.post("/check")
def check_badges(
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    new_badges = badge_service.check_and_award_badges(engine, user_id, cache)
    return {"new_badges": new_badges}


@router.get("/recent")
def recent_badges(
    limit: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return badge_service.get_recent_badges(engine, limit)


@router.get("/leaderboard")
def badge_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    return badge_service.get_badge_leaderboard(engine, limit)
