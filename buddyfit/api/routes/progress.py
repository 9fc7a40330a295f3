"""
buddyfit.api.routes.progress — Weigh-ins and baseline weight
=============================================================
"""

from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import Engine

from buddyfit.api.deps import get_cache, get_current_user, get_engine
from buddyfit.engine.cache import ConfigCache
from buddyfit.errors import NotFoundError
from buddyfit.services import progress_service

router = APIRouter(prefix="/progress", tags=["progress"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SnapshotIn(BaseModel):
    date: dt.date
    weight: float = Field(gt=0, le=999)
    body_fat_percentage: float | None = Field(default=None, ge=0, le=100)


class BaselineIn(BaseModel):
    starting_weight: float = Field(gt=0, le=999)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/snapshots", status_code=201)
def create_snapshot(
    body: SnapshotIn,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    """Log a weigh-in; the response lists any weight badge it earned."""
    try:
        return progress_service.create_snapshot(
            engine, user_id, body.date, body.weight, body.body_fat_percentage, cache,
        )
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))


@router.get("/snapshots")
def progress_history(
    start: dt.date | None = None,
    end: dt.date | None = None,
    limit: int = Query(50, ge=1, le=100),
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        return progress_service.get_progress_history(engine, user_id, start, end, limit)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))


@router.put("/baseline")
def update_baseline(
    body: BaselineIn,
    user_id: int = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
):
    try:
        return progress_service.update_baseline(engine, user_id, body.starting_weight)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc))
