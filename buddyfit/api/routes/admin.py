"""
buddyfit.api.routes.admin — Admin maintenance endpoints (JWT‑protected)
========================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from buddyfit.api.deps import get_cache, get_current_admin, get_engine
from buddyfit.engine.cache import ConfigCache
from buddyfit.services import points_service, settings_service

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SettingUpdate(BaseModel):
    value: Any
    category: str | None = None
    description: str | None = None


# ---------------------------------------------------------------------------
# Points maintenance
# ---------------------------------------------------------------------------
_RESETS = {
    "weekly": points_service.reset_weekly_points,
    "monthly": points_service.reset_monthly_points,
}


@router.post("/points/reset/{period}")
def reset_points(
    period: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Zero weekly or monthly totals for every user."""
    reset = _RESETS.get(period)
    if reset is None:
        raise HTTPException(404, f"Unknown reset period: {period}")
    return {"period": period, "users_reset": reset(engine)}


@router.post("/stats/{user_id}/rebuild")
def rebuild_stats(
    user_id: int,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return points_service.rebuild_user_stats(engine, user_id)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
@router.get("/settings")
def get_all_settings(
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return {"settings": settings_service.get_all_settings(engine)}


@router.put("/settings/{key}")
def update_setting(
    key: str,
    body: SettingUpdate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    return settings_service.upsert_setting(
        engine,
        key=key,
        value=body.value,
        category=body.category,
        description=body.description,
        cache=cache,
    )
