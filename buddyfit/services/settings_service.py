"""
buddyfit.services.settings_service — Settings CRUD
===================================================

Typed read/write access to the ``settings`` table.  Writes reload the
``settings`` partition of the :class:`~buddyfit.engine.cache.ConfigCache`
they are given so tuning changes apply to the next award.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from buddyfit.database.models import Setting

if TYPE_CHECKING:
    from buddyfit.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


def _setting_dict(row: Setting) -> dict:
    try:
        value = json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        value = row.value_json
    return {
        "key": row.key,
        "value": value,
        "category": row.category,
        "description": row.description,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_setting(engine, key: str) -> dict | None:
    """Fetch a single setting by key, returned as a plain dict."""
    with Session(engine) as session:
        row = session.get(Setting, key)
        return _setting_dict(row) if row else None


def get_all_settings(engine) -> list[dict]:
    """Every setting, ordered by category then key."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Setting).order_by(Setting.category, Setting.key)
        ).all()
        return [_setting_dict(r) for r in rows]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def upsert_setting(
    engine,
    *,
    key: str,
    value: Any,
    category: str | None = None,
    description: str | None = None,
    cache: ConfigCache | None = None,
) -> dict:
    """Insert or update a single setting and refresh *cache*."""
    value_json = json.dumps(value)
    with Session(engine) as session:
        row = session.get(Setting, key)
        if row is None:
            row = Setting(
                key=key,
                value_json=value_json,
                category=category or "general",
                description=description,
            )
            session.add(row)
        else:
            row.value_json = value_json
            if category:
                row.category = category
            if description is not None:
                row.description = description
        session.commit()
        result = _setting_dict(row)

    logger.info("Setting %s updated", key)
    if cache is not None:
        cache.reload("settings")
    return result
