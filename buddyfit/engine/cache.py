"""
buddyfit.engine.cache — In-Memory Config Cache
===============================================

Settings and the badge catalog are read on almost every request but change
rarely, so they are cached in memory.  The API process owns the cache;
admin writes through :mod:`buddyfit.services.settings_service` reload the
affected partition in place.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from buddyfit.database.models import BadgeDefinition, Setting

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class ConfigCache:
    """Thread-safe in-memory cache for gameplay settings and badge definitions.

    Usage:
        cache = ConfigCache(engine)
        cache.load_all()

        base = cache.get_int("points.base_workout", default=10)
        badges = cache.get_badge_definitions()
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()

        # key → parsed JSON value
        self._settings: dict[str, Any] = {}
        # ordered by id; detached from any session
        self._badges: list[BadgeDefinition] = []

    # -------------------------------------------------------------------
    # Cache loading
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load every partition from the DB. Call on startup."""
        self._load_settings()
        self._load_badges()
        logger.info(
            "ConfigCache loaded: %d settings, %d badge definitions",
            len(self._settings),
            len(self._badges),
        )

    def _load_settings(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(select(Setting)).all()
            parsed: dict[str, Any] = {}
            for row in rows:
                try:
                    parsed[row.key] = json.loads(row.value_json)
                except (json.JSONDecodeError, TypeError):
                    parsed[row.key] = row.value_json

        with self._lock:
            self._settings = parsed

    def _load_badges(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(select(BadgeDefinition).order_by(BadgeDefinition.id)).all()
            for row in rows:
                session.expunge(row)
        with self._lock:
            self._badges = list(rows)

    def reload(self, table_name: str) -> None:
        """Reload the partition backing *table_name*."""
        table_name = table_name.strip().lower()
        logger.info("Config cache invalidation for table: %s", table_name)
        if table_name == "settings":
            self._load_settings()
        elif table_name == "badge_definitions":
            self._load_badges()
        else:
            logger.warning("Unknown table for cache reload: %s — ignoring", table_name)

    # -------------------------------------------------------------------
    # Cache reads (thread-safe)
    # -------------------------------------------------------------------
    def get_badge_definitions(self) -> list[BadgeDefinition]:
        with self._lock:
            return list(self._badges)

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the parsed JSON value for *key*, or *default*."""
        with self._lock:
            return self._settings.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return float(val)
        except (TypeError, ValueError):
            return default
