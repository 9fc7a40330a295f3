"""
tests/test_cache.py — ConfigCache & Settings Tests
===================================================

Typed setting accessors, partition reloads, and write-through from the
settings service.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.orm import Session

from buddyfit.database.models import Setting
from buddyfit.engine.cache import ConfigCache
from buddyfit.services import settings_service


class TestTypedAccessors:
    @pytest.fixture
    def bare_cache(self):
        """A ConfigCache with hand-filled settings (no DB needed)."""
        c = ConfigCache(MagicMock())
        c._settings = {"n": 12, "f": "1.5", "bad": "lots", "nothing": None}
        return c

    def test_get_int(self, bare_cache):
        assert bare_cache.get_int("n") == 12
        assert bare_cache.get_int("missing", 7) == 7

    def test_get_float_parses_strings(self, bare_cache):
        assert bare_cache.get_float("f") == 1.5

    @pytest.mark.parametrize("key", ["bad", "nothing"])
    def test_unusable_values_fall_back(self, bare_cache, key):
        assert bare_cache.get_int(key, 3) == 3
        assert bare_cache.get_float(key, 2.5) == 2.5

    def test_get_setting_default(self, bare_cache):
        assert bare_cache.get_setting("absent", "x") == "x"


class TestReload:
    def test_seeded_values_loaded(self, cache):
        assert cache.get_int("points.base_workout") == 10
        assert cache.get_float("comeback.max_multiplier") == 2.0
        names = {b.name for b in cache.get_badge_definitions()}
        assert {"First Steps", "Week Warrior"} <= names

    def test_reload_settings_picks_up_db_change(self, db_engine, cache):
        with Session(db_engine) as session:
            session.get(Setting, "points.base_workout").value_json = "20"
            session.commit()
        assert cache.get_int("points.base_workout") == 10
        cache.reload("settings")
        assert cache.get_int("points.base_workout") == 20

    def test_non_json_value_kept_raw(self, db_engine, cache):
        with Session(db_engine) as session:
            session.add(Setting(key="motd", value_json="not json", category="display"))
            session.commit()
        cache.reload("SETTINGS ")
        assert cache.get_setting("motd") == "not json"

    def test_unknown_table_ignored(self, cache):
        with (
            patch.object(cache, "_load_settings") as mock_settings,
            patch.object(cache, "_load_badges") as mock_badges,
        ):
            cache.reload("workouts")
            mock_settings.assert_not_called()
            mock_badges.assert_not_called()

    def test_badge_partition_routes(self, cache):
        with patch.object(cache, "_load_badges") as mock_badges:
            cache.reload("badge_definitions")
            mock_badges.assert_called_once()


class TestSettingsService:
    def test_upsert_updates_and_reloads_cache(self, db_engine, cache):
        row = settings_service.upsert_setting(
            db_engine, key="points.pr_bonus", value=40, cache=cache,
        )
        assert row["value"] == 40
        assert row["category"] == "points"
        assert cache.get_int("points.pr_bonus") == 40

    def test_upsert_creates_new_key(self, db_engine):
        row = settings_service.upsert_setting(
            db_engine, key="display.theme", value={"dark": True}, description="UI theme",
        )
        assert row == {
            "key": "display.theme",
            "value": {"dark": True},
            "category": "general",
            "description": "UI theme",
        }
        assert settings_service.get_setting(db_engine, "display.theme")["value"] == {"dark": True}

    def test_get_missing_setting(self, db_engine):
        assert settings_service.get_setting(db_engine, "nope") is None

    def test_all_settings_ordered(self, db_engine, cache):
        keys = [(s["category"], s["key"]) for s in settings_service.get_all_settings(db_engine)]
        assert keys == sorted(keys)
        assert len(keys) >= 8
