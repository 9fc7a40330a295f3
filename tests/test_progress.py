"""
tests/test_progress.py — Weigh-ins & Weight Badges
===================================================
"""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.orm import Session

from buddyfit.database.models import ProgressSnapshot
from buddyfit.errors import NotFoundError
from buddyfit.services import badge_service, progress_service


def _progress(engine, cache, user_id) -> dict[str, float]:
    return {
        b["name"]: b["progress"]
        for b in badge_service.get_badge_progress(engine, user_id, cache)
        if b["criteria"]["type"] in ("weight_loss", "weight_gain")
    }


class TestSnapshots:
    def test_snapshot_moves_weight_badge_progress(self, db_engine, cache, user_factory):
        uid = user_factory("cutter", starting_weight=100.0)
        before = _progress(db_engine, cache, uid)
        assert before == {"Lighter Load": 0.0, "Transformation": 0.0, "Bulking Up": 0.0}

        out = progress_service.create_snapshot(db_engine, uid, date(2026, 3, 1), 97.0, cache=cache)
        assert out["weight_change"] == -3.0
        assert out["weight_change_pct"] == -3.0
        assert out["new_badges"] == []

        after = _progress(db_engine, cache, uid)
        assert after["Lighter Load"] == pytest.approx(60.0)
        assert after["Transformation"] == pytest.approx(30.0)
        assert after["Bulking Up"] == 0.0

    def test_snapshot_awards_weight_badges(self, db_engine, cache, user_factory):
        uid = user_factory("shredded", starting_weight=100.0)
        out = progress_service.create_snapshot(db_engine, uid, date(2026, 3, 1), 88.0, cache=cache)
        assert {b["name"] for b in out["new_badges"]} == {"Lighter Load", "Transformation"}

    def test_latest_date_wins(self, db_engine, cache, user_factory):
        uid = user_factory("yoyo", starting_weight=100.0)
        progress_service.create_snapshot(db_engine, uid, date(2026, 3, 8), 98.0, cache=cache)
        progress_service.create_snapshot(db_engine, uid, date(2026, 3, 1), 80.0, cache=cache)
        assert _progress(db_engine, cache, uid)["Lighter Load"] == pytest.approx(40.0)

    def test_same_day_replaces(self, db_engine, cache, user_factory):
        uid = user_factory("reweigh", starting_weight=80.0)
        day = date(2026, 3, 1)
        progress_service.create_snapshot(db_engine, uid, day, 79.0, cache=cache)
        out = progress_service.create_snapshot(db_engine, uid, day, 78.5, body_fat_percentage=18.0, cache=cache)
        with Session(db_engine) as session:
            rows = session.query(ProgressSnapshot).filter_by(user_id=uid).all()
        assert [(r.id, r.weight, r.body_fat_percentage) for r in rows] == [(out["id"], 78.5, 18.0)]

    def test_no_baseline_no_change(self, db_engine, cache, user_factory):
        uid = user_factory("fresh")
        out = progress_service.create_snapshot(db_engine, uid, date(2026, 3, 1), 70.0, cache=cache)
        assert out["weight_change"] is None
        assert out["weight_change_pct"] is None

    @pytest.mark.parametrize("weight, body_fat", [(0, None), (-5, None), (70, 101), (70, -1)])
    def test_rejects_bad_readings(self, db_engine, user_factory, weight, body_fat):
        uid = user_factory("typo")
        with pytest.raises(ValueError):
            progress_service.create_snapshot(db_engine, uid, date(2026, 3, 1), weight, body_fat)

    def test_unknown_user(self, db_engine):
        with pytest.raises(NotFoundError):
            progress_service.create_snapshot(db_engine, 9999, date(2026, 3, 1), 70.0)


class TestHistory:
    def test_newest_first_within_range(self, db_engine, cache, user_factory):
        uid = user_factory("tracker", starting_weight=90.0)
        for day, weight in [(1, 89.0), (8, 88.0), (15, 87.0), (22, 86.0)]:
            progress_service.create_snapshot(db_engine, uid, date(2026, 3, day), weight, cache=cache)

        history = progress_service.get_progress_history(
            db_engine, uid, start=date(2026, 3, 5), end=date(2026, 3, 20),
        )
        assert history["baseline"] == {"weight": 90.0}
        assert [s["date"] for s in history["snapshots"]] == ["2026-03-15", "2026-03-08"]
        assert history["snapshots"][0]["weight_change"] == -3.0

        latest = progress_service.get_progress_history(db_engine, uid, limit=1)
        assert [s["weight"] for s in latest["snapshots"]] == [86.0]

    def test_baseline_update_rescales_badges(self, db_engine, cache, user_factory):
        uid = user_factory("rebase", starting_weight=100.0)
        progress_service.create_snapshot(db_engine, uid, date(2026, 3, 1), 97.0, cache=cache)
        progress_service.update_baseline(db_engine, uid, 97.0)
        assert _progress(db_engine, cache, uid)["Lighter Load"] == 0.0

        history = progress_service.get_progress_history(db_engine, uid)
        assert history["snapshots"][0]["weight_change"] == 0.0

    def test_baseline_must_be_positive(self, db_engine, user_factory):
        uid = user_factory("zero")
        with pytest.raises(ValueError):
            progress_service.update_baseline(db_engine, uid, 0)
