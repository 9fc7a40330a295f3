"""
tests/test_points_service.py — Ledger & Stats Integration Tests
================================================================
Covers award idempotency, level refresh, seasonal credit, periodic resets
and rebuilding aggregates from the ledger.

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from buddyfit.database.models import (
    ChallengeStatus,
    PointsLedgerEntry,
    SeasonalCompetition,
    SeasonalCompetitionParticipant,
    UserStats,
)
from buddyfit.errors import InvariantViolation
from buddyfit.services import points_service

NOW = datetime(2026, 3, 18, 12, 0, tzinfo=UTC)   # a Wednesday


@pytest.fixture
def engine(db_engine):
    """Re-use the shared conftest db_engine (SQLite, StaticPool)."""
    return db_engine


def _award(engine, user_id, points, *, source_key=None, now=NOW) -> bool:
    with Session(engine) as session:
        awarded = points_service.award_points(
            session, user_id, points, "test award", source_key=source_key, now=now,
        )
        session.commit()
        return awarded


class TestAwardPoints:
    def test_award_updates_all_totals_and_level(self, engine, user_factory):
        uid = user_factory("earner")
        assert _award(engine, uid, 120)
        with Session(engine) as session:
            stats = session.get(UserStats, uid)
            assert (stats.total_points, stats.weekly_points, stats.monthly_points) == (120, 120, 120)
            assert stats.level == 2

    def test_duplicate_source_key_is_skipped(self, engine, user_factory):
        uid = user_factory("dupe")
        assert _award(engine, uid, 10, source_key="workout:1:completion")
        assert not _award(engine, uid, 10, source_key="workout:1:completion")
        with Session(engine) as session:
            assert session.get(UserStats, uid).total_points == 10
            assert session.query(PointsLedgerEntry).filter_by(user_id=uid).count() == 1

    def test_awards_without_key_always_append(self, engine, user_factory):
        uid = user_factory("repeat")
        _award(engine, uid, 5)
        _award(engine, uid, 5)
        with Session(engine) as session:
            assert session.query(PointsLedgerEntry).filter_by(user_id=uid).count() == 2

    def test_negative_award_raises(self, engine, user_factory):
        uid = user_factory("negative")
        with pytest.raises(InvariantViolation):
            _award(engine, uid, -1)

    def test_zero_award_is_recorded(self, engine, user_factory):
        uid = user_factory("zero")
        assert _award(engine, uid, 0)
        assert points_service.get_user_stats(engine, uid)["total_points"] == 0

    def test_stats_equal_ledger_sum(self, engine, user_factory):
        uid = user_factory("summer")
        for pts in (10, 25, 63, 95):
            _award(engine, uid, pts)
        rebuilt = points_service.rebuild_user_stats(engine, uid, now=NOW)
        assert rebuilt["total_points"] == 193
        assert points_service.get_user_stats(engine, uid)["total_points"] == 193

    def test_running_seasonal_competition_is_credited(self, engine, user_factory):
        uid = user_factory("seasoned")
        with Session(engine) as session:
            comp = SeasonalCompetition(
                name="March", month=3, year=2026,
                start_date=date(2026, 3, 1), end_date=date(2026, 3, 31),
                status=ChallengeStatus.ACTIVE.value,
            )
            session.add(comp)
            session.flush()
            session.add(SeasonalCompetitionParticipant(competition_id=comp.id, user_id=uid))
            session.commit()
        _award(engine, uid, 40)
        _award(engine, uid, 2, now=datetime(2026, 4, 2, tzinfo=UTC))
        with Session(engine) as session:
            entry = session.query(SeasonalCompetitionParticipant).filter_by(user_id=uid).one()
            assert entry.points_earned == 40


class TestUserStats:
    def test_defaults_for_new_user(self, engine, user_factory):
        uid = user_factory("blank")
        stats = points_service.get_user_stats(engine, uid)
        assert stats["total_points"] == 0
        assert stats["level"] == 1
        assert stats["rank"] is None
        assert stats["next_level_points"] == 100
        assert stats["points_to_next_level"] == 100

    def test_rank_and_next_level(self, engine, user_factory):
        top, mid = user_factory("top"), user_factory("mid")
        _award(engine, top, 700)
        _award(engine, mid, 250)
        stats = points_service.get_user_stats(engine, mid)
        assert stats["rank"] == 2
        assert stats["level"] == 2
        assert stats["points_to_next_level"] == 50


class TestResetsAndRebuild:
    def test_weekly_and_monthly_resets(self, engine, user_factory):
        a, b = user_factory("a"), user_factory("b")
        _award(engine, a, 30)
        _award(engine, b, 20)
        assert points_service.reset_weekly_points(engine) == 2
        with Session(engine) as session:
            stats = session.get(UserStats, a)
            assert stats.weekly_points == 0
            assert stats.monthly_points == 30
            assert stats.total_points == 30
        points_service.reset_monthly_points(engine)
        with Session(engine) as session:
            assert session.get(UserStats, a).monthly_points == 0

    def test_rebuild_splits_windows(self, engine, user_factory):
        uid = user_factory("historian")
        _award(engine, uid, 100, now=datetime(2026, 2, 20, tzinfo=UTC))   # last month
        _award(engine, uid, 50, now=datetime(2026, 3, 10, tzinfo=UTC))    # this month
        _award(engine, uid, 7, now=NOW - timedelta(days=1))               # this week
        with Session(engine) as session:
            session.get(UserStats, uid).total_points = 9999
            session.commit()

        rebuilt = points_service.rebuild_user_stats(engine, uid, now=NOW)
        assert rebuilt == {
            "user_id": uid,
            "total_points": 157,
            "weekly_points": 7,
            "monthly_points": 57,
            "level": 2,
        }
