"""
tests/test_workout_service.py — Workout Lifecycle Integration
==============================================================

Exercises the full create → streak → records → points unit of work
against an in-memory SQLite database.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from buddyfit.database.models import (
    ComebackMechanic,
    ExerciseRecord,
    Pairing,
    PairingStatus,
    PointsLedgerEntry,
    Streak,
    UserBadge,
    UserStats,
)
from buddyfit.errors import NotFoundError
from buddyfit.services import workout_service

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)

BENCH_90 = [{"name": "Bench Press", "sets": [{"reps": 5, "weight": 90}]}]
BENCH_100 = [{"name": "Bench Press", "sets": [{"reps": 5, "weight": 100}, {"reps": 8, "weight": 60}]}]


def _log(engine, cache, user_id, days_ago=0, **kw):
    at = NOW - timedelta(days=days_ago)
    return workout_service.create_workout(engine, cache, user_id, completed_at=at, now=NOW, **kw)


def _pair(engine, a, b) -> int:
    with Session(engine) as session:
        pairing = Pairing(user1_id=a, user2_id=b, status=PairingStatus.ACTIVE.value, started_at=NOW)
        session.add(pairing)
        session.commit()
        return pairing.id


class TestCreateWorkout:
    def test_first_solo_workout(self, db_engine, cache, user_factory):
        uid = user_factory("solo")
        result = _log(db_engine, cache, uid)

        assert result.points.total_points == 10
        assert result.streak.current == 1
        assert result.workout["pairing_id"] is None
        assert {b["name"] for b in result.new_badges} == {"First Steps"}

        with Session(db_engine) as session:
            stats = session.get(UserStats, uid)
            assert stats.total_points == stats.weekly_points == stats.monthly_points == 10
            entry = session.query(PointsLedgerEntry).filter_by(user_id=uid).one()
            assert entry.reason == "Workout completed"
            assert entry.source_key == f"workout:{result.workout['id']}:completion"
            assert entry.metadata_["breakdown"] == {"base": 10}

    def test_full_scoring_on_fourteen_day_streak(self, db_engine, cache, user_factory):
        uid = user_factory("grinder")
        buddy = user_factory("buddy")
        _pair(db_engine, uid, buddy)

        _log(db_engine, cache, uid, days_ago=13, exercises=BENCH_90)
        for days_ago in range(12, 0, -1):
            _log(db_engine, cache, uid, days_ago=days_ago)

        result = _log(db_engine, cache, uid, exercises=BENCH_100, photo_count=1)
        assert result.streak.current == 14
        assert result.points.consistency_bonus == 8
        assert result.points.progress_bonus == 25
        assert result.points.total_points == 63
        assert result.workout["total_volume"] == 980.0

        with Session(db_engine) as session:
            record = session.query(ExerciseRecord).filter_by(user_id=uid).one()
            assert record.personal_record == {"weight": 100.0, "reps": 5, "unit": "kg"}

    def test_active_comeback_multiplies_award(self, db_engine, cache, user_factory):
        uid = user_factory("underdog")
        with Session(db_engine) as session:
            session.add(ComebackMechanic(
                user_id=uid, competition_type="seasonal", competition_id=1,
                multiplier=1.5, bonus_active=True, bonus_expires_at=NOW + timedelta(hours=1),
            ))
            session.commit()
        result = _log(db_engine, cache, uid)
        assert result.points.total_points == 15
        assert result.points.breakdown["comeback_bonus"] == 5

    def test_same_day_workouts_keep_streak(self, db_engine, cache, user_factory):
        uid = user_factory("double")
        _log(db_engine, cache, uid)
        result = _log(db_engine, cache, uid)
        assert result.streak.current == 1

    def test_backdated_workout_rescans_streak(self, db_engine, cache, user_factory):
        uid = user_factory("forgetful")
        _log(db_engine, cache, uid, days_ago=0)
        _log(db_engine, cache, uid, days_ago=2)
        result = _log(db_engine, cache, uid, days_ago=1)
        assert result.streak.current == 3
        assert result.streak.longest == 3

    def test_pairing_lookup_failure_scores_solo(self, db_engine, cache, user_factory):
        uid = user_factory("flaky")
        buddy = user_factory("pal")
        _pair(db_engine, uid, buddy)
        with patch.object(
            workout_service, "find_active_pairing",
            return_value=None,
        ):
            result = _log(db_engine, cache, uid)
        assert result.points.buddy_bonus == 0

    def test_pairing_query_error_degrades(self, db_engine, cache, user_factory):
        uid = user_factory("broken")
        with Session(db_engine) as session:
            with patch.object(session, "scalar", side_effect=OperationalError("x", {}, Exception())):
                assert workout_service.find_active_pairing(session, uid) is None

    def test_badge_check_failure_keeps_workout(self, db_engine, cache, user_factory):
        uid = user_factory("unlucky")
        with patch.object(
            workout_service.badge_service, "check_and_award_badges",
            side_effect=OperationalError("x", {}, Exception()),
        ):
            result = _log(db_engine, cache, uid)
        assert result.new_badges == []
        with Session(db_engine) as session:
            assert session.get(UserStats, uid).total_points == 10
            assert session.query(UserBadge).count() == 0


class TestUpdateWorkout:
    def test_records_bonus_paid_once(self, db_engine, cache, user_factory):
        uid = user_factory("editor")
        created = _log(db_engine, cache, uid)
        wid = created.workout["id"]

        first = workout_service.update_workout(db_engine, cache, uid, wid, exercises=BENCH_100, now=NOW)
        assert first["records_points"] == 25

        heavier = [{"name": "Bench Press", "sets": [{"reps": 5, "weight": 140}]}]
        second = workout_service.update_workout(db_engine, cache, uid, wid, exercises=heavier, now=NOW)
        assert second["records_points"] == 0
        assert second["exercises"] == heavier

        with Session(db_engine) as session:
            reasons = [e.reason for e in session.query(PointsLedgerEntry).filter_by(user_id=uid)]
            assert reasons.count("Personal records achieved") == 1
            assert session.get(UserStats, uid).total_points == 35

    def test_edit_notes_only(self, db_engine, cache, user_factory):
        uid = user_factory("noter")
        wid = _log(db_engine, cache, uid).workout["id"]
        updated = workout_service.update_workout(db_engine, cache, uid, wid, notes="felt strong", duration_minutes=45)
        assert updated["notes"] == "felt strong"
        assert updated["duration_minutes"] == 45

    def test_cannot_edit_someone_elses_workout(self, db_engine, cache, user_factory):
        owner, intruder = user_factory("owner"), user_factory("intruder")
        wid = _log(db_engine, cache, owner).workout["id"]
        with pytest.raises(NotFoundError):
            workout_service.update_workout(db_engine, cache, intruder, wid, notes="mine now")


class TestDeleteWorkout:
    def test_delete_rescans_streak_and_keeps_points(self, db_engine, cache, user_factory):
        uid = user_factory("deleter")
        for days_ago in (2, 1, 0):
            last = _log(db_engine, cache, uid, days_ago=days_ago)
        middle = workout_service.list_workouts(db_engine, uid)[1]["id"]

        streak = workout_service.delete_workout(db_engine, uid, middle, today=NOW.date())
        assert streak.current == 1
        assert streak.longest == 1

        with Session(db_engine) as session:
            row = session.get(Streak, uid)
            assert row.current_streak == 1
            assert session.get(UserStats, uid).total_points == 30
        assert last.workout["id"] != middle

    def test_delete_missing_workout(self, db_engine, cache, user_factory):
        uid = user_factory("nobody")
        with pytest.raises(NotFoundError):
            workout_service.delete_workout(db_engine, uid, 12345)


def test_list_workouts_newest_first(db_engine, cache, user_factory):
    uid = user_factory("lister")
    for days_ago in (3, 0, 1):
        _log(db_engine, cache, uid, days_ago=days_ago)
    listed = workout_service.list_workouts(db_engine, uid, limit=2)
    assert len(listed) == 2
    assert listed[0]["completed_at"] > listed[1]["completed_at"]
