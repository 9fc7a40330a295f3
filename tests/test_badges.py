"""
tests/test_badges.py — Badge Criteria, Progress & Awards
=========================================================
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from buddyfit.database.models import BadgeDefinition, ProgressSnapshot, Streak, UserBadge, Workout
from buddyfit.engine.badges import (
    BadgeStats,
    StreakCriteria,
    TotalWorkoutsCriteria,
    UnsupportedCriteria,
    WeightChangeCriteria,
    badge_progress,
    evaluate_badge,
    parse_criteria,
)
from buddyfit.errors import NotFoundError
from buddyfit.services import badge_service

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Pure criteria
# ---------------------------------------------------------------------------
class TestParseCriteria:
    def test_known_types(self):
        assert parse_criteria({"type": "streak", "days": 7}) == StreakCriteria(days=7)
        assert parse_criteria({"type": "total_workouts", "count": 10}) == TotalWorkoutsCriteria(count=10)
        assert parse_criteria({"type": "weight_loss", "percentage": 5}) == WeightChangeCriteria(
            direction="weight_loss", percentage=5.0,
        )

    def test_unknown_and_missing_types(self):
        assert parse_criteria({"type": "strength_increase"}) == UnsupportedCriteria(type="strength_increase")
        assert parse_criteria(None) == UnsupportedCriteria(type="")


class TestBadgeProgress:
    def test_zero_activity_scores_zero(self):
        stats = BadgeStats()
        assert badge_progress({"type": "streak", "days": 7}, stats) == 0
        assert badge_progress({"type": "total_workouts", "count": 1}, stats) == 0

    def test_partial_and_capped_progress(self):
        stats = BadgeStats(longest_streak=3, total_workouts=25)
        assert badge_progress({"type": "streak", "days": 7}, stats) == pytest.approx(42.86)
        assert badge_progress({"type": "total_workouts", "count": 10}, stats) == 100.0

    def test_weight_loss_progress(self):
        stats = BadgeStats(starting_weight=100.0, current_weight=97.5)
        assert badge_progress({"type": "weight_loss", "percentage": 5}, stats) == 50.0
        assert badge_progress({"type": "weight_gain", "percentage": 5}, stats) == 0.0

    def test_weight_gain_progress(self):
        stats = BadgeStats(starting_weight=80.0, current_weight=84.0)
        assert badge_progress({"type": "weight_gain", "percentage": 5}, stats) == 100.0

    def test_weight_badges_need_a_starting_weight(self):
        stats = BadgeStats(starting_weight=None, current_weight=70.0)
        assert badge_progress({"type": "weight_loss", "percentage": 5}, stats) == 0.0

    def test_unsupported_scores_zero(self):
        stats = BadgeStats(longest_streak=500, total_workouts=500)
        assert badge_progress({"type": "strength_increase", "percentage": 10}, stats) == 0.0

    def test_earned_badge_always_reads_full(self):
        result = evaluate_badge({"type": "streak", "days": 30}, BadgeStats(), earned=True)
        assert result.progress == 100.0
        assert result.earned


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
def _log_workouts(engine, user_id: int, days: int) -> None:
    with Session(engine) as session:
        for i in range(days):
            session.add(Workout(user_id=user_id, completed_at=NOW - timedelta(days=i)))
        session.add(Streak(
            user_id=user_id, current_streak=days, longest_streak=days,
            last_workout_date=NOW.date(),
        ))
        session.commit()


class TestBadgeService:
    def test_catalog_is_seeded(self, db_engine, cache):
        catalog = badge_service.list_badge_definitions(db_engine, cache)
        names = {b["name"] for b in catalog}
        assert {"First Steps", "Week Warrior", "Lighter Load"} <= names
        assert all("rarity_emoji" in b for b in catalog)

    def test_new_user_has_zero_progress(self, db_engine, cache, user_factory):
        uid = user_factory("newbie")
        progress = {p["name"]: p for p in badge_service.get_badge_progress(db_engine, uid, cache)}
        assert progress["First Steps"]["progress"] == 0
        assert progress["Week Warrior"]["progress"] == 0
        assert not progress["First Steps"]["earned"]

    def test_check_awards_reached_badges_once(self, db_engine, cache, user_factory):
        uid = user_factory("regular")
        _log_workouts(db_engine, uid, 7)

        first = badge_service.check_and_award_badges(db_engine, uid, cache)
        assert {b["name"] for b in first} == {"First Steps", "Week Warrior"}

        second = badge_service.check_and_award_badges(db_engine, uid, cache)
        assert second == []

        mine = badge_service.get_user_badges(db_engine, uid)
        assert len(mine) == 2

    def test_award_badge_is_idempotent(self, db_engine, cache, user_factory):
        uid = user_factory("twice")
        with Session(db_engine) as session:
            badge_id = session.query(BadgeDefinition).filter_by(name="First Steps").one().id
            assert badge_service.award_badge(session, uid, badge_id, now=NOW)
            session.commit()
            earned_at = session.get(UserBadge, (uid, badge_id)).earned_at

            assert not badge_service.award_badge(session, uid, badge_id, now=NOW + timedelta(days=1))
            session.commit()
            assert session.get(UserBadge, (uid, badge_id)).earned_at == earned_at

    def test_award_unknown_badge_raises(self, db_engine, cache, user_factory):
        uid = user_factory("ghost")
        with Session(db_engine) as session:
            with pytest.raises(NotFoundError):
                badge_service.award_badge(session, uid, 9999)

    def test_weight_progress_uses_latest_snapshot(self, db_engine, cache, user_factory):
        uid = user_factory("cutter", starting_weight=100.0)
        with Session(db_engine) as session:
            session.add_all([
                ProgressSnapshot(user_id=uid, date=date(2026, 3, 1), weight=98.0),
                ProgressSnapshot(user_id=uid, date=date(2026, 3, 10), weight=95.0),
            ])
            session.commit()
        progress = {p["name"]: p for p in badge_service.get_badge_progress(db_engine, uid, cache)}
        assert progress["Lighter Load"]["progress"] == 100.0
        assert progress["Transformation"]["progress"] == 50.0

    def test_badge_leaderboard_orders_by_count(self, db_engine, cache, user_factory):
        busy = user_factory("busy")
        idle = user_factory("idle")
        _log_workouts(db_engine, busy, 7)
        _log_workouts(db_engine, idle, 1)
        badge_service.check_and_award_badges(db_engine, busy, cache)
        badge_service.check_and_award_badges(db_engine, idle, cache)

        board = badge_service.get_badge_leaderboard(db_engine)
        assert [row["user_id"] for row in board] == [busy, idle]
        assert board[0]["badge_count"] == 2
        assert len(badge_service.get_recent_badges(db_engine)) == 3
