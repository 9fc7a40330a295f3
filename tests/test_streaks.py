"""
tests/test_streaks.py — Streak Computation
===========================================
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from buddyfit.engine.streaks import (
    StreakResult,
    advance_streak,
    compute_streaks,
    effective_current_streak,
)
from buddyfit.errors import InvariantViolation

TODAY = date(2026, 3, 15)


def _days_ago(*offsets: int) -> list[date]:
    return [TODAY - timedelta(days=n) for n in offsets]


class TestComputeStreaks:
    def test_no_workouts(self):
        assert compute_streaks([], today=TODAY) == StreakResult(0, 0, None)

    def test_consecutive_days_ending_today(self):
        result = compute_streaks(_days_ago(0, 1, 2, 3), today=TODAY)
        assert result.current == 4
        assert result.longest == 4
        assert result.last_workout_date == TODAY

    def test_streak_ending_yesterday_is_still_live(self):
        result = compute_streaks(_days_ago(1, 2, 3), today=TODAY)
        assert result.current == 3

    def test_two_empty_days_break_the_streak(self):
        result = compute_streaks(_days_ago(2, 3, 4), today=TODAY)
        assert result.current == 0
        assert result.longest == 3

    def test_longest_run_in_history(self):
        result = compute_streaks(_days_ago(0, 1, 10, 11, 12, 13, 14), today=TODAY)
        assert result.current == 2
        assert result.longest == 5

    def test_multiple_workouts_same_day_count_once(self):
        stamps = [
            datetime(2026, 3, 15, 7, tzinfo=UTC),
            datetime(2026, 3, 15, 18, tzinfo=UTC),
            datetime(2026, 3, 14, 9, tzinfo=UTC),
        ]
        result = compute_streaks(stamps, today=TODAY)
        assert result.current == 2
        assert result.longest == 2

    def test_order_does_not_matter(self):
        forwards = compute_streaks(_days_ago(3, 2, 1, 0), today=TODAY)
        backwards = compute_streaks(_days_ago(0, 1, 2, 3), today=TODAY)
        assert forwards == backwards

    def test_longest_never_below_current(self):
        for offsets in [(0,), (0, 1), (0, 2, 3), (1, 5, 6, 7)]:
            result = compute_streaks(_days_ago(*offsets), today=TODAY)
            assert result.longest >= result.current >= 0


class TestAdvanceStreak:
    def test_first_workout(self):
        assert advance_streak(0, 0, None, TODAY) == StreakResult(1, 1, TODAY)

    def test_next_day_extends(self):
        result = advance_streak(4, 6, TODAY - timedelta(days=1), TODAY)
        assert result == StreakResult(5, 6, TODAY)

    def test_extends_past_longest(self):
        result = advance_streak(6, 6, TODAY - timedelta(days=1), TODAY)
        assert result == StreakResult(7, 7, TODAY)

    def test_same_day_is_unchanged(self):
        assert advance_streak(3, 5, TODAY, TODAY) == StreakResult(3, 5, TODAY)

    def test_gap_restarts(self):
        result = advance_streak(9, 9, TODAY - timedelta(days=3), TODAY)
        assert result == StreakResult(1, 9, TODAY)

    def test_backdated_entry_leaves_streak_alone(self):
        result = advance_streak(3, 3, TODAY, TODAY - timedelta(days=5))
        assert result == StreakResult(3, 3, TODAY)


class TestEffectiveCurrentStreak:
    def test_lapsed_streak_reads_zero(self):
        assert effective_current_streak(5, TODAY - timedelta(days=2), TODAY) == 0

    def test_yesterday_is_live(self):
        assert effective_current_streak(5, TODAY - timedelta(days=1), TODAY) == 5

    def test_never_worked_out(self):
        assert effective_current_streak(0, None, TODAY) == 0


def test_broken_invariant_raises():
    from buddyfit.engine import streaks

    with pytest.raises(InvariantViolation):
        streaks._checked(StreakResult(current=4, longest=2))
