"""
buddyfit.engine.streaks — Workout Streak Computation
=====================================================

Pure calculation — no DB I/O.  A streak is the number of consecutive
calendar days containing at least one workout.  A streak survives one
empty day: if the latest workout was yesterday the streak is still live,
two empty days break it.

Two entry points:

* :func:`compute_streaks` — full rescan over a user's whole history.  Used
  after a deletion, when an arbitrary gap may have opened.
* :func:`advance_streak` — incremental update when a workout is logged.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from buddyfit.errors import InvariantViolation

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True, slots=True)
class StreakResult:
    current: int = 0
    longest: int = 0
    last_workout_date: date | None = None


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date()
    return value


def _checked(result: StreakResult) -> StreakResult:
    if result.longest < result.current or result.current < 0:
        raise InvariantViolation(
            f"streak invariant broken: current={result.current} longest={result.longest}"
        )
    return result


# ---------------------------------------------------------------------------
# Full rescan
# ---------------------------------------------------------------------------
def compute_streaks(
    workout_dates: Iterable[date | datetime],
    today: date | None = None,
) -> StreakResult:
    """Compute current and longest streak from every workout timestamp.

    Parameters
    ----------
    workout_dates:
        Workout dates or timestamps in any order.  Aware datetimes are
        bucketed by their UTC calendar day; several workouts on one day
        count once.
    today:
        Reference day (defaults to the current UTC date).

    Returns
    -------
    StreakResult
        ``current`` is non-zero only when the latest workout day is today or
        yesterday.  ``longest`` is the longest run anywhere in history.
    """
    today = today or datetime.now(UTC).date()
    days = sorted({_as_date(d) for d in workout_dates}, reverse=True)
    if not days:
        return StreakResult()

    # Single backward scan: the first run is the one ending at days[0]
    longest = 1
    run = 1
    first_run: int | None = None
    for newer, older in zip(days, days[1:]):
        if newer - older == ONE_DAY:
            run += 1
        else:
            if first_run is None:
                first_run = run
            longest = max(longest, run)
            run = 1
    longest = max(longest, run)
    if first_run is None:
        first_run = run

    latest = days[0]
    current = first_run if (today - latest) <= ONE_DAY else 0
    return _checked(StreakResult(current=current, longest=longest, last_workout_date=latest))


# ---------------------------------------------------------------------------
# Incremental update
# ---------------------------------------------------------------------------
def advance_streak(
    current: int,
    longest: int,
    last_date: date | None,
    workout_date: date | datetime,
) -> StreakResult:
    """Fold one newly logged workout into a stored streak.

    * same day as the last workout → unchanged
    * the day after the last workout → ``current + 1``
    * anything else (first workout, gap, backdated entry) → ``1``
    """
    day = _as_date(workout_date)
    if last_date is not None and day == last_date:
        return _checked(StreakResult(current, max(longest, current), last_date))

    if last_date is not None and day < last_date:
        # Backdated entries don't extend the live streak; the caller rescans.
        return _checked(StreakResult(current, max(longest, current), last_date))

    if last_date is not None and day - last_date == ONE_DAY:
        new_current = current + 1
    else:
        new_current = 1
    return _checked(StreakResult(new_current, max(longest, new_current), day))


def effective_current_streak(current: int, last_date: date | None, today: date | None = None) -> int:
    """Current streak as it reads *today*: a stored streak whose last
    workout is older than yesterday has lapsed to 0."""
    if last_date is None:
        return 0
    today = today or datetime.now(UTC).date()
    return current if (today - last_date) <= ONE_DAY else 0
