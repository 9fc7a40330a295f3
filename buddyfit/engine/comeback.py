"""
buddyfit.engine.comeback — Comeback Multiplier Curve
=====================================================

Pure calculation — no DB I/O.

A competitor trailing the leader by more than ``comeback.threshold_pct``
percent of the leader's score earns a multiplier of
``1 + behind_pct / 100``, capped at ``comeback.max_multiplier`` and rounded
to two decimals.  A gap at or under the threshold means no bonus.
Bonuses are time-boxed; :func:`is_bonus_active` decides whether a stored
one still applies, and :func:`in_cooldown` keeps an expired one from
re-arming straight away.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from buddyfit.engine.cache import ConfigCache

DEFAULT_THRESHOLD_PCT = 20.0
DEFAULT_MAX_MULTIPLIER = 2.0
DEFAULT_DURATION_HOURS = 72
DEFAULT_COOLDOWN_HOURS = 48


def _tuning(cache: ConfigCache | None) -> tuple[float, float]:
    if cache is None:
        return DEFAULT_THRESHOLD_PCT, DEFAULT_MAX_MULTIPLIER
    threshold = cache.get_float("comeback.threshold_pct", DEFAULT_THRESHOLD_PCT)
    cap = cache.get_float("comeback.max_multiplier", DEFAULT_MAX_MULTIPLIER)
    return threshold, max(cap, 1.0)


def bonus_duration(cache: ConfigCache | None = None) -> timedelta:
    hours = DEFAULT_DURATION_HOURS
    if cache is not None:
        hours = cache.get_int("comeback.duration_hours", DEFAULT_DURATION_HOURS)
    return timedelta(hours=max(hours, 0))


def cooldown_duration(cache: ConfigCache | None = None) -> timedelta:
    hours = DEFAULT_COOLDOWN_HOURS
    if cache is not None:
        hours = cache.get_int("comeback.cooldown_hours", DEFAULT_COOLDOWN_HOURS)
    return timedelta(hours=max(hours, 0))


def behind_by_percentage(my_score: float, leader_score: float) -> float:
    """How far *my_score* trails *leader_score*, as a percent of the leader.

    0.0 when the leader has no score or the user is level or ahead.
    """
    if leader_score <= 0 or my_score >= leader_score:
        return 0.0
    return round((leader_score - max(my_score, 0)) / leader_score * 100, 2)


def comeback_multiplier(behind_pct: float, cache: ConfigCache | None = None) -> float:
    """Multiplier for a competitor *behind_pct* percent behind the leader.

    Always within ``[1.0, max_multiplier]``.
    """
    threshold, cap = _tuning(cache)
    if behind_pct <= threshold:
        return 1.0
    return round(min(1.0 + behind_pct / 100.0, cap), 2)


def is_bonus_active(
    active: bool,
    expires_at: datetime | None,
    now: datetime | None = None,
) -> bool:
    """True when a stored bonus is flagged active and not yet expired."""
    if not active or expires_at is None:
        return False
    now = now or datetime.now(UTC)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at >= now


def in_cooldown(
    last_expired_at: datetime | None,
    now: datetime | None = None,
    cache: ConfigCache | None = None,
) -> bool:
    """True while a bonus that expired at *last_expired_at* may not re-arm."""
    if last_expired_at is None:
        return False
    now = now or datetime.now(UTC)
    if last_expired_at.tzinfo is None:
        last_expired_at = last_expired_at.replace(tzinfo=UTC)
    return last_expired_at <= now < last_expired_at + cooldown_duration(cache)
