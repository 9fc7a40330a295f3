"""
buddyfit.services.motivation_service — AI Motivation Messages
==============================================================

Short, punchy accountability messages ("the shame engine").  The user's
recent activity is boiled down to a :class:`MotivationContext`, an event
and a message type are picked from it, and the Anthropic Messages API is
asked for one or two sentences.

The generator is an auxiliary dependency: a missing API key, an HTTP
error, a timeout or an empty reply all fall back to a local message table
keyed by event.  :func:`generate_message` never raises.
"""

from __future__ import annotations

import enum
import logging
import os
import random
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import httpx
from sqlalchemy.orm import Session

from buddyfit.constants import as_utc
from buddyfit.database.models import User
from buddyfit.services.pairing_service import find_active_pairing
from buddyfit.services.streak_service import get_workout_stats

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-haiku-20240307"
MAX_TOKENS = 100
TEMPERATURE = 0.95


class MotivationEvent(enum.StrEnum):
    STREAK_BROKEN = "streak_broken"
    BUDDY_DOMINATING = "buddy_dominating"
    FALLING_BEHIND = "falling_behind"
    MILESTONE = "milestone"
    SLACKING_HARD = "slacking_hard"
    CRUSHING_IT = "crushing_it"
    DAILY_REMINDER = "daily_reminder"
    MISSED_USUAL_DAY = "missed_usual_day"
    VOLUME_DROP = "volume_drop"
    CONSISTENCY_DROP = "consistency_drop"
    PR_ACHIEVED = "pr_achieved"
    COMEBACK = "comeback"


class MessageType(enum.StrEnum):
    SHAME = "shame"
    TRASH_TALK = "trash_talk"
    MOTIVATIONAL = "motivational"
    ROAST = "roast"
    ENCOURAGEMENT = "encouragement"
    CELEBRATION = "celebration"
    DISAPPOINTMENT = "disappointment"
    CHALLENGE = "challenge"


class Severity(enum.StrEnum):
    LIGHT = "light"
    MEDIUM = "medium"
    NUCLEAR = "nuclear"


@dataclass(frozen=True)
class MotivationContext:
    """Everything the message generator knows about the user.

    Buddy gaps are positive when the user trails their buddy.
    ``buddy_volume_pct`` is negative when the user lifts less.
    """

    user_name: str
    buddy_name: str | None = None
    current_streak: int = 0
    longest_streak: int = 0
    weekly_workouts: int = 0
    monthly_workouts: int = 0
    total_workouts: int = 0
    last_workout_days_ago: int = 0
    buddy_streak_gap: int = 0
    buddy_weekly_gap: int = 0
    buddy_volume_pct: float = 0.0
    consistency_rate: float = 100.0
    volume_trend: str = "stable"
    recent_pr_improvement: float = 0.0
    total_volume: float = 0.0
    missed_days_pattern: tuple[str, ...] = field(default_factory=tuple)
    event: MotivationEvent | None = None
    severity: Severity | None = None


SYSTEM_PROMPT = (
    "You are the Shame Engine for a gym accountability app. Your personality "
    "mixes a savage gym bro, a disappointed parent who knows you can do better, "
    "and a hype beast who goes wild when you succeed.\n\n"
    "Messages must be SHORT (1-2 sentences, preferably 1), use the specific "
    "numbers you are given, compare the user to their buddy when relevant, and "
    "stay PG-13. The shame should motivate, not devastate."
)


# ---------------------------------------------------------------------------
# Event / type / severity selection
# ---------------------------------------------------------------------------
def determine_event(context: MotivationContext, today: date | None = None) -> MotivationEvent:
    """Pick the single most relevant event, checked in priority order."""
    if context.current_streak == 0 and context.longest_streak > 3:
        return MotivationEvent.STREAK_BROKEN

    if context.buddy_name:
        behind = sum((
            context.buddy_streak_gap > 5,
            context.buddy_weekly_gap > 2,
            context.buddy_volume_pct < -20,
        ))
        if behind >= 2:
            return MotivationEvent.BUDDY_DOMINATING
        if behind == 1:
            return MotivationEvent.FALLING_BEHIND

    if context.current_streak > 0 and context.current_streak % 7 == 0:
        return MotivationEvent.MILESTONE
    if context.recent_pr_improvement > 5:
        return MotivationEvent.PR_ACHIEVED
    if context.weekly_workouts < 2 or context.last_workout_days_ago > 3:
        return MotivationEvent.SLACKING_HARD
    if context.weekly_workouts >= 5 and context.current_streak >= 7:
        return MotivationEvent.CRUSHING_IT
    if context.last_workout_days_ago > 7 and context.total_volume > 0:
        return MotivationEvent.COMEBACK
    if context.volume_trend == "decreasing":
        return MotivationEvent.VOLUME_DROP
    if context.consistency_rate < 50:
        return MotivationEvent.CONSISTENCY_DROP

    weekday = (today or datetime.now(UTC).date()).strftime("%A")
    if weekday in context.missed_days_pattern and context.last_workout_days_ago >= 1:
        return MotivationEvent.MISSED_USUAL_DAY
    return MotivationEvent.DAILY_REMINDER


_EVENT_TYPES: dict[MotivationEvent, MessageType] = {
    MotivationEvent.STREAK_BROKEN: MessageType.SHAME,
    MotivationEvent.BUDDY_DOMINATING: MessageType.SHAME,
    MotivationEvent.SLACKING_HARD: MessageType.SHAME,
    MotivationEvent.FALLING_BEHIND: MessageType.TRASH_TALK,
    MotivationEvent.VOLUME_DROP: MessageType.TRASH_TALK,
    MotivationEvent.CONSISTENCY_DROP: MessageType.TRASH_TALK,
    MotivationEvent.MILESTONE: MessageType.CELEBRATION,
    MotivationEvent.PR_ACHIEVED: MessageType.CELEBRATION,
    MotivationEvent.CRUSHING_IT: MessageType.CELEBRATION,
    MotivationEvent.COMEBACK: MessageType.MOTIVATIONAL,
    MotivationEvent.DAILY_REMINDER: MessageType.MOTIVATIONAL,
    MotivationEvent.MISSED_USUAL_DAY: MessageType.ROAST,
}


def message_type_for_event(event: MotivationEvent | str) -> MessageType:
    try:
        return _EVENT_TYPES[MotivationEvent(event)]
    except (KeyError, ValueError):
        return MessageType.ENCOURAGEMENT


def determine_severity(context: MotivationContext) -> Severity:
    """Score how harsh to be: 8+ is nuclear, 4+ medium, else light."""
    score = 0
    if context.current_streak == 0:
        if context.longest_streak > 10:
            score += 3
        elif context.longest_streak > 5:
            score += 2
        else:
            score += 1

    days = context.last_workout_days_ago
    if days > 7:
        score += 3
    elif days > 5:
        score += 2
    elif days > 3:
        score += 1

    if context.buddy_name:
        if context.buddy_streak_gap > 10:
            score += 2
        if context.buddy_volume_pct < -30:
            score += 2

    rate = context.consistency_rate
    if rate < 25:
        score += 3
    elif rate < 50:
        score += 2
    elif rate < 75:
        score += 1

    if context.volume_trend == "decreasing":
        score += 1

    if score >= 8:
        return Severity.NUCLEAR
    if score >= 4:
        return Severity.MEDIUM
    return Severity.LIGHT


# ---------------------------------------------------------------------------
# Prompt & fallbacks
# ---------------------------------------------------------------------------
def build_prompt(context: MotivationContext, message_type: MessageType) -> str:
    buddy = context.buddy_name
    parts = [f"Generate a {message_type.value} message for {context.user_name}."]
    if buddy and context.buddy_streak_gap > 0:
        parts.append(f"They are {context.buddy_streak_gap} streak days behind {buddy}.")
    if buddy and context.buddy_volume_pct < 0:
        parts.append(f"They lift {abs(context.buddy_volume_pct):.0f}% less than {buddy}.")

    event = context.event
    if event == MotivationEvent.STREAK_BROKEN:
        parts.append(
            f"They just lost a {context.longest_streak} day streak and haven't worked out "
            f"in {context.last_workout_days_ago} days."
        )
    elif event == MotivationEvent.BUDDY_DOMINATING:
        parts.append(f"{buddy} is destroying them in every metric.")
    elif event == MotivationEvent.FALLING_BEHIND:
        parts.append(f"They're falling behind {buddy} week after week.")
    elif event == MotivationEvent.SLACKING_HARD:
        parts.append(
            f"{context.weekly_workouts} workouts this week, "
            f"{context.last_workout_days_ago} days since the last one."
        )
    elif event == MotivationEvent.MILESTONE:
        parts.append(f"They just hit a {context.current_streak} day streak.")
    elif event == MotivationEvent.CRUSHING_IT:
        parts.append(f"{context.weekly_workouts} workouts this week. They're on fire.")
    elif event == MotivationEvent.COMEBACK:
        parts.append(f"They're back after {context.last_workout_days_ago} days. Welcome them back.")
    elif event == MotivationEvent.VOLUME_DROP:
        parts.append("They're lifting way less weight than usual.")
    elif event == MotivationEvent.CONSISTENCY_DROP:
        parts.append("They used to be consistent, now they're flaky.")

    if context.severity:
        parts.append(f"Severity level: {context.severity.value}.")
    return " ".join(parts)


def _fallbacks(context: MotivationContext) -> dict[MotivationEvent, list[str]]:
    name, buddy, streak = context.user_name, context.buddy_name, context.longest_streak
    return {
        MotivationEvent.STREAK_BROKEN: [
            f"{streak} days... gone. {buddy or 'Your muscles'} won't even recognize you anymore.",
            f"RIP {streak} day streak. It died doing what it loved: being ignored by {name}.",
            f"Congrats on the {streak} day participation trophy. Too bad you fumbled it.",
        ],
        MotivationEvent.BUDDY_DOMINATING: [
            f"{buddy} is making you their personal benchmark for mediocrity.",
            f"At this rate, {buddy} should claim you as a dependent on their taxes.",
            f"{buddy} called. They're getting bored of winning so easily.",
        ],
        MotivationEvent.SLACKING_HARD: [
            f'The gym filed a missing person report. Description: "{name}, chronic underachiever"',
            "Your muscles are in witness protection from the trauma of being abandoned.",
            "Even your rest days are taking rest days at this point.",
        ],
        MotivationEvent.COMEBACK: [
            "Look who remembered their gym password! Welcome back to the land of the lifting.",
            "The prodigal lifter returns! Your bench missed you (it's been very lonely).",
            "Back from the dead! Lazarus had nothing on this resurrection.",
        ],
    }


def fallback_message(context: MotivationContext, rng: random.Random | None = None) -> str:
    """A canned message for the context's event (generic list for the rest)."""
    rng = rng or random
    generic = [
        f"{context.user_name}, this is your sign to stop being a disappointment.",
        f"Somewhere, {context.buddy_name or 'someone'} is working harder than you. Sleep tight.",
        "The only thing you're crushing lately is your own potential.",
    ]
    options = _fallbacks(context).get(context.event, generic) if context.event else generic
    return rng.choice(options)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------
def with_classification(context: MotivationContext) -> MotivationContext:
    """Fill in ``event`` and ``severity`` when the caller left them empty."""
    if context.event is None:
        context = replace(context, event=determine_event(context))
    if context.severity is None:
        context = replace(context, severity=determine_severity(context))
    return context


def generate_message(
    context: MotivationContext,
    message_type: MessageType | str | None = None,
    *,
    client: httpx.Client | None = None,
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
    timeout: float = 8.0,
) -> str:
    """Ask the model for a message; fall back to the local table on any failure.

    Parameters
    ----------
    context:
        The user's situation.  ``event`` and ``severity`` are filled in
        when missing.
    message_type:
        Tone to ask for; derived from the event when omitted.
    client:
        Optional pre-built :class:`httpx.Client` (tests pass one with a
        mock transport).
    """
    context = with_classification(context)
    kind = MessageType(message_type) if message_type else message_type_for_event(context.event)

    api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        logger.warning("ANTHROPIC_API_KEY not set — using fallback message")
        return fallback_message(context)

    payload = {
        "model": model,
        "max_tokens": MAX_TOKENS,
        "temperature": TEMPERATURE,
        "system": SYSTEM_PROMPT,
        "messages": [{"role": "user", "content": build_prompt(context, kind)}],
    }
    headers = {
        "x-api-key": api_key,
        "anthropic-version": ANTHROPIC_VERSION,
        "content-type": "application/json",
    }

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout, transport=httpx.HTTPTransport(retries=1))
    try:
        resp = client.post(ANTHROPIC_URL, json=payload, headers=headers)
        resp.raise_for_status()
        data = resp.json()
        blocks = (data.get("content") if isinstance(data, dict) else None) or []
        text = next(
            (b.get("text", "") for b in blocks if isinstance(b, dict) and b.get("type") == "text"),
            "",
        ).strip()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Motivation generator unavailable (%s) — using fallback", exc)
        return fallback_message(context)
    finally:
        if owns_client:
            client.close()

    if not text:
        logger.warning("Motivation generator returned an empty reply — using fallback")
        return fallback_message(context)
    return text


# ---------------------------------------------------------------------------
# Context from the store
# ---------------------------------------------------------------------------
def build_context(engine: Engine, user_id: int, now: datetime | None = None) -> MotivationContext:
    """Assemble a :class:`MotivationContext` from the user's stored activity."""
    now = as_utc(now or datetime.now(UTC))
    stats = get_workout_stats(engine, user_id, today=now.date())

    with Session(engine) as session:
        user = session.get(User, user_id)
        name = (user.full_name or user.username) if user else "Athlete"
        buddy_name = None
        pairing = find_active_pairing(session, user_id)
        if pairing is not None:
            buddy = session.get(User, pairing.buddy_of(user_id))
            buddy_name = (buddy.full_name or buddy.username) if buddy else None

    days_ago = 0
    if stats["last_workout_at"]:
        last = as_utc(datetime.fromisoformat(stats["last_workout_at"]))
        days_ago = max((now.date() - last.date()).days, 0)

    return MotivationContext(
        user_name=name,
        buddy_name=buddy_name,
        current_streak=stats["current_streak"],
        longest_streak=stats["longest_streak"],
        weekly_workouts=stats["weekly_workouts"],
        monthly_workouts=stats["monthly_workouts"],
        total_workouts=stats["total_workouts"],
        last_workout_days_ago=days_ago,
    )
