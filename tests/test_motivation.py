"""
tests/test_motivation.py — Motivation Message Tests
====================================================

Event/severity selection, the Anthropic call over a mock transport, and
fallbacks when the generator is unavailable.
"""

from __future__ import annotations

import json
import random
from datetime import UTC, date, datetime, timedelta

import httpx
import pytest

from buddyfit.services import motivation_service, workout_service
from buddyfit.services.motivation_service import (
    MessageType,
    MotivationContext,
    MotivationEvent,
    Severity,
    determine_event,
    determine_severity,
    message_type_for_event,
)

WEDNESDAY = date(2026, 3, 18)


def _ctx(**kw) -> MotivationContext:
    defaults = {"user_name": "Sam", "weekly_workouts": 3, "current_streak": 2, "longest_streak": 2}
    defaults.update(kw)
    return MotivationContext(**defaults)


# ---------------------------------------------------------------------------
# Event selection
# ---------------------------------------------------------------------------
class TestDetermineEvent:
    @pytest.mark.parametrize(
        "overrides, expected",
        [
            ({"current_streak": 0, "longest_streak": 12}, MotivationEvent.STREAK_BROKEN),
            ({"buddy_name": "Alex", "buddy_streak_gap": 8, "buddy_weekly_gap": 3},
             MotivationEvent.BUDDY_DOMINATING),
            ({"buddy_name": "Alex", "buddy_volume_pct": -40.0}, MotivationEvent.FALLING_BEHIND),
            ({"current_streak": 14, "longest_streak": 14}, MotivationEvent.MILESTONE),
            ({"recent_pr_improvement": 7.5}, MotivationEvent.PR_ACHIEVED),
            ({"weekly_workouts": 1}, MotivationEvent.SLACKING_HARD),
            ({"last_workout_days_ago": 4}, MotivationEvent.SLACKING_HARD),
            ({"weekly_workouts": 5, "current_streak": 9, "longest_streak": 9},
             MotivationEvent.CRUSHING_IT),
            ({"volume_trend": "decreasing"}, MotivationEvent.VOLUME_DROP),
            ({"consistency_rate": 40.0}, MotivationEvent.CONSISTENCY_DROP),
            ({}, MotivationEvent.DAILY_REMINDER),
        ],
    )
    def test_priority_order(self, overrides, expected):
        assert determine_event(_ctx(**overrides), today=WEDNESDAY) == expected

    def test_gaps_ignored_without_buddy(self):
        ctx = _ctx(buddy_streak_gap=20, buddy_weekly_gap=5)
        assert determine_event(ctx, today=WEDNESDAY) == MotivationEvent.DAILY_REMINDER

    def test_missed_usual_day(self):
        ctx = _ctx(missed_days_pattern=("Wednesday",), last_workout_days_ago=1)
        assert determine_event(ctx, today=WEDNESDAY) == MotivationEvent.MISSED_USUAL_DAY


class TestMessageTypeAndSeverity:
    @pytest.mark.parametrize(
        "event, expected",
        [
            (MotivationEvent.STREAK_BROKEN, MessageType.SHAME),
            (MotivationEvent.FALLING_BEHIND, MessageType.TRASH_TALK),
            (MotivationEvent.PR_ACHIEVED, MessageType.CELEBRATION),
            (MotivationEvent.COMEBACK, MessageType.MOTIVATIONAL),
            (MotivationEvent.MISSED_USUAL_DAY, MessageType.ROAST),
            ("not_an_event", MessageType.ENCOURAGEMENT),
        ],
    )
    def test_event_to_type(self, event, expected):
        assert message_type_for_event(event) == expected

    def test_light_for_healthy_user(self):
        assert determine_severity(_ctx()) == Severity.LIGHT

    def test_medium(self):
        # broken short streak (1) + 6 days idle (2) + 60% consistency (1)
        ctx = _ctx(current_streak=0, longest_streak=3, last_workout_days_ago=6, consistency_rate=60.0)
        assert determine_severity(ctx) == Severity.MEDIUM

    def test_nuclear(self):
        ctx = _ctx(
            current_streak=0, longest_streak=20, last_workout_days_ago=10,
            consistency_rate=20.0, buddy_name="Alex", buddy_streak_gap=15,
        )
        assert determine_severity(ctx) == Severity.NUCLEAR

    def test_with_classification_keeps_explicit_values(self):
        ctx = _ctx(event=MotivationEvent.COMEBACK)
        filled = motivation_service.with_classification(ctx)
        assert filled.event == MotivationEvent.COMEBACK
        assert filled.severity == Severity.LIGHT


class TestPrompt:
    def test_prompt_mentions_numbers_and_buddy(self):
        ctx = _ctx(
            buddy_name="Alex", buddy_streak_gap=4, buddy_volume_pct=-25.0,
            current_streak=0, longest_streak=9, last_workout_days_ago=3,
            event=MotivationEvent.STREAK_BROKEN, severity=Severity.MEDIUM,
        )
        prompt = motivation_service.build_prompt(ctx, MessageType.SHAME)
        assert prompt.startswith("Generate a shame message for Sam.")
        assert "4 streak days behind Alex" in prompt
        assert "25% less than Alex" in prompt
        assert "9 day streak" in prompt
        assert "Severity level: medium." in prompt

    def test_fallback_uses_event_table(self):
        ctx = _ctx(longest_streak=9, event=MotivationEvent.STREAK_BROKEN)
        msg = motivation_service.fallback_message(ctx, rng=random.Random(1))
        assert "9" in msg


# ---------------------------------------------------------------------------
# Generation over HTTP
# ---------------------------------------------------------------------------
def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestGenerateMessage:
    def test_no_api_key_uses_fallback(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        ctx = _ctx(event=MotivationEvent.COMEBACK)
        msg = motivation_service.generate_message(ctx)
        assert msg in motivation_service._fallbacks(ctx)[MotivationEvent.COMEBACK]

    def test_success_returns_model_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "content": [{"type": "text", "text": "  Get moving, Sam.  "}],
            })

        msg = motivation_service.generate_message(
            _ctx(), MessageType.ROAST, client=_client(handler), api_key="k-test", model="m-1",
        )
        assert msg == "Get moving, Sam."
        assert seen["headers"]["x-api-key"] == "k-test"
        assert seen["headers"]["anthropic-version"] == motivation_service.ANTHROPIC_VERSION
        assert seen["body"]["model"] == "m-1"
        assert seen["body"]["max_tokens"] == motivation_service.MAX_TOKENS
        assert "roast message" in seen["body"]["messages"][0]["content"]

    def test_http_error_falls_back(self):
        ctx = _ctx(event=MotivationEvent.SLACKING_HARD)
        msg = motivation_service.generate_message(
            ctx, client=_client(lambda r: httpx.Response(500)), api_key="k",
        )
        assert msg in motivation_service._fallbacks(ctx)[MotivationEvent.SLACKING_HARD]

    def test_empty_reply_falls_back(self):
        handler = lambda r: httpx.Response(200, json={"content": []})  # noqa: E731
        msg = motivation_service.generate_message(_ctx(), client=_client(handler), api_key="k")
        assert msg

    def test_malformed_json_falls_back(self):
        handler = lambda r: httpx.Response(200, content=b"<html>")  # noqa: E731
        msg = motivation_service.generate_message(_ctx(), client=_client(handler), api_key="k")
        assert msg

    @pytest.mark.parametrize("body", [["not", "an", "object"], "text", 42, {"content": "flat"}])
    def test_unexpected_json_shape_falls_back(self, body):
        handler = lambda r: httpx.Response(200, json=body)  # noqa: E731
        ctx = _ctx(event=MotivationEvent.SLACKING_HARD)
        msg = motivation_service.generate_message(ctx, client=_client(handler), api_key="k")
        assert msg in motivation_service._fallbacks(ctx)[MotivationEvent.SLACKING_HARD]


# ---------------------------------------------------------------------------
# Context from the store
# ---------------------------------------------------------------------------
class TestBuildContext:
    def test_context_from_workouts(self, db_engine, cache, user_factory):
        uid = user_factory("sam", full_name="Sam Lee")
        now = datetime(2026, 3, 18, 18, 0, tzinfo=UTC)
        for days_ago in (2, 1, 0):
            workout_service.create_workout(
                db_engine, cache, uid, completed_at=now - timedelta(days=days_ago), now=now,
            )

        ctx = motivation_service.build_context(db_engine, uid, now=now)
        assert ctx.user_name == "Sam Lee"
        assert ctx.buddy_name is None
        assert ctx.current_streak == 3
        assert ctx.longest_streak == 3
        assert ctx.weekly_workouts == 3
        assert ctx.total_workouts == 3
        assert ctx.last_workout_days_ago == 0

    def test_idle_user(self, db_engine, user_factory):
        uid = user_factory("idle")
        ctx = motivation_service.build_context(db_engine, uid)
        assert ctx.user_name == "Idle"
        assert ctx.total_workouts == 0
        assert ctx.event is None
