"""Unit tests for IntentClassifier: parsing and the confirm_scheduling default."""
from __future__ import annotations

import asyncio
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from backend.orchestrator.classifiers.intent_classifier import IntentClassifier
from backend.orchestrator.types import RoutingIntent, SchedulingConfig, SchedulingRequest

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _run(coro):
    return asyncio.run(coro)


def _request() -> SchedulingRequest:
    return SchedulingRequest(user_message="what's on this weekend?", user1_id="u1", user2_id="u2")


class TestIntentParse(unittest.TestCase):
    def test_plain_json(self) -> None:
        result = IntentClassifier.parse(
            '{"message": "Let me look!", "intent": "handle_event", "activitySearchQuery": "jazz concerts"}'
        )
        self.assertEqual(result.intent, RoutingIntent.HANDLE_EVENT)
        self.assertEqual(result.acknowledgment, "Let me look!")
        self.assertEqual(result.activity_search_query, "jazz concerts")
        self.assertFalse(result.fallback_used)

    def test_code_fences_stripped(self) -> None:
        raw = '```json\n{"message": "Sure", "intent": "show_more_events"}\n```'
        self.assertEqual(IntentClassifier.parse(raw).intent, RoutingIntent.SHOW_MORE_EVENTS)

    def test_json_embedded_in_prose(self) -> None:
        raw = 'Here you go: {"message": "Ideas coming", "intent": "suggest_activities"} thanks'
        self.assertEqual(IntentClassifier.parse(raw).intent, RoutingIntent.SUGGEST_ACTIVITIES)

    def test_unknown_intent_defaults_to_confirm(self) -> None:
        result = IntentClassifier.parse('{"message": "Hmm", "intent": "book_flight"}')
        self.assertEqual(result.intent, RoutingIntent.CONFIRM_SCHEDULING)
        self.assertTrue(result.fallback_used)

    def test_garbage_defaults_to_confirm(self) -> None:
        for raw in ("", "not json", None, "[]"):
            result = IntentClassifier.parse(raw)
            self.assertEqual(result.intent, RoutingIntent.CONFIRM_SCHEDULING)
            self.assertTrue(result.acknowledgment)

    def test_empty_message_gets_default_ack(self) -> None:
        result = IntentClassifier.parse('{"intent": "confirm_scheduling"}')
        self.assertEqual(result.acknowledgment, "On it! Let me check your schedules.")


class TestIntentClassify(unittest.TestCase):
    def test_uses_json_mode_with_minimal_budget(self) -> None:
        llm = MagicMock()
        llm.chat = AsyncMock(return_value='{"message": "On it", "intent": "confirm_scheduling"}')
        result = _run(IntentClassifier(llm).classify(_request(), now=NOW))

        self.assertEqual(result.intent, RoutingIntent.CONFIRM_SCHEDULING)
        kwargs = llm.chat.await_args.kwargs
        self.assertTrue(kwargs["json_mode"])
        self.assertEqual(kwargs["reasoning_effort"], "minimal")
        self.assertEqual(kwargs["verbosity"], "low")

    def test_llm_error_falls_back(self) -> None:
        llm = MagicMock()
        llm.chat = AsyncMock(side_effect=RuntimeError("provider down"))
        result = _run(IntentClassifier(llm).classify(_request(), now=NOW))
        self.assertEqual(result.intent, RoutingIntent.CONFIRM_SCHEDULING)
        self.assertTrue(result.fallback_used)

    def test_timeout_falls_back(self) -> None:
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return '{"intent": "handle_event"}'

        llm = MagicMock()
        llm.chat = slow
        classifier = IntentClassifier(llm, SchedulingConfig(llm_timeout_seconds=0.01))
        result = _run(classifier.classify(_request(), now=NOW))
        self.assertEqual(result.intent, RoutingIntent.CONFIRM_SCHEDULING)
        self.assertTrue(result.fallback_used)
