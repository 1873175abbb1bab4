"""Tests for event search, background enrichment and "show more" paging."""
from __future__ import annotations

import asyncio
import json
import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from backend.infra.cache import InMemoryCacheStore
from backend.orchestrator.background import COMPLETED, BackgroundTaskRegistry
from backend.orchestrator.handlers.events_handler import (
    NO_MORE_RESULTS,
    NO_PREVIOUS_RESULTS,
    SEARCH_FAILED,
    STILL_SEARCHING,
    EventsHandler,
    format_event,
    parse_events,
)
from backend.orchestrator.stream import StreamEmitter
from backend.orchestrator.types import (
    IntentClassification,
    RoutingIntent,
    SchedulingConfig,
    SchedulingRequest,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _run(coro):
    return asyncio.run(coro)


def _request() -> SchedulingRequest:
    return SchedulingRequest(user_message="anything fun this week?", user1_id="u1", user2_id="u2", user2_name="Sam")


def _classification() -> IntentClassification:
    return IntentClassification("Let me look!", RoutingIntent.HANDLE_EVENT, activity_search_query="live music")


def _search_answer(count: int) -> str:
    events = [
        {"title": f"Show {i}", "venue": f"Hall {i}", "date": "2026-03-0%d" % (i % 9 + 1), "time": "20:00"}
        for i in range(count)
    ]
    return "Here is what I found:\n" + json.dumps({"events": events})


class TestParseEvents(unittest.TestCase):
    def test_array_in_prose_with_duplicates(self) -> None:
        raw = 'Sure! [{"title": "Jazz Night"}, {"title": "jazz night"}, {"name": "Art Walk"}, 3] Enjoy.'
        self.assertEqual([e.title for e in parse_events(raw)], ["Jazz Night", "Art Walk"])

    def test_object_with_events(self) -> None:
        events = parse_events(_search_answer(2))
        self.assertEqual(events[0].venue, "Hall 0")
        self.assertEqual(events[0].time, "20:00")

    def test_time_ranges_are_split(self) -> None:
        raw = json.dumps([
            {"title": "Late Set", "date": "2026-03-07", "time": "7:30 PM – 10 PM"},
            {"title": "Gallery Night", "startTime": "18:00", "endTime": "21:00"},
            {"title": "Street Fair", "time": "all day"},
        ])
        late, gallery, fair = parse_events(raw)
        self.assertEqual((late.time, late.end_time), ("19:30", "22:00"))
        self.assertEqual((gallery.time, gallery.end_time), ("18:00", "21:00"))
        self.assertEqual((fair.time, fair.end_time), ("all day", None))
        self.assertIn("2026-03-07 at 19:30-22:00", format_event(late))

    def test_nothing_parsable(self) -> None:
        self.assertEqual(parse_events(None), [])
        self.assertEqual(parse_events("no events today"), [])


class TestEventsHandler(unittest.TestCase):
    def _handler(self, llm, cache, **config) -> EventsHandler:
        cfg = SchedulingConfig(**config)
        return EventsHandler(llm, cache, BackgroundTaskRegistry(cache), cfg)

    def test_search_then_show_more_pages_through_results(self) -> None:
        cache = InMemoryCacheStore(use_timers=False)
        llm = MagicMock()
        llm.web_search = AsyncMock(return_value=_search_answer(7))
        handler = self._handler(llm, cache)

        async def scenario():
            first = StreamEmitter()
            pending = await handler.handle(_request(), _classification(), first, now=NOW)
            second, third = StreamEmitter(), StreamEmitter()
            await handler.show_more(_request(), second)
            await handler.show_more(_request(), third)
            return pending, first.history, second.history, third.history

        pending, first, second, third = _run(scenario())

        self.assertIsNone(pending)
        self.assertEqual([e["type"] for e in first], ["progress", "content"])
        text = first[1]["text"]
        self.assertTrue(text.startswith("Lots of awesome things happening near you and Sam!"))
        self.assertIn("**Show 4**", text)
        self.assertNotIn("**Show 5**", text)
        self.assertIn("I found 2 more events", text)
        self.assertIn("live music", llm.web_search.await_args.args[0])

        more = second[0]["text"]
        self.assertTrue(more.startswith("Here are more events:"))
        self.assertIn("**Show 6**", more)
        self.assertNotIn("more events -", more)
        self.assertEqual(third[0]["text"], NO_MORE_RESULTS)

    def test_show_more_without_search(self) -> None:
        handler = self._handler(MagicMock(), InMemoryCacheStore(use_timers=False))
        emitter = StreamEmitter()
        _run(handler.show_more(_request(), emitter))
        self.assertEqual(emitter.history, [{"type": "content", "text": NO_PREVIOUS_RESULTS}])

    def test_slow_search_leaves_pending_enhancement(self) -> None:
        cache = InMemoryCacheStore(use_timers=False)
        llm = MagicMock()

        async def slow_search(*args, **kwargs):
            await asyncio.sleep(0.05)
            return _search_answer(1)

        llm.web_search = slow_search
        handler = self._handler(llm, cache, enrichment_wait_seconds=0.001)

        async def scenario():
            emitter = StreamEmitter()
            processing_id = await handler.handle(_request(), _classification(), emitter, now=NOW)
            await asyncio.sleep(0.3)
            state = await BackgroundTaskRegistry(cache).get_state(processing_id)
            return processing_id, emitter.history, state

        processing_id, history, state = _run(scenario())
        self.assertTrue(processing_id.startswith("proc_"))
        self.assertEqual(history[1], {"type": "content", "text": STILL_SEARCHING})
        self.assertEqual(history[2], {"type": "enhancement_pending", "processing_id": processing_id})
        self.assertEqual(state.status, COMPLETED)
        self.assertEqual(state.result["total"], 1)

    def test_unsupported_search_reports_failure(self) -> None:
        llm = MagicMock()
        llm.provider = "fake"
        llm.web_search = AsyncMock(return_value=None)
        handler = self._handler(llm, InMemoryCacheStore(use_timers=False))
        emitter = StreamEmitter()
        _run(handler.handle(_request(), _classification(), emitter, now=NOW))
        self.assertEqual(emitter.history[-1], {"type": "content", "text": SEARCH_FAILED})
