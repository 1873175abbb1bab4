"""Unit tests for FinalizeHandler: selection rules, calendar block and caching."""
from __future__ import annotations

import asyncio
import unittest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from backend.clients.llm.base import FunctionCallResult
from backend.core.exceptions import CacheError, ToolCallError
from backend.infra.cache import InMemoryCacheStore
from backend.orchestrator.handlers.finalize_handler import (
    CONFLICT_WARNING,
    FinalizeHandler,
    clamp_index,
    travel_description,
)
from backend.orchestrator.stream import StreamEmitter
from backend.orchestrator.tools import GENERATE_EVENT
from backend.orchestrator.types import (
    CacheEntry,
    DateRange,
    EventIntent,
    EventTemplate,
    EventType,
    Place,
    SchedulingRequest,
    SlotCandidates,
    TemplateResult,
    TimeSlot,
    TravelBuffer,
)

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _run(coro):
    return asyncio.run(coro)


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=UTC)


def _request() -> SchedulingRequest:
    return SchedulingRequest(user_message="dinner this week", user1_id="u1", user2_id="u2", user2_name="Sam")


def _llm(arguments) -> MagicMock:
    llm = MagicMock()
    result = FunctionCallResult(GENERATE_EVENT, arguments) if arguments is not None else None
    llm.function_call = AsyncMock(return_value=result)
    return llm


def _dinner() -> EventTemplate:
    return EventTemplate(
        intent=EventIntent.DINNER,
        title="Dinner",
        duration=90,
        event_type=EventType.IN_PERSON,
        travel_buffer=TravelBuffer(30, 30),
    )


def _places() -> list:
    return [
        Place("p1", "Trattoria", "1 Main St", url="https://example.com/trattoria"),
        Place("p2", "Osteria", "2 Side St"),
    ]


class TestHelpers(unittest.TestCase):
    def test_clamp_index(self) -> None:
        self.assertEqual(clamp_index(2, 3), 2)
        self.assertEqual(clamp_index(3, 3), 0)
        self.assertEqual(clamp_index(-1, 3), 0)
        self.assertEqual(clamp_index(None, 3), 0)

    def test_travel_description(self) -> None:
        text = travel_description(at(4, 18), at(4, 19, 30), 15, 20, None, "UTC")
        self.assertEqual(
            text, "Meeting time: 6:00 PM - 7:30 PM\nIncludes 15 min of travel time to the venue and 20 min back",
        )


class TestFinalize(unittest.TestCase):
    def test_in_person_event_with_block_and_cache(self) -> None:
        cache = InMemoryCacheStore(use_timers=False)
        llm = _llm({"slotIndex": 1, "placeIndex": 0, "message": "Wednesday works great."})
        handler = FinalizeHandler(llm, cache)
        emitter = StreamEmitter()
        slots = [TimeSlot(at(3, 18), at(3, 19, 30)), TimeSlot(at(4, 18), at(4, 19, 30))]

        async def scenario():
            event = await handler.finalize(
                _request(), TemplateResult(_dinner()), SlotCandidates(slots), _places(), emitter, now=NOW,
            )
            return event, await cache.get("places:u1:u2")

        event, cached = _run(scenario())

        self.assertEqual(llm.function_call.await_args.kwargs["tool_choice"], GENERATE_EVENT)
        self.assertEqual((event.start_time, event.end_time), (at(4, 18), at(4, 19, 30)))
        self.assertEqual((event.calendar_block_start, event.calendar_block_end), (at(4, 17, 30), at(4, 20)))
        self.assertEqual(event.title, "Dinner")
        self.assertEqual(event.location, "Trattoria, 1 Main St")
        self.assertEqual(
            event.description,
            "Meeting time: 6:00 PM - 7:30 PM\nIncludes 30 min of travel time to Trattoria and 30 min back",
        )
        self.assertIn("dates=20260304T173000Z%2F20260304T200000Z", event.calendar_urls.google)
        self.assertTrue(event.calendar_urls.ics.startswith("data:text/calendar;charset=utf-8,"))

        self.assertEqual(
            [e["type"] for e in emitter.history], ["progress", "content", "event"],
        )
        text = emitter.history[1]["text"]
        self.assertTrue(text.startswith("Wednesday works great."))
        self.assertIn("I've blocked 30 min before and 30 min after for travel.", text)
        self.assertIn("**Other places to consider:**\n- Osteria", text)
        self.assertNotIn(CONFLICT_WARNING, text)
        self.assertEqual(emitter.history[2]["event"]["id"], event.id)

        entry = CacheEntry.from_dict(cached)
        self.assertEqual(entry.previous_event.start_time, at(4, 18))
        self.assertEqual(entry.previous_event.place.name, "Trattoria")
        self.assertEqual([p.name for p in entry.places], ["Trattoria", "Osteria"])
        self.assertEqual(entry.final_event["id"], event.id)

    def test_conflict_forces_requested_slot_and_warns(self) -> None:
        template = EventTemplate(
            intent=EventIntent.CUSTOM,
            title="Bowling",
            duration=60,
            event_type=EventType.VIRTUAL,
            preferred_dates=DateRange(date(2026, 3, 7), date(2026, 3, 7), "Saturday"),
            has_explicit_time_request=True,
            explicit_time="15:00",
        )
        slots = [TimeSlot(at(7, 15), at(7, 16)), TimeSlot(at(9, 14), at(9, 15))]
        handler = FinalizeHandler(
            _llm({"slotIndex": 1, "message": "Booked for Saturday."}), InMemoryCacheStore(use_timers=False),
        )
        emitter = StreamEmitter()
        event = _run(handler.finalize(
            _request(), TemplateResult(template),
            SlotCandidates(slots, has_explicit_time_conflict=True), [], emitter,
            now=NOW, alternative_times=[slots[1]],
        ))

        self.assertEqual(event.start_time, at(7, 15))
        self.assertEqual(event.calendar_block_start, at(7, 15))
        self.assertIsNone(event.place)
        text = emitter.history[1]["text"]
        self.assertIn(CONFLICT_WARNING, text)
        self.assertIn("**Other times that work:**\n- Monday, Mar 9 at 2:00 PM", text)

    def test_leisure_correction_replaces_rationale(self) -> None:
        template = EventTemplate(
            intent=EventIntent.CUSTOM, title="Board Games", duration=60, event_type=EventType.VIRTUAL,
        )
        slots = [TimeSlot(at(2, 10), at(2, 11)), TimeSlot(at(7, 14), at(7, 15))]
        handler = FinalizeHandler(
            _llm({"slotIndex": 0, "message": "Monday morning it is."}), InMemoryCacheStore(use_timers=False),
        )
        emitter = StreamEmitter()
        event = _run(handler.finalize(
            _request(), TemplateResult(template), SlotCandidates(slots), [], emitter, now=NOW,
        ))

        self.assertEqual(event.start_time, at(7, 14))
        text = emitter.history[1]["text"]
        self.assertNotIn("Monday morning", text)
        self.assertTrue(text.startswith("I scheduled **Board Games** for Saturday, Mar 7 at 2:00 PM"))

    def test_out_of_range_index_and_default_text(self) -> None:
        template = EventTemplate(
            intent=EventIntent.QUICK_SYNC, title="Sync", duration=30, event_type=EventType.VIRTUAL,
        )
        slots = [TimeSlot(at(2, 10), at(2, 10, 30)), TimeSlot(at(3, 10), at(3, 10, 30))]
        handler = FinalizeHandler(_llm({"slotIndex": 9, "message": ""}), InMemoryCacheStore(use_timers=False))
        emitter = StreamEmitter()
        event = _run(handler.finalize(
            _request(), TemplateResult(template), SlotCandidates(slots), _places(), emitter, now=NOW,
        ))

        self.assertEqual(event.start_time, at(2, 10))
        self.assertIsNone(event.place)
        self.assertEqual(event.location, "")
        self.assertTrue(emitter.history[1]["text"].startswith("I've scheduled **Sync** for you and Sam!"))

    def test_pinned_place_is_the_only_place(self) -> None:
        template = _dinner()
        template.pinned_place = Place("event:jazz", "Blue Note", "131 W 3rd St")
        llm = _llm({"slotIndex": 0, "message": "See you there."})
        handler = FinalizeHandler(llm, InMemoryCacheStore(use_timers=False))
        event = _run(handler.finalize(
            _request(), TemplateResult(template), SlotCandidates([TimeSlot(at(4, 18), at(4, 19, 30))]),
            _places(), StreamEmitter(), now=NOW,
        ))
        self.assertEqual(event.place.name, "Blue Note")
        self.assertEqual(event.location, "Blue Note, 131 W 3rd St")

    def test_missing_tool_call_raises(self) -> None:
        handler = FinalizeHandler(_llm(None), InMemoryCacheStore(use_timers=False))
        emitter = StreamEmitter()
        with self.assertRaises(ToolCallError):
            _run(handler.finalize(
                _request(), TemplateResult(_dinner()), SlotCandidates([TimeSlot(at(4, 18), at(4, 19, 30))]),
                [], emitter, now=NOW,
            ))
        self.assertEqual(emitter.history, [])

    def test_no_slots_raises(self) -> None:
        handler = FinalizeHandler(_llm({"slotIndex": 0}), InMemoryCacheStore(use_timers=False))
        with self.assertRaises(ToolCallError):
            _run(handler.finalize(
                _request(), TemplateResult(_dinner()), SlotCandidates([]), [], StreamEmitter(), now=NOW,
            ))

    def test_cache_failure_still_returns_event(self) -> None:
        cache = MagicMock()
        cache.set = AsyncMock(side_effect=CacheError("redis down"))
        handler = FinalizeHandler(_llm({"slotIndex": 0, "message": "Done."}), cache)
        emitter = StreamEmitter()
        event = _run(handler.finalize(
            _request(), TemplateResult(_dinner()), SlotCandidates([TimeSlot(at(4, 18), at(4, 19, 30))]),
            [], emitter, now=NOW,
        ))
        self.assertEqual(event.start_time, at(4, 18))
        self.assertEqual(emitter.history[-1]["type"], "event")
