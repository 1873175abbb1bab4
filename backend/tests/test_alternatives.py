"""Tests for alternative-time candidates, preselection and the pick stage."""
from __future__ import annotations

import asyncio
import unittest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from backend.clients.llm.base import FunctionCallResult
from backend.orchestrator.handlers.alternatives_handler import (
    AlternativesHandler,
    compute_alternative_candidates,
    filter_by_preference,
    no_change_message,
    preselect_alternatives,
)
from backend.orchestrator.tools import PICK_ALTERNATIVES
from backend.orchestrator.types import (
    CalendarType,
    DateRange,
    EventIntent,
    EventTemplate,
    EventType,
    PreviousEvent,
    SchedulingRequest,
    TimePreference,
    TimeSlot,
    TimeWindow,
)

UTC = timezone.utc
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _run(coro):
    return asyncio.run(coro)


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, day, hour, minute, tzinfo=UTC)


def afternoons() -> list:
    """14:00-16:00 UTC on the weekdays 2-6 and 9-13 March 2026."""
    return [TimeSlot(at(d, 14), at(d, 16)) for d in list(range(2, 7)) + list(range(9, 14))]


def saturday_3pm() -> EventTemplate:
    return EventTemplate(
        intent=EventIntent.CUSTOM,
        title="Bowling",
        duration=60,
        event_type=EventType.VIRTUAL,
        preferred_dates=DateRange(date(2026, 3, 7), date(2026, 3, 7), "Saturday"),
        preferred_hours={"saturday": [TimeWindow("15:00", "16:00")]},
        has_explicit_time_request=True,
        explicit_time="15:00",
    )


def _request() -> SchedulingRequest:
    return SchedulingRequest(user_message="saturday at 3", user1_id="u1", user2_id="u2", user2_name="Sam")


def _llm(result) -> MagicMock:
    llm = MagicMock()
    llm.function_call = AsyncMock(return_value=result)
    return llm


class TestCandidates(unittest.TestCase):
    def test_empty_range_is_widened_and_hours_ignored(self) -> None:
        candidates, widened = compute_alternative_candidates(afternoons(), saturday_3pm(), tz="UTC", now=NOW)
        self.assertTrue(widened)
        self.assertEqual(candidates[0], TimeSlot(at(9, 14), at(9, 15)))
        self.assertTrue(all(at(9, 0) <= s.start < at(14, 0) for s in candidates))

    def test_preselect_prefers_distinct_days(self) -> None:
        candidates, _ = compute_alternative_candidates(afternoons(), saturday_3pm(), tz="UTC", now=NOW)
        picked = preselect_alternatives(candidates, saturday_3pm(), CalendarType.WORK, tz="UTC")
        self.assertEqual(
            [candidates[i].start for i in picked], [at(9, 14), at(10, 14), at(11, 14)],
        )

    def test_leisure_preselect_puts_evenings_first(self) -> None:
        available = afternoons() + [TimeSlot(at(12, 18), at(12, 20))]
        candidates, _ = compute_alternative_candidates(available, saturday_3pm(), tz="UTC", now=NOW)
        picked = preselect_alternatives(candidates, saturday_3pm(), CalendarType.PERSONAL, tz="UTC")
        self.assertEqual(
            [candidates[i].start for i in picked], [at(12, 18), at(9, 14), at(10, 14)],
        )


class TestFilterByPreference(unittest.TestCase):
    def test_earlier_and_later(self) -> None:
        slots = [TimeSlot(at(7, h), at(7, h + 1)) for h in (12, 14, 16, 18)]
        previous = PreviousEvent(at(7, 15), at(7, 16))
        self.assertEqual(
            filter_by_preference(slots, TimePreference.EARLIER, previous), slots[:2],
        )
        self.assertEqual(
            filter_by_preference(slots, TimePreference.LATER, previous), slots[2:],
        )
        self.assertEqual(filter_by_preference(slots, TimePreference.LATER, None), slots)

    def test_no_change_message(self) -> None:
        previous = PreviousEvent(at(7, 15), at(7, 16))
        text = no_change_message(_request(), TimePreference.LATER, previous)
        self.assertIn("no later time", text)
        self.assertIn("Sam", text)
        self.assertIn("Saturday, Mar 7 at 3:00 PM", text)


class TestAlternativesHandler(unittest.TestCase):
    def test_weekday_alternatives_for_unavailable_saturday(self) -> None:
        llm = _llm(FunctionCallResult(PICK_ALTERNATIVES, {"indices": [1, 0, 2], "message": "How about these?"}))
        result = _run(AlternativesHandler(llm).suggest(
            _request(), saturday_3pm(), afternoons(), requested_text="Saturday at 3:00 PM", now=NOW,
        ))

        self.assertEqual(llm.function_call.await_args.kwargs["tool_choice"], PICK_ALTERNATIVES)
        self.assertEqual(result.message, "How about these?")
        self.assertTrue(result.widened)
        self.assertLessEqual(len(result.slots), 3)
        self.assertEqual([s.start for s in result.slots], [at(10, 14), at(9, 14), at(11, 14)])
        self.assertTrue(all(s.start.weekday() < 5 for s in result.slots))
        self.assertEqual(len({s.start.date() for s in result.slots}), len(result.slots))

    def test_out_of_range_indices_are_discarded(self) -> None:
        llm = _llm(FunctionCallResult(PICK_ALTERNATIVES, {"indices": [7, 2, 2, -1], "message": "Try this"}))
        result = _run(AlternativesHandler(llm).suggest(
            _request(), saturday_3pm(), afternoons(), requested_text="Saturday", now=NOW,
        ))
        self.assertEqual([s.start for s in result.slots], [at(11, 14)])

    def test_missing_tool_call_uses_default_order(self) -> None:
        result = _run(AlternativesHandler(_llm(None)).suggest(
            _request(), saturday_3pm(), afternoons(), requested_text="Saturday at 3:00 PM", now=NOW,
        ))
        self.assertEqual([s.start for s in result.slots], [at(9, 14), at(10, 14), at(11, 14)])
        self.assertTrue(result.message.startswith("Saturday at 3:00 PM isn't available."))
        self.assertIn("- Monday, Mar 9 at 2:00 PM", result.message)

    def test_nothing_free_anywhere(self) -> None:
        llm = _llm(None)
        result = _run(AlternativesHandler(llm).suggest(
            _request(), saturday_3pm(), [], requested_text="Saturday", now=NOW,
        ))
        self.assertEqual(result.slots, [])
        self.assertIn("in the next week", result.message)
        llm.function_call.assert_not_awaited()
