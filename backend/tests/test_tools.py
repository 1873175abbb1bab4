"""Tests for tool schemas and tool-call parsing."""
from __future__ import annotations

from datetime import date

import pytest

from backend.clients.llm.base import FunctionCallResult
from backend.core.exceptions import ToolCallError
from backend.orchestrator.tools import (
    EDIT_TEMPLATE,
    GENERATE_EVENT,
    GENERATE_TEMPLATE,
    PICK_ALTERNATIVES,
    TEMPLATE_TOOLS,
    parse_alternatives_call,
    parse_selection_call,
    parse_template_call,
)
from backend.orchestrator.types import (
    EditTemplateCall,
    EventIntent,
    EventType,
    GenerateTemplateCall,
    IntentSpecificity,
    TimePreference,
    TimeWindow,
)


class TestSchemas:
    def test_template_tools_schema(self) -> None:
        schema = TEMPLATE_TOOLS.get_schema_for_llm()
        assert [t["function"]["name"] for t in schema] == [GENERATE_TEMPLATE, EDIT_TEMPLATE]
        assert schema[0]["type"] == "function"
        assert "preferredSchedulableDates" in schema[0]["function"]["parameters"]["properties"]


class TestParseTemplateCall:
    def test_no_call_is_tool_call_error(self) -> None:
        with pytest.raises(ToolCallError):
            parse_template_call(None)

    def test_unexpected_tool(self) -> None:
        with pytest.raises(ToolCallError):
            parse_template_call(FunctionCallResult(GENERATE_EVENT, {}))

    def test_malformed_arguments(self) -> None:
        result = FunctionCallResult(GENERATE_TEMPLATE, {}, raw_response="{oops", malformed=True)
        with pytest.raises(ToolCallError):
            parse_template_call(result)

    def test_generate_with_aliases(self) -> None:
        call = parse_template_call(
            FunctionCallResult(
                GENERATE_TEMPLATE,
                {
                    "intent": "COFFEE",
                    "title": "coffee catch-up",
                    "duration": "45",
                    "eventType": "in-person",
                    "preferredSchedulableDates": {"start": "2026-03-07", "end": "2026-03-08"},
                    "preferredSchedulableHours": {"Saturday": [{"start": "9:00", "end": "12:00"}], "someday": []},
                    "travelBuffer": {"beforeMinutes": 15, "afterMinutes": 20},
                    "intentSpecificity": "activity_type",
                    "suggestedPlaceTypes": ["cafe", " "],
                },
            ),
        )
        assert isinstance(call, GenerateTemplateCall)
        template = call.template
        assert template.intent == EventIntent.COFFEE
        assert template.duration == 45
        assert template.event_type == EventType.IN_PERSON
        assert template.preferred_dates.start_date == date(2026, 3, 7)
        assert template.preferred_dates.end_date == date(2026, 3, 8)
        assert template.preferred_hours == {"saturday": [TimeWindow("09:00", "12:00")]}
        assert (template.before_minutes, template.after_minutes) == (15, 20)
        assert template.intent_specificity == IntentSpecificity.ACTIVITY_TYPE
        assert template.suggested_place_types == ["cafe"]

    def test_generate_defaults_for_bad_values(self) -> None:
        call = parse_template_call(
            FunctionCallResult(GENERATE_TEMPLATE, {"intent": "party", "duration": -5, "eventType": "hologram"}),
        )
        assert call.template.intent == EventIntent.CUSTOM
        assert call.template.duration == 60
        assert call.template.event_type == EventType.IN_PERSON
        assert call.template.search_for_places

    def test_edit_arguments(self) -> None:
        call = parse_template_call(
            FunctionCallResult(
                EDIT_TEMPLATE,
                {
                    "newPreferredSchedulableDates": {"startDate": "2026-03-10", "endDate": "2026-03-10"},
                    "newDuration": 90,
                    "newPlaceType": "sushi restaurant",
                    "timePreference": "later",
                    "isConditional": True,
                },
            ),
        )
        assert isinstance(call, EditTemplateCall)
        assert call.new_dates.start_date == date(2026, 3, 10)
        assert call.new_duration == 90
        assert call.new_place_type == "sushi restaurant"
        assert call.time_preference == TimePreference.LATER
        assert call.is_conditional


class TestParseSelectionCall:
    def test_indices_and_negative_place(self) -> None:
        call = parse_selection_call(
            FunctionCallResult(GENERATE_EVENT, {"slotIndex": 2, "placeIndex": -1, "message": "Saturday works."})
        )
        assert call.slot_index == 2
        assert call.place_index is None
        assert call.message == "Saturday works."

    def test_missing_slot_index(self) -> None:
        with pytest.raises(ToolCallError):
            parse_selection_call(FunctionCallResult(GENERATE_EVENT, {"message": "hi"}))


class TestParseAlternativesCall:
    def test_keeps_integer_indices(self) -> None:
        call = parse_alternatives_call(
            FunctionCallResult(PICK_ALTERNATIVES, {"indices": [1, "0", "x", True], "message": "Try these"})
        )
        assert call.indices == [1, 0]
        assert call.message == "Try these"

    def test_missing_indices(self) -> None:
        call = parse_alternatives_call(FunctionCallResult(PICK_ALTERNATIVES, {"message": ""}))
        assert call.indices == []
