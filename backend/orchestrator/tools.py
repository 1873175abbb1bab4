"""
Tool schemas offered to the model and parsers for the calls it returns.

Each parser turns a ``FunctionCallResult`` into one typed call object
(``GenerateTemplateCall``, ``EditTemplateCall``, ``SelectionCall``,
``AlternativesCall``) or raises ``ToolCallError``. Callers match on the type.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from backend.clients.llm.base import FunctionCallResult
from backend.core.exceptions import ToolCallError
from backend.orchestrator.types import (
    AlternativesCall,
    DateRange,
    EditTemplateCall,
    EventIntent,
    EventTemplate,
    EventType,
    GenerateTemplateCall,
    IntentSpecificity,
    SelectionCall,
    TemplateToolCall,
    TimePreference,
    TravelBuffer,
    preferred_hours_from_dict,
)

logger = logging.getLogger(__name__)

GENERATE_TEMPLATE = "generateEventTemplate"
EDIT_TEMPLATE = "editEventTemplate"
GENERATE_EVENT = "generateEvent"
PICK_ALTERNATIVES = "pickAlternatives"


@dataclass
class ToolDefinition:
    """Schema for a tool the model may call."""

    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)


class ToolRegistry:
    """Registry of tools offered to the model."""

    def __init__(self, tools: Optional[List[ToolDefinition]] = None) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        self._tools[tool.name] = tool
        logger.debug("ToolRegistry: registered tool '%s'", tool.name)

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    @property
    def names(self) -> List[str]:
        return list(self._tools.keys())

    def get_schema_for_llm(self, names: Optional[List[str]] = None) -> List[dict]:
        """OpenAI function-calling schema, optionally limited to ``names``."""
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                },
            }
            for t in self._tools.values()
            if names is None or t.name in names
        ]


# ─── schemas ─────────────────────────────────────────────────────────────────

_DATE_RANGE = {
    "type": "object",
    "properties": {
        "startDate": {"type": "string", "description": "YYYY-MM-DD"},
        "endDate": {"type": "string", "description": "YYYY-MM-DD"},
        "description": {"type": "string"},
    },
    "required": ["startDate", "endDate"],
}

_HOURS = {
    "type": "object",
    "description": (
        "Day name (monday..sunday) -> list of {start, end} in HH:MM 24h. "
        "Use start == end for an exact requested time."
    ),
    "additionalProperties": {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {"start": {"type": "string"}, "end": {"type": "string"}},
            "required": ["start", "end"],
        },
    },
}

_TRAVEL_BUFFER = {
    "type": "object",
    "properties": {
        "beforeMinutes": {"type": "integer", "minimum": 0},
        "afterMinutes": {"type": "integer", "minimum": 0},
    },
}

GENERATE_TEMPLATE_TOOL = ToolDefinition(
    name=GENERATE_TEMPLATE,
    description="Create a new event template from the user's scheduling request.",
    parameters={
        "type": "object",
        "properties": {
            "intent": {"type": "string", "enum": [i.value for i in EventIntent]},
            "title": {"type": "string"},
            "description": {"type": "string"},
            "duration": {"type": "integer", "description": "Minutes, excluding travel"},
            "eventType": {"type": "string", "enum": [e.value for e in EventType]},
            "preferredSchedulableDates": _DATE_RANGE,
            "preferredSchedulableHours": _HOURS,
            "travelBuffer": _TRAVEL_BUFFER,
            "searchForPlaces": {"type": "boolean"},
            "placeSearchQuery": {"type": "string"},
            "specificPlaceName": {"type": "string"},
            "intentSpecificity": {"type": "string", "enum": [s.value for s in IntentSpecificity]},
            "activitySearchQuery": {"type": "string"},
            "suggestedPlaceTypes": {"type": "array", "items": {"type": "string"}},
            "preferMiddleTimeSlot": {"type": "boolean"},
        },
        "required": ["intent", "title", "duration", "eventType", "intentSpecificity"],
    },
)

EDIT_TEMPLATE_TOOL = ToolDefinition(
    name=EDIT_TEMPLATE,
    description="Change the previously scheduled event. Only include fields the user wants to change.",
    parameters={
        "type": "object",
        "properties": {
            "newPreferredSchedulableDates": _DATE_RANGE,
            "newPreferredSchedulableHours": _HOURS,
            "newDuration": {"type": "integer"},
            "newPlaceType": {"type": "string", "description": "New kind of venue, e.g. 'sushi restaurant'"},
            "newPlaceIndex": {"type": "integer", "description": "Index of a previously offered place"},
            "newTitle": {"type": "string"},
            "newEventType": {"type": "string", "enum": [e.value for e in EventType]},
            "timePreference": {"type": "string", "enum": [p.value for p in TimePreference]},
            "isConditional": {
                "type": "boolean",
                "description": "True when the user asks whether a time works rather than requesting it",
            },
        },
    },
)

GENERATE_EVENT_TOOL = ToolDefinition(
    name=GENERATE_EVENT,
    description="Pick one offered time slot and one offered place for the event.",
    parameters={
        "type": "object",
        "properties": {
            "slotIndex": {"type": "integer", "minimum": 0},
            "placeIndex": {"type": "integer", "description": "-1 when no place fits"},
            "title": {"type": "string"},
            "message": {"type": "string", "description": "Short friendly explanation of the choice"},
        },
        "required": ["slotIndex", "message"],
    },
)

PICK_ALTERNATIVES_TOOL = ToolDefinition(
    name=PICK_ALTERNATIVES,
    description="Choose which of the listed alternative times to offer, in order.",
    parameters={
        "type": "object",
        "properties": {
            "indices": {"type": "array", "items": {"type": "integer"}, "maxItems": 3},
            "message": {"type": "string"},
        },
        "required": ["indices", "message"],
    },
)

TEMPLATE_TOOLS = ToolRegistry([GENERATE_TEMPLATE_TOOL, EDIT_TEMPLATE_TOOL])
SELECTION_TOOLS = ToolRegistry([GENERATE_EVENT_TOOL])
ALTERNATIVES_TOOLS = ToolRegistry([PICK_ALTERNATIVES_TOOL])


# ─── parsers ─────────────────────────────────────────────────────────────────


def _get(args: Dict[str, Any], *names: str) -> Any:
    for name in names:
        if args.get(name) is not None:
            return args[name]
    return None


def _int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _enum(enum_cls, value, default=None):
    try:
        return enum_cls(str(value).strip().lower()) if value is not None else default
    except ValueError:
        return default


def _require(result: Optional[FunctionCallResult], expected: List[str]) -> FunctionCallResult:
    if result is None:
        raise ToolCallError("No function called by LLM", details={"expected": expected})
    if result.tool_name not in expected:
        raise ToolCallError(
            f"Unexpected tool {result.tool_name!r}",
            details={"expected": expected, "got": result.tool_name},
        )
    if result.malformed:
        raise ToolCallError(
            f"Malformed arguments for {result.tool_name}",
            details={"raw": (result.raw_response or "")[:500]},
        )
    return result


def parse_generate_arguments(args: Dict[str, Any]) -> EventTemplate:
    duration = _int(args.get("duration"))
    types = args.get("suggestedPlaceTypes") or []
    return EventTemplate(
        intent=_enum(EventIntent, args.get("intent"), EventIntent.CUSTOM),
        title=_str(args.get("title")) or "",
        description=_str(args.get("description")) or "",
        duration=duration if duration and duration > 0 else 60,
        event_type=_enum(EventType, args.get("eventType"), EventType.IN_PERSON),
        preferred_dates=DateRange.from_dict(args.get("preferredSchedulableDates")),
        preferred_hours=preferred_hours_from_dict(args.get("preferredSchedulableHours")),
        travel_buffer=TravelBuffer.from_dict(args.get("travelBuffer")),
        search_for_places=args.get("searchForPlaces") is not False,
        place_search_query=_str(args.get("placeSearchQuery")),
        specific_place_name=_str(args.get("specificPlaceName")),
        intent_specificity=_enum(IntentSpecificity, args.get("intentSpecificity"), IntentSpecificity.GENERIC),
        activity_search_query=_str(args.get("activitySearchQuery")),
        suggested_place_types=[str(t).strip() for t in types if str(t).strip()] if isinstance(types, list) else [],
        prefer_middle_time_slot=bool(args.get("preferMiddleTimeSlot", False)),
    )


def parse_edit_arguments(args: Dict[str, Any]) -> EditTemplateCall:
    duration = _int(_get(args, "newDuration", "duration"))
    return EditTemplateCall(
        new_dates=DateRange.from_dict(_get(args, "newPreferredSchedulableDates", "preferredSchedulableDates")),
        new_hours=preferred_hours_from_dict(_get(args, "newPreferredSchedulableHours", "preferredSchedulableHours")),
        new_duration=duration if duration and duration > 0 else None,
        new_place_type=_str(args.get("newPlaceType")),
        new_place_index=_int(args.get("newPlaceIndex")),
        new_title=_str(args.get("newTitle")),
        new_event_type=_enum(EventType, args.get("newEventType")),
        time_preference=_enum(TimePreference, args.get("timePreference")),
        is_conditional=bool(args.get("isConditional", False)),
    )


def parse_template_call(result: Optional[FunctionCallResult]) -> TemplateToolCall:
    """generateEventTemplate -> GenerateTemplateCall, editEventTemplate -> EditTemplateCall."""
    result = _require(result, [GENERATE_TEMPLATE, EDIT_TEMPLATE])
    if result.tool_name == EDIT_TEMPLATE:
        return parse_edit_arguments(result.arguments)
    return GenerateTemplateCall(template=parse_generate_arguments(result.arguments))


def parse_selection_call(result: Optional[FunctionCallResult]) -> SelectionCall:
    result = _require(result, [GENERATE_EVENT])
    args = result.arguments
    slot_index = _int(args.get("slotIndex"))
    if slot_index is None:
        raise ToolCallError("generateEvent is missing slotIndex", details={"arguments": args})
    place_index = _int(args.get("placeIndex"))
    return SelectionCall(
        slot_index=slot_index,
        place_index=place_index if place_index is not None and place_index >= 0 else None,
        message=_str(args.get("message")) or "",
        title=_str(args.get("title")),
    )


def parse_alternatives_call(result: Optional[FunctionCallResult]) -> AlternativesCall:
    result = _require(result, [PICK_ALTERNATIVES])
    raw = result.arguments.get("indices")
    indices = [i for i in (_int(v) for v in raw) if i is not None] if isinstance(raw, list) else []
    return AlternativesCall(indices=indices, message=_str(result.arguments.get("message")) or "")
