"""
Prompt builders.

Every builder is a pure function of typed inputs (request, template, slots,
places, a fixed "now") and returns the message list for one model call, so
the same inputs always render the same text.
"""
from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from backend.clients.llm.base import LLMMessage
from backend.orchestrator.types import (
    CacheEntry,
    EventTemplate,
    Place,
    RoutingIntent,
    SchedulingRequest,
    TimeSlot,
)

KM_PER_MILE = 1.609


def target_name(request: SchedulingRequest) -> str:
    return request.user2_name or "them"


# ─── formatting ──────────────────────────────────────────────────────────────


def format_clock(moment: datetime) -> str:
    """3:00 PM"""
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment.minute:02d} {'AM' if moment.hour < 12 else 'PM'}"


def format_slot_time(slot: TimeSlot, tz: str) -> str:
    """Saturday, Mar 7 at 3:00 PM"""
    local = slot.start.astimezone(ZoneInfo(tz))
    return f"{local:%A}, {local:%b} {local.day} at {format_clock(local)}"


def day_label(slot: TimeSlot, tz: str, now: datetime) -> str:
    """Today / Tomorrow / weekday name, relative to ``now`` in ``tz``."""
    zone = ZoneInfo(tz)
    day = slot.start.astimezone(zone).date()
    today = now.astimezone(zone).date()
    if day == today:
        return "Today"
    if day == today + timedelta(days=1):
        return "Tomorrow"
    return f"{slot.start.astimezone(zone):%A}"


def format_slot_line(index: int, slot: TimeSlot, tz: str, now: datetime) -> str:
    zone = ZoneInfo(tz)
    start, end = slot.start.astimezone(zone), slot.end.astimezone(zone)
    return (
        f"Slot {index}: {day_label(slot, tz, now)}, {start:%b} {start.day} "
        f"{format_clock(start)} - {format_clock(end)}"
    )


def place_explanations(place: Place) -> List[str]:
    notes: List[str] = []
    if place.rating is not None and place.rating >= 4.5:
        notes.append("highly rated")
    elif place.rating is not None and place.rating >= 4.0:
        notes.append("well-reviewed")
    if place.price_level == 1:
        notes.append("budget-friendly")
    elif place.price_level is not None and place.price_level >= 3:
        notes.append("upscale option")
    if place.open_now is False:
        notes.append("currently closed")
    return notes


def format_place_line(index: int, place: Place) -> str:
    parts = [f"Place {index}: [{place.name}]({place.url})" if place.url else f"Place {index}: {place.name}"]
    if place.address:
        parts.append(place.address)
    if place.rating is not None:
        parts.append(f"rating {place.rating:.1f}")
    if place.distance_from_midpoint_km is not None:
        parts.append(f"{place.distance_from_midpoint_km / KM_PER_MILE:.1f} mi from midpoint")
    notes = place_explanations(place)
    if notes:
        parts.append(", ".join(notes))
    return " | ".join(parts)


def _history(request: SchedulingRequest, max_turns: int) -> List[LLMMessage]:
    turns = request.conversation_history[-max_turns * 2:] if max_turns > 0 else []
    out: List[LLMMessage] = []
    for turn in turns:
        role = turn.get("role", "user")
        content = (turn.get("content") or "").strip()
        if content and role in ("user", "assistant"):
            out.append({"role": role, "content": content})
    return out


def _context_lines(request: SchedulingRequest, now: datetime) -> List[str]:
    local_now = now.astimezone(ZoneInfo(request.timezone))
    lines = [
        f"Current date/time: {local_now:%A} {local_now:%Y-%m-%d %H:%M} ({request.timezone})",
        f"Calendar type: {request.calendar_type.value}",
        f"Scheduling with: {target_name(request)}",
    ]
    if request.user1_location:
        lines.append(f"User location: {request.user1_location}")
    if request.user2_location:
        lines.append(f"{target_name(request)}'s location: {request.user2_location}")
    return lines


def template_summary(template: EventTemplate) -> str:
    return json.dumps(template.to_dict(), ensure_ascii=False, sort_keys=True)


# ─── stage prompts ───────────────────────────────────────────────────────────

_INTENT_SYSTEM = """\
You help people schedule time with {target}. Output JSON with "message" and "intent".

Intents:
- "show_more_events": the user wants more results from a previous event search ("show me more", "what else?", "yes" right after being offered more events).
- "handle_event": the user asks about events happening somewhere (concerts, shows, exhibitions, things to do this weekend).
- "suggest_activities": the user wants ideas for what to do together and has not picked an activity.
- "confirm_scheduling": the user wants to schedule, reschedule or change a meeting, or anything else.

"message" is a short, friendly acknowledgment (max 12 words) that you are on it.
When the intent is "suggest_activities", add "activitySearchQuery" with a short place search query if one is implied.
{context}"""


def intent_messages(request: SchedulingRequest, *, now: datetime, max_turns: int = 10) -> List[LLMMessage]:
    system = _INTENT_SYSTEM.format(
        target=target_name(request),
        context="\n".join(_context_lines(request, now)),
    )
    return [
        {"role": "system", "content": system},
        *_history(request, max_turns),
        {"role": "user", "content": request.user_message},
    ]


_TEMPLATE_SYSTEM = """\
You turn scheduling requests into a structured event template for a meeting with {target}.
{context}

Rules:
- Call generateEventTemplate for a new plan. Call editEventTemplate only to change the plan already made in this conversation.
- Resolve relative dates ("this Saturday", "next week") to YYYY-MM-DD using the current date.
- An exact time ("Saturday at 3pm") is one hours entry with start == end ("15:00"/"15:00") on that day, and a one-day date range.
- For "earlier"/"later" without a specific time set timePreference and leave hours out.
- duration is the meeting itself in minutes; travel is separate.
- intentSpecificity: specific_place when a venue is named, activity_type when a kind of place is asked for ("sushi", "bowling"), else generic.
- Use intent "custom" for leisure activities that are not coffee, lunch, dinner or drinks.
- Titles are short, e.g. "Coffee with {target}".
{cached}"""


def template_messages(
    request: SchedulingRequest,
    *,
    now: datetime,
    cached: Optional[CacheEntry] = None,
    max_turns: int = 10,
) -> List[LLMMessage]:
    cached_text = ""
    if cached is not None:
        cached_text = "\nCurrent plan (for edits):\n" + template_summary(cached.event_template)
        if cached.places:
            cached_text += "\nPreviously offered places:\n" + "\n".join(
                format_place_line(i, p) for i, p in enumerate(cached.places)
            )
    system = _TEMPLATE_SYSTEM.format(
        target=target_name(request),
        context="\n".join(_context_lines(request, now)),
        cached=cached_text,
    )
    return [
        {"role": "system", "content": system},
        *_history(request, max_turns),
        {"role": "user", "content": request.user_message},
    ]


_SELECTION_SYSTEM = """\
You finalize a meeting with {target}. Pick exactly one slot and at most one place from the lists below by calling generateEvent.
{context}

Event: {title} ({intent}, {duration} min, {event_type})
{conflict}
Prefer times that suit the activity and calendar type; evenings and weekends for personal leisure plans.
The message is 1-2 friendly sentences explaining the choice. Link the place as [name](url). Do not list other options.

## Time slots
{slots}

## Places
{places}"""


def selection_messages(
    request: SchedulingRequest,
    template: EventTemplate,
    slots: Sequence[TimeSlot],
    places: Sequence[Place],
    *,
    now: datetime,
    conflict: bool = False,
) -> List[LLMMessage]:
    tz = request.timezone
    conflict_text = (
        "The user asked for Slot 0 explicitly although it conflicts with a calendar event. Select Slot 0."
        if conflict else ""
    )
    system = _SELECTION_SYSTEM.format(
        target=target_name(request),
        context="\n".join(_context_lines(request, now)),
        title=template.title or "Meeting",
        intent=template.intent.value,
        duration=template.duration,
        event_type=template.event_type.value,
        conflict=conflict_text,
        slots="\n".join(format_slot_line(i, s, tz, now) for i, s in enumerate(slots)) or "(none)",
        places="\n".join(format_place_line(i, p) for i, p in enumerate(places)) or "(none; use placeIndex -1)",
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": request.user_message},
    ]


_ALTERNATIVES_SYSTEM = """\
{requested} does not work for {target}. Choose up to {limit} alternatives ONLY from the numbered list by calling pickAlternatives.
Never invent times. Prefer different days. {bias}
The message briefly says the requested time is unavailable and introduces the options; do not restate them as a list.
{context}

## Candidates
{candidates}"""


def alternatives_messages(
    request: SchedulingRequest,
    requested_text: str,
    candidates: Sequence[TimeSlot],
    categories: Sequence[str],
    *,
    now: datetime,
    limit: int,
    leisure: bool,
) -> List[LLMMessage]:
    tz = request.timezone
    lines = [
        f"{i}: {format_slot_time(s, tz)} [{c}]" for i, (s, c) in enumerate(zip(candidates, categories))
    ]
    system = _ALTERNATIVES_SYSTEM.format(
        requested=requested_text,
        target=target_name(request),
        limit=limit,
        bias="This is a personal plan: prefer weekend and evening options." if leisure else "",
        context="\n".join(_context_lines(request, now)),
        candidates="\n".join(lines),
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": request.user_message},
    ]


_EVENT_SEARCH = """\
Find upcoming public events matching: "{query}".
Location: {location}. Date range: {start} to {end}.
Return ONLY a JSON array (no prose) of up to {limit} objects with keys:
"title", "venue", "address", "date" (YYYY-MM-DD), "time" (HH:MM 24h), "url", "description" (one sentence)."""


def event_search_prompt(
    request: SchedulingRequest,
    query: str,
    *,
    now: datetime,
    days: int = 14,
    limit: int = 15,
) -> str:
    local_now = now.astimezone(ZoneInfo(request.timezone))
    location = request.user1_location or request.user2_location or "near the user"
    return _EVENT_SEARCH.format(
        query=query,
        location=location,
        start=local_now.date().isoformat(),
        end=(local_now.date() + timedelta(days=days)).isoformat(),
        limit=limit,
    )


ROUTING_FALLBACK_ACK: Dict[RoutingIntent, str] = {
    RoutingIntent.CONFIRM_SCHEDULING: "On it! Let me check your schedules.",
    RoutingIntent.HANDLE_EVENT: "Let me look up what's happening.",
    RoutingIntent.SUGGEST_ACTIVITIES: "Let me find some ideas for you two.",
    RoutingIntent.SHOW_MORE_EVENTS: "Here are more events.",
}
