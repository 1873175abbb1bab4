"""
Template stage: one tool call that either creates a new event template or
edits the one cached for the participant pair.

Preferred hours are stored as block-time windows: meeting-time hours from
the model are widened by the travel buffers, and an explicit instant becomes
the exact block around it.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from backend.core.exceptions import CacheError, NoCachedTemplateError, ToolCallError
from backend.orchestrator.handlers.base import BaseHandler
from backend.orchestrator.handlers.events_handler import latest_events_entry
from backend.orchestrator.prompts import template_messages
from backend.orchestrator.slots import explicit_day_of, explicit_instant, normalize_explicit_hours
from backend.orchestrator.tools import GENERATE_TEMPLATE, TEMPLATE_TOOLS, parse_template_call
from backend.orchestrator.types import (
    DAY_NAMES,
    CacheEntry,
    DateRange,
    EditTemplateCall,
    EventTemplate,
    EventType,
    GenerateTemplateCall,
    IntentSpecificity,
    Place,
    PlaceSearchParams,
    PreferredHours,
    SchedulingRequest,
    SuggestedEvent,
    TemplateResult,
    TimePreference,
    TimeWindow,
    TravelBuffer,
    hhmm_to_minutes,
    minutes_to_hhmm,
    parse_clock_time,
)

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient
    from backend.infra.cache.base import CacheStore
    from backend.orchestrator.types import SchedulingConfig

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.5
_STOP_WORDS = frozenset({
    "a", "an", "and", "at", "for", "in", "of", "on", "or", "the", "to", "with", "do",
    "let's", "lets", "event", "meet", "meeting", "go", "going", "see", "check", "out",
})


# ─── helpers ─────────────────────────────────────────────────────────────────


def title_case(title: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in title.split(" "))


def significant_words(text: str) -> List[str]:
    return [w for w in re.findall(r"[a-z0-9']+", text.lower()) if w not in _STOP_WORDS and len(w) > 1]


def match_suggested_event(text: str, events: List[SuggestedEvent]) -> Optional[SuggestedEvent]:
    """Event sharing the largest share of ``text``'s significant words, if at
    least half of them. A title contained in ``text`` (or vice versa) is a
    full match."""
    words = significant_words(text)
    if not words:
        return None
    lowered = text.lower()
    best: Optional[SuggestedEvent] = None
    best_score = 0.0
    for event in events:
        event_title = event.title.lower()
        if event_title and (lowered in event_title or event_title in lowered):
            score = 1.0
        else:
            event_words = set(significant_words(event.title))
            score = sum(1 for w in words if w in event_words) / len(words)
        if score > best_score:
            best, best_score = event, score
    return best if best_score >= MATCH_THRESHOLD else None


def with_default_buffer(template: EventTemplate, minutes: int) -> EventTemplate:
    if template.is_in_person and template.travel_buffer is None:
        template.travel_buffer = TravelBuffer(minutes, minutes)
    elif not template.is_in_person:
        template.travel_buffer = None
    return template


def shift_hours_for_buffer(
    hours: PreferredHours,
    *,
    duration: int,
    before_minutes: int,
    after_minutes: int,
) -> PreferredHours:
    """Meeting-time windows -> block-time windows.

    A range starts ``before`` earlier (clamped at 00:00) and ends ``after``
    later. An instant becomes the exact block around it.
    """
    instants, _ = normalize_explicit_hours(
        hours, duration=duration, before_minutes=before_minutes, after_minutes=after_minutes,
    )
    out: PreferredHours = {}
    for day, windows in (instants or {}).items():
        shifted: List[TimeWindow] = []
        for original, window in zip(hours[day], windows):
            if original.is_instant:
                shifted.append(window)
            else:
                shifted.append(TimeWindow(
                    minutes_to_hhmm(max(0, window.start_minutes - before_minutes)),
                    minutes_to_hhmm(window.end_minutes + after_minutes),
                ))
        out[day] = shifted
    return out


def rebase_block_hours(
    hours: PreferredHours,
    *,
    old_before: int,
    old_after: int,
    before_minutes: int,
    after_minutes: int,
) -> PreferredHours:
    """Block-time range windows re-expressed for a changed travel buffer."""
    return {
        day: [
            TimeWindow(
                minutes_to_hhmm(max(0, w.start_minutes + old_before - before_minutes)),
                minutes_to_hhmm(w.end_minutes - old_after + after_minutes),
            )
            for w in windows
        ]
        for day, windows in hours.items()
    }


def fit_buffer_to_day(template: EventTemplate, start_minutes: int) -> None:
    """Trim the travel buffer so the block around an explicit start stays
    inside its day (a 00:15 start keeps at most 15 minutes before)."""
    if template.travel_buffer is None:
        return
    before = min(template.before_minutes, start_minutes)
    after = max(0, min(template.after_minutes, 24 * 60 - start_minutes - template.duration))
    if (before, after) != (template.before_minutes, template.after_minutes):
        logger.info("TemplateHandler: travel buffer trimmed to %d/%d minutes", before, after)
        template.travel_buffer = TravelBuffer(before, after)


def set_block_hours(template: EventTemplate, hours: Optional[PreferredHours]) -> None:
    """Store meeting-time ``hours`` on the template as block-time windows and
    record the explicit instant among them, if any."""
    instant = explicit_instant(hours)
    if instant is not None:
        fit_buffer_to_day(template, hhmm_to_minutes(instant[1]))
    template.preferred_hours = shift_hours_for_buffer(
        hours,
        duration=template.duration,
        before_minutes=template.before_minutes,
        after_minutes=template.after_minutes,
    ) if hours else hours
    template.has_explicit_time_request = instant is not None
    template.explicit_day, template.explicit_time = instant if instant is not None else (None, None)


def place_search_params(template: EventTemplate) -> PlaceSearchParams:
    spec = template.intent_specificity
    if spec == IntentSpecificity.SPECIFIC_PLACE:
        query = template.specific_place_name or template.place_search_query
        return PlaceSearchParams(spec, query, list(template.suggested_place_types), template.specific_place_name)
    query = template.activity_search_query or template.place_search_query
    types = list(template.suggested_place_types)
    if spec == IntentSpecificity.ACTIVITY_TYPE and not types and query:
        types = [query]
    return PlaceSearchParams(spec, query, types)


def needs_place_search(template: EventTemplate) -> bool:
    return template.is_in_person and template.search_for_places and template.pinned_place is None


def venue_name(event: SuggestedEvent) -> str:
    """Listed venue, else the address up to its first separator, else the title."""
    from_address = re.split(r"[,—–-]", event.address)[0].strip() if event.address else ""
    return event.venue or from_address or event.title


def pin_suggested_event(template: EventTemplate, event: SuggestedEvent) -> None:
    """Fix the template to a suggested event: its title, its venue and, when
    listed, its date and start time. A listed end time sets the duration."""
    venue = venue_name(event)
    template.title = event.title
    template.pinned_place = Place(
        place_id=f"event:{event.title.lower()}",
        name=venue,
        address=event.address,
        url=event.url,
    )
    template.specific_place_name = venue
    template.place_search_query = event.address or template.place_search_query
    template.intent_specificity = IntentSpecificity.SPECIFIC_PLACE
    template.search_for_places = False
    template.is_suggested_event = True
    if not event.date:
        return
    try:
        day = date.fromisoformat(event.date)
    except ValueError:
        return
    template.preferred_dates = DateRange(day, day, event.title)
    start = parse_clock_time(event.time)
    if start is None:
        return
    if event.end_time:
        length = hhmm_to_minutes(event.end_time) - hhmm_to_minutes(start)
        if length > 0:
            template.duration = length
    set_block_hours(template, {DAY_NAMES[day.weekday()]: [TimeWindow(start, start)]})


# ─── stage ───────────────────────────────────────────────────────────────────


class TemplateHandler(BaseHandler):
    """
    ``tool_choice`` is forced to generateEventTemplate on the first turn and
    left to the model afterwards. A missing or malformed call raises
    ToolCallError; an edit with nothing cached raises NoCachedTemplateError.
    """

    def __init__(self, llm: "BaseLLMClient", cache: "CacheStore", config: Optional["SchedulingConfig"] = None) -> None:
        super().__init__(llm, config)
        self._cache = cache

    async def _load_cached(self, request: SchedulingRequest) -> Optional[CacheEntry]:
        try:
            data = await self._cache.get(request.cache_key)
        except CacheError as exc:
            logger.warning("TemplateHandler: cache read failed for %s: %s", request.pair, exc)
            return None
        return CacheEntry.from_dict(data) if isinstance(data, dict) else None

    async def build(self, request: SchedulingRequest, *, now: datetime) -> TemplateResult:
        has_history = bool(request.conversation_history)
        cached = await self._load_cached(request) if has_history else None
        messages = template_messages(
            request, now=now, cached=cached, max_turns=self._config.max_conversation_turns,
        )
        try:
            result = await self._call(
                self._llm.function_call(
                    messages,
                    TEMPLATE_TOOLS.get_schema_for_llm(),
                    tool_choice=None if has_history else GENERATE_TEMPLATE,
                    model=self._config.template_model,
                    reasoning_effort=self._config.stage_reasoning_effort,
                    verbosity="low",
                ),
                stage="template",
            )
        except asyncio.TimeoutError as exc:
            raise ToolCallError("Template call timed out", cause=exc) from exc

        call = parse_template_call(result)
        if isinstance(call, EditTemplateCall):
            # with no history nothing was loaded, so this raises NoCachedTemplateError
            return self.apply_edit(request, call, cached)
        if isinstance(call, GenerateTemplateCall):
            return await self.apply_generate(request, call)
        raise ToolCallError(f"Unhandled template call {type(call).__name__}")

    async def apply_generate(self, request: SchedulingRequest, call: GenerateTemplateCall) -> TemplateResult:
        template = call.template
        if template.title:
            template.title = title_case(template.title)
        with_default_buffer(template, self._config.default_travel_buffer_minutes)
        set_block_hours(template, template.preferred_hours)

        event = await self._find_suggested_event(request, [template.title, request.user_message])
        if event is not None:
            logger.info("TemplateHandler: matched suggested event %r", event.title)
            call.matched_event = event
            pin_suggested_event(template, event)

        search = needs_place_search(template)
        return TemplateResult(
            template=template,
            mode="new",
            needs_place_search=search,
            place_search_params=place_search_params(template) if search else None,
        )

    async def _find_suggested_event(self, request: SchedulingRequest, texts: List[str]) -> Optional[SuggestedEvent]:
        """Match the template title first, then the user's own words."""
        texts = [t for t in texts if t]
        if not texts:
            return None
        try:
            found = await latest_events_entry(self._cache, request)
        except CacheError as exc:
            logger.warning("TemplateHandler: events lookup failed: %s", exc)
            return None
        if found is None:
            return None
        for text in texts:
            event = match_suggested_event(text, found[1].events)
            if event is not None:
                return event
        return None

    def apply_edit(
        self,
        request: SchedulingRequest,
        edit: EditTemplateCall,
        cached: Optional[CacheEntry],
    ) -> TemplateResult:
        if cached is None:
            raise NoCachedTemplateError(
                f"Cannot edit event: No cached event template found for users "
                f"{request.user1_id} and {request.user2_id}",
                details={"user1_id": request.user1_id, "user2_id": request.user2_id},
            )
        template = replace(cached.event_template)
        places = list(cached.places)
        old_before, old_after = template.before_minutes, template.after_minutes

        if edit.new_event_type is not None:
            template.event_type = edit.new_event_type
        if edit.new_duration:
            template.duration = edit.new_duration
        if edit.new_title:
            template.title = title_case(edit.new_title)
        with_default_buffer(template, self._config.default_travel_buffer_minutes)

        if edit.new_dates is not None:
            template.preferred_dates = edit.new_dates

        if edit.time_preference in (TimePreference.EARLIER, TimePreference.LATER) and not edit.new_hours:
            template.preferred_hours = None
            template.has_explicit_time_request = False
            template.explicit_time = None
            template.explicit_day = None

        if edit.new_hours:
            set_block_hours(template, edit.new_hours)
        elif template.has_explicit_time_request and template.explicit_time:
            day = (
                DAY_NAMES[edit.new_dates.start_date.weekday()]
                if edit.new_dates is not None
                else explicit_day_of(template)
            )
            if day is not None:
                # rebuilt from the instant so new duration, buffer or day all reach the block
                set_block_hours(template, {day: [TimeWindow(template.explicit_time, template.explicit_time)]})
        elif template.preferred_hours and (old_before, old_after) != (template.before_minutes, template.after_minutes):
            template.preferred_hours = rebase_block_hours(
                template.preferred_hours,
                old_before=old_before,
                old_after=old_after,
                before_minutes=template.before_minutes,
                after_minutes=template.after_minutes,
            )

        search = False
        params: Optional[PlaceSearchParams] = None
        if edit.new_place_type:
            search = template.is_in_person
            params = PlaceSearchParams(
                IntentSpecificity.ACTIVITY_TYPE, edit.new_place_type, [edit.new_place_type],
            )
            template.pinned_place = None
            template.intent_specificity = IntentSpecificity.ACTIVITY_TYPE
            template.activity_search_query = edit.new_place_type
            places = []
        elif edit.new_place_index is not None and 0 <= edit.new_place_index < len(places):
            template.pinned_place = places[edit.new_place_index]
        elif template.event_type == EventType.IN_PERSON and not places and needs_place_search(template):
            search = True
            params = place_search_params(template)

        return TemplateResult(
            template=template,
            mode="edit",
            is_conditional=edit.is_conditional,
            time_preference=edit.time_preference,
            previous_event=cached.previous_event,
            cached_places=places,
            needs_place_search=search,
            place_search_params=params,
            edit=edit,
        )
