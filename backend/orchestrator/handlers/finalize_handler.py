"""
Finalizer: commit to one slot and one venue, build the FinalEvent, stream it
and cache the pair's context for later edits.

The model picks indices; everything that must hold regardless of the model
(conflict slot, leisure correction, buffers, links, extras) is applied here.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, List, Optional, Sequence
from zoneinfo import ZoneInfo

from backend.core.exceptions import CacheError, ToolCallError
from backend.orchestrator.calendar_links import build_calendar_urls
from backend.orchestrator.handlers.base import BaseHandler
from backend.orchestrator.policy import (
    AlternativesPolicy,
    apply_leisure_correction,
    determine_alternatives_to_show,
)
from backend.orchestrator.prompts import format_clock, format_slot_time, selection_messages
from backend.orchestrator.slots import offer_slots
from backend.orchestrator.stream import StreamEmitter
from backend.orchestrator.tools import GENERATE_EVENT, SELECTION_TOOLS, parse_selection_call
from backend.orchestrator.types import (
    CacheEntry,
    FinalEvent,
    Place,
    PreviousEvent,
    SchedulingRequest,
    SlotCandidates,
    TemplateResult,
    TimeSlot,
)

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient
    from backend.infra.cache.base import CacheStore
    from backend.orchestrator.types import SchedulingConfig

logger = logging.getLogger(__name__)

CONFLICT_WARNING = (
    "\n\n⚠️ **IMPORTANT**: This time conflicts with an existing event in your calendar, "
    "but I've scheduled it as requested."
)


def clamp_index(index: Optional[int], size: int) -> int:
    if index is None or size == 0 or not 0 <= index < size:
        return 0
    return index


def travel_description(start: datetime, end: datetime, before: int, after: int, place: Optional[Place], tz: str) -> str:
    zone = ZoneInfo(tz)
    target = place.name if place else "the venue"
    return (
        f"Meeting time: {format_clock(start.astimezone(zone))} - {format_clock(end.astimezone(zone))}\n"
        f"Includes {before} min of travel time to {target} and {after} min back"
    )


def travel_note(before: int, after: int) -> str:
    return f"\n\nI've blocked {before} min before and {after} min after for travel."


def leisure_rationale(title: str, slot: TimeSlot, tz: str) -> str:
    return (
        f"I scheduled **{title}** for {format_slot_time(slot, tz)} so it lands outside "
        "the workday, which suits a personal plan better."
    )


def format_time_options(slots: Sequence[TimeSlot], tz: str) -> str:
    lines = "\n".join(f"- {format_slot_time(s, tz)}" for s in slots)
    return f"\n\n**Other times that work:**\n{lines}"


def format_place_options(places: Sequence[Place]) -> str:
    lines = "\n".join(f"- [{p.name}]({p.url})" if p.url else f"- {p.name}" for p in places)
    return f"\n\n**Other places to consider:**\n{lines}"


def _other_days(slots: Sequence[TimeSlot], chosen: TimeSlot, tz: str, limit: int) -> List[TimeSlot]:
    zone = ZoneInfo(tz)
    chosen_day = chosen.start.astimezone(zone).date()
    out: List[TimeSlot] = []
    days = {chosen_day}
    for slot in slots:
        day = slot.start.astimezone(zone).date()
        if day not in days:
            days.add(day)
            out.append(slot)
        if len(out) >= limit:
            break
    return out


class FinalizeHandler(BaseHandler):
    def __init__(
        self,
        llm: "BaseLLMClient",
        cache: "CacheStore",
        config: Optional["SchedulingConfig"] = None,
        *,
        policy: AlternativesPolicy = determine_alternatives_to_show,
    ) -> None:
        super().__init__(llm, config)
        self._cache = cache
        self._policy = policy

    async def finalize(
        self,
        request: SchedulingRequest,
        result: TemplateResult,
        candidates: SlotCandidates,
        places: Sequence[Place],
        emitter: StreamEmitter,
        *,
        now: datetime,
        alternative_times: Optional[Sequence[TimeSlot]] = None,
    ) -> FinalEvent:
        template = result.template
        tz = request.timezone
        conflict = candidates.has_explicit_time_conflict
        slots = offer_slots(
            candidates.slots,
            template,
            request.calendar_type,
            tz=tz,
            limit=self._config.max_slot_options,
            keep_first=conflict,
        )
        if not slots:
            raise ToolCallError("No candidate slots to select from")
        if template.pinned_place is not None:
            offered_places = [template.pinned_place]
        else:
            offered_places = list(places[: self._config.max_place_options])

        # ── 1. model selection ───────────────────────────────────────────────
        messages = selection_messages(request, template, slots, offered_places, now=now, conflict=conflict)
        try:
            raw = await self._call(
                self._llm.function_call(
                    messages,
                    SELECTION_TOOLS.get_schema_for_llm(),
                    tool_choice=GENERATE_EVENT,
                    model=self._config.selection_model,
                    reasoning_effort=self._config.stage_reasoning_effort,
                    verbosity="low",
                ),
                stage="selection",
            )
        except asyncio.TimeoutError as exc:
            raise ToolCallError("Selection call timed out", cause=exc) from exc
        call = parse_selection_call(raw)
        emitter.progress("Creating calendar event...")

        # ── 2. business rules ────────────────────────────────────────────────
        slot_index = 0 if conflict else clamp_index(call.slot_index, len(slots))
        rationale = call.message
        if not conflict:
            slot_index, corrected = apply_leisure_correction(
                slots, slot_index, template, request.calendar_type, tz,
            )
            if corrected:
                logger.info("FinalizeHandler: leisure correction moved selection to slot %d", slot_index)
                rationale = leisure_rationale(call.title or template.title or "your plan", slots[slot_index], tz)

        place: Optional[Place] = None
        if offered_places and (call.place_index is not None or template.pinned_place is not None):
            place = offered_places[clamp_index(call.place_index, len(offered_places))]

        slot = slots[slot_index]
        title = call.title or template.title or "Meeting"
        before, after = template.before_minutes, template.after_minutes
        block_start = slot.start - timedelta(minutes=before)
        block_end = slot.end + timedelta(minutes=after)

        if template.is_in_person and (before or after):
            description = travel_description(slot.start, slot.end, before, after, place, tz)
        else:
            description = template.description
        location = place.location_text if place else ""

        event_id = f"evt_{uuid.uuid4().hex[:12]}"
        event = FinalEvent(
            id=event_id,
            organizer_id=request.user1_id,
            attendee_id=request.user2_id,
            title=title,
            description=description,
            location=location,
            start_time=slot.start,
            end_time=slot.end,
            calendar_block_start=block_start,
            calendar_block_end=block_end,
            duration=template.duration,
            event_type=template.event_type,
            intent=template.intent,
            travel_buffer=template.travel_buffer,
            place=place,
            calendar_urls=build_calendar_urls(
                event_id, title, block_start, block_end, location, description, stamp=now,
            ),
        )

        # ── 3. message ───────────────────────────────────────────────────────
        text = rationale or f"I've scheduled **{title}** for you and {request.user2_name or 'your contact'}!"
        if template.is_in_person and (before or after):
            text += travel_note(before, after)
        display = self._policy(template, not conflict, result.edit)
        if conflict and display.show_conflict_warning:
            text += CONFLICT_WARNING
        if display.show_times:
            times = list(alternative_times or []) or _other_days(slots, slot, tz, self._config.max_alternatives)
            if times:
                text += format_time_options(times, tz)
        if display.show_places:
            others = [p for p in offered_places if p != place][: self._config.max_alternatives]
            if others:
                text += format_place_options(others)

        emitter.content(text)
        emitter.event(event.to_dict())

        await self._remember(request, result, offered_places or list(places), event, place)
        return event

    async def _remember(
        self,
        request: SchedulingRequest,
        result: TemplateResult,
        places: List[Place],
        event: FinalEvent,
        place: Optional[Place],
    ) -> None:
        entry = CacheEntry(
            event_template=result.template,
            places=places,
            previous_event=PreviousEvent(event.start_time, event.end_time, place),
            final_event=event.to_dict(),
        )
        try:
            await self._cache.set(request.cache_key, entry.to_dict(), self._config.cache_ttl_seconds)
        except CacheError as exc:
            logger.warning("FinalizeHandler: could not cache context for %s: %s", request.pair, exc)
