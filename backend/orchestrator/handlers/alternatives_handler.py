"""
Alternative times when the requested time is unavailable.

Candidates are computed deterministically; the model only orders and
describes a pre-selected whitelist of at most three of them.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Sequence
from zoneinfo import ZoneInfo

from backend.core.exceptions import ProjectError
from backend.orchestrator.handlers.base import BaseHandler
from backend.orchestrator.prompts import alternatives_messages, format_slot_time, target_name
from backend.orchestrator.slots import (
    SlotConstraints,
    get_all_valid_slots,
    is_leisure,
    time_category,
    widen_date_range,
)
from backend.orchestrator.tools import ALTERNATIVES_TOOLS, PICK_ALTERNATIVES, parse_alternatives_call
from backend.orchestrator.types import (
    CalendarType,
    EventTemplate,
    PreviousEvent,
    SchedulingRequest,
    TimePreference,
    TimeSlot,
)

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient
    from backend.orchestrator.types import SchedulingConfig

logger = logging.getLogger(__name__)

_LEISURE_ORDER = {"weekend": 0, "weeknight-evening": 1, "weekday-midday": 2}


@dataclass
class Alternatives:
    slots: List[TimeSlot] = field(default_factory=list)
    message: str = ""
    widened: bool = False


def compute_alternative_candidates(
    available: Sequence[TimeSlot],
    template: EventTemplate,
    *,
    tz: str,
    now: datetime,
    limit: int = 30,
) -> tuple:
    """All valid slots in the requested date range with the hour filter
    dropped; a range with nothing free is widened once. Returns
    ``(candidates, widened)``."""
    constraints = SlotConstraints(
        duration=template.duration,
        before_minutes=template.before_minutes,
        after_minutes=template.after_minutes,
        dates=template.preferred_dates,
    )
    slots = get_all_valid_slots(available, constraints, tz=tz, not_before=now)
    widened = False
    if not slots and template.preferred_dates:
        widened = True
        constraints.dates = widen_date_range(template.preferred_dates)
        slots = get_all_valid_slots(available, constraints, tz=tz, not_before=now)
    return slots[:limit], widened


def preselect_alternatives(
    candidates: Sequence[TimeSlot],
    template: EventTemplate,
    calendar_type: CalendarType,
    *,
    tz: str,
    limit: int = 3,
) -> List[int]:
    """Indices into ``candidates``: distinct days first, leisure plans biased
    to weekends then evenings, chronological otherwise."""
    zone = ZoneInfo(tz)
    order = list(range(len(candidates)))
    if is_leisure(template, calendar_type):
        order.sort(key=lambda i: (_LEISURE_ORDER[time_category(candidates[i], tz)], candidates[i].start))

    picked: List[int] = []
    days = set()
    for i in order:
        day = candidates[i].start.astimezone(zone).date()
        if day not in days:
            days.add(day)
            picked.append(i)
        if len(picked) >= limit:
            return picked
    for i in order:
        if i not in picked:
            picked.append(i)
        if len(picked) >= limit:
            break
    return picked


def filter_by_preference(
    slots: Sequence[TimeSlot],
    preference: Optional[TimePreference],
    previous: Optional[PreviousEvent],
) -> List[TimeSlot]:
    if previous is None or preference not in (TimePreference.EARLIER, TimePreference.LATER):
        return list(slots)
    if preference == TimePreference.EARLIER:
        return [s for s in slots if s.start < previous.start_time]
    return [s for s in slots if s.start > previous.start_time]


def requested_description(template: EventTemplate) -> str:
    dates = template.preferred_dates
    return dates.description if dates and dates.description else "that time"


def no_alternatives_message(template: EventTemplate, widened: bool) -> str:
    scope = "in the next week" if widened else f"in {requested_description(template)}"
    return (
        f"I checked, but {requested_description(template)} has no availability. "
        f"Unfortunately, I couldn't find any alternative times {scope}.\n\n"
        "Would you like to try a different time range or keep the original time?"
    )


def no_change_message(request: SchedulingRequest, preference: Optional[TimePreference], previous: PreviousEvent) -> str:
    direction = preference.value if preference in (TimePreference.EARLIER, TimePreference.LATER) else "other"
    when = format_slot_time(TimeSlot(previous.start_time, previous.end_time), request.timezone)
    return (
        f"I checked, but there's no {direction} time that works for you and {target_name(request)}. "
        f"Your plan stays on {when}."
    )


def default_alternatives_message(requested: str, slots: Sequence[TimeSlot], tz: str) -> str:
    options = "\n".join(f"- {format_slot_time(s, tz)}" for s in slots)
    return f"{requested} isn't available. Here are some times that work:\n\n{options}"


class AlternativesHandler(BaseHandler):
    def __init__(self, llm: "BaseLLMClient", config: Optional["SchedulingConfig"] = None) -> None:
        super().__init__(llm, config)

    async def suggest(
        self,
        request: SchedulingRequest,
        template: EventTemplate,
        available: Sequence[TimeSlot],
        *,
        requested_text: str,
        now: datetime,
    ) -> Alternatives:
        tz = request.timezone
        candidates, widened = compute_alternative_candidates(
            available, template, tz=tz, now=now, limit=self._config.max_alternative_candidates,
        )
        if not candidates:
            return Alternatives(message=no_alternatives_message(template, widened), widened=widened)

        limit = self._config.max_alternatives
        whitelist = [
            candidates[i]
            for i in preselect_alternatives(candidates, template, request.calendar_type, tz=tz, limit=limit)
        ]
        indices, message = await self._pick(request, template, whitelist, requested_text, now=now)
        chosen = [whitelist[i] for i in indices]
        return Alternatives(
            slots=chosen,
            message=message or default_alternatives_message(requested_text, chosen, tz),
            widened=widened,
        )

    async def _pick(
        self,
        request: SchedulingRequest,
        template: EventTemplate,
        whitelist: List[TimeSlot],
        requested_text: str,
        *,
        now: datetime,
    ) -> tuple:
        default = list(range(min(3, len(whitelist))))
        messages = alternatives_messages(
            request,
            requested_text,
            whitelist,
            [time_category(s, request.timezone) for s in whitelist],
            now=now,
            limit=len(whitelist),
            leisure=is_leisure(template, request.calendar_type),
        )
        try:
            result = await self._call(
                self._llm.function_call(
                    messages,
                    ALTERNATIVES_TOOLS.get_schema_for_llm(),
                    tool_choice=PICK_ALTERNATIVES,
                    model=self._config.alternatives_model,
                    reasoning_effort=self._config.stage_reasoning_effort,
                    verbosity="low",
                ),
                stage="alternatives",
            )
            call = parse_alternatives_call(result)
        except (asyncio.TimeoutError, ProjectError) as exc:
            logger.warning("AlternativesHandler: using default order: %s", exc)
            return default, ""

        indices: List[int] = []
        for i in call.indices:
            if 0 <= i < len(whitelist) and i not in indices:
                indices.append(i)
        if len(indices) != len(call.indices):
            logger.info("AlternativesHandler: discarded indices outside whitelist: %s", call.indices)
        return (indices[: self._config.max_alternatives] or default), call.message
