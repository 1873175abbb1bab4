"""
Post-selection business rules.

``determine_alternatives_to_show`` decides whether the final message lists
alternative times, alternative venues, or neither. It is passed to the
finalizer as a plain callable so deployments can swap the rule set.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from backend.orchestrator.slots import is_leisure, is_weekend
from backend.orchestrator.types import (
    CalendarType,
    EditTemplateCall,
    EventTemplate,
    IntentSpecificity,
    TimeSlot,
)

LEISURE_EVENING_HOUR = 17


@dataclass(frozen=True)
class AlternativesDisplay:
    show_times: bool = False
    show_places: bool = False
    show_conflict_warning: bool = False
    reason: str = "default"


AlternativesPolicy = Callable[[EventTemplate, bool, Optional[EditTemplateCall]], AlternativesDisplay]


def has_time_constraint(template: EventTemplate, edit: Optional[EditTemplateCall]) -> bool:
    return bool(
        template.preferred_dates
        or template.has_explicit_time_request
        or (edit is not None and edit.time_preference is not None)
    )


def has_place_constraint(template: EventTemplate, edit: Optional[EditTemplateCall]) -> bool:
    return bool(
        template.intent_specificity == IntentSpecificity.SPECIFIC_PLACE
        or (edit is not None and (edit.new_place_type or edit.new_place_index is not None))
    )


def determine_alternatives_to_show(
    template: EventTemplate,
    has_valid_time: bool,
    edit: Optional[EditTemplateCall] = None,
) -> AlternativesDisplay:
    """
    1. requested time unavailable -> times, with the conflict warning
    2. user fixed both time and place -> nothing
    3. user fixed the time -> places
    4. user fixed the place -> times
    5. otherwise -> places
    """
    if not has_valid_time:
        return AlternativesDisplay(show_times=True, show_conflict_warning=True, reason="time_unavailable")
    time_fixed = has_time_constraint(template, edit)
    place_fixed = has_place_constraint(template, edit)
    if time_fixed and place_fixed:
        return AlternativesDisplay(reason="fully_constrained")
    if time_fixed:
        return AlternativesDisplay(show_places=True, reason="time_constrained")
    if place_fixed:
        return AlternativesDisplay(show_times=True, reason="place_constrained")
    return AlternativesDisplay(show_places=True, reason="default")


def apply_leisure_correction(
    slots: Sequence[TimeSlot],
    selected_index: int,
    template: EventTemplate,
    calendar_type: CalendarType,
    tz: str,
) -> Tuple[int, bool]:
    """Move a personal leisure event off weekday working hours.

    Returns ``(index, corrected)``. The index is unchanged when the rule does
    not apply or no weekend/evening candidate exists.
    """
    if not slots or not is_leisure(template, calendar_type):
        return selected_index, False
    zone = ZoneInfo(tz)
    chosen = slots[selected_index].start.astimezone(zone)
    if is_weekend(chosen) or chosen.hour >= LEISURE_EVENING_HOUR:
        return selected_index, False
    for i, slot in enumerate(slots):
        local = slot.start.astimezone(zone)
        if is_weekend(local) or local.hour >= LEISURE_EVENING_HOUR:
            return i, True
    return selected_index, False
