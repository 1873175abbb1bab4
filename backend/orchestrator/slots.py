"""
Slot candidate generation.

Pure functions over free windows and template constraints. No I/O and no
wall-clock reads: the timezone and the "now" reference are parameters, so the
same inputs always produce the same ordered output.

A free window start ``t`` is a valid candidate when the whole block
``[t, t + before + duration + after]`` fits inside one run of contiguous free
time. The emitted slot is the meeting itself: ``[t + before, t + before + duration]``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from backend.orchestrator.types import (
    DAY_NAMES,
    CalendarType,
    DateRange,
    EventIntent,
    EventTemplate,
    PreferredHours,
    SlotCandidates,
    TimeSlot,
    TimeWindow,
    hhmm_to_minutes,
    minutes_to_hhmm,
)

logger = logging.getLogger(__name__)

STEP_MINUTES = 30
MAX_INTERSECTION_SLOTS = 150
EXPLICIT_TOLERANCE_MINUTES = 30
WIDEN_MIN_DAYS = 7
DEFAULT_SEARCH_DAYS = 14

# calendar type -> (weekday windows, weekend windows) used when a day has no preference
_DEFAULT_WINDOWS = {
    CalendarType.PERSONAL: ([TimeWindow("17:00", "21:00")], [TimeWindow("09:00", "21:00")]),
    CalendarType.WORK: ([TimeWindow("09:00", "17:00")], []),
}


@dataclass
class SlotConstraints:
    duration: int
    before_minutes: int = 0
    after_minutes: int = 0
    dates: Optional[DateRange] = None
    hours: Optional[PreferredHours] = None

    @property
    def total_minutes(self) -> int:
        return self.before_minutes + self.duration + self.after_minutes

    @classmethod
    def from_template(cls, template: EventTemplate) -> "SlotConstraints":
        return cls(
            duration=template.duration,
            before_minutes=template.before_minutes,
            after_minutes=template.after_minutes,
            dates=template.preferred_dates,
            hours=template.preferred_hours or None,
        )


# ─── helpers ─────────────────────────────────────────────────────────────────


def day_name(moment: datetime) -> str:
    return DAY_NAMES[moment.weekday()]


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def is_weekend(moment: datetime) -> bool:
    return moment.weekday() >= 5


def time_category(slot: TimeSlot, tz: str) -> str:
    """weekend, weeknight-evening or weekday-midday (local start time)."""
    local = slot.start.astimezone(ZoneInfo(tz))
    if is_weekend(local):
        return "weekend"
    if local.hour >= 17:
        return "weeknight-evening"
    return "weekday-midday"


def _local_bounds(dates: DateRange, zone: ZoneInfo) -> Tuple[datetime, datetime]:
    start = datetime.combine(dates.start_date, time(0, 0), tzinfo=zone)
    end = datetime.combine(dates.end_date, time(23, 59, 59), tzinfo=zone)
    return start, end


def merge_free_blocks(slots: Sequence[TimeSlot]) -> List[TimeSlot]:
    """Sort and coalesce touching or overlapping windows into contiguous blocks."""
    blocks: List[TimeSlot] = []
    for slot in sorted(slots):
        if slot.end <= slot.start:
            continue
        if blocks and slot.start <= blocks[-1].end:
            if slot.end > blocks[-1].end:
                blocks[-1] = TimeSlot(blocks[-1].start, slot.end)
        else:
            blocks.append(slot)
    return blocks


def _candidate_starts(
    block: TimeSlot,
    total: timedelta,
    hours: Optional[PreferredHours],
    zone: ZoneInfo,
) -> List[datetime]:
    """Grid points every STEP_MINUTES from the block start, plus the local start
    of every preferred window inside the block."""
    starts = set()
    step = timedelta(minutes=STEP_MINUTES)
    t = block.start
    while t + total <= block.end:
        starts.add(t)
        t += step
    if hours:
        day = block.start.astimezone(zone).date()
        last = block.end.astimezone(zone).date()
        while day <= last:
            for window in hours.get(DAY_NAMES[day.weekday()], []):
                m = window.start_minutes
                if m >= 24 * 60:
                    continue
                local = datetime.combine(day, time(m // 60, m % 60), tzinfo=zone)
                if block.start <= local and local + total <= block.end:
                    starts.add(local)
            day += timedelta(days=1)
    return sorted(starts)


def _within_hours(local: datetime, hours: PreferredHours, total_minutes: int) -> bool:
    windows = hours.get(day_name(local))
    if not windows:
        return False
    t = minute_of_day(local)
    for window in windows:
        if window.is_instant:
            if abs(t - window.start_minutes) < EXPLICIT_TOLERANCE_MINUTES:
                return True
        elif t >= window.start_minutes and t + total_minutes <= window.end_minutes:
            return True
    return False


# ─── public API ──────────────────────────────────────────────────────────────


def find_slot_intersection(
    user1_slots: Sequence[TimeSlot],
    user2_slots: Sequence[TimeSlot],
    *,
    limit: int = MAX_INTERSECTION_SLOTS,
) -> List[TimeSlot]:
    """Pairwise overlap of both parties' free windows, deduplicated by start."""
    seen = set()
    out: List[TimeSlot] = []
    for a in user1_slots:
        for b in user2_slots:
            start, end = max(a.start, b.start), min(a.end, b.end)
            if start < end and start not in seen:
                seen.add(start)
                out.append(TimeSlot(start, end))
    out.sort()
    return out[:limit]


def get_all_valid_slots(
    available: Sequence[TimeSlot],
    constraints: SlotConstraints,
    *,
    tz: str = "UTC",
    not_before: Optional[datetime] = None,
    busy: Sequence[TimeSlot] = (),
) -> List[TimeSlot]:
    """Every meeting slot satisfying the constraints, ascending by start."""
    zone = ZoneInfo(tz)
    total = timedelta(minutes=constraints.total_minutes)
    before = timedelta(minutes=constraints.before_minutes)
    duration = timedelta(minutes=constraints.duration)
    bounds = _local_bounds(constraints.dates, zone) if constraints.dates else None

    out: List[TimeSlot] = []
    seen = set()
    for block in merge_free_blocks(available):
        for t in _candidate_starts(block, total, constraints.hours, zone):
            if not_before is not None and t < not_before:
                continue
            if bounds is not None and not (bounds[0] <= t <= bounds[1]):
                continue
            local = t.astimezone(zone)
            if constraints.hours and not _within_hours(local, constraints.hours, constraints.total_minutes):
                continue
            blocked = TimeSlot(t, t + total)
            if any(blocked.overlaps(b) for b in busy):
                continue
            start = t + before
            if start in seen:
                continue
            seen.add(start)
            out.append(TimeSlot(start, start + duration))
    out.sort()
    return out


def widen_date_range(dates: DateRange) -> DateRange:
    """End at least WIDEN_MIN_DAYS after the original start; a range that is
    already that long gains another WIDEN_MIN_DAYS."""
    floor = dates.start_date + timedelta(days=WIDEN_MIN_DAYS)
    end = floor if dates.end_date < floor else dates.end_date + timedelta(days=WIDEN_MIN_DAYS)
    return DateRange(dates.start_date, end, dates.description)


def relaxation_steps(base: SlotConstraints) -> Iterator[Tuple[str, SlotConstraints]]:
    """Ordered constraint sets. Lazily built so each step exists only after
    the previous one was consumed."""
    yield "none", base
    current = base
    if current.hours:
        current = replace(current, hours=None)
        yield "drop_hours", current
    if current.dates:
        yield "widen_dates", replace(current, dates=widen_date_range(current.dates))
        yield "drop_dates", replace(current, dates=None)


def explicit_instant(hours: Optional[PreferredHours]) -> Optional[Tuple[str, str]]:
    """``(day, "HH:MM")`` of the first instant window, or ``None``."""
    for day, windows in (hours or {}).items():
        for window in windows:
            if window.is_instant:
                return day, window.start
    return None


def explicit_day_of(template: EventTemplate) -> Optional[str]:
    """Weekday the explicit time belongs to. Templates cached without one fall
    back to the only day that has preferred hours."""
    if template.explicit_day:
        return template.explicit_day
    if template.preferred_hours and len(template.preferred_hours) == 1:
        return next(iter(template.preferred_hours))
    return None


def explicit_date(template: EventTemplate) -> Optional[date]:
    """First preferred date falling on the explicit weekday, else the range start."""
    dates = template.preferred_dates
    if dates is None:
        return None
    day_key = explicit_day_of(template)
    current = dates.start_date
    while day_key in DAY_NAMES and current <= dates.end_date:
        if DAY_NAMES[current.weekday()] == day_key:
            return current
        current += timedelta(days=1)
    return dates.start_date


def requested_slot(template: EventTemplate, tz: str) -> Optional[TimeSlot]:
    """The exact meeting slot of an explicit single-time request, if any."""
    if not (template.has_explicit_time_request and template.explicit_time and template.preferred_dates):
        return None
    try:
        minutes = hhmm_to_minutes(template.explicit_time)
    except ValueError:
        return None
    start = datetime.combine(
        explicit_date(template),
        time(minutes // 60 % 24, minutes % 60),
        tzinfo=ZoneInfo(tz),
    )
    return TimeSlot(start, start + timedelta(minutes=template.duration))


def normalize_explicit_hours(
    hours: Optional[PreferredHours],
    *,
    duration: int,
    before_minutes: int,
    after_minutes: int,
) -> Tuple[Optional[PreferredHours], Optional[str]]:
    """Turn instant windows (start == end) into the exact buffer-inclusive block.

    ``15:00`` with 30/30 buffers and 60 minutes becomes ``14:30-16:30``, which
    admits exactly one free-time start. Returns the new hours and the requested
    "HH:MM", or ``None`` when no window was an instant.

    Windows are clamped to the day, so a block crossing midnight no longer
    contains the instant; callers trim the buffers to the day first.
    """
    if not hours:
        return hours, None
    explicit: Optional[str] = None
    out: PreferredHours = {}
    for day, windows in hours.items():
        converted: List[TimeWindow] = []
        for window in windows:
            if window.is_instant:
                explicit = explicit or window.start
                start = window.start_minutes - before_minutes
                end = window.start_minutes + duration + after_minutes
                converted.append(TimeWindow(minutes_to_hhmm(start), minutes_to_hhmm(end)))
            else:
                converted.append(window)
        out[day] = converted
    return out, explicit


def create_preference_slots(
    template: EventTemplate,
    calendar_type: CalendarType,
    *,
    tz: str,
    now: datetime,
    search_days: int = DEFAULT_SEARCH_DAYS,
) -> List[TimeSlot]:
    """Synthetic candidates from the template's preferences when no availability
    was supplied at all. Days without preferred hours use calendar-type defaults."""
    zone = ZoneInfo(tz)
    local_now = now.astimezone(zone)
    if template.preferred_dates:
        first, last = template.preferred_dates.start_date, template.preferred_dates.end_date
    else:
        first = local_now.date() + timedelta(days=1)
        last = first + timedelta(days=search_days)

    total = timedelta(minutes=template.total_minutes)
    before = timedelta(minutes=template.before_minutes)
    duration = timedelta(minutes=template.duration)
    step = timedelta(minutes=STEP_MINUTES)
    weekday_default, weekend_default = _DEFAULT_WINDOWS[calendar_type]

    out: List[TimeSlot] = []
    day: date = first
    while day <= last:
        windows = (template.preferred_hours or {}).get(DAY_NAMES[day.weekday()])
        if not windows:
            windows = weekend_default if day.weekday() >= 5 else weekday_default
        for window in windows:
            start_m = window.start_minutes
            if start_m >= 24 * 60:
                continue
            t = datetime.combine(day, time(start_m // 60, start_m % 60), tzinfo=zone)
            window_end = datetime.combine(day, time(0, 0), tzinfo=zone) + timedelta(minutes=window.end_minutes)
            if window.is_instant:
                window_end = t + total
            while t + total <= window_end:
                if t >= local_now:
                    out.append(TimeSlot(t + before, t + before + duration))
                t += step
        day += timedelta(days=1)

    if not out:
        tomorrow = datetime.combine(local_now.date() + timedelta(days=1), time(10, 0), tzinfo=zone)
        out.append(TimeSlot(tomorrow, tomorrow + duration))
    return sorted(set(out))


def get_candidate_slots_with_fallback(
    available: Sequence[TimeSlot],
    template: EventTemplate,
    calendar_type: CalendarType,
    *,
    tz: str,
    now: datetime,
    relax: bool = True,
    busy: Sequence[TimeSlot] = (),
) -> SlotCandidates:
    """Valid slots under full constraints, relaxing step by step only while empty.

    An explicit single-time request is never relaxed: when it has no match it
    is injected as the only candidate with both conflict flags set.
    """
    requested = requested_slot(template, tz)

    if not available:
        if requested is not None:
            return SlotCandidates([requested], relaxation="explicit_request")
        slots = create_preference_slots(template, calendar_type, tz=tz, now=now)
        return SlotCandidates(slots, has_no_common_time=True, relaxation="preferences")

    base = SlotConstraints.from_template(template)
    for name, constraints in relaxation_steps(base):
        slots = get_all_valid_slots(available, constraints, tz=tz, not_before=now, busy=busy)
        if slots:
            if name != "none":
                logger.info("Slots: found %d candidates after relaxation %s", len(slots), name)
            return SlotCandidates(slots, relaxation=name)
        if requested is not None:
            logger.info("Slots: explicit request %s has no availability", requested.start.isoformat())
            return SlotCandidates(
                [requested],
                has_no_common_time=True,
                has_explicit_time_conflict=True,
                relaxation="explicit_request",
            )
        if not relax:
            break
    return SlotCandidates([], has_no_common_time=True, relaxation="exhausted")


def select_middle_slot(slots: Sequence[TimeSlot], template: EventTemplate, tz: str) -> Optional[TimeSlot]:
    """On the earliest day that has a preferred window, the slot whose midpoint
    is closest to the window centre. Earlier slots win ties."""
    if not slots or not template.preferred_hours:
        return None
    zone = ZoneInfo(tz)
    by_day: dict = {}
    for slot in sorted(slots):
        by_day.setdefault(slot.start.astimezone(zone).date(), []).append(slot)
    for day in sorted(by_day):
        windows = template.preferred_hours.get(DAY_NAMES[day.weekday()])
        if not windows:
            continue
        centre = (windows[0].start_minutes + windows[0].end_minutes) // 2

        def distance(slot: TimeSlot) -> float:
            return abs(minute_of_day(slot.start.astimezone(zone)) + template.duration / 2 - centre)

        return min(by_day[day], key=lambda s: (distance(s), s.start))
    return None


def is_leisure(template: EventTemplate, calendar_type: CalendarType) -> bool:
    return calendar_type == CalendarType.PERSONAL and template.intent == EventIntent.CUSTOM


def offer_slots(
    slots: Sequence[TimeSlot],
    template: EventTemplate,
    calendar_type: CalendarType,
    *,
    tz: str,
    limit: int,
    keep_first: bool = False,
) -> List[TimeSlot]:
    """At most one slot per local day for the selection prompt.

    Leisure plans take the day's first evening/weekend slot when there is one;
    middle-of-window plans take the slot nearest the window centre.
    ``keep_first`` pins ``slots[0]`` (an injected explicit request) in place.
    """
    zone = ZoneInfo(tz)
    by_day: dict = {}
    for slot in slots[1:] if keep_first else slots:
        by_day.setdefault(slot.start.astimezone(zone).date(), []).append(slot)

    leisure = is_leisure(template, calendar_type)
    out: List[TimeSlot] = [slots[0]] if keep_first and slots else []
    for day in sorted(by_day):
        if len(out) >= limit:
            break
        day_slots = by_day[day]
        pick = day_slots[0]
        if template.prefer_middle_time_slot:
            pick = select_middle_slot(day_slots, template, tz) or pick
        elif leisure:
            pick = next((s for s in day_slots if time_category(s, tz) != "weekday-midday"), pick)
        if pick not in out:
            out.append(pick)
    return out
