"""Core data structures for the scheduling pipeline."""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

ConversationTurn = Dict[str, str]
"""A single turn: {"role": "user" | "assistant", "content": "..."}."""

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class RoutingIntent(str, Enum):
    """Branch chosen by the intent classifier for one turn."""
    HANDLE_EVENT = "handle_event"
    SUGGEST_ACTIVITIES = "suggest_activities"
    SHOW_MORE_EVENTS = "show_more_events"
    CONFIRM_SCHEDULING = "confirm_scheduling"


class EventIntent(str, Enum):
    FIRST_30M = "first30m"
    FIRST_1H = "first1h"
    COFFEE = "coffee"
    LUNCH = "lunch"
    DINNER = "dinner"
    DRINKS = "drinks"
    QUICK_SYNC = "quick_sync"
    DEEP_DIVE = "deep_dive"
    LIVE_WORKING_SESSION = "live_working_session"
    CUSTOM = "custom"
    """Leisure or recreation activity (hiking, bowling, a concert...)."""


class CalendarType(str, Enum):
    PERSONAL = "personal"
    WORK = "work"


class EventType(str, Enum):
    IN_PERSON = "in-person"
    VIRTUAL = "virtual"


class IntentSpecificity(str, Enum):
    SPECIFIC_PLACE = "specific_place"
    ACTIVITY_TYPE = "activity_type"
    GENERIC = "generic"


class TimePreference(str, Enum):
    EARLIER = "earlier"
    LATER = "later"
    SPECIFIC = "specific"


def _enum(enum_cls, value, default):
    try:
        return enum_cls(str(value)) if value is not None else default
    except ValueError:
        return default


def parse_datetime(value: Union[str, datetime]) -> datetime:
    """ISO-8601 (``Z`` suffix accepted) -> datetime."""
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def hhmm_to_minutes(value: str) -> int:
    """"14:30" -> 870. Raises ValueError on malformed input."""
    hours, minutes = str(value).strip().split(":")[:2]
    h, m = int(hours), int(minutes)
    if not (0 <= h <= 24 and 0 <= m < 60) or (h == 24 and m):
        raise ValueError(f"invalid time of day: {value!r}")
    return h * 60 + m


def minutes_to_hhmm(total: int) -> str:
    total = max(0, min(int(total), 24 * 60))
    return f"{total // 60:02d}:{total % 60:02d}"


_CLOCK_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?(?::\d{2})?\s*([ap]\.?m\.?)?$", re.IGNORECASE)


def parse_clock_time(value: Optional[str]) -> Optional[str]:
    """"18:00", "6:00 PM", "6pm" -> "18:00". None when not a clock time."""
    match = _CLOCK_RE.match(str(value or "").strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2) or 0)
    period = (match.group(3) or "").lower().replace(".", "")
    if period:
        if not 1 <= hours <= 12:
            return None
        hours = hours % 12 + (12 if period == "pm" else 0)
    elif match.group(2) is None:
        return None
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


# ─── time ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, order=True)
class TimeSlot:
    """Half-open interval [start, end). Both ends are timezone-aware."""

    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and other.start < self.end

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSlot":
        start = data.get("start") or data.get("startTime") or data.get("start_time")
        end = data.get("end") or data.get("endTime") or data.get("end_time")
        if start is None or end is None:
            raise ValueError(f"time slot requires start and end: {data!r}")
        return cls(parse_datetime(start), parse_datetime(end))


@dataclass(frozen=True)
class TimeWindow:
    """Hour-of-day window, "HH:MM" strings. ``start == end`` is an explicit instant."""

    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return hhmm_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return hhmm_to_minutes(self.end)

    @property
    def is_instant(self) -> bool:
        return self.start_minutes == self.end_minutes

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeWindow":
        start = data.get("start") or data.get("startTime")
        end = data.get("end") or data.get("endTime") or start
        if not start:
            raise ValueError(f"time window requires start: {data!r}")
        # normalise "9:00" -> "09:00"
        return cls(minutes_to_hhmm(hhmm_to_minutes(start)), minutes_to_hhmm(hhmm_to_minutes(end)))


PreferredHours = Dict[str, List[TimeWindow]]
"""day name ("monday".."sunday") -> windows."""


def preferred_hours_to_dict(hours: Optional[PreferredHours]) -> Optional[Dict[str, List[Dict[str, str]]]]:
    if hours is None:
        return None
    return {day: [w.to_dict() for w in windows] for day, windows in hours.items()}


def preferred_hours_from_dict(data: Optional[Dict[str, Any]]) -> Optional[PreferredHours]:
    """Tolerant parse: unknown day names and malformed windows are skipped."""
    if not data or not isinstance(data, dict):
        return None
    out: PreferredHours = {}
    for day, windows in data.items():
        day_name = str(day).strip().lower()
        if day_name not in DAY_NAMES:
            continue
        if isinstance(windows, dict):
            windows = [windows]
        parsed: List[TimeWindow] = []
        for raw in windows or []:
            try:
                parsed.append(TimeWindow.from_dict(raw))
            except (ValueError, TypeError, AttributeError):
                continue
        if parsed:
            out[day_name] = parsed
    return out or None


@dataclass
class DateRange:
    start_date: date
    end_date: date
    description: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DateRange"]:
        """Accepts snake_case, camelCase and the short ``start``/``end`` aliases."""
        if not data or not isinstance(data, dict):
            return None
        start = data.get("start_date") or data.get("startDate") or data.get("start")
        end = data.get("end_date") or data.get("endDate") or data.get("end") or start
        if not start:
            return None
        try:
            start_d, end_d = parse_date(start), parse_date(end)
        except ValueError:
            return None
        if end_d < start_d:
            start_d, end_d = end_d, start_d
        return cls(start_d, end_d, str(data.get("description") or ""))


@dataclass
class TravelBuffer:
    before_minutes: int = 0
    after_minutes: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"before_minutes": self.before_minutes, "after_minutes": self.after_minutes}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["TravelBuffer"]:
        if not data or not isinstance(data, dict):
            return None
        before = data.get("before_minutes", data.get("beforeMinutes", data.get("before", 0)))
        after = data.get("after_minutes", data.get("afterMinutes", data.get("after", 0)))
        try:
            return cls(max(0, int(before or 0)), max(0, int(after or 0)))
        except (TypeError, ValueError):
            return None


# ─── venues ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Place:
    place_id: str
    name: str
    address: str = ""
    coordinates: Optional[Tuple[float, float]] = None
    rating: Optional[float] = None
    """0–5 scale."""
    price_level: Optional[int] = None
    """1 (cheap) – 4 (expensive)."""
    open_now: Optional[bool] = None
    opening_hours: Optional[str] = None
    distance_from_midpoint_km: Optional[float] = None
    url: Optional[str] = None
    categories: Tuple[str, ...] = ()

    @property
    def location_text(self) -> str:
        return f"{self.name}, {self.address}" if self.address else self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "place_id": self.place_id,
            "name": self.name,
            "address": self.address,
            "coordinates": list(self.coordinates) if self.coordinates else None,
            "rating": self.rating,
            "price_level": self.price_level,
            "open_now": self.open_now,
            "opening_hours": self.opening_hours,
            "distance_from_midpoint_km": self.distance_from_midpoint_km,
            "url": self.url,
            "categories": list(self.categories),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Place":
        coords = data.get("coordinates")
        return cls(
            place_id=str(data.get("place_id") or data.get("id") or data.get("name") or ""),
            name=str(data.get("name") or ""),
            address=str(data.get("address") or ""),
            coordinates=(float(coords[0]), float(coords[1])) if coords else None,
            rating=float(data["rating"]) if data.get("rating") is not None else None,
            price_level=int(data["price_level"]) if data.get("price_level") is not None else None,
            open_now=data.get("open_now"),
            opening_hours=data.get("opening_hours"),
            distance_from_midpoint_km=(
                float(data["distance_from_midpoint_km"])
                if data.get("distance_from_midpoint_km") is not None else None
            ),
            url=data.get("url"),
            categories=tuple(data.get("categories") or ()),
        )


@dataclass
class PlaceSearchParams:
    intent_specificity: IntentSpecificity = IntentSpecificity.GENERIC
    query: Optional[str] = None
    suggested_place_types: List[str] = field(default_factory=list)
    specific_place: Optional[str] = None


@dataclass
class SuggestedEvent:
    """An event found by web search (concert, exhibition...)."""

    title: str
    venue: str = ""
    address: str = ""
    date: Optional[str] = None
    """YYYY-MM-DD"""
    time: Optional[str] = None
    """Start "HH:MM" when parseable, else the listing's own text."""
    end_time: Optional[str] = None
    """End "HH:MM" when the listing gives a range."""
    url: Optional[str] = None
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "venue": self.venue,
            "address": self.address,
            "date": self.date,
            "time": self.time,
            "end_time": self.end_time,
            "url": self.url,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SuggestedEvent":
        """Accepts ``time`` as "19:30", "7:30 PM" or a range "7:30 PM - 10 PM",
        and explicit ``startTime``/``endTime`` keys."""
        raw_time = str(data.get("time") or "").strip()
        parts = re.split(r"\s*[-–—]\s*", raw_time, maxsplit=1) if raw_time else []
        start = parse_clock_time(data.get("startTime") or data.get("start_time") or (parts[0] if parts else None))
        end = parse_clock_time(
            data.get("endTime") or data.get("end_time") or (parts[1] if len(parts) > 1 else None)
        )
        return cls(
            title=str(data.get("title") or data.get("name") or "").strip(),
            venue=str(data.get("venue") or data.get("location") or "").strip(),
            address=str(data.get("address") or "").strip(),
            date=(str(data["date"]).strip()[:10] if data.get("date") else None),
            time=start or raw_time or None,
            end_time=end,
            url=data.get("url") or None,
            description=str(data.get("description") or "").strip(),
        )


# ─── template ────────────────────────────────────────────────────────────────


@dataclass
class EventTemplate:
    """Event description negotiated across turns. Partial until finalized;
    the edit stage mutates it in place."""

    intent: EventIntent = EventIntent.CUSTOM
    title: str = ""
    description: str = ""
    duration: int = 60
    """Core meeting length in minutes, excluding travel."""
    event_type: EventType = EventType.IN_PERSON
    preferred_dates: Optional[DateRange] = None
    preferred_hours: Optional[PreferredHours] = None
    travel_buffer: Optional[TravelBuffer] = None
    has_explicit_time_request: bool = False
    explicit_time: Optional[str] = None
    """"HH:MM" of the requested start when has_explicit_time_request."""
    explicit_day: Optional[str] = None
    """Weekday key ("saturday") the explicit time was given for."""
    search_for_places: bool = True
    place_search_query: Optional[str] = None
    specific_place_name: Optional[str] = None
    intent_specificity: IntentSpecificity = IntentSpecificity.GENERIC
    activity_search_query: Optional[str] = None
    suggested_place_types: List[str] = field(default_factory=list)
    pinned_place: Optional[Place] = None
    """Venue fixed by the user or by a matched suggested event."""
    is_suggested_event: bool = False
    prefer_middle_time_slot: bool = False

    @property
    def before_minutes(self) -> int:
        return self.travel_buffer.before_minutes if self.travel_buffer else 0

    @property
    def after_minutes(self) -> int:
        return self.travel_buffer.after_minutes if self.travel_buffer else 0

    @property
    def total_minutes(self) -> int:
        """Span blocked on the calendar: duration plus both buffers."""
        return self.before_minutes + self.duration + self.after_minutes

    @property
    def is_in_person(self) -> bool:
        return self.event_type == EventType.IN_PERSON

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent.value,
            "title": self.title,
            "description": self.description,
            "duration": self.duration,
            "event_type": self.event_type.value,
            "preferred_dates": self.preferred_dates.to_dict() if self.preferred_dates else None,
            "preferred_hours": preferred_hours_to_dict(self.preferred_hours),
            "travel_buffer": self.travel_buffer.to_dict() if self.travel_buffer else None,
            "has_explicit_time_request": self.has_explicit_time_request,
            "explicit_time": self.explicit_time,
            "explicit_day": self.explicit_day,
            "search_for_places": self.search_for_places,
            "place_search_query": self.place_search_query,
            "specific_place_name": self.specific_place_name,
            "intent_specificity": self.intent_specificity.value,
            "activity_search_query": self.activity_search_query,
            "suggested_place_types": list(self.suggested_place_types),
            "pinned_place": self.pinned_place.to_dict() if self.pinned_place else None,
            "is_suggested_event": self.is_suggested_event,
            "prefer_middle_time_slot": self.prefer_middle_time_slot,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "EventTemplate":
        """Load from a cached dict. Missing or invalid keys use defaults."""
        if not data:
            return cls()
        try:
            duration = int(data.get("duration") or 60)
        except (TypeError, ValueError):
            duration = 60
        pinned = data.get("pinned_place")
        return cls(
            intent=_enum(EventIntent, data.get("intent"), EventIntent.CUSTOM),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            duration=max(1, duration),
            event_type=_enum(EventType, data.get("event_type"), EventType.IN_PERSON),
            preferred_dates=DateRange.from_dict(data.get("preferred_dates")),
            preferred_hours=preferred_hours_from_dict(data.get("preferred_hours")),
            travel_buffer=TravelBuffer.from_dict(data.get("travel_buffer")),
            has_explicit_time_request=bool(data.get("has_explicit_time_request", False)),
            explicit_time=data.get("explicit_time") or None,
            explicit_day=data.get("explicit_day") or None,
            search_for_places=bool(data.get("search_for_places", True)),
            place_search_query=data.get("place_search_query") or None,
            specific_place_name=data.get("specific_place_name") or None,
            intent_specificity=_enum(
                IntentSpecificity, data.get("intent_specificity"), IntentSpecificity.GENERIC
            ),
            activity_search_query=data.get("activity_search_query") or None,
            suggested_place_types=list(data.get("suggested_place_types") or []),
            pinned_place=Place.from_dict(pinned) if pinned else None,
            is_suggested_event=bool(data.get("is_suggested_event", False)),
            prefer_middle_time_slot=bool(data.get("prefer_middle_time_slot", False)),
        )


@dataclass
class PreviousEvent:
    start_time: datetime
    end_time: datetime
    place: Optional[Place] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "place": self.place.to_dict() if self.place else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PreviousEvent"]:
        if not data:
            return None
        place = data.get("place")
        return cls(
            start_time=parse_datetime(data["start_time"]),
            end_time=parse_datetime(data["end_time"]),
            place=Place.from_dict(place) if place else None,
        )


@dataclass
class CacheEntry:
    """Per-pair context reused by later edits."""

    event_template: EventTemplate
    places: List[Place] = field(default_factory=list)
    previous_event: Optional[PreviousEvent] = None
    final_event: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_template": self.event_template.to_dict(),
            "places": [p.to_dict() for p in self.places],
            "previous_event": self.previous_event.to_dict() if self.previous_event else None,
            "final_event": self.final_event,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        return cls(
            event_template=EventTemplate.from_dict(data.get("event_template")),
            places=[Place.from_dict(p) for p in data.get("places") or []],
            previous_event=PreviousEvent.from_dict(data.get("previous_event")),
            final_event=data.get("final_event"),
        )


def pair_cache_key(user1_id: str, user2_id: str) -> str:
    return f"places:{user1_id}:{user2_id}"


# ─── final event ─────────────────────────────────────────────────────────────


@dataclass
class CalendarUrls:
    google: str
    outlook: str
    ics: str
    """``data:text/calendar`` URL holding the iCalendar document."""

    def to_dict(self) -> Dict[str, str]:
        return {"google": self.google, "outlook": self.outlook, "ics": self.ics}


@dataclass
class FinalEvent:
    """Terminal artifact. start/end exclude travel; calendar_block_* include it."""

    organizer_id: str
    attendee_id: str
    title: str
    description: str
    location: str
    start_time: datetime
    end_time: datetime
    calendar_block_start: datetime
    calendar_block_end: datetime
    duration: int
    event_type: EventType
    intent: EventIntent
    travel_buffer: Optional[TravelBuffer] = None
    place: Optional[Place] = None
    calendar_urls: Optional[CalendarUrls] = None
    status: str = "scheduled"
    id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "organizer_id": self.organizer_id,
            "attendee_id": self.attendee_id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "calendar_block_start": self.calendar_block_start.isoformat(),
            "calendar_block_end": self.calendar_block_end.isoformat(),
            "duration": self.duration,
            "event_type": self.event_type.value,
            "intent": self.intent.value,
            "travel_buffer": self.travel_buffer.to_dict() if self.travel_buffer else None,
            "place": self.place.to_dict() if self.place else None,
            "calendar_urls": self.calendar_urls.to_dict() if self.calendar_urls else None,
            "status": self.status,
        }


# ─── request ─────────────────────────────────────────────────────────────────


@dataclass
class SchedulingRequest:
    user_message: str
    user1_id: str
    user2_id: str
    conversation_history: List[ConversationTurn] = field(default_factory=list)
    user2_name: Optional[str] = None
    user1_location: Optional[str] = None
    user2_location: Optional[str] = None
    user1_coordinates: Optional[Tuple[float, float]] = None
    user2_coordinates: Optional[Tuple[float, float]] = None
    calendar_type: CalendarType = CalendarType.PERSONAL
    timezone: str = "UTC"
    available_time_slots: Optional[List[TimeSlot]] = None
    """Common free slots already intersected by the caller."""
    user1_free_slots: Optional[List[TimeSlot]] = None
    user2_free_slots: Optional[List[TimeSlot]] = None

    @property
    def cache_key(self) -> str:
        return pair_cache_key(self.user1_id, self.user2_id)

    @property
    def pair(self) -> str:
        return f"{self.user1_id}:{self.user2_id}"


# ─── stage results ───────────────────────────────────────────────────────────


@dataclass
class IntentClassification:
    acknowledgment: str
    intent: RoutingIntent = RoutingIntent.CONFIRM_SCHEDULING
    activity_search_query: Optional[str] = None
    fallback_used: bool = False


@dataclass
class GenerateTemplateCall:
    """generateEventTemplate arguments, validated."""

    template: EventTemplate
    matched_event: Optional[SuggestedEvent] = None


@dataclass
class EditTemplateCall:
    """editEventTemplate arguments: a structured diff against the cached template."""

    new_dates: Optional[DateRange] = None
    new_hours: Optional[PreferredHours] = None
    new_duration: Optional[int] = None
    new_place_type: Optional[str] = None
    new_place_index: Optional[int] = None
    new_title: Optional[str] = None
    new_event_type: Optional[EventType] = None
    time_preference: Optional[TimePreference] = None
    is_conditional: bool = False


TemplateToolCall = Union[GenerateTemplateCall, EditTemplateCall]


@dataclass
class SelectionCall:
    """generateEvent arguments: indices into the offered slots and places."""

    slot_index: int
    place_index: Optional[int]
    message: str
    title: Optional[str] = None


@dataclass
class AlternativesCall:
    """pickAlternatives arguments: indices into the pre-computed whitelist."""

    indices: List[int]
    message: str


@dataclass
class TemplateResult:
    template: EventTemplate
    mode: str = "new"
    """"new" or "edit"."""
    is_conditional: bool = False
    time_preference: Optional[TimePreference] = None
    previous_event: Optional[PreviousEvent] = None
    cached_places: List[Place] = field(default_factory=list)
    needs_place_search: bool = False
    place_search_params: Optional[PlaceSearchParams] = None
    edit: Optional[EditTemplateCall] = None


@dataclass
class SlotCandidates:
    slots: List[TimeSlot]
    has_no_common_time: bool = False
    has_explicit_time_conflict: bool = False
    relaxation: str = "none"
    """Step that produced ``slots``: none, drop_hours, widen_dates, drop_dates,
    explicit_request, preferences, exhausted."""


# ─── behaviour config ────────────────────────────────────────────────────────


@dataclass
class SchedulingConfig:
    """User-configurable pipeline behaviour. Persisted as JSON."""

    intent_model: Optional[str] = None
    template_model: Optional[str] = None
    selection_model: Optional[str] = None
    alternatives_model: Optional[str] = None
    search_model: Optional[str] = None
    """Per-stage model overrides. None = the client's default model."""

    intent_reasoning_effort: Optional[str] = "minimal"
    intent_verbosity: Optional[str] = "low"
    stage_reasoning_effort: Optional[str] = "low"
    """Reasoning hints; only forwarded to models that accept them."""

    llm_timeout_seconds: Optional[float] = None
    """Optional timeout for each LLM call. None leaves timeouts to the client."""

    max_conversation_turns: int = 10
    cache_ttl_seconds: int = 1800
    processing_ttl_seconds: int = 300
    events_ttl_seconds: int = 1800
    conflict_search_window_days: int = 14
    default_search_days: int = 14
    max_slot_options: int = 10
    max_place_options: int = 10
    max_alternatives: int = 3
    max_alternative_candidates: int = 30
    default_travel_buffer_minutes: int = 30
    events_batch_size: int = 5
    enrichment_enabled: bool = True
    enrichment_wait_seconds: float = 8.0
    """How long the request waits for the event search before detaching it."""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON file persistence."""
        return {name: getattr(self, name) for name in self.__dataclass_fields__}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "SchedulingConfig":
        """Load from a dict (e.g. JSON file). Missing or invalid keys use defaults."""
        if not data:
            return cls()
        defaults = cls()
        values: Dict[str, Any] = {}
        for name in cls.__dataclass_fields__:
            if name not in data:
                continue
            raw, default = data[name], getattr(defaults, name)
            if raw is None:
                if name.endswith("_model") or name.endswith("_effort") or name.endswith("_verbosity") \
                        or name == "llm_timeout_seconds":
                    values[name] = None
                continue
            try:
                if name == "llm_timeout_seconds":
                    values[name] = float(raw)
                elif isinstance(default, bool):
                    values[name] = raw if isinstance(raw, bool) else str(raw).lower() in ("1", "true", "yes")
                elif isinstance(default, int):
                    values[name] = max(0, int(raw))
                elif isinstance(default, float):
                    values[name] = float(raw)
                else:
                    values[name] = str(raw).strip() or None
            except (TypeError, ValueError):
                continue
        return cls(**values)
