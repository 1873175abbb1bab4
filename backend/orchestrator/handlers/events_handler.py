"""Event discovery: web-search enrichment and "show more" paging."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from backend.core.exceptions import CacheError, ExternalServiceError
from backend.orchestrator.background import COMPLETED, BackgroundTaskRegistry, new_processing_id
from backend.orchestrator.handlers.base import BaseHandler
from backend.orchestrator.prompts import event_search_prompt, target_name
from backend.orchestrator.stream import StreamEmitter
from backend.orchestrator.types import IntentClassification, SchedulingRequest, SuggestedEvent

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient
    from backend.infra.cache.base import CacheStore
    from backend.orchestrator.types import SchedulingConfig

logger = logging.getLogger(__name__)

NO_PREVIOUS_RESULTS = (
    "I couldn't find the previous event search results. "
    "Could you tell me what you're looking for again?"
)
NO_MORE_RESULTS = "That's all the events I found! Would you like me to search for something else?"
STILL_SEARCHING = "I'm still searching for events. I'll have results for you in a moment."
SEARCH_FAILED = "I couldn't search for events right now. Would you like some activity ideas instead?"
NO_EVENTS_FOUND = (
    "I searched, but couldn't find any special events listed online. "
    "Would you like me to suggest some activities instead?"
)


def events_key_prefix(request: SchedulingRequest) -> str:
    return f"events:{request.user1_id}:{request.user2_id}:"


def _key_timestamp(key: str) -> int:
    try:
        return int(key.rsplit(":", 1)[-1])
    except ValueError:
        return 0


@dataclass
class EventsCacheEntry:
    events: List[SuggestedEvent] = field(default_factory=list)
    shown_count: int = 0
    query: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [e.to_dict() for e in self.events],
            "shown_count": self.shown_count,
            "query": self.query,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventsCacheEntry":
        return cls(
            events=[SuggestedEvent.from_dict(e) for e in data.get("events") or [] if isinstance(e, dict)],
            shown_count=int(data.get("shown_count") or 0),
            query=str(data.get("query") or ""),
        )


async def latest_events_entry(
    cache: "CacheStore", request: SchedulingRequest
) -> Optional[tuple]:
    """Most recent ``(key, EventsCacheEntry)`` for the pair, by key timestamp."""
    keys = await cache.keys(events_key_prefix(request) + "*")
    for key in sorted(keys, key=_key_timestamp, reverse=True):
        data = await cache.get(key)
        if isinstance(data, dict):
            return key, EventsCacheEntry.from_dict(data)
    return None


def parse_events(raw: Optional[str]) -> List[SuggestedEvent]:
    """Events from a web-search answer: a JSON array or ``{"events": [...]}``,
    possibly wrapped in prose. Titles are deduplicated case-insensitively."""
    text = (raw or "").strip()
    if not text:
        return []
    data: Any = None
    for pattern in (r"\[[\s\S]*\]", r"\{[\s\S]*\}"):
        match = re.search(pattern, text)
        if not match:
            continue
        try:
            data = json.loads(match.group())
            break
        except json.JSONDecodeError:
            continue
    if isinstance(data, dict):
        data = data.get("events")
    if not isinstance(data, list):
        logger.warning("EventsHandler: no event JSON in search answer: %s", text[:200])
        return []

    seen = set()
    events: List[SuggestedEvent] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        event = SuggestedEvent.from_dict(item)
        key = event.title.lower()
        if not event.title or key in seen:
            continue
        seen.add(key)
        events.append(event)
    return events


def format_event(event: SuggestedEvent) -> str:
    title = f"**[{event.title}]({event.url})**" if event.url else f"**{event.title}**"
    lines = [f"- {title}"]
    clock = f"{event.time}-{event.end_time}" if event.time and event.end_time else event.time
    when = " at ".join(p for p in (event.date, clock) if p)
    if when:
        lines.append(f"  - 📅 {when}")
    where = ", ".join(p for p in (event.venue, event.address) if p)
    if where:
        lines.append(f"  - 📍 {where}")
    if event.description:
        lines.append(f"  - {event.description}")
    return "\n".join(lines)


def format_events_message(header: str, events: List[SuggestedEvent], remaining: int) -> str:
    body = "\n\n".join(format_event(e) for e in events)
    tail = f"\n\nI found {remaining} more events - would you like to see them?" if remaining > 0 else ""
    return f"{header}\n\n{body}{tail}"


class EventsHandler(BaseHandler):
    """
    ``handle`` starts the web search as a supervised background task and waits
    up to ``enrichment_wait_seconds``. A late search leaves an
    ``enhancement_pending`` envelope; its result is polled by processing id.
    """

    def __init__(
        self,
        llm: "BaseLLMClient",
        cache: "CacheStore",
        registry: BackgroundTaskRegistry,
        config: Optional["SchedulingConfig"] = None,
    ) -> None:
        super().__init__(llm, config)
        self._cache = cache
        self._registry = registry

    async def search(self, request: SchedulingRequest, query: str, *, now: datetime) -> Dict[str, Any]:
        """Run the search, cache every event for paging, return the display payload."""
        deltas = 0

        def on_delta(_chunk: str) -> None:
            nonlocal deltas
            deltas += 1

        prompt = event_search_prompt(request, query, now=now, days=self._config.default_search_days)
        raw = await self._llm.web_search(prompt, on_delta=on_delta, model=self._config.search_model)
        if raw is None:
            raise ExternalServiceError(f"{self._llm.provider} does not support web search")
        events = parse_events(raw)
        logger.info("EventsHandler: %d events for %r (%d deltas)", len(events), query, deltas)
        if not events:
            return {"message": NO_EVENTS_FOUND, "events_cache_key": None, "total": 0}

        batch = self._config.events_batch_size
        key = f"{events_key_prefix(request)}{int(now.timestamp() * 1000)}"
        entry = EventsCacheEntry(events=events, shown_count=min(batch, len(events)), query=query)
        try:
            await self._cache.set(key, entry.to_dict(), self._config.events_ttl_seconds)
        except CacheError as exc:
            logger.warning("EventsHandler: could not cache events: %s", exc)
            key = None
        header = f"Lots of awesome things happening near you and {target_name(request)}!"
        return {
            "message": format_events_message(header, events[:batch], len(events) - batch),
            "events_cache_key": key,
            "total": len(events),
        }

    async def handle(
        self,
        request: SchedulingRequest,
        classification: IntentClassification,
        emitter: StreamEmitter,
        *,
        now: datetime,
    ) -> Optional[str]:
        """Returns the processing id when the search is still running."""
        query = classification.activity_search_query or request.user_message
        emitter.progress("Searching for events...")
        processing_id = new_processing_id(int(now.timestamp() * 1000))
        task = await self._registry.submit(processing_id, lambda: self.search(request, query, now=now))

        state = await self._registry.wait(task, self._config.enrichment_wait_seconds)
        if state is None:
            emitter.content(STILL_SEARCHING)
            emitter.enhancement_pending(processing_id)
            return processing_id
        if state.status == COMPLETED and isinstance(state.result, dict):
            emitter.content(state.result.get("message") or NO_EVENTS_FOUND)
        else:
            emitter.content(SEARCH_FAILED)
        return None

    async def show_more(self, request: SchedulingRequest, emitter: StreamEmitter) -> None:
        try:
            found = await latest_events_entry(self._cache, request)
        except CacheError as exc:
            logger.warning("EventsHandler: events lookup failed: %s", exc)
            found = None
        if found is None:
            emitter.content(NO_PREVIOUS_RESULTS)
            return

        key, entry = found
        batch = self._config.events_batch_size
        start = entry.shown_count
        page = entry.events[start:start + batch]
        if not page:
            emitter.content(NO_MORE_RESULTS)
            return

        entry.shown_count = start + len(page)
        try:
            await self._cache.set(key, entry.to_dict(), self._config.events_ttl_seconds)
        except CacheError as exc:
            logger.warning("EventsHandler: could not update shown count: %s", exc)
        remaining = len(entry.events) - entry.shown_count
        emitter.content(format_events_message("Here are more events:", page, remaining))
