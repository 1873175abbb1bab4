"""Orchestrator: top-level router that classifies the turn and drives the
scheduling pipeline.

    classify ─┬─ show_more_events   -> EventsHandler.show_more
              ├─ handle_event       -> EventsHandler.handle (background search)
              ├─ suggest_activities -> ActivitiesHandler
              └─ confirm_scheduling -> template -> availability -> slots
                                       -> venues -> [alternatives] -> finalize

Every envelope goes through the request's StreamEmitter. Any stage raising
ends the stream with one generic error envelope; the stream is always closed.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List, Optional, Set, Tuple

from backend.core.exceptions.base import GENERIC_PUBLIC_MESSAGE
from backend.core.logger import bind_request_context
from backend.orchestrator.background import BackgroundTaskRegistry
from backend.orchestrator.classifiers.intent_classifier import IntentClassifier
from backend.orchestrator.handlers.activities_handler import ActivitiesHandler
from backend.orchestrator.handlers.alternatives_handler import (
    AlternativesHandler,
    filter_by_preference,
    no_change_message,
    requested_description,
)
from backend.orchestrator.handlers.events_handler import EventsHandler
from backend.orchestrator.handlers.finalize_handler import FinalizeHandler
from backend.orchestrator.handlers.template_handler import TemplateHandler
from backend.orchestrator.policy import AlternativesPolicy, determine_alternatives_to_show
from backend.orchestrator.prompts import format_slot_time, target_name
from backend.orchestrator.slots import get_candidate_slots_with_fallback
from backend.orchestrator.stream import StreamEmitter
from backend.orchestrator.types import (
    FinalEvent,
    Place,
    RoutingIntent,
    SchedulingConfig,
    SchedulingRequest,
    SlotCandidates,
    TemplateResult,
    TimePreference,
    TimeSlot,
)

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient
    from backend.infra.cache.base import CacheStore
    from backend.services.availability_service import AvailabilityService
    from backend.services.venue_service import VenueService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def no_common_time_message(request: SchedulingRequest) -> str:
    return (
        f"I couldn't find a time that works for both you and {target_name(request)}. "
        "Would you like to try a different day or a shorter meeting?"
    )


class SchedulingOrchestrator:
    """Central entry-point for one scheduling turn.

    All collaborators are injected; the orchestrator keeps no per-pair state
    of its own (that lives in the cache).
    """

    def __init__(
        self,
        llm: "BaseLLMClient",
        cache: "CacheStore",
        *,
        availability: "AvailabilityService",
        venues: "VenueService",
        registry: Optional[BackgroundTaskRegistry] = None,
        config: Optional[SchedulingConfig] = None,
        policy: AlternativesPolicy = determine_alternatives_to_show,
        clock: Clock = utc_now,
    ) -> None:
        self._llm = llm
        self._cache = cache
        self._config = config or SchedulingConfig()
        self._availability = availability
        self._venues = venues
        self._registry = registry or BackgroundTaskRegistry(
            cache, ttl_seconds=self._config.processing_ttl_seconds
        )
        self._clock = clock
        self._runs: Set["asyncio.Task[Optional[FinalEvent]]"] = set()

        self._classifier = IntentClassifier(llm, self._config)
        self._template = TemplateHandler(llm, cache, self._config)
        self._alternatives = AlternativesHandler(llm, self._config)
        self._finalizer = FinalizeHandler(llm, cache, self._config, policy=policy)
        self._events = EventsHandler(llm, cache, self._registry, self._config)
        self._activities = ActivitiesHandler(venues)

    @property
    def config(self) -> SchedulingConfig:
        return self._config

    @property
    def registry(self) -> BackgroundTaskRegistry:
        return self._registry

    @property
    def availability(self) -> "AvailabilityService":
        return self._availability

    @property
    def venues(self) -> "VenueService":
        return self._venues

    # ─── entry points ────────────────────────────────────────────────────────

    def start(self, request: SchedulingRequest) -> Tuple[StreamEmitter, "asyncio.Task[Optional[FinalEvent]]"]:
        """Run the turn as its own task and hand back the stream to drain."""
        emitter = StreamEmitter()
        task = asyncio.create_task(self.run(request, emitter))
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
        return emitter, task

    async def run(self, request: SchedulingRequest, emitter: StreamEmitter) -> Optional[FinalEvent]:
        """Process one turn. Never raises (except cancellation); always closes
        ``emitter``. Returns the FinalEvent when one was produced."""
        request_id = f"req_{uuid.uuid4().hex[:12]}"
        with bind_request_context(request_id, request.pair):
            try:
                return await self._dispatch(request, emitter)
            except Exception as exc:
                logger.error(
                    "SchedulingOrchestrator: request failed (%s): %s",
                    type(exc).__name__, exc, exc_info=True,
                )
                self._guard(emitter.error, GENERIC_PUBLIC_MESSAGE)
            finally:
                self._guard(emitter.close)
        return None

    async def shutdown(self) -> None:
        for task in list(self._runs):
            task.cancel()
        if self._runs:
            await asyncio.gather(*self._runs, return_exceptions=True)
        await self._registry.shutdown()

    @staticmethod
    def _guard(fn: Callable[..., bool], *args: str) -> None:
        try:
            fn(*args)
        except Exception as exc:
            logger.error("SchedulingOrchestrator: could not emit %s: %s", fn.__name__, exc)

    # ─── routing ─────────────────────────────────────────────────────────────

    async def _dispatch(self, request: SchedulingRequest, emitter: StreamEmitter) -> Optional[FinalEvent]:
        now = self._clock()
        classification = await self._classifier.classify(request, now=now)
        emitter.acknowledgment(classification.acknowledgment, classification.intent.value)
        logger.info(
            "SchedulingOrchestrator: intent=%s fallback=%s",
            classification.intent.value, classification.fallback_used,
        )

        if classification.intent == RoutingIntent.SHOW_MORE_EVENTS:
            await self._events.show_more(request, emitter)
            return None
        if classification.intent == RoutingIntent.HANDLE_EVENT:
            if not self._config.enrichment_enabled:
                await self._activities.handle(request, classification, emitter)
                return None
            await self._events.handle(request, classification, emitter, now=now)
            return None
        if classification.intent == RoutingIntent.SUGGEST_ACTIVITIES:
            await self._activities.handle(request, classification, emitter)
            return None
        return await self._schedule(request, emitter, now=now)

    # ─── scheduling pipeline ─────────────────────────────────────────────────

    async def _schedule(
        self,
        request: SchedulingRequest,
        emitter: StreamEmitter,
        *,
        now: datetime,
    ) -> Optional[FinalEvent]:
        tz = request.timezone

        # ── 1. template ──────────────────────────────────────────────────────
        emitter.progress("Thinking...")
        result = await self._template.build(request, now=now)
        template = result.template
        logger.info(
            "SchedulingOrchestrator: template mode=%s intent=%s duration=%d explicit=%s",
            result.mode, template.intent.value, template.duration, template.has_explicit_time_request,
        )

        # ── 2. availability + candidates ─────────────────────────────────────
        emitter.progress("Finding time and place...")
        available = await self._availability.get_available_slots(request, duration=template.total_minutes)
        candidates = get_candidate_slots_with_fallback(
            available,
            template,
            request.calendar_type,
            tz=tz,
            now=now,
            relax=not result.is_conditional,
        )
        logger.info(
            "SchedulingOrchestrator: %d candidates (relaxation=%s no_common=%s conflict=%s)",
            len(candidates.slots), candidates.relaxation,
            candidates.has_no_common_time, candidates.has_explicit_time_conflict,
        )

        # ── 3. conditional edits answer with a message only ──────────────────
        if result.is_conditional:
            narrowed = await self._answer_conditional(request, result, candidates, available, emitter, now=now)
            if narrowed is None:
                return None
            candidates = narrowed

        if not candidates.slots:
            emitter.content(no_common_time_message(request))
            return None

        # ── 4. explicit request with no availability ─────────────────────────
        alternative_times: List[TimeSlot] = []
        if candidates.has_explicit_time_conflict:
            alternatives = await self._alternatives.suggest(
                request,
                template,
                available,
                requested_text=format_slot_time(candidates.slots[0], tz),
                now=now,
            )
            alternative_times = alternatives.slots

        # ── 5. venues ────────────────────────────────────────────────────────
        places = await self._find_places(request, result, emitter)

        # ── 6. finalize ──────────────────────────────────────────────────────
        emitter.progress("Selecting time and place...")
        return await self._finalizer.finalize(
            request,
            result,
            candidates,
            places,
            emitter,
            now=now,
            alternative_times=alternative_times,
        )

    async def _answer_conditional(
        self,
        request: SchedulingRequest,
        result: TemplateResult,
        candidates: SlotCandidates,
        available: List[TimeSlot],
        emitter: StreamEmitter,
        *,
        now: datetime,
    ) -> Optional[SlotCandidates]:
        """"Do I have time for X?" Returns the candidates to finalize with, or
        None when the answer was a message and the turn is over."""
        if candidates.has_no_common_time:
            alternatives = await self._alternatives.suggest(
                request,
                result.template,
                available,
                requested_text=requested_description(result.template),
                now=now,
            )
            emitter.content(alternatives.message)
            return None

        previous = result.previous_event
        if previous is not None and result.time_preference in (TimePreference.EARLIER, TimePreference.LATER):
            filtered = filter_by_preference(candidates.slots, result.time_preference, previous)
            if not filtered:
                emitter.content(no_change_message(request, result.time_preference, previous))
                return None
            return SlotCandidates(filtered, relaxation=candidates.relaxation)
        return candidates

    async def _find_places(
        self,
        request: SchedulingRequest,
        result: TemplateResult,
        emitter: StreamEmitter,
    ) -> List[Place]:
        if result.needs_place_search and result.place_search_params is not None:
            emitter.progress("Researching places...")
            places = await self._venues.search(result.place_search_params, request)
            logger.info("SchedulingOrchestrator: %d venues found", len(places))
            return places
        return list(result.cached_places)
