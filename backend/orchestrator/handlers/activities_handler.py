"""Activity ideas from the venue search, no LLM call."""
from __future__ import annotations

import logging
from typing import List

from backend.orchestrator.prompts import KM_PER_MILE, place_explanations, target_name
from backend.orchestrator.stream import StreamEmitter
from backend.orchestrator.types import (
    IntentClassification,
    IntentSpecificity,
    Place,
    PlaceSearchParams,
    SchedulingRequest,
)
from backend.services.venue_service import VenueService

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_QUERY = "things to do"
MAX_SUGGESTIONS = 5


def format_suggestion(place: Place) -> str:
    name = f"**[{place.name}]({place.url})**" if place.url else f"**{place.name}**"
    parts = [name]
    if place.address:
        parts.append(place.address)
    notes = place_explanations(place)
    if place.distance_from_midpoint_km is not None:
        notes.append(f"{place.distance_from_midpoint_km / KM_PER_MILE:.1f} mi away")
    line = "- " + " - ".join(parts)
    return f"{line} ({', '.join(notes)})" if notes else line


class ActivitiesHandler:
    def __init__(self, venues: VenueService) -> None:
        self._venues = venues

    async def handle(
        self,
        request: SchedulingRequest,
        classification: IntentClassification,
        emitter: StreamEmitter,
    ) -> List[Place]:
        query = classification.activity_search_query or DEFAULT_ACTIVITY_QUERY
        emitter.progress("Finding activity ideas...")
        params = PlaceSearchParams(
            intent_specificity=IntentSpecificity.ACTIVITY_TYPE,
            query=query,
            suggested_place_types=[query],
        )
        places = (await self._venues.search(params, request))[:MAX_SUGGESTIONS]
        name = target_name(request)
        if not places:
            emitter.content(
                f"I couldn't find spots for that near you and {name}. "
                "What kind of activity are you in the mood for?"
            )
            return []
        lines = "\n".join(format_suggestion(p) for p in places)
        emitter.content(
            f"Here are some ideas for you and {name}:\n\n{lines}\n\n"
            "Any of these sound good? I can find a time that works for both of you."
        )
        logger.info("ActivitiesHandler: suggested %d places for %r", len(places), query)
        return places
