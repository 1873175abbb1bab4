"""VenueService: tiered venue lookup around the participants' midpoint."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from backend.clients.places.base import BasePlacesClient, Coordinates, midpoint
from backend.core.exceptions import ProjectError
from backend.orchestrator.types import IntentSpecificity, Place, PlaceSearchParams, SchedulingRequest

logger = logging.getLogger(__name__)

SPECIFIC_RADIUS_M = 10_000
ACTIVITY_RADIUS_M = 15_000
MIN_RATING = 4.0


def _within(place: Place, radius_m: int) -> bool:
    if place.distance_from_midpoint_km is None:
        return True
    return place.distance_from_midpoint_km * 1000 <= radius_m


def _rank_key(place: Place):
    # rated first, highest first; provider order breaks ties
    return (place.rating is None, -(place.rating or 0.0))


class VenueService:
    """
    Tiers:
        specific_place  one best match within 10 km
        activity_type   per category within 15 km, deduplicated, top N
        generic         nothing (scheduling proceeds without a venue)

    Provider errors degrade to an empty list.
    """

    def __init__(self, client: Optional[BasePlacesClient], *, max_results: int = 10) -> None:
        self._client = client
        self._max_results = max_results

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def search(self, params: PlaceSearchParams, request: SchedulingRequest) -> List[Place]:
        if self._client is None:
            return []
        points: List[Coordinates] = [c for c in (request.user1_coordinates, request.user2_coordinates) if c]
        center = midpoint(points)
        near = request.user1_location or request.user2_location
        if center is None and not near:
            logger.info("VenueService: no location known for %s, skipping search", request.pair)
            return []
        try:
            if params.intent_specificity == IntentSpecificity.SPECIFIC_PLACE:
                return await self._specific(params, center, near)
            if params.intent_specificity == IntentSpecificity.ACTIVITY_TYPE:
                return await self._activity(params, center, near)
            return []
        except ProjectError as exc:
            logger.warning("VenueService: search failed (%s): %s", exc.code, exc.message)
            return []

    async def _specific(
        self, params: PlaceSearchParams, center: Optional[Coordinates], near: Optional[str]
    ) -> List[Place]:
        query = params.specific_place or params.query
        if not query:
            return []
        results = await self._client.search(center, SPECIFIC_RADIUS_M, query, near=near, limit=10)
        matches = [p for p in results if _within(p, SPECIFIC_RADIUS_M)]
        return matches[:1]

    async def _activity(
        self, params: PlaceSearchParams, center: Optional[Coordinates], near: Optional[str]
    ) -> List[Place]:
        queries = [q for q in params.suggested_place_types if q] or ([params.query] if params.query else [])
        seen: Dict[str, Place] = {}
        for query in queries:
            for place in await self._client.search(center, ACTIVITY_RADIUS_M, query, near=near):
                if place.place_id in seen or not _within(place, ACTIVITY_RADIUS_M):
                    continue
                if place.rating is not None and place.rating < MIN_RATING:
                    continue
                seen[place.place_id] = place
        ranked = sorted(seen.values(), key=_rank_key)
        logger.info("VenueService: %d venues for %s", len(ranked), queries)
        return ranked[: self._max_results]

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
