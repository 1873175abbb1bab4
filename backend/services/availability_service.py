"""AvailabilityService: resolve the pair's common free time for one request."""
from __future__ import annotations

import logging
from typing import List, Optional

from backend.clients.calendar.base import AvailabilitySource
from backend.core.exceptions import ProjectError
from backend.orchestrator.slots import find_slot_intersection
from backend.orchestrator.types import SchedulingRequest, TimeSlot

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Order of precedence:
        1. common slots supplied with the request
        2. both parties' free slots, intersected
        3. the configured availability source

    Source failures degrade to an empty list, which the slot generator
    treats as "no availability data".
    """

    def __init__(self, source: Optional[AvailabilitySource] = None) -> None:
        self._source = source

    async def get_available_slots(self, request: SchedulingRequest, *, duration: int = 60) -> List[TimeSlot]:
        if request.available_time_slots:
            return sorted(request.available_time_slots)

        if request.user1_free_slots and request.user2_free_slots:
            slots = find_slot_intersection(request.user1_free_slots, request.user2_free_slots)
            logger.info("AvailabilityService: %d intersected slots for %s", len(slots), request.pair)
            return slots

        if self._source is None:
            return []
        try:
            return await self._source.get_common_slots(
                request.user1_id,
                request.user2_id,
                request.calendar_type,
                duration=duration,
            )
        except ProjectError as exc:
            logger.warning("AvailabilityService: %s source failed: %s", self._source.name, exc.message)
            return []

    async def aclose(self) -> None:
        if self._source is not None:
            await self._source.aclose()
