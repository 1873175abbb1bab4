from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from backend.clients.calendar.base import AvailabilitySource
from backend.orchestrator.types import CalendarType, TimeSlot


class StaticAvailabilitySource(AvailabilitySource):
    """Serves fixed slots, optionally per pair. Used for request-supplied
    availability and in tests."""

    def __init__(
        self,
        slots: Optional[Sequence[TimeSlot]] = None,
        *,
        by_pair: Optional[Dict[Tuple[str, str], Sequence[TimeSlot]]] = None,
    ) -> None:
        self._slots = list(slots or [])
        self._by_pair = {k: list(v) for k, v in (by_pair or {}).items()}

    @property
    def name(self) -> str:
        return "static"

    async def get_common_slots(
        self,
        user1_id: str,
        user2_id: str,
        calendar_type: CalendarType,
        *,
        duration: int,
    ) -> List[TimeSlot]:
        slots = self._by_pair.get((user1_id, user2_id), self._slots)
        return sorted(s for s in slots if s.duration_minutes >= duration)
