from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from backend.orchestrator.types import CalendarType, TimeSlot


class AvailabilitySource(ABC):
    """Where the pair's common free time comes from."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def get_common_slots(
        self,
        user1_id: str,
        user2_id: str,
        calendar_type: CalendarType,
        *,
        duration: int,
    ) -> List[TimeSlot]:
        ...

    async def aclose(self) -> None:
        return None
