"""Pydantic v2 schemas for the Scheduling API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from backend.orchestrator.types import CalendarType, SchedulingRequest, TimeSlot


class TimeSlotSchema(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("timestamps must include a UTC offset")
        return value

    def to_slot(self) -> TimeSlot:
        return TimeSlot(self.start, self.end)


class ConversationTurnSchema(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class SchedulingRequestSchema(BaseModel):
    user_message: str = Field(..., min_length=1, max_length=8000)
    user1_id: str = Field(..., min_length=1)
    user2_id: str = Field(..., min_length=1)
    user2_name: Optional[str] = None
    conversation_history: List[ConversationTurnSchema] = []
    user1_location: Optional[str] = None
    user2_location: Optional[str] = None
    user1_coordinates: Optional[Tuple[float, float]] = None
    user2_coordinates: Optional[Tuple[float, float]] = None
    calendar_type: CalendarType = CalendarType.PERSONAL
    timezone: str = "UTC"
    available_time_slots: Optional[List[TimeSlotSchema]] = None
    user1_free_slots: Optional[List[TimeSlotSchema]] = None
    user2_free_slots: Optional[List[TimeSlotSchema]] = None

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value

    def to_request(self) -> SchedulingRequest:
        def slots(items: Optional[List[TimeSlotSchema]]) -> Optional[List[TimeSlot]]:
            return [s.to_slot() for s in items] if items is not None else None

        return SchedulingRequest(
            user_message=self.user_message,
            user1_id=self.user1_id,
            user2_id=self.user2_id,
            conversation_history=[t.model_dump() for t in self.conversation_history],
            user2_name=self.user2_name,
            user1_location=self.user1_location,
            user2_location=self.user2_location,
            user1_coordinates=self.user1_coordinates,
            user2_coordinates=self.user2_coordinates,
            calendar_type=self.calendar_type,
            timezone=self.timezone,
            available_time_slots=slots(self.available_time_slots),
            user1_free_slots=slots(self.user1_free_slots),
            user2_free_slots=slots(self.user2_free_slots),
        )


class ProcessingStateResponse(BaseModel):
    processing_id: str
    status: str
    result: Optional[Any] = None
    error: Optional[str] = None
