"""Common-free-time service reached over HTTP."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from backend.clients.calendar.base import AvailabilitySource
from backend.config.availability import AvailabilityConfig
from backend.core.exceptions import ConfigurationError, ExternalServiceError
from backend.orchestrator.types import CalendarType, TimeSlot

logger = logging.getLogger(__name__)


class HttpAvailabilitySource(AvailabilitySource):
    """
    POST {service_url} with ``{user1_id, user2_id, calendar_type, duration}``.
    The response is ``{"slots": [{start, end}, ...]}`` or a bare list.
    Malformed slots are skipped.
    """

    def __init__(self, config: AvailabilityConfig, *, client: Optional[httpx.AsyncClient] = None) -> None:
        if not config.service_url:
            raise ConfigurationError("AVAILABILITY_SERVICE_URL is not set")
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "http"

    async def get_common_slots(
        self,
        user1_id: str,
        user2_id: str,
        calendar_type: CalendarType,
        *,
        duration: int,
    ) -> List[TimeSlot]:
        headers = {"Accept": "application/json"}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        payload: Dict[str, Any] = {
            "user1_id": user1_id,
            "user2_id": user2_id,
            "calendar_type": calendar_type.value,
            "duration": duration,
        }
        try:
            response = await self._client.post(self._config.service_url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Availability service failed: {exc}", cause=exc) from exc
        except ValueError as exc:
            raise ExternalServiceError("Availability service returned invalid JSON", cause=exc) from exc

        raw = data.get("slots") if isinstance(data, dict) else data
        slots: List[TimeSlot] = []
        for item in raw or []:
            try:
                slots.append(TimeSlot.from_dict(item))
            except (ValueError, TypeError, AttributeError):
                logger.debug("HttpAvailabilitySource: skipped malformed slot %r", item)
        slots.sort()
        logger.info("HttpAvailabilitySource: %d common slots for %s:%s", len(slots), user1_id, user2_id)
        return slots

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
