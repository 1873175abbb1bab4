"""OrchestratorService: build a fully-wired SchedulingOrchestrator from config."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from backend.clients.calendar import HttpAvailabilitySource
from backend.clients.places import FoursquarePlacesClient
from backend.config import (
    AvailabilityConfig,
    PlacesConfig,
    load_availability_config,
    load_places_config,
)
from backend.orchestrator.background import BackgroundTaskRegistry
from backend.orchestrator.types import SchedulingConfig
from backend.services.availability_service import AvailabilityService
from backend.services.venue_service import VenueService

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient
    from backend.infra.cache.base import CacheStore
    from backend.orchestrator.orchestrator import SchedulingOrchestrator

logger = logging.getLogger(__name__)


class OrchestratorService:
    """Factory that wires the venue and availability adapters from their
    configs and constructs a ready-to-use ``SchedulingOrchestrator``.
    """

    @staticmethod
    def build(
        llm_client: "BaseLLMClient",
        cache: "CacheStore",
        *,
        config: Optional[SchedulingConfig] = None,
        places_config: Optional[PlacesConfig] = None,
        availability_config: Optional[AvailabilityConfig] = None,
    ) -> SchedulingOrchestrator:
        from backend.orchestrator.orchestrator import SchedulingOrchestrator

        config = config or SchedulingConfig()
        places_config = places_config or load_places_config()
        availability_config = availability_config or load_availability_config()

        places_client = FoursquarePlacesClient(places_config) if places_config.enabled else None
        source = HttpAvailabilitySource(availability_config) if availability_config.service_url else None

        orch = SchedulingOrchestrator(
            llm_client,
            cache,
            availability=AvailabilityService(source),
            venues=VenueService(places_client, max_results=config.max_place_options),
            registry=BackgroundTaskRegistry(cache, ttl_seconds=config.processing_ttl_seconds),
            config=config,
        )
        logger.info(
            "OrchestratorService: built orchestrator with llm=%s, venues=%s, availability=%s",
            llm_client.provider,
            places_client is not None,
            source.name if source is not None else "request-only",
        )
        return orch

    @staticmethod
    async def close(orch: SchedulingOrchestrator) -> None:
        await orch.shutdown()
        await orch.availability.aclose()
        await orch.venues.aclose()
