"""Service layer: availability, venues and orchestrator wiring."""
from backend.services.availability_service import AvailabilityService
from backend.services.orchestrator_service import OrchestratorService
from backend.services.venue_service import VenueService

__all__ = [
    "AvailabilityService",
    "VenueService",
    "OrchestratorService",
]
