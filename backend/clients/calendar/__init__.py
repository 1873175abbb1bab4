from backend.clients.calendar.base import AvailabilitySource
from backend.clients.calendar.http import HttpAvailabilitySource
from backend.clients.calendar.static import StaticAvailabilitySource

__all__ = ["AvailabilitySource", "HttpAvailabilitySource", "StaticAvailabilitySource"]
