from backend.clients.places.base import BasePlacesClient, Coordinates, haversine_km, midpoint
from backend.clients.places.foursquare import FoursquarePlacesClient

__all__ = [
    "BasePlacesClient",
    "Coordinates",
    "FoursquarePlacesClient",
    "haversine_km",
    "midpoint",
]
