"""Foursquare Places API client (places-api.foursquare.com, versioned headers)."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

import httpx

from backend.clients.places.base import BasePlacesClient, Coordinates, haversine_km
from backend.config.places import PlacesConfig
from backend.core.exceptions import ConfigurationError, PlaceSearchError, RateLimitError
from backend.orchestrator.types import Place

logger = logging.getLogger(__name__)

_FIELDS = "fsq_place_id,name,latitude,longitude,location,categories,rating,price,hours,website"
_MAPS_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query="


def maps_url(name: str, coordinates: Optional[Coordinates]) -> str:
    if coordinates:
        return f"{_MAPS_SEARCH_URL}{quote_plus(name)}%20{coordinates[0]},{coordinates[1]}"
    return f"{_MAPS_SEARCH_URL}{quote_plus(name)}"


def parse_place(raw: Dict[str, Any], center: Optional[Coordinates]) -> Optional[Place]:
    """One Foursquare result -> Place. Results without coordinates are dropped."""
    lat, lng = raw.get("latitude"), raw.get("longitude")
    if lat is None or lng is None:
        return None
    coords = (float(lat), float(lng))
    location = raw.get("location") or {}
    address = (
        location.get("formatted_address")
        or location.get("address")
        or ", ".join(p for p in (location.get("locality"), location.get("region")) if p)
    )
    hours = raw.get("hours") or {}
    display = hours.get("display")
    rating = raw.get("rating")
    name = raw.get("name") or "Unknown Place"
    return Place(
        place_id=str(raw.get("fsq_place_id") or raw.get("fsq_id") or name),
        name=name,
        address=address or "",
        coordinates=coords,
        # Foursquare rates 0-10
        rating=round(float(rating) / 2, 1) if rating is not None else None,
        price_level=int(raw["price"]) if raw.get("price") is not None else None,
        open_now=hours.get("open_now"),
        opening_hours="; ".join(display) if isinstance(display, list) else display,
        distance_from_midpoint_km=round(haversine_km(center, coords), 1) if center else None,
        url=raw.get("website") or maps_url(name, coords),
        categories=tuple(c.get("name", "") for c in raw.get("categories") or [] if c.get("name")),
    )


class FoursquarePlacesClient(BasePlacesClient):
    """
    GET {base_url}/places/search with ``Authorization: Bearer <key>`` and
    ``X-Places-Api-Version``. HTTP 429 maps to RateLimitError, every other
    failure to PlaceSearchError.
    """

    def __init__(self, config: PlacesConfig, *, client: Optional[httpx.AsyncClient] = None) -> None:
        if not config.api_key:
            raise ConfigurationError("FOURSQUARE_API_KEY is not set")
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout)
        self._owns_client = client is None

    @property
    def provider(self) -> str:
        return "foursquare"

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._config.api_key}",
            "X-Places-Api-Version": self._config.api_version,
        }

    async def search(
        self,
        center: Optional[Coordinates],
        radius_m: int,
        query: str,
        *,
        near: Optional[str] = None,
        categories: Optional[List[str]] = None,
        limit: int = 50,
    ) -> List[Place]:
        params: Dict[str, Any] = {"limit": limit, "fields": _FIELDS}
        if center is not None:
            params["ll"] = f"{center[0]},{center[1]}"
            params["radius"] = int(radius_m)
        elif near:
            params["near"] = near
        else:
            raise PlaceSearchError("Venue search needs coordinates or a location")
        if query:
            params["query"] = query
        if categories:
            params["categories"] = ",".join(categories)

        url = f"{self._config.base_url}/places/search"
        logger.debug("FoursquarePlacesClient: search query=%r params=%s", query, params)
        try:
            response = await self._client.get(url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            raise PlaceSearchError(f"Foursquare request failed: {exc}", cause=exc) from exc

        if response.status_code == 429:
            raise RateLimitError("Foursquare API quota exceeded", details={"status": 429})
        if response.status_code >= 400:
            raise PlaceSearchError(
                f"Foursquare search failed: {response.status_code}",
                details={"status": response.status_code, "body": response.text[:500]},
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise PlaceSearchError("Foursquare returned invalid JSON", cause=exc) from exc

        places = [p for p in (parse_place(r, center) for r in data.get("results") or []) if p is not None]
        logger.info("FoursquarePlacesClient: %d results for %r", len(places), query)
        return places

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
