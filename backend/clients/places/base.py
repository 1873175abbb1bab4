from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from backend.orchestrator.types import Place

Coordinates = Tuple[float, float]
"""(latitude, longitude) in degrees."""

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    h = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def midpoint(points: Sequence[Coordinates]) -> Optional[Coordinates]:
    """Arithmetic mean of the known coordinates (fine at city scale)."""
    if not points:
        return None
    return (
        sum(p[0] for p in points) / len(points),
        sum(p[1] for p in points) / len(points),
    )


class BasePlacesClient(ABC):
    @property
    @abstractmethod
    def provider(self) -> str:
        ...

    @abstractmethod
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
        """Venues matching ``query`` around ``center`` (or the free-text ``near``).

        Raises ``PlaceSearchError`` / ``RateLimitError`` on provider failure.
        """
        ...

    async def aclose(self) -> None:
        return None
