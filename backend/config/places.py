"""
backend.config.places – venue search provider config.

Env vars: FOURSQUARE_API_KEY, FOURSQUARE_BASE_URL, FOURSQUARE_API_VERSION, PLACES_TIMEOUT.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from backend.config._validators import env_float, env_str, validate_http_url, validate_positive_number

DEFAULT_FOURSQUARE_BASE_URL = "https://places-api.foursquare.com"
DEFAULT_FOURSQUARE_API_VERSION = "2025-06-17"


@dataclass(frozen=True)
class PlacesConfig:
    """
    Foursquare Places API settings. Without an API key venue search is
    disabled and the pipeline schedules without a venue.
    """

    api_key: Optional[str] = None
    base_url: str = DEFAULT_FOURSQUARE_BASE_URL
    api_version: str = DEFAULT_FOURSQUARE_API_VERSION
    timeout: float = 10.0

    def __post_init__(self) -> None:
        validate_http_url(self.base_url, "base_url")
        validate_positive_number(self.timeout, "timeout")
        if not self.api_version:
            raise ValueError("api_version must be non-empty")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls, **overrides: object) -> PlacesConfig:
        return cls(
            api_key=env_str(overrides, "api_key", "FOURSQUARE_API_KEY", None),
            base_url=(
                env_str(overrides, "base_url", "FOURSQUARE_BASE_URL", DEFAULT_FOURSQUARE_BASE_URL)
                or DEFAULT_FOURSQUARE_BASE_URL
            ).rstrip("/"),
            api_version=env_str(
                overrides, "api_version", "FOURSQUARE_API_VERSION", DEFAULT_FOURSQUARE_API_VERSION
            ) or DEFAULT_FOURSQUARE_API_VERSION,
            timeout=env_float(overrides, "timeout", "PLACES_TIMEOUT", 10.0),
        )


def load_places_config(**overrides: object) -> PlacesConfig:
    return PlacesConfig.from_env(**overrides)
