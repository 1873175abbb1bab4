"""
Backend config: load from env.

Load from env: load_cache_config(), load_places_config(), load_availability_config(),
load_scheduling_config().
"""
from backend.config.availability import AvailabilityConfig, load_availability_config
from backend.config.cache import CacheConfig, load_cache_config
from backend.config.places import PlacesConfig, load_places_config
from backend.config.scheduling import load_scheduling_config

__all__ = [
    "AvailabilityConfig",
    "load_availability_config",
    "CacheConfig",
    "load_cache_config",
    "PlacesConfig",
    "load_places_config",
    "load_scheduling_config",
]
