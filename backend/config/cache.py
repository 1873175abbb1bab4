"""
backend.config.cache – cache backend config (dataclass + validators).

Env vars: REDIS_URL, CACHE_KEY_PREFIX, REDIS_SOCKET_TIMEOUT, CACHE_REQUIRE_REDIS.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from backend.config._validators import env_bool, env_float, env_str, validate_positive_number


def _validate_redis_url(url: Optional[str]) -> Optional[str]:
    if url is None:
        return None
    if not (url.startswith("redis://") or url.startswith("rediss://") or url.startswith("unix://")):
        raise ValueError("REDIS_URL must start with redis://, rediss:// or unix://")
    return url


@dataclass(frozen=True)
class CacheConfig:
    """
    Cache backend selection.

    When ``redis_url`` is unset the in-process store is used. Use
    load_cache_config() to build from environment variables.
    """

    redis_url: Optional[str] = None
    """redis:// DSN. None selects the in-process store."""

    key_prefix: str = ""
    """Prepended to every key (namespacing when several services share one Redis)."""

    socket_timeout: float = 5.0
    """Seconds for Redis connect/read operations."""

    require_redis: bool = False
    """Fail startup instead of falling back to memory when Redis is unreachable."""

    def __post_init__(self) -> None:
        _validate_redis_url(self.redis_url)
        validate_positive_number(self.socket_timeout, "socket_timeout")
        if not isinstance(self.key_prefix, str):
            raise ValueError("key_prefix must be a string")
        if self.require_redis and not self.redis_url:
            raise ValueError("CACHE_REQUIRE_REDIS is set but REDIS_URL is empty")

    @classmethod
    def from_env(cls, **overrides: object) -> CacheConfig:
        """Build config from environment variables. Overrides take precedence."""
        return cls(
            redis_url=env_str(overrides, "redis_url", "REDIS_URL", None),
            key_prefix=env_str(overrides, "key_prefix", "CACHE_KEY_PREFIX", "") or "",
            socket_timeout=env_float(overrides, "socket_timeout", "REDIS_SOCKET_TIMEOUT", 5.0),
            require_redis=env_bool(overrides, "require_redis", "CACHE_REQUIRE_REDIS", False),
        )


def load_cache_config(**overrides: object) -> CacheConfig:
    """Load and validate cache config. Raises ValueError on invalid env/values."""
    return CacheConfig.from_env(**overrides)
