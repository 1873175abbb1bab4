"""Select the cache backend once at startup."""
from __future__ import annotations

import logging
from typing import Optional

from backend.config.cache import CacheConfig, load_cache_config
from backend.core.exceptions import CacheError
from backend.infra.cache.base import CacheStore
from backend.infra.cache.memory import InMemoryCacheStore

logger = logging.getLogger(__name__)


async def build_cache_store(config: Optional[CacheConfig] = None) -> CacheStore:
    """Redis when configured and reachable, otherwise the in-process store.

    Raises CacheError when ``require_redis`` is set and Redis does not answer.
    """
    config = config or load_cache_config()
    if config.redis_url:
        from backend.infra.cache.redis_store import RedisCacheStore

        store = RedisCacheStore.from_config(config)
        if await store.ping():
            logger.info("Cache: using Redis")
            return store
        await store.close()
        if config.require_redis:
            raise CacheError("Redis is required but unreachable", details={"redis_url": config.redis_url})
        logger.warning("Cache: Redis unreachable, falling back to in-process store")
    else:
        logger.info("Cache: REDIS_URL not set, using in-process store")
    return InMemoryCacheStore()
