"""
TTL key-value cache behind an injected interface.

    store = await build_cache_store()          # once, in the app lifespan
    await store.set("places:a:b", entry, 1800)
    entry = await store.get("places:a:b")
"""
from backend.infra.cache.base import CacheStore
from backend.infra.cache.factory import build_cache_store
from backend.infra.cache.memory import InMemoryCacheStore

__all__ = ["CacheStore", "InMemoryCacheStore", "build_cache_store"]
