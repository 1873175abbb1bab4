"""In-process cache store: dict + loop timers for eviction.

Shared by all requests of one process; not durable across restarts. Expiry is
also checked on read against the injected clock, so an entry is never
returned after its deadline even if the eviction timer has not fired yet.
"""
from __future__ import annotations

import asyncio
import fnmatch
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from backend.infra.cache.base import CacheStore, decode, encode, validate_ttl

logger = logging.getLogger(__name__)


class InMemoryCacheStore(CacheStore):
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        use_timers: bool = True,
    ) -> None:
        self._clock = clock
        self._use_timers = use_timers
        # key -> (json payload, expires_at on self._clock)
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._timers: Dict[str, asyncio.TimerHandle] = {}

    @property
    def backend(self) -> str:
        return "memory"

    def __len__(self) -> int:
        return len(self._entries)

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ttl = validate_ttl(ttl_seconds)
        payload = encode(key, value)
        expires_at = self._clock() + ttl
        self._entries[key] = (payload, expires_at)
        self._cancel_timer(key)
        if self._use_timers:
            loop = asyncio.get_running_loop()
            self._timers[key] = loop.call_later(ttl, self._evict, key, expires_at)

    async def get(self, key: str) -> Optional[Any]:
        entry = self._live_entry(key)
        return decode(key, entry[0]) if entry else None

    async def keys(self, pattern: str = "*") -> List[str]:
        return [
            key for key in list(self._entries)
            if fnmatch.fnmatchcase(key, pattern) and self._live_entry(key)
        ]

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)
        self._cancel_timer(key)

    async def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._entries.clear()

    def _live_entry(self, key: str) -> Optional[Tuple[str, float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            self._entries.pop(key, None)
            self._cancel_timer(key)
            return None
        return entry

    def _evict(self, key: str, expires_at: float) -> None:
        # A later set() for the same key replaces the deadline; only evict our own.
        entry = self._entries.get(key)
        if entry is not None and entry[1] == expires_at:
            del self._entries[key]
            logger.debug("InMemoryCacheStore: evicted %s", key)
        self._timers.pop(key, None)

    def _cancel_timer(self, key: str) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
