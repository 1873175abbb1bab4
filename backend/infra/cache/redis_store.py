"""Redis-backed cache store (redis.asyncio)."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from backend.config.cache import CacheConfig
from backend.core.exceptions import CacheError
from backend.infra.cache.base import CacheStore, decode, encode, validate_ttl

logger = logging.getLogger(__name__)


class RedisCacheStore(CacheStore):
    def __init__(self, client: "aioredis.Redis", *, key_prefix: str = "") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_config(cls, config: CacheConfig) -> "RedisCacheStore":
        client = aioredis.from_url(
            config.redis_url,
            decode_responses=True,
            socket_timeout=config.socket_timeout,
            socket_connect_timeout=config.socket_timeout,
        )
        return cls(client, key_prefix=config.key_prefix)

    @property
    def backend(self) -> str:
        return "redis"

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ttl = validate_ttl(ttl_seconds)
        payload = encode(key, value)
        try:
            await self._client.set(self._k(key), payload, px=max(1, int(ttl * 1000)))
        except RedisError as exc:
            raise CacheError(f"Redis SET failed for {key!r}", details={"key": key}, cause=exc) from exc

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self._client.get(self._k(key))
        except RedisError as exc:
            raise CacheError(f"Redis GET failed for {key!r}", details={"key": key}, cause=exc) from exc
        return decode(key, raw)

    async def keys(self, pattern: str = "*") -> List[str]:
        found: List[str] = []
        try:
            async for raw_key in self._client.scan_iter(match=self._k(pattern)):
                found.append(raw_key[len(self._prefix):])
        except RedisError as exc:
            raise CacheError(f"Redis SCAN failed for {pattern!r}", details={"pattern": pattern}, cause=exc) from exc
        return found

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._k(key))
        except RedisError as exc:
            raise CacheError(f"Redis DEL failed for {key!r}", details={"key": key}, cause=exc) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as exc:
            logger.warning("RedisCacheStore: ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
