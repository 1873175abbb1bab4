"""Cache store contract shared by the Redis and in-process backends."""
from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from backend.core.exceptions import CacheError


class CacheStore(ABC):
    """TTL key-value store. Values must be JSON-serializable; every backend
    stores the JSON encoding so reads return fresh copies."""

    @property
    @abstractmethod
    def backend(self) -> str:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def keys(self, pattern: str = "*") -> List[str]:
        """Live keys matching a glob pattern (``*``, ``?``, ``[...]``)."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise CacheError(
            f"Value for cache key {key!r} is not JSON-serializable",
            details={"key": key},
            cause=exc,
        ) from exc


def decode(key: str, raw: Optional[str]) -> Optional[Any]:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise CacheError(f"Corrupt cache value for key {key!r}", details={"key": key}, cause=exc) from exc


def validate_ttl(ttl_seconds: float) -> float:
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, (int, float)) or ttl_seconds <= 0:
        raise ValueError(f"ttl_seconds must be a positive number, got {ttl_seconds!r}")
    return float(ttl_seconds)
