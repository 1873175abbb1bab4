"""Tests for the TTL cache stores and backend selection."""
from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from backend.config.cache import CacheConfig
from backend.core.exceptions import CacheError
from backend.infra.cache import InMemoryCacheStore, build_cache_store


def _run(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestInMemoryCacheStore(unittest.TestCase):
    def test_entry_absent_after_ttl(self) -> None:
        clock = FakeClock()
        store = InMemoryCacheStore(clock=clock, use_timers=False)

        async def scenario():
            await store.set("places:a:b", {"x": 1}, 1)
            present = await store.get("places:a:b")
            clock.advance(2)
            return present, await store.get("places:a:b"), await store.keys("places:*")

        present, after, keys = _run(scenario())
        self.assertEqual(present, {"x": 1})
        self.assertIsNone(after)
        self.assertEqual(keys, [])
        self.assertEqual(len(store), 0)

    def test_timer_evicts_without_read(self) -> None:
        store = InMemoryCacheStore()

        async def scenario():
            await store.set("k", "v", 0.01)
            await asyncio.sleep(0.05)
            return len(store)

        self.assertEqual(_run(scenario()), 0)

    def test_overwrite_resets_deadline(self) -> None:
        clock = FakeClock()
        store = InMemoryCacheStore(clock=clock, use_timers=False)

        async def scenario():
            await store.set("k", 1, 5)
            clock.advance(4)
            await store.set("k", 2, 5)
            clock.advance(4)
            return await store.get("k")

        self.assertEqual(_run(scenario()), 2)

    def test_values_are_json_copies(self) -> None:
        store = InMemoryCacheStore(use_timers=False)
        value = {"events": [{"title": "Jazz"}]}

        async def scenario():
            await store.set("k", value, 60)
            value["events"].append({"title": "mutated"})
            return await store.get("k")

        self.assertEqual(_run(scenario()), {"events": [{"title": "Jazz"}]})

    def test_non_json_value_raises_cache_error(self) -> None:
        store = InMemoryCacheStore(use_timers=False)
        with self.assertRaises(CacheError):
            _run(store.set("k", {1, 2}, 60))

    def test_invalid_ttl_rejected(self) -> None:
        store = InMemoryCacheStore(use_timers=False)
        with self.assertRaises(ValueError):
            _run(store.set("k", 1, 0))

    def test_keys_glob_and_delete(self) -> None:
        store = InMemoryCacheStore(use_timers=False)

        async def scenario():
            await store.set("events:a:b:1", [], 60)
            await store.set("events:a:b:2", [], 60)
            await store.set("events:a:c:1", [], 60)
            await store.delete("events:a:b:1")
            return sorted(await store.keys("events:a:b:*"))

        self.assertEqual(_run(scenario()), ["events:a:b:2"])


class TestBuildCacheStore(unittest.TestCase):
    def test_memory_without_redis_url(self) -> None:
        store = _run(build_cache_store(CacheConfig()))
        self.assertEqual(store.backend, "memory")

    def test_falls_back_when_redis_unreachable(self) -> None:
        fake = AsyncMock()
        fake.ping.return_value = False
        with patch("backend.infra.cache.redis_store.RedisCacheStore.from_config", return_value=fake):
            store = _run(build_cache_store(CacheConfig(redis_url="redis://localhost:1")))
        self.assertEqual(store.backend, "memory")
        fake.close.assert_awaited_once()

    def test_required_redis_unreachable_raises(self) -> None:
        fake = AsyncMock()
        fake.ping.return_value = False
        with patch("backend.infra.cache.redis_store.RedisCacheStore.from_config", return_value=fake):
            with self.assertRaises(CacheError):
                _run(build_cache_store(CacheConfig(redis_url="redis://localhost:1", require_redis=True)))
