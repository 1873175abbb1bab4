"""Tests for the background task registry."""
from __future__ import annotations

import asyncio
import re
import unittest

from backend.infra.cache import InMemoryCacheStore
from backend.orchestrator.background import (
    BackgroundTaskRegistry,
    ProcessingState,
    new_processing_id,
    processing_state_key,
)


def _run(coro):
    return asyncio.run(coro)


class TestProcessingId(unittest.TestCase):
    def test_format(self) -> None:
        self.assertRegex(new_processing_id(1700000000000), r"^proc_1700000000000_[a-z0-9]{7}$")
        self.assertTrue(re.match(r"^proc_\d+_", new_processing_id()))

    def test_state_round_trip(self) -> None:
        state = ProcessingState("completed", result={"message": "hi"})
        self.assertEqual(ProcessingState.from_dict(state.to_dict()), state)
        self.assertTrue(state.done)
        self.assertFalse(ProcessingState().done)


class TestBackgroundTaskRegistry(unittest.TestCase):
    def test_completed_state_is_stored(self) -> None:
        async def scenario():
            cache = InMemoryCacheStore(use_timers=False)
            registry = BackgroundTaskRegistry(cache, ttl_seconds=60)

            async def work():
                return {"message": "done"}

            task = await registry.submit("proc_1_aaaaaaa", work)
            state = await registry.wait(task, 1.0)
            return state, await registry.get_state("proc_1_aaaaaaa"), len(registry)

        state, stored, running = _run(scenario())
        self.assertEqual(state.status, "completed")
        self.assertEqual(stored.result, {"message": "done"})
        self.assertEqual(running, 0)

    def test_failure_is_recorded_not_raised(self) -> None:
        async def scenario():
            registry = BackgroundTaskRegistry(InMemoryCacheStore(use_timers=False))

            async def work():
                raise RuntimeError("search exploded")

            task = await registry.submit("proc_2_bbbbbbb", work)
            await registry.wait(task, 1.0)
            return await registry.get_state("proc_2_bbbbbbb")

        stored = _run(scenario())
        self.assertEqual(stored.status, "error")
        self.assertEqual(stored.error, "search exploded")

    def test_wait_timeout_leaves_task_running(self) -> None:
        async def scenario():
            registry = BackgroundTaskRegistry(InMemoryCacheStore(use_timers=False))
            release = asyncio.Event()

            async def work():
                await release.wait()
                return 42

            task = await registry.submit("proc_3_ccccccc", work)
            early = await registry.wait(task, 0.01)
            pending = await registry.get_state("proc_3_ccccccc")
            release.set()
            final = await registry.wait(task, 1.0)
            return early, pending, final

        early, pending, final = _run(scenario())
        self.assertIsNone(early)
        self.assertEqual(pending.status, "processing")
        self.assertEqual(final.result, 42)

    def test_duplicate_id_rejected_and_shutdown_cancels(self) -> None:
        async def scenario():
            cache = InMemoryCacheStore(use_timers=False)
            registry = BackgroundTaskRegistry(cache)

            async def work():
                await asyncio.sleep(10)

            await registry.submit("proc_4_ddddddd", work)
            await asyncio.sleep(0)
            with self.assertRaises(ValueError):
                await registry.submit("proc_4_ddddddd", work)
            await registry.shutdown()
            return len(registry), await cache.get(processing_state_key("proc_4_ddddddd"))

        running, stored = _run(scenario())
        self.assertEqual(running, 0)
        self.assertEqual(stored["error"], "cancelled")

    def test_unknown_id(self) -> None:
        registry = BackgroundTaskRegistry(InMemoryCacheStore(use_timers=False))
        self.assertIsNone(_run(registry.get_state("proc_0_missing")))
