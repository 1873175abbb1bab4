"""
Supervised background work keyed by processing id.

A submitted coroutine runs as an ``asyncio.Task`` held by the registry until
it finishes. Its state lives in the cache under ``processing_state:{id}`` so
any worker can answer a poll:

    {"status": "processing" | "completed" | "error", "result": ..., "error": ...}

Task failures are logged and stored, never re-raised into the request that
started them. Tasks never touch the request stream.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from backend.core.exceptions import CacheError
from backend.infra.cache.base import CacheStore

logger = logging.getLogger(__name__)

PROCESSING = "processing"
COMPLETED = "completed"
ERROR = "error"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def processing_state_key(processing_id: str) -> str:
    return f"processing_state:{processing_id}"


def new_processing_id(now_ms: Optional[int] = None) -> str:
    """``proc_<epoch ms>_<7 random chars>``"""
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"proc_{ms}_{suffix}"


@dataclass
class ProcessingState:
    status: str = PROCESSING
    result: Any = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.status in (COMPLETED, ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "result": self.result, "error": self.error}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingState":
        return cls(
            status=str(data.get("status") or PROCESSING),
            result=data.get("result"),
            error=data.get("error"),
        )


class BackgroundTaskRegistry:
    def __init__(self, cache: CacheStore, *, ttl_seconds: float = 300) -> None:
        self._cache = cache
        self._ttl = ttl_seconds
        self._tasks: Dict[str, "asyncio.Task[ProcessingState]"] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    async def _store(self, processing_id: str, state: ProcessingState) -> None:
        try:
            await self._cache.set(processing_state_key(processing_id), state.to_dict(), self._ttl)
        except CacheError as exc:
            logger.warning("BackgroundTaskRegistry: could not store state for %s: %s", processing_id, exc)

    async def submit(
        self,
        processing_id: str,
        coro_factory: Callable[[], Awaitable[Any]],
    ) -> "asyncio.Task[ProcessingState]":
        """Record ``processing`` and start the task. Returns the supervised task."""
        if processing_id in self._tasks:
            raise ValueError(f"processing id already running: {processing_id}")
        await self._store(processing_id, ProcessingState(PROCESSING))
        task = asyncio.create_task(self._supervise(processing_id, coro_factory), name=processing_id)
        self._tasks[processing_id] = task
        task.add_done_callback(lambda t: self._tasks.pop(processing_id, None))
        logger.info("BackgroundTaskRegistry: started %s", processing_id)
        return task

    async def _supervise(
        self,
        processing_id: str,
        coro_factory: Callable[[], Awaitable[Any]],
    ) -> ProcessingState:
        try:
            result = await coro_factory()
        except asyncio.CancelledError:
            await asyncio.shield(self._store(processing_id, ProcessingState(ERROR, error="cancelled")))
            raise
        except Exception as exc:
            logger.error("BackgroundTaskRegistry: %s failed: %s", processing_id, exc, exc_info=True)
            state = ProcessingState(ERROR, error=str(exc) or type(exc).__name__)
        else:
            state = ProcessingState(COMPLETED, result=result)
            logger.info("BackgroundTaskRegistry: %s completed", processing_id)
        await self._store(processing_id, state)
        return state

    @staticmethod
    async def wait(task: "asyncio.Task[ProcessingState]", timeout: float) -> Optional[ProcessingState]:
        """The task's final state if it finishes within ``timeout``, else None.
        The task keeps running either way."""
        if timeout > 0 and not task.done():
            await asyncio.wait({task}, timeout=timeout)
        if not task.done() or task.cancelled():
            return None
        return task.result()

    async def get_state(self, processing_id: str) -> Optional[ProcessingState]:
        data = await self._cache.get(processing_state_key(processing_id))
        return ProcessingState.from_dict(data) if isinstance(data, dict) else None

    async def shutdown(self) -> None:
        """Cancel outstanding tasks (application stop)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("BackgroundTaskRegistry: cancelled %d task(s)", len(tasks))
        self._tasks.clear()
