"""
Per-request NDJSON envelope stream.

The orchestrator pushes envelopes; the HTTP layer drains ``lines()``. Each
envelope is ``{"type": ..., **payload}`` serialized as one JSON line.

Guarantees:
    - at most one ``error`` envelope per stream
    - ``close()`` is idempotent; the first call ends ``lines()``
    - envelopes pushed after close are dropped (logged at debug)
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

logger = logging.getLogger(__name__)

ACKNOWLEDGMENT = "acknowledgment"
PROGRESS = "progress"
CONTENT = "content"
EVENT = "event"
ENHANCEMENT_PENDING = "enhancement_pending"
ERROR = "error"

_END = object()


class StreamEmitter:
    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False
        self._error_sent = False
        self.history: List[Dict[str, Any]] = []
        """Every envelope accepted, in order (for logging and tests)."""

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error_sent(self) -> bool:
        return self._error_sent

    def _emit(self, envelope_type: str, **payload: Any) -> bool:
        if self._closed:
            logger.debug("StreamEmitter: dropped %s after close", envelope_type)
            return False
        envelope = {"type": envelope_type, **payload}
        self.history.append(envelope)
        self._queue.put_nowait(envelope)
        return True

    def acknowledgment(self, text: str, intent: Optional[str] = None) -> bool:
        return self._emit(ACKNOWLEDGMENT, text=text, intent=intent)

    def progress(self, text: str, is_loading: bool = True) -> bool:
        return self._emit(PROGRESS, text=text, is_loading=is_loading)

    def content(self, text: str) -> bool:
        return self._emit(CONTENT, text=text)

    def event(self, event: Dict[str, Any]) -> bool:
        return self._emit(EVENT, event=event)

    def enhancement_pending(self, processing_id: str) -> bool:
        return self._emit(ENHANCEMENT_PENDING, processing_id=processing_id)

    def error(self, message: str) -> bool:
        if self._error_sent:
            logger.debug("StreamEmitter: suppressed second error envelope")
            return False
        sent = self._emit(ERROR, message=message)
        self._error_sent = self._error_sent or sent
        return sent

    def close(self) -> bool:
        """End the stream. Returns False when already closed."""
        if self._closed:
            return False
        self._closed = True
        self._queue.put_nowait(_END)
        return True

    async def envelopes(self) -> AsyncIterator[Dict[str, Any]]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item

    async def lines(self) -> AsyncIterator[str]:
        async for envelope in self.envelopes():
            yield json.dumps(envelope, ensure_ascii=False, default=str) + "\n"
