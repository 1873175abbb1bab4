"""
Request-scoped logging context.

The orchestrator binds a request id and participant pair for the duration of
one scheduling run; RequestContextFilter copies them onto every record so the
formatters can emit them. Background tasks inherit the context they were
created under (contextvars are copied into asyncio tasks).
"""
from __future__ import annotations

import contextlib
import logging
from contextvars import ContextVar
from typing import Iterator, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_pair: ContextVar[Optional[str]] = ContextVar("pair", default=None)


@contextlib.contextmanager
def bind_request_context(request_id: str, pair: Optional[str] = None) -> Iterator[None]:
    id_token = _request_id.set(request_id)
    pair_token = _pair.set(pair)
    try:
        yield
    finally:
        _request_id.reset(id_token)
        _pair.reset(pair_token)


def current_request_id() -> Optional[str]:
    return _request_id.get()


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        record.pair = _pair.get()
        return True
