"""Abstract base handler for the pipeline stages that talk to the LLM."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC
from typing import TYPE_CHECKING, Awaitable, Optional, TypeVar

from backend.orchestrator.types import SchedulingConfig

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseHandler(ABC):
    """Holds the LLM client and behaviour config shared by every stage.

    ``_call`` applies ``SchedulingConfig.llm_timeout_seconds`` when one is
    configured (off by default); a timeout is re-raised as
    ``asyncio.TimeoutError`` for the stage to map.
    """

    def __init__(self, llm: "BaseLLMClient", config: Optional[SchedulingConfig] = None) -> None:
        self._llm = llm
        self._config = config or SchedulingConfig()

    @property
    def config(self) -> SchedulingConfig:
        return self._config

    async def _call(self, coro: Awaitable[T], *, stage: str) -> T:
        timeout = self._config.llm_timeout_seconds
        if timeout is None or timeout <= 0:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("%s: %s LLM call timed out (%.0fs)", type(self).__name__, stage, timeout)
            raise
