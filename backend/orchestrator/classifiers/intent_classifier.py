"""Routing classifier: one cheap JSON-mode chat call per turn."""
from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from backend.orchestrator.handlers.base import BaseHandler
from backend.orchestrator.prompts import ROUTING_FALLBACK_ACK, intent_messages
from backend.orchestrator.types import IntentClassification, RoutingIntent, SchedulingRequest

if TYPE_CHECKING:
    from backend.clients.llm.base import BaseLLMClient
    from backend.orchestrator.types import SchedulingConfig

logger = logging.getLogger(__name__)


class IntentClassifier(BaseHandler):
    """Ask the LLM which branch handles this turn.

    Never raises: timeouts, provider errors, unparsable output and unknown
    intents all fall back to ``confirm_scheduling``.
    """

    def __init__(self, llm: "BaseLLMClient", config: Optional["SchedulingConfig"] = None) -> None:
        super().__init__(llm, config)

    async def classify(self, request: SchedulingRequest, *, now: datetime) -> IntentClassification:
        messages = intent_messages(request, now=now, max_turns=self._config.max_conversation_turns)
        try:
            raw = await self._call(
                self._llm.chat(
                    messages,
                    model=self._config.intent_model,
                    reasoning_effort=self._config.intent_reasoning_effort,
                    verbosity=self._config.intent_verbosity,
                    json_mode=True,
                ),
                stage="intent",
            )
        except asyncio.TimeoutError:
            return self._fallback("timeout")
        except Exception as exc:
            logger.error("IntentClassifier: classification failed: %s", exc)
            return self._fallback("error")
        return self.parse(raw)

    @staticmethod
    def _fallback(reason: str) -> IntentClassification:
        logger.info("IntentClassifier: defaulting to confirm_scheduling (%s)", reason)
        return IntentClassification(
            acknowledgment=ROUTING_FALLBACK_ACK[RoutingIntent.CONFIRM_SCHEDULING],
            intent=RoutingIntent.CONFIRM_SCHEDULING,
            fallback_used=True,
        )

    @classmethod
    def parse(cls, raw: Optional[str]) -> IntentClassification:
        candidate = (raw or "").strip()

        # ── 1. Strip markdown fences ─────────────────────────────────────────
        if candidate.startswith("```"):
            candidate = "\n".join(
                line for line in candidate.splitlines()
                if not line.strip().startswith("```")
            ).strip()

        # ── 2. Parse JSON ────────────────────────────────────────────────────
        data: dict = {}
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            fallback = re.search(r'\{[^{}]*"intent"[^{}]*\}', candidate, re.DOTALL)
            if fallback:
                try:
                    data = json.loads(fallback.group())
                except json.JSONDecodeError:
                    data = {}
        if not isinstance(data, dict) or not data:
            logger.warning("IntentClassifier: could not parse JSON from: %s", candidate[:300])
            return cls._fallback("parse error")

        # ── 3. Map ───────────────────────────────────────────────────────────
        raw_intent = str(data.get("intent", "")).lower().strip()
        try:
            intent = RoutingIntent(raw_intent)
        except ValueError:
            logger.info("IntentClassifier: unknown intent %r", raw_intent)
            return cls._fallback("unknown intent")

        message = str(data.get("message") or "").strip() or ROUTING_FALLBACK_ACK[intent]
        query = data.get("activitySearchQuery") or data.get("activity_search_query")
        return IntentClassification(
            acknowledgment=message,
            intent=intent,
            activity_search_query=str(query).strip() or None if query else None,
        )
