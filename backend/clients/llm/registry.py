"""
LLM provider registry: map provider name -> build client from config dict.

``build_from_env()`` picks the provider from the API keys present in the
environment (OpenAI first, then Gemini) and falls back to the no-op client.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional

from backend.clients.llm.base import BaseLLMClient

logger = logging.getLogger(__name__)

Builder = Callable[[Dict[str, Any]], BaseLLMClient]


class LLMRegistry:
    """Maps provider id to a builder that takes a config dict and returns BaseLLMClient."""

    def __init__(self) -> None:
        self._builders: Dict[str, Builder] = {}

    def register(self, provider: str, builder: Builder) -> None:
        self._builders[provider] = builder

    def get(self, provider: str) -> Optional[Builder]:
        return self._builders.get(provider)

    def providers(self) -> List[str]:
        return sorted(self._builders)

    def build(self, provider: str, config: Dict[str, Any]) -> BaseLLMClient:
        """Build a client for this provider. Raises KeyError if unknown provider."""
        builder = self._builders.get(provider)
        if builder is None:
            raise KeyError(f"Unknown LLM provider: {provider!r}. Registered: {self.providers()}")
        return builder(config)

    def build_from_env(self, env: Optional[Mapping[str, str]] = None) -> BaseLLMClient:
        """OPENAI_API_KEY -> openai, GEMINI_API_KEY/GOOGLE_API_KEY -> gemini, else no-op.
        LLM_MODEL overrides the provider default model."""
        env = os.environ if env is None else env
        model = env.get("LLM_MODEL")

        openai_key = env.get("OPENAI_API_KEY")
        if openai_key and "openai" in self._builders:
            config: Dict[str, Any] = {"api_key": openai_key, "base_url": env.get("OPENAI_BASE_URL")}
            if model:
                config["model"] = model
            if env.get("LLM_SEARCH_MODEL"):
                config["search_model"] = env["LLM_SEARCH_MODEL"]
            logger.info("LLMRegistry: using openai (model=%s)", model or "default")
            return self.build("openai", config)

        gemini_key = env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY")
        if gemini_key and "gemini" in self._builders:
            config = {"api_key": gemini_key}
            if model:
                config["model"] = model
            logger.info("LLMRegistry: using gemini (model=%s)", model or "default")
            return self.build("gemini", config)

        from backend.clients.llm.providers.noop import NoOpLLMClient

        logger.warning("LLMRegistry: no LLM API key configured, using no-op client")
        return NoOpLLMClient()


# Default registry with all built-in providers pre-registered.
default_registry = LLMRegistry()

from backend.clients.llm.providers.openai import openai_builder  # noqa: E402
from backend.clients.llm.providers.gemini import gemini_builder  # noqa: E402

default_registry.register("openai", openai_builder)
default_registry.register("gemini", gemini_builder)
