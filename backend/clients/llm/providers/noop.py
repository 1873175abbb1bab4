"""No-op LLM client when no provider is configured."""
from __future__ import annotations

from backend.clients.llm.base import BaseLLMClient, FunctionCallResult

_NOOP_MESSAGE = (
    "The scheduling assistant has no language model configured. "
    "Set OPENAI_API_KEY or GEMINI_API_KEY and restart the service."
)


class NoOpLLMClient(BaseLLMClient):
    """Placeholder client when no API key is configured. Tool calls return
    ``None``, so scheduling requests end with the generic error envelope."""

    @property
    def provider(self) -> str:
        return "noop"

    async def complete(self, prompt: str, *, model: str | None = None) -> str:
        return _NOOP_MESSAGE

    async def function_call(self, messages, tools, **kwargs) -> FunctionCallResult | None:
        return None
