"""LLM provider implementations."""
from backend.clients.llm.providers.gemini import GeminiLLMClient, gemini_builder
from backend.clients.llm.providers.noop import NoOpLLMClient
from backend.clients.llm.providers.openai import OpenAILLMClient, openai_builder

__all__ = [
    "GeminiLLMClient",
    "NoOpLLMClient",
    "OpenAILLMClient",
    "gemini_builder",
    "openai_builder",
]
