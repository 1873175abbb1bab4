"""
LLM clients: base interface, providers and registry.

Provider registration: default_registry.register(provider, builder).
Environment-driven construction: default_registry.build_from_env().
"""
from backend.clients.llm.base import (
    BaseLLMClient,
    FunctionCallResult,
    LLMMessage,
)
from backend.clients.llm.registry import LLMRegistry, default_registry

__all__ = [
    "BaseLLMClient",
    "FunctionCallResult",
    "LLMMessage",
    "LLMRegistry",
    "default_registry",
]
