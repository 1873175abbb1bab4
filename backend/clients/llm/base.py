from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, TypedDict, Union


class LLMMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


ReasoningEffort = Literal["minimal", "low", "medium", "high"]
Verbosity = Literal["low", "medium", "high"]

# None -> "auto"; a tool name forces that tool.
ToolChoice = Optional[str]

DeltaCallback = Callable[[str], Any]


@dataclass
class FunctionCallResult:
    """Result of an LLM function/tool call selection."""

    tool_name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    raw_response: Optional[str] = None
    # True when the provider returned arguments that were not valid JSON
    malformed: bool = False


def tool_names(tools: List[dict]) -> List[str]:
    """Names of OpenAI-style function tool schemas."""
    names: List[str] = []
    for tool in tools:
        fn = tool.get("function") or {}
        if fn.get("name"):
            names.append(fn["name"])
    return names


class BaseLLMClient(ABC):
    @property
    @abstractmethod
    def provider(self) -> str:
        ...

    @abstractmethod
    async def complete(self, prompt: str, *, model: str | None = None) -> str:
        ...

    async def chat(
        self,
        messages: List[LLMMessage],
        *,
        model: Optional[str] = None,
        reasoning_effort: Optional[ReasoningEffort] = None,
        verbosity: Optional[Verbosity] = None,
        json_mode: bool = False,
    ) -> str:
        """Send a multi-turn conversation with an optional system message.

        Default implementation concatenates all messages into a single prompt
        and calls ``complete()``. Budget hints (reasoning effort, verbosity)
        are ignored by providers that do not support them.
        """
        parts: List[str] = []
        for msg in messages:
            role = msg.get("role", "user")
            content = (msg.get("content") or "").strip()
            if not content:
                continue
            if role == "system":
                parts.insert(0, f"[System instructions]\n{content}\n")
            else:
                parts.append(f"{role}: {content}")
        if json_mode:
            parts.append("Respond with a single JSON object only.")
        return await self.complete("\n".join(parts), model=model)

    async def function_call(
        self,
        messages: List[LLMMessage],
        tools: List[dict],
        *,
        tool_choice: ToolChoice = None,
        model: Optional[str] = None,
        reasoning_effort: Optional[ReasoningEffort] = None,
        verbosity: Optional[Verbosity] = None,
    ) -> Optional[FunctionCallResult]:
        """Ask the LLM to select a tool and extract its arguments.

        Returns ``None`` when the model made no tool call or the provider
        failed. Default implementation does not support tools.
        """
        return None

    async def web_search(
        self,
        prompt: str,
        *,
        on_delta: Optional[DeltaCallback] = None,
        model: Optional[str] = None,
    ) -> Optional[str]:
        """Streaming web-search completion. ``on_delta`` receives text chunks
        as they arrive. Returns the full text, or ``None`` when unsupported."""
        return None


def forced_or_auto(tool_choice: ToolChoice, tools: List[dict]) -> Union[str, Dict[str, Any]]:
    """OpenAI tool_choice value for a forced tool name, else "auto"."""
    if tool_choice and tool_choice in tool_names(tools):
        return {"type": "function", "function": {"name": tool_choice}}
    return "auto"
