"""OpenAI LLM provider: BaseLLMClient implementation + registry builder."""
from __future__ import annotations

import inspect
import json
import logging
import os
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from backend.clients.llm.base import (
    BaseLLMClient,
    DeltaCallback,
    FunctionCallResult,
    LLMMessage,
    ReasoningEffort,
    ToolChoice,
    Verbosity,
    forced_or_auto,
)

logger = logging.getLogger(__name__)

# Model families that take reasoning_effort/verbosity and reject temperature.
_REASONING_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def _is_reasoning_model(model: str) -> bool:
    return model.startswith(_REASONING_PREFIXES)


class OpenAILLMClient(BaseLLMClient):
    """OpenAI client for chat completions, tool calls and the Responses API
    web-search tool. Reasoning models take ``reasoning_effort``/``verbosity``
    instead of ``temperature``."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        search_model: Optional[str] = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._search_model = search_model or model
        self._client = AsyncOpenAI(
            api_key=api_key or os.environ.get("OPENAI_API_KEY"),
            base_url=base_url,
        )

    @property
    def provider(self) -> str:
        return "openai"

    def _request_kwargs(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str],
        reasoning_effort: Optional[str],
        verbosity: Optional[str],
    ) -> Dict[str, Any]:
        resolved = model or self._model
        kwargs: Dict[str, Any] = {
            "model": resolved,
            "messages": messages,
        }
        if _is_reasoning_model(resolved):
            if reasoning_effort:
                kwargs["reasoning_effort"] = reasoning_effort
            if verbosity:
                kwargs["verbosity"] = verbosity
        else:
            kwargs["temperature"] = self._temperature
        if self._max_tokens is not None:
            kwargs["max_completion_tokens"] = self._max_tokens
        return kwargs

    async def complete(self, prompt: str, *, model: Optional[str] = None) -> str:
        return await self.chat([{"role": "user", "content": prompt}], model=model)

    async def chat(
        self,
        messages: List[LLMMessage],
        *,
        model: Optional[str] = None,
        reasoning_effort: Optional[ReasoningEffort] = None,
        verbosity: Optional[Verbosity] = None,
        json_mode: bool = False,
    ) -> str:
        """Native multi-turn chat with system-prompt support."""
        kwargs = self._request_kwargs(
            list(messages), model=model, reasoning_effort=reasoning_effort, verbosity=verbosity
        )
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = await self._client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

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
        """Native tool calling; a named ``tool_choice`` forces that tool."""
        if not tools:
            return None

        kwargs = self._request_kwargs(
            list(messages), model=model, reasoning_effort=reasoning_effort, verbosity=verbosity
        )
        kwargs["tools"] = tools
        kwargs["tool_choice"] = forced_or_auto(tool_choice, tools)

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as exc:
            logger.error("OpenAILLMClient.function_call failed: %s", exc)
            return None

        msg = response.choices[0].message
        if not msg.tool_calls:
            return None

        tc = msg.tool_calls[0]
        try:
            arguments = json.loads(tc.function.arguments or "{}")
        except json.JSONDecodeError:
            logger.warning("OpenAILLMClient.function_call: malformed arguments for %s", tc.function.name)
            return FunctionCallResult(
                tool_name=tc.function.name,
                raw_response=tc.function.arguments,
                malformed=True,
            )

        return FunctionCallResult(
            tool_name=tc.function.name,
            arguments=arguments if isinstance(arguments, dict) else {},
            raw_response=tc.function.arguments,
            malformed=not isinstance(arguments, dict),
        )

    async def web_search(
        self,
        prompt: str,
        *,
        on_delta: Optional[DeltaCallback] = None,
        model: Optional[str] = None,
    ) -> Optional[str]:
        """Responses API with the web-search tool, streamed."""
        chunks: List[str] = []
        try:
            async with self._client.responses.stream(
                model=model or self._search_model,
                input=prompt,
                tools=[{"type": "web_search_preview"}],
            ) as stream:
                async for event in stream:
                    if event.type != "response.output_text.delta":
                        continue
                    chunks.append(event.delta)
                    if on_delta is not None:
                        maybe = on_delta(event.delta)
                        if inspect.isawaitable(maybe):
                            await maybe
        except Exception as exc:
            logger.error("OpenAILLMClient.web_search failed: %s", exc)
            return None
        return "".join(chunks)


def openai_builder(config: Dict[str, Any]) -> OpenAILLMClient:
    return OpenAILLMClient(
        model=config.get("model", "gpt-4o-mini"),
        api_key=config.get("api_key"),
        base_url=config.get("base_url"),
        temperature=float(config.get("temperature", 0.0)),
        max_tokens=config.get("max_tokens"),
        search_model=config.get("search_model"),
    )
