"""Google Gemini LLM provider: BaseLLMClient implementation + registry builder."""
from __future__ import annotations

import inspect
import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types as genai_types

from backend.clients.llm.base import (
    BaseLLMClient,
    DeltaCallback,
    FunctionCallResult,
    LLMMessage,
    ReasoningEffort,
    ToolChoice,
    Verbosity,
    tool_names,
)

logger = logging.getLogger(__name__)

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")


def _strip_fences(raw: str) -> str:
    return _FENCE_END.sub("", _FENCE_START.sub("", raw.strip()).strip())


class GeminiLLMClient(BaseLLMClient):
    """Google Gemini client. Tool calls are prompt-based; web search uses the
    google-search grounding tool. Reasoning/verbosity hints are not mapped."""

    def __init__(
        self,
        model: str = "gemini-2.0-flash",
        *,
        api_key: Optional[str] = None,
    ) -> None:
        self._model = model
        resolved_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        self._client = genai.Client(api_key=resolved_key)

    @property
    def provider(self) -> str:
        return "gemini"

    async def complete(self, prompt: str, *, model: Optional[str] = None) -> str:
        response = await self._client.aio.models.generate_content(
            model=model or self._model,
            contents=prompt,
        )
        return response.text or ""

    async def chat(
        self,
        messages: List[LLMMessage],
        *,
        model: Optional[str] = None,
        reasoning_effort: Optional[ReasoningEffort] = None,
        verbosity: Optional[Verbosity] = None,
        json_mode: bool = False,
    ) -> str:
        """Native multi-turn chat with system-instruction support."""
        system_parts: List[str] = []
        history: List[Dict[str, Any]] = []

        for msg in messages:
            role = msg.get("role", "user")
            content = (msg.get("content") or "").strip()
            if not content:
                continue
            if role == "system":
                system_parts.append(content)
            else:
                history.append({
                    "role": "model" if role == "assistant" else "user",
                    "parts": [{"text": content}],
                })

        cfg_kwargs: Dict[str, Any] = {}
        if system_parts:
            cfg_kwargs["system_instruction"] = "\n\n".join(system_parts)
        if json_mode:
            cfg_kwargs["response_mime_type"] = "application/json"

        response = await self._client.aio.models.generate_content(
            model=model or self._model,
            contents=history,
            config=genai_types.GenerateContentConfig(**cfg_kwargs) if cfg_kwargs else None,
        )
        return response.text or ""

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
        """Prompt-based tool selection. A forced ``tool_choice`` narrows the
        offered tools to that one."""
        if not tools:
            return None
        if tool_choice and tool_choice in tool_names(tools):
            tools = [t for t in tools if (t.get("function") or {}).get("name") == tool_choice]

        conversation = "\n".join(
            f"{m.get('role', 'user')}: {(m.get('content') or '').strip()}" for m in messages
        )
        tool_list = json.dumps(tools, ensure_ascii=False, indent=2)
        extraction_prompt = (
            "You are a tool dispatcher. Given the available tools and the conversation, "
            "select the most appropriate tool and extract its arguments.\n\n"
            f"Available tools (JSON schema):\n{tool_list}\n\n"
            f"Conversation:\n{conversation}\n\n"
            "Respond with ONLY a JSON object in this exact format:\n"
            '{"tool_name": "<name>", "arguments": {<key-value pairs>}}\n'
            'If no tool matches, respond with: {"tool_name": null, "arguments": {}}'
        )

        try:
            raw = await self.chat(
                [{"role": "user", "content": extraction_prompt}], model=model, json_mode=True
            )
        except Exception as exc:
            logger.error("GeminiLLMClient.function_call failed: %s", exc)
            return None

        raw = _strip_fences(raw)
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("GeminiLLMClient.function_call: could not parse JSON: %r", raw)
            return None

        tool_name = parsed.get("tool_name") if isinstance(parsed, dict) else None
        if not tool_name:
            return None

        arguments = parsed.get("arguments")
        return FunctionCallResult(
            tool_name=tool_name,
            arguments=arguments if isinstance(arguments, dict) else {},
            raw_response=raw,
            malformed=not isinstance(arguments, dict),
        )

    async def web_search(
        self,
        prompt: str,
        *,
        on_delta: Optional[DeltaCallback] = None,
        model: Optional[str] = None,
    ) -> Optional[str]:
        """Grounded generation with the google-search tool, streamed."""
        config = genai_types.GenerateContentConfig(
            tools=[genai_types.Tool(google_search=genai_types.GoogleSearch())]
        )
        chunks: List[str] = []
        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=model or self._model,
                contents=prompt,
                config=config,
            )
            async for chunk in stream:
                text = chunk.text or ""
                if not text:
                    continue
                chunks.append(text)
                if on_delta is not None:
                    maybe = on_delta(text)
                    if inspect.isawaitable(maybe):
                        await maybe
        except Exception as exc:
            logger.error("GeminiLLMClient.web_search failed: %s", exc)
            return None
        return "".join(chunks)


def gemini_builder(config: Dict[str, Any]) -> GeminiLLMClient:
    return GeminiLLMClient(
        model=config.get("model", "gemini-2.0-flash"),
        api_key=config.get("api_key"),
    )
