"""
OpenAI (GPT) LLM Client Implementation.

Features:
- Automatic retry with exponential backoff (3 attempts)
- Retries: rate limits, connection errors, timeouts, server errors (5xx)
- Function-calling tools and streaming (content / tool-call fragments / usage)
- Works with any OpenAI-compatible endpoint via OPENAI_BASE_URL
"""
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import openai
from tenacity import (
    retry,
    wait_exponential,
    stop_after_attempt,
    retry_if_exception_type
)
from .base import BaseLLMClient, MessageLike, ToolSpec, coerce_messages
from ..config import (
    OPENAI_MODEL,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    LLM_TIMEOUT,
    LLM_RETRY_MAX_ATTEMPTS,
    LLM_RETRY_MIN_WAIT,
    LLM_RETRY_MAX_WAIT,
)
from agentloom.core.config import settings
from agentloom.models.dto.messages import ChatMessage, StreamChunk, TokenUsage, ToolCall

logger = logging.getLogger(__name__)

_RETRYABLE = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,  # 5xx errors when servers overloaded
)


def to_openai_messages(messages: Sequence[MessageLike]) -> List[Dict[str, Any]]:
    """Convert ChatMessages to chat.completions wire format."""
    converted = []
    for message in coerce_messages(messages):
        if message.role == "tool":
            converted.append({
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content,
            })
        elif message.role == "assistant" and message.tool_calls:
            converted.append({
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.args)},
                    }
                    for call in message.tool_calls
                ],
            })
        else:
            converted.append({"role": message.role, "content": message.content})
    return converted


def to_openai_tools(tools: Sequence[ToolSpec]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool.get("parameters", {"type": "object", "properties": {}}),
            },
        }
        for tool in tools
    ]


class OpenAIClient(BaseLLMClient):
    """
    OpenAI GPT API client.

    Handles API communication with retry logic.
    Prompts provided by workflow-specific modules.
    """

    def __init__(self, model: str | None = None):
        """Initialize OpenAI async client."""
        if not settings.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY not set in environment")

        self.client = openai.AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL or None,
            timeout=LLM_TIMEOUT,
        )
        self.model = model or OPENAI_MODEL

    def _request(
        self,
        messages: Sequence[MessageLike],
        tools: Optional[Sequence[ToolSpec]],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": to_openai_messages(messages),
            "max_tokens": max_tokens if max_tokens is not None else LLM_MAX_TOKENS,
            "temperature": temperature if temperature is not None else LLM_TEMPERATURE,
        }
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
        return kwargs

    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        wait=wait_exponential(multiplier=1, min=LLM_RETRY_MIN_WAIT, max=LLM_RETRY_MAX_WAIT),
        stop=stop_after_attempt(LLM_RETRY_MAX_ATTEMPTS),
        reraise=True,
    )
    async def ainvoke(
        self,
        messages: Sequence[MessageLike],
        tools: Optional[Sequence[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatMessage:
        """Call OpenAI chat completions with automatic retry."""
        response = await self.client.chat.completions.create(
            **self._request(messages, tools, temperature, max_tokens)
        )

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                args=json.loads(call.function.arguments) if call.function.arguments else {},
            )
            for call in (message.tool_calls or [])
        ]
        usage = None
        if getattr(response, "usage", None) is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )
        return ChatMessage.assistant(message.content or "", tool_calls=tool_calls, usage=usage)

    @retry(
        retry=retry_if_exception_type(_RETRYABLE),
        wait=wait_exponential(multiplier=1, min=LLM_RETRY_MIN_WAIT, max=LLM_RETRY_MAX_WAIT),
        stop=stop_after_attempt(LLM_RETRY_MAX_ATTEMPTS),
        reraise=True,
    )
    async def _open_stream(self, kwargs: Dict[str, Any]):
        return await self.client.chat.completions.create(
            **kwargs, stream=True, stream_options={"include_usage": True}
        )

    async def astream(
        self,
        messages: Sequence[MessageLike],
        tools: Optional[Sequence[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a chat completion. Only opening the stream is retried."""
        stream = await self._open_stream(self._request(messages, tools, temperature, max_tokens))

        async for chunk in stream:
            if getattr(chunk, "usage", None) is not None:
                yield StreamChunk(
                    kind="usage",
                    usage=TokenUsage(
                        input_tokens=chunk.usage.prompt_tokens or 0,
                        output_tokens=chunk.usage.completion_tokens or 0,
                    ),
                )
            if not chunk.choices:
                continue

            delta = chunk.choices[0].delta
            if delta.content:
                yield StreamChunk(kind="content", content=delta.content)
            for call in delta.tool_calls or []:
                yield StreamChunk(
                    kind="tool_call",
                    index=call.index,
                    tool_call_id=call.id,
                    tool_name=call.function.name if call.function else None,
                    args_delta=(call.function.arguments or "") if call.function else "",
                )
