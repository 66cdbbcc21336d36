"""
Anthropic (Claude) LLM Client Implementation.

Features:
- Automatic retry with exponential backoff (3 attempts)
- Retries: rate limits, connection errors, timeouts, server errors (5xx)
- System messages folded into the top-level ``system`` parameter
- tool_use / tool_result blocks mapped to ToolCall / tool-role messages
"""
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import anthropic
from tenacity import (
    retry,
    wait_exponential,
    stop_after_attempt,
    retry_if_exception_type
)
from .base import BaseLLMClient, MessageLike, ToolSpec, coerce_messages
from ..config import (
    ANTHROPIC_MODEL,
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
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.InternalServerError,  # 5xx errors including 529 overload
)


def to_anthropic_messages(messages: Sequence[MessageLike]) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Split out the system prompt and convert the rest to content blocks.

    Consecutive messages with the same wire role are merged, so parallel
    tool results land in one user turn.
    """
    system_parts: List[str] = []
    converted: List[Dict[str, Any]] = []

    for message in coerce_messages(messages):
        if message.role == "system":
            system_parts.append(message.content)
            continue

        if message.role == "tool":
            role = "user"
            blocks = [{
                "type": "tool_result",
                "tool_use_id": message.tool_call_id,
                "content": message.content,
            }]
        elif message.role == "assistant":
            role = "assistant"
            blocks = [{"type": "text", "text": message.content}] if message.content else []
            blocks += [
                {"type": "tool_use", "id": call.id, "name": call.name, "input": call.args}
                for call in message.tool_calls
            ]
        else:
            role = "user"
            blocks = [{"type": "text", "text": message.content}]

        if converted and converted[-1]["role"] == role:
            converted[-1]["content"].extend(blocks)
        else:
            converted.append({"role": role, "content": blocks})

    return "\n\n".join(system_parts), converted


def to_anthropic_tools(tools: Sequence[ToolSpec]) -> List[Dict[str, Any]]:
    return [
        {
            "name": tool["name"],
            "description": tool.get("description", ""),
            "input_schema": tool.get("parameters", {"type": "object", "properties": {}}),
        }
        for tool in tools
    ]


class AnthropicClient(BaseLLMClient):
    """
    Anthropic Claude API client.

    Handles API communication with retry logic.
    Prompts provided by workflow-specific modules.
    """

    def __init__(self, model: str | None = None):
        """Initialize Claude async client."""
        if not settings.ANTHROPIC_API_KEY:
            raise ValueError("ANTHROPIC_API_KEY not set in environment")

        self.client = anthropic.AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=LLM_TIMEOUT,
        )
        self.model = model or ANTHROPIC_MODEL

    def _request(
        self,
        messages: Sequence[MessageLike],
        tools: Optional[Sequence[ToolSpec]],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> Dict[str, Any]:
        system, converted = to_anthropic_messages(messages)
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens if max_tokens is not None else LLM_MAX_TOKENS,
            "temperature": temperature if temperature is not None else LLM_TEMPERATURE,
            "messages": converted,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = to_anthropic_tools(tools)
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
        """Call Claude messages API with automatic retry."""
        response = await self.client.messages.create(
            **self._request(messages, tools, temperature, max_tokens)
        )

        text_parts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, args=dict(block.input or {})))

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = TokenUsage(
                input_tokens=response.usage.input_tokens or 0,
                output_tokens=response.usage.output_tokens or 0,
            )
        return ChatMessage.assistant("".join(text_parts), tool_calls=tool_calls, usage=usage)

    async def astream(
        self,
        messages: Sequence[MessageLike],
        tools: Optional[Sequence[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a Claude response as content / tool-call / usage chunks."""
        kwargs = self._request(messages, tools, temperature, max_tokens)

        async with self.client.messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type == "content_block_start" and event.content_block.type == "tool_use":
                    yield StreamChunk(
                        kind="tool_call",
                        index=event.index,
                        tool_call_id=event.content_block.id,
                        tool_name=event.content_block.name,
                    )
                elif event.type == "content_block_delta":
                    if event.delta.type == "text_delta":
                        yield StreamChunk(kind="content", content=event.delta.text)
                    elif event.delta.type == "input_json_delta":
                        yield StreamChunk(kind="tool_call", index=event.index, args_delta=event.delta.partial_json)

            final = await stream.get_final_message()
            yield StreamChunk(
                kind="usage",
                usage=TokenUsage(
                    input_tokens=final.usage.input_tokens or 0,
                    output_tokens=final.usage.output_tokens or 0,
                ),
            )
