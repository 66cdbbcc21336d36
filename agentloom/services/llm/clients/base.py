"""
Base LLM Client - Abstract interface for multi-provider support.

The model capability consumed by workflows, the tool loop and the
summarizer: invoke a message list (optionally with tools), stream the
same call, or bind a structured-output schema.
Provider-specific implementations in anthropic.py and openai.py.
"""
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Generic, Iterable, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from agentloom.models.dto.messages import ChatMessage, StreamChunk, TokenUsage, ToolCall

MessageLike = Union[ChatMessage, Dict[str, Any]]
ToolSpec = Dict[str, Any]
"""{"name": str, "description": str, "parameters": JSON schema}"""

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class StructuredOutputError(ValueError):
    """Model output could not be parsed into the requested schema."""

    def __init__(self, message: str, raw: Optional[ChatMessage] = None):
        self.raw = raw
        super().__init__(message)


@dataclass
class StructuredOutput(Generic[SchemaT]):
    """Parsed schema instance plus the raw model message."""
    parsed: SchemaT
    raw: ChatMessage


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Separates infrastructure (API calls) from domain logic (prompts).
    """

    model: str

    @abstractmethod
    async def ainvoke(
        self,
        messages: Sequence[MessageLike],
        tools: Optional[Sequence[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatMessage:
        """
        Async chat call with provider-specific implementation.

        Returns:
            Assistant message; ``tool_calls`` is populated when the model
            asked for tools.

        Raises:
            Provider-specific exceptions (after the retry decorator gives up)
        """

    @abstractmethod
    def astream(
        self,
        messages: Sequence[MessageLike],
        tools: Optional[Sequence[ToolSpec]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream content, tool-call fragments and a final usage chunk."""

    async def call(self, prompt: str, system: Optional[str] = None) -> str:
        """Single-prompt convenience wrapper returning the response text."""
        messages: List[ChatMessage] = []
        if system:
            messages.append(ChatMessage.system(system))
        messages.append(ChatMessage.user(prompt))
        response = await self.ainvoke(messages)
        return response.content

    def with_structured_output(self, schema: Type[SchemaT]) -> "StructuredOutputRunner[SchemaT]":
        """Bind a pydantic schema; ``ainvoke`` then returns StructuredOutput."""
        return StructuredOutputRunner(self, schema)

    def parse_json_response(self, response_text: str) -> Any:
        """
        Parse LLM response into structured data.

        Extraction priority:
        1. Raw JSON (response is already valid JSON)
        2. Markdown code blocks (```json ... ``` or ``` ... ```)
        3. First JSON object or array found in the text

        Raises:
            ValueError: If no valid JSON can be extracted
        """
        text = response_text.strip()

        # 1. Try parsing the full text as JSON
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass

        # 2. Try extracting from markdown code blocks
        fence = "```json" if "```json" in text else "```" if "```" in text else None
        if fence:
            block = text.split(fence, 1)[1].split("```")[0]
            try:
                return json.loads(block.strip())
            except json.JSONDecodeError:
                pass

        # 3. Extract first JSON object {...} or array [...] from text
        match = re.search(r'[\[{]', text)
        if match:
            candidate = text[match.start():]
            close_char = ']' if candidate[0] == '[' else '}'
            last_close = candidate.rfind(close_char)
            if last_close != -1:
                try:
                    return json.loads(candidate[:last_close + 1])
                except json.JSONDecodeError:
                    pass

        raise ValueError(
            f"Failed to parse LLM response as JSON.\n\nResponse:\n{response_text}"
        )


class StructuredOutputRunner(Generic[SchemaT]):
    """Model bound to an output schema; returns {parsed, raw}."""

    def __init__(self, client: BaseLLMClient, schema: Type[SchemaT]):
        self.client = client
        self.schema = schema

    def _instruction(self) -> ChatMessage:
        schema_json = json.dumps(self.schema.model_json_schema(), ensure_ascii=False)
        return ChatMessage.system(
            "Respond with a single JSON object that validates against this JSON schema. "
            "No preamble, no markdown fences, no explanation.\n"
            f"{schema_json}"
        )

    async def ainvoke(self, messages: Sequence[MessageLike]) -> StructuredOutput[SchemaT]:
        raw = await self.client.ainvoke([self._instruction(), *messages])
        try:
            data = self.client.parse_json_response(raw.content)
        except ValueError as e:
            raise StructuredOutputError(str(e), raw=raw) from e
        try:
            parsed = self.schema.model_validate(data)
        except ValidationError as e:
            raise StructuredOutputError(f"Response does not match {self.schema.__name__}: {e}", raw=raw) from e
        return StructuredOutput(parsed=parsed, raw=raw)


def coerce_messages(messages: Iterable[MessageLike]) -> List[ChatMessage]:
    return [ChatMessage.coerce(m) for m in messages]


async def collect_stream(chunks: AsyncIterator[StreamChunk]) -> ChatMessage:
    """Fold a chunk stream back into one assistant message."""
    content: List[str] = []
    calls: Dict[int, Dict[str, Any]] = {}
    usage: Optional[TokenUsage] = None

    async for chunk in chunks:
        if chunk.kind == "content":
            content.append(chunk.content)
        elif chunk.kind == "tool_call":
            call = calls.setdefault(chunk.index, {"id": None, "name": None, "args": ""})
            call["id"] = call["id"] or chunk.tool_call_id
            call["name"] = call["name"] or chunk.tool_name
            call["args"] += chunk.args_delta
        elif chunk.kind == "usage":
            usage = chunk.usage

    tool_calls = [
        ToolCall(
            id=call["id"] or f"call_{index}",
            name=call["name"] or "",
            args=json.loads(call["args"]) if call["args"] else {},
        )
        for index, call in sorted(calls.items())
    ]
    return ChatMessage.assistant("".join(content), tool_calls=tool_calls, usage=usage)
