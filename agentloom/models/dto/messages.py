"""
Chat message DTOs shared by the model clients, the tool loop, the summarizer
and workflow state.

Workflow state stores messages as plain dicts (``ChatMessage.model_dump()``)
so checkpoints stay JSON-serializable; ``ChatMessage.coerce`` converts back.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

Role = Literal["system", "user", "assistant", "tool"]


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""
    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class TokenUsage(BaseModel):
    """Token accounting reported by the provider."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ChatMessage(BaseModel):
    """One message in a conversation."""
    role: Role
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    usage: Optional[TokenUsage] = None

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str, **kwargs) -> "ChatMessage":
        return cls(role="user", content=content, **kwargs)

    @classmethod
    def assistant(cls, content: str, **kwargs) -> "ChatMessage":
        return cls(role="assistant", content=content, **kwargs)

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: Optional[str] = None) -> "ChatMessage":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)

    @classmethod
    def coerce(cls, message: Union["ChatMessage", dict[str, Any]]) -> "ChatMessage":
        """Accept either a ChatMessage or its dict form."""
        if isinstance(message, ChatMessage):
            return message
        return cls.model_validate(message)

    def to_state(self) -> dict[str, Any]:
        """Serializable form for workflow state / checkpoints."""
        return self.model_dump(mode="json", exclude_none=True)


class StreamChunk(BaseModel):
    """
    Incremental streaming event from a model.

    kind:
        content: text delta in ``content``
        tool_call: a tool-call fragment (``tool_call_id``/``tool_name``/``args_delta``)
        usage: final token accounting in ``usage``
    """
    kind: Literal["content", "tool_call", "usage"]
    content: str = ""
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    args_delta: str = ""
    index: int = 0
    usage: Optional[TokenUsage] = None
