# Data Transfer Objects (DTOs)
# Messages exchanged with models and result shapes returned by memory services

from agentloom.models.dto.messages import ChatMessage, StreamChunk, TokenUsage, ToolCall
from agentloom.models.dto.memory import (
    ArchivalOperationResult,
    ArchivalSearchResult,
    CompiledMemory,
    MemoryBlockResult,
)

__all__ = [
    "ChatMessage",
    "StreamChunk",
    "TokenUsage",
    "ToolCall",
    "ArchivalOperationResult",
    "ArchivalSearchResult",
    "CompiledMemory",
    "MemoryBlockResult",
]
