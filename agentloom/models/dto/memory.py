"""Result DTOs returned by the memory services to tools and workflows."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from agentloom.models.database.archival import ArchivalEntryRead
from agentloom.models.database.memory_blocks import MemoryBlockRead


class MemoryBlockResult(BaseModel):
    """Outcome of a memory block operation. Failures are data, not exceptions."""
    success: bool
    message: str
    block: Optional[MemoryBlockRead] = None


class CompiledMemory(BaseModel):
    """Rendered core memory plus per-block accounting."""
    prompt: str
    total_chars: int = 0
    blocks: list[dict[str, Any]] = Field(default_factory=list)


class ArchivalOperationResult(BaseModel):
    """Outcome of an archival update/delete/get."""
    success: bool
    message: str
    entry: Optional[ArchivalEntryRead] = None


class ArchivalSearchResult(BaseModel):
    """A ranked search hit."""
    entry: ArchivalEntryRead
    score: float
