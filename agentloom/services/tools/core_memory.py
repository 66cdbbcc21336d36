"""Core memory tools: agent-facing wrappers around MemoryBlockManager."""
from typing import List, Optional

from pydantic import BaseModel, Field

from agentloom.models.dto.memory import MemoryBlockResult
from agentloom.services.memory.memory_blocks import MemoryBlockManager
from .registry import Tool


class AppendArgs(BaseModel):
    label: str = Field(description="Memory block label, e.g. 'human' or 'persona'")
    content: str = Field(description="Text to append as a new line")


class ReplaceArgs(BaseModel):
    label: str = Field(description="Memory block label")
    old_content: str = Field(description="Exact text to replace; must occur exactly once")
    new_content: str = Field(description="Replacement text (empty string deletes)")


class RethinkArgs(BaseModel):
    label: str = Field(description="Memory block label; created if missing")
    new_memory: str = Field(description="Complete new block content")


class SearchArgs(BaseModel):
    query: str = Field(description="Case-insensitive text to look for")
    label: Optional[str] = Field(default=None, description="Restrict to one block")


class ListArgs(BaseModel):
    pass


class HistoryArgs(BaseModel):
    label: str = Field(description="Memory block label")
    limit: int = Field(default=5, ge=1, le=50)


def format_result(operation: str, result: MemoryBlockResult) -> str:
    if result.success:
        return (
            f"Memory {operation} successful. "
            "The core memory block has been updated and is now active in your context."
        )
    return f"Memory {operation} failed: {result.message}"


def create_core_memory_tools(manager: MemoryBlockManager, user_id: str, agent_id: str = "") -> List[Tool]:
    """Tools bound to one user's (and optionally one agent's) core memory."""

    async def core_memory_append(args: AppendArgs) -> str:
        return format_result("append", await manager.append(user_id, args.label, args.content, agent_id))

    async def core_memory_replace(args: ReplaceArgs) -> str:
        result = await manager.replace(user_id, args.label, args.old_content, args.new_content, agent_id)
        return format_result("replace", result)

    async def memory_rethink(args: RethinkArgs) -> str:
        return format_result("rethink", await manager.rethink(user_id, args.label, args.new_memory, agent_id))

    async def core_memory_search(args: SearchArgs) -> str:
        matches = await manager.search(user_id, args.query, args.label, agent_id)
        if not matches:
            return f"No lines matching '{args.query}' in core memory."
        return "\n".join(f"[{label}] {line}" for label, line in matches)

    async def core_memory_list(args: ListArgs) -> str:
        blocks = await manager.get_blocks(user_id, agent_id)
        if not blocks:
            return "No core memory blocks."
        return "\n".join(
            f"- {b.label}: {len(b.value)}/{b.limit} chars{' (read-only)' if b.readonly else ''}"
            + (f" - {b.description}" if b.description else "")
            for b in blocks
        )

    async def core_memory_history(args: HistoryArgs) -> str:
        entries = await manager.get_history(user_id, args.label, args.limit, agent_id)
        if not entries:
            return f"No history for block '{args.label}'."
        return "\n".join(
            f"#{e.id} {e.event.value} at {e.created_at.isoformat()}: "
            f"{(e.previous_value or '')[:80]!r} -> {(e.new_value or '')[:80]!r}"
            for e in entries
        )

    return [
        Tool("core_memory_append", "Append a line to a core memory block.", AppendArgs, core_memory_append),
        Tool("core_memory_replace", "Replace one exact occurrence of text in a core memory block.", ReplaceArgs, core_memory_replace),
        Tool("memory_rethink", "Rewrite a core memory block completely (creates it if missing).", RethinkArgs, memory_rethink),
        Tool("core_memory_search", "Search core memory blocks line by line.", SearchArgs, core_memory_search),
        Tool("core_memory_list", "List core memory blocks and their sizes.", ListArgs, core_memory_list),
        Tool("core_memory_history", "Show recent changes to a core memory block.", HistoryArgs, core_memory_history),
    ]
