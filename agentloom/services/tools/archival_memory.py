"""Archival memory tools: agent-facing wrappers around ArchivalMemory."""
from typing import List, Optional

from pydantic import BaseModel, Field

from agentloom.models.database.archival import ArchivalEntryRead
from agentloom.services.memory.archival import MAX_TOP_K, MIN_TOP_K, ArchivalMemory
from .registry import Tool


class InsertArgs(BaseModel):
    content: str = Field(description="The fact or note to remember long-term")
    context: Optional[str] = Field(default=None, description="Where/why this came up")
    tags: List[str] = Field(default_factory=list)
    importance: float = Field(default=0.7, ge=0.0, le=1.0)


class SearchArgs(BaseModel):
    query: str = Field(description="What to look for (semantic search)")
    top_k: int = Field(default=5, ge=MIN_TOP_K, le=MAX_TOP_K)


class UpdateArgs(BaseModel):
    memory_id: str
    new_content: str
    new_context: Optional[str] = None


class DeleteArgs(BaseModel):
    memory_id: str
    reason: Optional[str] = None


class GetArgs(BaseModel):
    memory_id: str


def format_entry(entry: ArchivalEntryRead) -> str:
    tags = ", ".join(entry.meta.get("tags", [])) if entry.meta else ""
    lines = [
        f"ID: {entry.id}",
        f"Type: {entry.memory_type.value}",
        f"Created: {entry.created_at.isoformat()}",
        f"Importance: {entry.importance:.2f}",
        f"Content: {entry.content}",
    ]
    if entry.context:
        lines.append(f"Context: {entry.context}")
    if tags:
        lines.append(f"Tags: {tags}")
    return "\n".join(lines)


def create_archival_memory_tools(archival: ArchivalMemory, user_id: str, session_id: Optional[str] = None) -> List[Tool]:
    """Tools bound to one user's archival memory."""

    async def archival_memory_insert(args: InsertArgs) -> str:
        entry_id = await archival.insert(
            user_id, args.content, args.context,
            tags=args.tags, importance=args.importance, session_id=session_id,
        )
        return f"Memory stored in archival memory with ID {entry_id}."

    async def archival_memory_search(args: SearchArgs) -> str:
        hits = await archival.search(user_id, args.query, args.top_k)
        if not hits:
            return "No results found in archival memory."
        blocks = []
        for rank, hit in enumerate(hits, 1):
            entry = hit.entry
            block = [
                f"{rank}. [ID: {entry.id}] ({entry.created_at.date().isoformat()})",
                f"   {entry.content}",
            ]
            if entry.context:
                block.append(f"   Context: {entry.context}")
            block.append(f"   Relevance: {hit.score * 100:.0f}%")
            blocks.append("\n".join(block))
        return f"Found {len(hits)} result(s) in archival memory:\n\n" + "\n\n".join(blocks)

    async def archival_memory_update(args: UpdateArgs) -> str:
        result = await archival.update(user_id, args.memory_id, args.new_content, args.new_context)
        return result.message

    async def archival_memory_delete(args: DeleteArgs) -> str:
        result = await archival.delete(user_id, args.memory_id, args.reason)
        return result.message

    async def archival_memory_get(args: GetArgs) -> str:
        result = await archival.get(user_id, args.memory_id)
        if not result.success:
            return result.message
        return format_entry(result.entry)

    return [
        Tool("archival_memory_insert", "Store a fact in long-term archival memory.", InsertArgs, archival_memory_insert),
        Tool("archival_memory_search", "Semantic search over archival memory.", SearchArgs, archival_memory_search),
        Tool("archival_memory_update", "Edit an archival memory entry.", UpdateArgs, archival_memory_update),
        Tool("archival_memory_delete", "Delete an archival memory entry.", DeleteArgs, archival_memory_delete),
        Tool("archival_memory_get", "Show full details of an archival memory entry.", GetArgs, archival_memory_get),
    ]
