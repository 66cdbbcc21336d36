"""
Memory Block Manager

Agent-editable core memory: small, size-bounded documents per user (and
optionally per agent). Every mutation writes its history row and the new
value in one transaction, under a per-(user, agent, label) lock.

Expected failures (missing block, read-only, ambiguous match, over limit)
come back as MemoryBlockResult(success=False), never as exceptions.
"""
import logging
from typing import Callable, List, Optional, Sequence, Tuple, Union

from sqlmodel import Session

from agentloom.core.config import settings
from agentloom.core.database import SessionFactory, get_db_session
from agentloom.core.locks import KeyedLocks
from agentloom.domain.exceptions import (
    AmbiguousMatchError,
    DomainException,
    DomainValidationError,
    EntityNotFoundError,
)
from agentloom.domain.memory_block_operations import MemoryBlockOperations
from agentloom.models.database.memory_blocks import BlockEvent, MemoryBlock, MemoryBlockHistory, MemoryBlockRead
from agentloom.models.dto.memory import CompiledMemory, MemoryBlockResult

logger = logging.getLogger(__name__)

DEFAULT_MEMORY_BLOCKS = (
    {
        "label": "persona",
        "description": "The persona block: Stores details about your current persona, guiding how you behave and respond.",
    },
    {
        "label": "human",
        "description": "The human block: Stores key details about the person you are conversing with, allowing for more personalized conversation.",
    },
)

Change = Callable[[Session], Tuple[str, Optional[MemoryBlock]]]


def compile_prompt(blocks: Sequence[Union[MemoryBlock, MemoryBlockRead]]) -> str:
    """
    Render blocks for injection into a system prompt.

    Deterministic for a given block list; an empty list renders "".
    """
    if not blocks:
        return ""

    lines = [
        "<memory_blocks>",
        "The following memory blocks are currently engaged in your core memory unit:",
        "",
    ]
    for block in blocks:
        lines.append(f"<{block.label}>")
        if block.description:
            lines.append(f"<description>{block.description}</description>")
        lines.append("<metadata>")
        if block.readonly:
            lines.append("- read_only=true")
        lines.append(f"- chars_current={len(block.value)}")
        lines.append(f"- chars_limit={block.limit}")
        lines.append("</metadata>")
        lines.append("<value>")
        lines.append(block.value)
        lines.append("</value>")
        lines.append(f"</{block.label}>")
        lines.append("")
    lines.append("</memory_blocks>")
    return "\n".join(lines)


class MemoryBlockManager:
    """Core memory operations for agents and workflow nodes."""

    def __init__(
        self,
        session_factory: SessionFactory = get_db_session,
        default_limit: int = settings.MEMORY_BLOCK_CHAR_LIMIT,
    ):
        self.session_factory = session_factory
        self.default_limit = default_limit
        self._locks = KeyedLocks()

    @staticmethod
    def _read(block: MemoryBlock) -> MemoryBlockRead:
        return MemoryBlockRead.model_validate(block)

    async def _mutate(self, user_id: str, agent_id: str, label: str, operation: str, change: Change) -> MemoryBlockResult:
        async with self._locks.hold((user_id, agent_id, label)):
            try:
                with self.session_factory() as session:
                    message, block = change(session)
                    result = MemoryBlockResult(
                        success=True,
                        message=message,
                        block=self._read(block) if block is not None else None,
                    )
            except DomainException as e:
                logger.info(f"Memory block {operation} rejected (user={user_id}, label='{label}'): {e}")
                return MemoryBlockResult(success=False, message=str(e))

        logger.debug(f"Memory block {operation} ok (user={user_id}, label='{label}')")
        return result

    # ═══════════════════════════════════════════════════════════════════
    # Reads
    # ═══════════════════════════════════════════════════════════════════

    async def get_blocks(self, user_id: str, agent_id: str = "") -> List[MemoryBlockRead]:
        with self.session_factory() as session:
            return [self._read(b) for b in MemoryBlockOperations.list_for_user(session, user_id, agent_id)]

    async def get_block(self, user_id: str, label: str, agent_id: str = "") -> Optional[MemoryBlockRead]:
        with self.session_factory() as session:
            block = MemoryBlockOperations.get_by_label(session, user_id, label, agent_id)
            return self._read(block) if block is not None else None

    async def get_history(self, user_id: str, label: str, limit: int = 20, agent_id: str = "") -> List[MemoryBlockHistory]:
        """Most-recent-first audit entries; [] when the block does not exist."""
        with self.session_factory() as session:
            block = MemoryBlockOperations.get_by_label(session, user_id, label, agent_id)
            if block is None:
                return []
            return MemoryBlockOperations.get_history(session, block.id, limit)

    async def search(self, user_id: str, query: str, label: Optional[str] = None, agent_id: str = "") -> List[Tuple[str, str]]:
        """Case-insensitive line match across blocks; returns (label, line) pairs."""
        needle = query.lower().strip()
        if not needle:
            return []
        blocks = await self.get_blocks(user_id, agent_id)
        return [
            (block.label, line.strip())
            for block in blocks
            if label is None or block.label == label
            for line in block.value.splitlines()
            if needle in line.lower()
        ]

    async def compile(self, user_id: str, agent_id: str = "") -> CompiledMemory:
        blocks = await self.get_blocks(user_id, agent_id)
        return CompiledMemory(
            prompt=compile_prompt(blocks),
            total_chars=sum(len(b.value) for b in blocks),
            blocks=[
                {"label": b.label, "chars_current": len(b.value), "chars_limit": b.limit, "readonly": b.readonly}
                for b in blocks
            ],
        )

    # ═══════════════════════════════════════════════════════════════════
    # Mutations
    # ═══════════════════════════════════════════════════════════════════

    async def upsert_block(
        self,
        user_id: str,
        label: str,
        value: str = "",
        agent_id: str = "",
        limit: Optional[int] = None,
        readonly: Optional[bool] = None,
        description: Optional[str] = None,
    ) -> MemoryBlockResult:
        """
        Create a block, or overwrite value/settings of an existing one (logged as RETHINK).

        Existing read-only blocks are rejected like any other edit.
        """

        def change(session: Session):
            block = MemoryBlockOperations.get_by_label(session, user_id, label, agent_id, for_update=True)
            if block is None:
                block = MemoryBlockOperations.create(
                    session, user_id, label, value,
                    agent_id=agent_id,
                    limit=limit or self.default_limit,
                    readonly=bool(readonly),
                    description=description,
                )
                return f"Block '{label}' created", block

            MemoryBlockOperations.check_writable(block)
            if limit is not None:
                block.limit = limit
            if readonly is not None:
                block.readonly = readonly
            if description is not None:
                block.description = description
            if block.value != value:
                MemoryBlockOperations.apply_change(session, block, BlockEvent.RETHINK, value)
            else:
                MemoryBlockOperations.check_limit(block, value, "Update")
                session.add(block)
                session.flush()
            return f"Block '{label}' updated successfully", block

        return await self._mutate(user_id, agent_id, label, "upsert", change)

    async def initialize_default_blocks(self, user_id: str, agent_id: str = "") -> List[MemoryBlockRead]:
        """Create the persona/human blocks if missing. Idempotent."""
        for spec in DEFAULT_MEMORY_BLOCKS:
            if await self.get_block(user_id, spec["label"], agent_id) is None:
                await self.upsert_block(user_id, spec["label"], "", agent_id=agent_id, description=spec["description"])
        return await self.get_blocks(user_id, agent_id)

    async def append(self, user_id: str, label: str, content: str, agent_id: str = "") -> MemoryBlockResult:
        def change(session: Session):
            block = MemoryBlockOperations.get_or_raise(session, user_id, label, agent_id, for_update=True)
            MemoryBlockOperations.check_writable(block)
            new_value = f"{block.value}\n{content}" if block.value else content
            MemoryBlockOperations.apply_change(session, block, BlockEvent.APPEND, new_value)
            return f"Block '{label}' updated successfully", block

        return await self._mutate(user_id, agent_id, label, "append", change)

    async def replace(self, user_id: str, label: str, old_content: str, new_content: str, agent_id: str = "") -> MemoryBlockResult:
        def change(session: Session):
            block = MemoryBlockOperations.get_or_raise(session, user_id, label, agent_id, for_update=True)
            MemoryBlockOperations.check_writable(block)
            if not old_content:
                raise DomainValidationError("old_content must not be empty")

            occurrences = block.value.count(old_content)
            if occurrences == 0:
                raise DomainValidationError(f"Old content not found in block '{label}'")
            if occurrences > 1:
                raise AmbiguousMatchError(occurrences)

            new_value = block.value.replace(old_content, new_content, 1)
            MemoryBlockOperations.apply_change(session, block, BlockEvent.REPLACE, new_value)
            return f"Block '{label}' updated successfully", block

        return await self._mutate(user_id, agent_id, label, "replace", change)

    async def rethink(self, user_id: str, label: str, new_memory: str, agent_id: str = "") -> MemoryBlockResult:
        """Full overwrite; creates the block when it does not exist."""

        def change(session: Session):
            block = MemoryBlockOperations.get_by_label(session, user_id, label, agent_id, for_update=True)
            if block is None:
                block = MemoryBlockOperations.create(
                    session, user_id, label, "", agent_id=agent_id, limit=self.default_limit
                )
                MemoryBlockOperations.apply_change(session, block, BlockEvent.RETHINK, new_memory)
                return f"Block '{label}' created with new memory", block

            MemoryBlockOperations.check_writable(block)
            MemoryBlockOperations.apply_change(session, block, BlockEvent.RETHINK, new_memory)
            return f"Block '{label}' updated successfully", block

        return await self._mutate(user_id, agent_id, label, "rethink", change)

    async def rollback(self, user_id: str, label: str, history_id: int, agent_id: str = "") -> MemoryBlockResult:
        """Restore the value a history entry replaced; recorded as a new RETHINK entry."""

        def change(session: Session):
            block = MemoryBlockOperations.get_or_raise(session, user_id, label, agent_id, for_update=True)
            MemoryBlockOperations.check_writable(block)
            entry = MemoryBlockOperations.get_history_entry(session, block.id, history_id)
            if entry is None:
                raise EntityNotFoundError(f"History entry {history_id} for block '{label}'")
            MemoryBlockOperations.apply_change(session, block, BlockEvent.RETHINK, entry.previous_value or "")
            return f"Block '{label}' rolled back to history entry {history_id}", block

        return await self._mutate(user_id, agent_id, label, "rollback", change)

    async def delete_block(self, user_id: str, label: str, agent_id: str = "") -> MemoryBlockResult:
        def change(session: Session):
            block = MemoryBlockOperations.get_or_raise(session, user_id, label, agent_id, for_update=True)
            MemoryBlockOperations.check_writable(block)
            MemoryBlockOperations.delete(session, block)
            return f"Block '{label}' deleted", None

        return await self._mutate(user_id, agent_id, label, "delete", change)
