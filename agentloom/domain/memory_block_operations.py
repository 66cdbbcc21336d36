"""
Memory Block Operations - Domain Logic Layer

SQL for core memory blocks and their append-only history.
Static method pattern: no instance state, session passed as parameter,
flush() only. The memory block manager owns the transaction and the
per-block locking.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlmodel import Session

from agentloom.domain.exceptions import (
    BlockLimitExceededError,
    DuplicateEntityError,
    EntityNotFoundError,
    ReadOnlyBlockError,
)
from agentloom.models.database.memory_blocks import BlockEvent, MemoryBlock, MemoryBlockHistory


class MemoryBlockOperations:
    """Domain operations for MemoryBlock and MemoryBlockHistory."""

    # ═══════════════════════════════════════════════════════════════════
    # Block reads
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def get_by_label(
        session: Session,
        user_id: str,
        label: str,
        agent_id: str = "",
        for_update: bool = False,
    ) -> Optional[MemoryBlock]:
        """Get a block by (user, agent scope, label). Optionally lock the row."""
        stmt = select(MemoryBlock).where(
            and_(
                MemoryBlock.user_id == user_id,
                MemoryBlock.agent_id == agent_id,
                MemoryBlock.label == label,
            )
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def get_or_raise(session: Session, user_id: str, label: str, agent_id: str = "", for_update: bool = False) -> MemoryBlock:
        block = MemoryBlockOperations.get_by_label(session, user_id, label, agent_id, for_update)
        if block is None:
            raise EntityNotFoundError("Block", f"'{label}'")
        return block

    @staticmethod
    def list_for_user(session: Session, user_id: str, agent_id: str = "") -> List[MemoryBlock]:
        """All blocks in a scope, ordered by label for deterministic rendering."""
        result = session.execute(
            select(MemoryBlock).where(
                and_(MemoryBlock.user_id == user_id, MemoryBlock.agent_id == agent_id)
            ).order_by(MemoryBlock.label)
        )
        return list(result.scalars().all())

    # ═══════════════════════════════════════════════════════════════════
    # Writes
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def create(
        session: Session,
        user_id: str,
        label: str,
        value: str = "",
        agent_id: str = "",
        limit: Optional[int] = None,
        readonly: bool = False,
        description: Optional[str] = None,
    ) -> MemoryBlock:
        """Create a block. Raises DuplicateEntityError if the label exists in scope."""
        if MemoryBlockOperations.get_by_label(session, user_id, label, agent_id) is not None:
            raise DuplicateEntityError("MemoryBlock", f"label '{label}' already exists")

        block = MemoryBlock(
            user_id=user_id,
            agent_id=agent_id,
            label=label,
            value=value,
            readonly=readonly,
            description=description,
        )
        if limit is not None:
            block.limit = limit
        MemoryBlockOperations.check_limit(block, value, "Create")

        session.add(block)
        session.flush()
        return block

    @staticmethod
    def check_writable(block: MemoryBlock) -> None:
        if block.readonly:
            raise ReadOnlyBlockError(block.label)

    @staticmethod
    def check_limit(block: MemoryBlock, new_value: str, operation: str) -> None:
        if len(new_value) > block.limit:
            raise BlockLimitExceededError(operation, len(new_value), block.limit)

    @staticmethod
    def apply_change(
        session: Session,
        block: MemoryBlock,
        event: BlockEvent,
        new_value: str,
    ) -> MemoryBlockHistory:
        """
        Record history, then update the value, in the caller's transaction.

        Limit is checked before anything is written so a rejected change
        leaves neither a history row nor a modified value.
        """
        MemoryBlockOperations.check_limit(block, new_value, event.value.capitalize())

        entry = MemoryBlockOperations.record_history(session, block, event, block.value, new_value)
        block.value = new_value
        session.add(block)
        session.flush()
        return entry

    @staticmethod
    def delete(session: Session, block: MemoryBlock) -> MemoryBlockHistory:
        """Hard delete; the DELETE history row keeps the last value."""
        entry = MemoryBlockOperations.record_history(session, block, BlockEvent.DELETE, block.value, None)
        session.delete(block)
        session.flush()
        return entry

    # ═══════════════════════════════════════════════════════════════════
    # History
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def record_history(
        session: Session,
        block: MemoryBlock,
        event: BlockEvent,
        previous_value: Optional[str],
        new_value: Optional[str],
    ) -> MemoryBlockHistory:
        entry = MemoryBlockHistory(
            block_id=block.id,
            user_id=block.user_id,
            agent_id=block.agent_id,
            label=block.label,
            event=event,
            previous_value=previous_value,
            new_value=new_value,
        )
        session.add(entry)
        session.flush()
        return entry

    @staticmethod
    def get_history(session: Session, block_id: UUID, limit: int = 20) -> List[MemoryBlockHistory]:
        """Most-recent-first audit entries for a block."""
        result = session.execute(
            select(MemoryBlockHistory)
            .where(MemoryBlockHistory.block_id == block_id)
            .order_by(MemoryBlockHistory.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    def get_history_entry(session: Session, block_id: UUID, history_id: int) -> Optional[MemoryBlockHistory]:
        result = session.execute(
            select(MemoryBlockHistory).where(
                and_(MemoryBlockHistory.id == history_id, MemoryBlockHistory.block_id == block_id)
            )
        )
        return result.scalar_one_or_none()
