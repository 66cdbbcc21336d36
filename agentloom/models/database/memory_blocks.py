"""Core memory blocks - small, size-bounded, agent-editable documents."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import Text, UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from agentloom.core.config import settings
from agentloom.models.database.mixins.timestamp import TimestampMixin, utcnow
from agentloom.models.database.types import JSONType


class BlockEvent(str, Enum):
    """Mutation kinds recorded in block history."""
    APPEND = "APPEND"
    REPLACE = "REPLACE"
    RETHINK = "RETHINK"
    DELETE = "DELETE"


class MemoryBlockBase(SQLModel):
    """Shared fields for MemoryBlock model."""
    user_id: str = Field(index=True, max_length=255, description="Owner user ID")
    agent_id: str = Field(default="", max_length=255, description="Agent scope ('' = shared by all agents)")
    label: str = Field(max_length=100, description="Block label, e.g. persona / human")
    value: str = Field(default="", sa_column=Column(Text, nullable=False))
    limit: int = Field(default=settings.MEMORY_BLOCK_CHAR_LIMIT, gt=0, description="Max characters in value")
    readonly: bool = Field(default=False)
    description: Optional[str] = Field(default=None, description="What this block is for (rendered into the prompt)")
    meta: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType, nullable=True))


class MemoryBlock(MemoryBlockBase, TimestampMixin, table=True):
    """Memory block entity. Inherits created_at, updated_at from TimestampMixin."""
    __tablename__ = "memory_blocks"
    __table_args__ = (
        UniqueConstraint("user_id", "agent_id", "label", name="uq_memory_blocks_user_agent_label"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)


class MemoryBlockHistory(SQLModel, table=True):
    """
    Append-only audit row, one per block mutation.

    block_id is nulled if the block is later deleted; user/agent/label are
    kept so the trail survives the block.
    """
    __tablename__ = "memory_block_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    block_id: Optional[UUID] = Field(
        default=None,
        foreign_key="memory_blocks.id",
        ondelete="SET NULL",
        nullable=True,
        index=True,
    )
    user_id: str = Field(index=True, max_length=255)
    agent_id: str = Field(default="", max_length=255)
    label: str = Field(max_length=100)
    event: BlockEvent = Field(index=True)
    previous_value: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    new_value: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
    )


class MemoryBlockRead(MemoryBlockBase):
    """Data returned when reading a block."""
    id: UUID
    created_at: datetime
    updated_at: datetime
