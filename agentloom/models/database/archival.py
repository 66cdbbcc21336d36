"""Archival memory - durable, semantically searchable long-term notes."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from agentloom.models.database.mixins.timestamp import TimestampMixin
from agentloom.models.database.types import JSONType, embedding_type


class ArchivalMemoryType(str, Enum):
    """Kinds of archival entry."""
    SUMMARY = "summary"            # Written by the eviction engine
    EVENT = "event"
    INTERACTION = "interaction"
    NOTE = "note"                  # Default for agent inserts
    RELATIONSHIP = "relationship"


class ArchivalEntryBase(SQLModel):
    """Shared fields for ArchivalEntry model."""
    user_id: str = Field(index=True, max_length=255, description="Owner user ID")
    session_id: Optional[str] = Field(default=None, index=True, max_length=255)
    content: str = Field(sa_column=Column(Text, nullable=False))
    context: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    memory_type: ArchivalMemoryType = Field(default=ArchivalMemoryType.NOTE, index=True)
    importance: float = Field(default=0.7, ge=0.0, le=1.0, description="Weight in recall (0.0-1.0)")
    meta: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType, nullable=True), description="Tags and free-form metadata")


class ArchivalEntry(ArchivalEntryBase, TimestampMixin, table=True):
    """Archival entry. Inherits created_at, updated_at from TimestampMixin."""
    __tablename__ = "archival_entries"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    is_deleted: bool = Field(default=False, index=True, description="Soft delete flag")
    deleted_reason: Optional[str] = Field(default=None)

    # Vector embedding for semantic search (1536 dims = text-embedding-3-small)
    embedding: Optional[list[float]] = Field(default=None, sa_column=Column(embedding_type(), nullable=True))
    embedding_model: Optional[str] = Field(default=None, max_length=100)


class ArchivalEntryRead(ArchivalEntryBase):
    """Data returned when reading an entry."""
    id: UUID
    created_at: datetime
    updated_at: datetime
