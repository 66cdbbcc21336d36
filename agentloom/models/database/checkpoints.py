"""Checkpoint model - immutable workflow state snapshots per thread."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from agentloom.models.database.mixins.timestamp import utcnow
from agentloom.models.database.types import JSONType


class Checkpoint(SQLModel, table=True):
    """
    One snapshot of a thread's merged workflow state.

    Rows are append-only. ``parent_checkpoint_id`` links snapshots into a tree;
    ``seq`` is a per-thread monotonic counter so "latest" is well defined even
    when two rows share a timestamp.
    """
    __tablename__ = "checkpoints"
    __table_args__ = (
        UniqueConstraint("thread_id", "seq", name="uq_checkpoints_thread_seq"),
    )

    thread_id: str = Field(primary_key=True, max_length=255)
    checkpoint_id: str = Field(primary_key=True, max_length=64)
    parent_checkpoint_id: Optional[str] = Field(default=None, max_length=64, index=True)
    seq: int = Field(default=0, nullable=False)
    state: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType, nullable=False))
    source_node: Optional[str] = Field(default=None, max_length=255, description="Node whose output produced this snapshot")
    next_node: Optional[str] = Field(default=None, max_length=255, description="Explicit next node (Command goto / waiting node)")
    interrupt: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    meta: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSONType, nullable=True))
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
    )
