"""
Archival Memory Operations - Domain Logic Layer

CRUD and vector search over ArchivalEntry, always scoped by user_id.
Static method pattern, flush() only.

Search uses pgvector cosine_distance on Postgres; on other dialects the
candidate rows are scored in Python.
"""

import math
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlmodel import Session

from agentloom.domain.exceptions import EntityNotFoundError
from agentloom.models.database.archival import ArchivalEntry, ArchivalMemoryType
from agentloom.models.database.mixins.timestamp import utcnow


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either is all zeros."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class ArchivalOperations:
    """Domain operations for ArchivalEntry."""

    @staticmethod
    def create(
        session: Session,
        user_id: str,
        content: str,
        context: Optional[str] = None,
        session_id: Optional[str] = None,
        memory_type: ArchivalMemoryType = ArchivalMemoryType.NOTE,
        importance: float = 0.7,
        meta: Optional[dict] = None,
        embedding: Optional[List[float]] = None,
        embedding_model: Optional[str] = None,
    ) -> ArchivalEntry:
        entry = ArchivalEntry(
            user_id=user_id,
            session_id=session_id,
            content=content,
            context=context,
            memory_type=memory_type,
            importance=min(max(importance, 0.0), 1.0),
            meta=meta or {},
            embedding=embedding,
            embedding_model=embedding_model,
        )
        session.add(entry)
        session.flush()
        return entry

    @staticmethod
    def get_by_id(session: Session, user_id: str, entry_id: UUID) -> Optional[ArchivalEntry]:
        """Get an entry owned by user_id. Returns None if missing, foreign or soft-deleted."""
        result = session.execute(
            select(ArchivalEntry).where(
                and_(
                    ArchivalEntry.id == entry_id,
                    ArchivalEntry.user_id == user_id,
                    ArchivalEntry.is_deleted.is_(False),
                )
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def get_or_raise(session: Session, user_id: str, entry_id: UUID) -> ArchivalEntry:
        entry = ArchivalOperations.get_by_id(session, user_id, entry_id)
        if entry is None:
            raise EntityNotFoundError("ArchivalEntry", entry_id)
        return entry

    @staticmethod
    def update_content(
        session: Session,
        user_id: str,
        entry_id: UUID,
        content: str,
        context: Optional[str] = None,
        embedding: Optional[List[float]] = None,
        embedding_model: Optional[str] = None,
    ) -> ArchivalEntry:
        """Replace content (and context when given). Raises EntityNotFoundError."""
        entry = ArchivalOperations.get_or_raise(session, user_id, entry_id)
        entry.content = content
        if context is not None:
            entry.context = context
        if embedding is not None:
            entry.embedding = embedding
            entry.embedding_model = embedding_model
        entry.updated_at = utcnow()
        session.add(entry)
        session.flush()
        return entry

    @staticmethod
    def soft_delete(session: Session, user_id: str, entry_id: UUID, reason: Optional[str] = None) -> ArchivalEntry:
        """Mark deleted. A second delete raises EntityNotFoundError."""
        entry = ArchivalOperations.get_or_raise(session, user_id, entry_id)
        entry.is_deleted = True
        entry.deleted_reason = reason
        entry.updated_at = utcnow()
        session.add(entry)
        session.flush()
        return entry

    @staticmethod
    def count(session: Session, user_id: str) -> int:
        result = session.execute(
            select(func.count()).select_from(ArchivalEntry).where(
                and_(ArchivalEntry.user_id == user_id, ArchivalEntry.is_deleted.is_(False))
            )
        )
        return result.scalar_one()

    @staticmethod
    def search_similar(
        session: Session,
        user_id: str,
        query_embedding: List[float],
        limit: int = 5,
    ) -> List[tuple[ArchivalEntry, float]]:
        # Rank entries by cosine similarity to the query embedding.
        # Cosine distance: 0 = identical, 2 = opposite; similarity = 1 - distance
        conditions = [
            ArchivalEntry.user_id == user_id,
            ArchivalEntry.is_deleted.is_(False),
            ArchivalEntry.embedding.isnot(None),
        ]

        if session.get_bind().dialect.name == "postgresql":
            result = session.execute(
                select(
                    ArchivalEntry,
                    ArchivalEntry.embedding.cosine_distance(query_embedding).label("distance"),
                )
                .where(and_(*conditions))
                .order_by("distance")
                .limit(limit)
            )
            return [(entry, 1 - distance) for entry, distance in result.all()]

        result = session.execute(select(ArchivalEntry).where(and_(*conditions)))
        # JSON columns store a missing vector as 'null', so filter again here
        scored = [
            (entry, cosine_similarity(list(entry.embedding), query_embedding))
            for entry in result.scalars().all()
            if entry.embedding
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:limit]
