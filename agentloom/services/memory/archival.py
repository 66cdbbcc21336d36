"""
Archival Memory

Durable long-term notes per user with semantic search. Entries are
embedded from "context\n\ncontent"; search ranks by cosine similarity.

Not-found and ownership failures return ArchivalOperationResult(success=False).
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog

from agentloom.core.database import SessionFactory, get_db_session
from agentloom.domain.archival_operations import ArchivalOperations
from agentloom.domain.exceptions import EntityNotFoundError
from agentloom.models.database.archival import ArchivalEntry, ArchivalEntryRead, ArchivalMemoryType
from agentloom.models.dto.memory import ArchivalOperationResult, ArchivalSearchResult
from agentloom.services.embeddings import EmbeddingProvider, get_embedding_provider

logger = logging.getLogger(__name__)
events = structlog.get_logger(__name__)

MIN_TOP_K = 1
MAX_TOP_K = 20


def embedding_text(content: str, context: Optional[str] = None) -> str:
    return f"{context}\n\n{content}" if context else content


def _parse_id(entry_id: Any) -> Optional[UUID]:
    if isinstance(entry_id, UUID):
        return entry_id
    try:
        return UUID(str(entry_id))
    except (TypeError, ValueError):
        return None


def _not_found(entry_id: Any) -> ArchivalOperationResult:
    return ArchivalOperationResult(success=False, message=f"Memory with ID {entry_id} not found or access denied.")


class ArchivalMemory:
    """CRUD + semantic search over archival entries, scoped by user_id."""

    def __init__(
        self,
        session_factory: SessionFactory = get_db_session,
        embedding_provider: Optional[EmbeddingProvider] = None,
    ):
        self.session_factory = session_factory
        self._embedding_provider = embedding_provider

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        if self._embedding_provider is None:
            self._embedding_provider = get_embedding_provider()
        return self._embedding_provider

    async def _embed(self, text: str) -> Tuple[Optional[List[float]], Optional[str]]:
        """
        Best-effort embedding for writes: a failure stores the entry without
        a vector (not searchable until re-embedded) instead of losing it.
        """
        try:
            provider = self.embedding_provider
            vector = await asyncio.to_thread(provider.embed_text, text)
            return vector, provider.model_name
        except Exception as e:
            events.warning("archival_embedding_failed", error=str(e), chars=len(text))
            return None, None

    @staticmethod
    def _read(entry: ArchivalEntry) -> ArchivalEntryRead:
        return ArchivalEntryRead.model_validate(entry)

    async def insert(
        self,
        user_id: str,
        content: str,
        context: Optional[str] = None,
        tags: Optional[List[str]] = None,
        importance: Optional[float] = None,
        session_id: Optional[str] = None,
        memory_type: ArchivalMemoryType = ArchivalMemoryType.NOTE,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Store a note and return its id."""
        vector, model = await self._embed(embedding_text(content, context))
        meta = dict(metadata or {})
        meta["tags"] = list(tags or [])

        with self.session_factory() as session:
            entry = ArchivalOperations.create(
                session,
                user_id=user_id,
                content=content,
                context=context,
                session_id=session_id,
                memory_type=memory_type,
                importance=0.7 if importance is None else importance,
                meta=meta,
                embedding=vector,
                embedding_model=model,
            )
            entry_id = str(entry.id)

        logger.info(f"📥 Archival entry {entry_id} stored for user {user_id} ({memory_type.value})")
        return entry_id

    async def search(self, user_id: str, query: str, top_k: int = 5) -> List[ArchivalSearchResult]:
        """Relevance-ranked hits. An empty store (or blank query) yields []."""
        top_k = max(MIN_TOP_K, min(MAX_TOP_K, top_k))
        if not query or not query.strip():
            return []

        with self.session_factory() as session:
            if ArchivalOperations.count(session, user_id) == 0:
                return []

        provider = self.embedding_provider
        query_vector = await asyncio.to_thread(provider.embed_text, query)

        with self.session_factory() as session:
            hits = ArchivalOperations.search_similar(session, user_id, query_vector, limit=top_k)
            return [ArchivalSearchResult(entry=self._read(entry), score=float(score)) for entry, score in hits]

    async def update(
        self,
        user_id: str,
        entry_id: Any,
        new_content: str,
        new_context: Optional[str] = None,
    ) -> ArchivalOperationResult:
        uid = _parse_id(entry_id)
        if uid is None:
            return _not_found(entry_id)

        with self.session_factory() as session:
            existing = ArchivalOperations.get_by_id(session, user_id, uid)
            if existing is None:
                return _not_found(entry_id)
            context = new_context if new_context is not None else existing.context

        vector, model = await self._embed(embedding_text(new_content, context))
        try:
            with self.session_factory() as session:
                entry = ArchivalOperations.update_content(
                    session, user_id, uid, new_content, new_context,
                    embedding=vector, embedding_model=model,
                )
                return ArchivalOperationResult(success=True, message=f"Memory {entry_id} updated.", entry=self._read(entry))
        except EntityNotFoundError:
            return _not_found(entry_id)

    async def delete(self, user_id: str, entry_id: Any, reason: Optional[str] = None) -> ArchivalOperationResult:
        uid = _parse_id(entry_id)
        if uid is None:
            return _not_found(entry_id)
        try:
            with self.session_factory() as session:
                ArchivalOperations.soft_delete(session, user_id, uid, reason)
        except EntityNotFoundError:
            return _not_found(entry_id)

        logger.info(f"🗑️  Archival entry {entry_id} deleted for user {user_id} (reason: {reason or 'n/a'})")
        return ArchivalOperationResult(success=True, message=f"Memory {entry_id} deleted.")

    async def get(self, user_id: str, entry_id: Any) -> ArchivalOperationResult:
        uid = _parse_id(entry_id)
        if uid is None:
            return _not_found(entry_id)
        with self.session_factory() as session:
            entry = ArchivalOperations.get_by_id(session, user_id, uid)
            if entry is None:
                return _not_found(entry_id)
            return ArchivalOperationResult(success=True, message="ok", entry=self._read(entry))
