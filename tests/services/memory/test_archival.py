"""Tests for ArchivalMemory: insert, semantic search, update and soft delete."""
from uuid import uuid4

import pytest

from agentloom.domain.archival_operations import ArchivalOperations, cosine_similarity
from agentloom.models.database.archival import ArchivalMemoryType
from agentloom.services.memory.archival import ArchivalMemory, embedding_text

USER = "user-1"


class TestHelpers:

    def test_embedding_text_prefixes_context(self):
        assert embedding_text("likes espresso", "Food preferences") == "Food preferences\n\nlikes espresso"
        assert embedding_text("likes espresso") == "likes espresso"

    def test_cosine_similarity(self):
        assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([0, 0], [1, 1]) == 0.0


# ============================================================================
# Insert and get
# ============================================================================

class TestInsert:

    @pytest.mark.asyncio
    async def test_insert_returns_id_and_embeds_with_context(self, archival, embedder):
        entry_id = await archival.insert(USER, "Prefers oat milk in coffee", context="Drinks", tags=["food"])

        assert embedder.calls == ["Drinks\n\nPrefers oat milk in coffee"]
        result = await archival.get(USER, entry_id)
        assert result.success
        assert result.entry.content == "Prefers oat milk in coffee"
        assert result.entry.context == "Drinks"
        assert result.entry.memory_type == ArchivalMemoryType.NOTE
        assert result.entry.importance == pytest.approx(0.7)
        assert result.entry.meta["tags"] == ["food"]

    @pytest.mark.asyncio
    async def test_importance_is_clamped(self, archival):
        entry_id = await archival.insert(USER, "very important", importance=3.0)
        assert (await archival.get(USER, entry_id)).entry.importance == 1.0

    @pytest.mark.asyncio
    async def test_embedding_failure_still_stores_entry(self, session_factory, failing_embedder):
        store = ArchivalMemory(session_factory=session_factory, embedding_provider=failing_embedder)

        entry_id = await store.insert(USER, "Walks the dog at 7am")

        assert (await store.get(USER, entry_id)).success
        # Stored without a vector, so it cannot be found semantically yet
        healthy = ArchivalMemory(session_factory=session_factory, embedding_provider=type(failing_embedder)())
        assert await healthy.search(USER, "dog") == []

    @pytest.mark.asyncio
    async def test_entries_are_private_to_owner(self, archival):
        entry_id = await archival.insert(USER, "secret travel plans")

        result = await archival.get("intruder", entry_id)
        assert not result.success
        assert result.message == f"Memory with ID {entry_id} not found or access denied."


# ============================================================================
# Search
# ============================================================================

class TestSearch:

    @pytest.mark.asyncio
    async def test_ranked_by_similarity(self, archival):
        await archival.insert(USER, "Loves coffee")
        await archival.insert(USER, "Has a dog named Rex")
        await archival.insert(USER, "Listens to music while coding python")

        hits = await archival.search(USER, "What dog does the user have?", top_k=2)

        assert len(hits) == 2
        assert hits[0].entry.content == "Has a dog named Rex"
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].score >= hits[1].score

    @pytest.mark.asyncio
    async def test_empty_store_and_blank_query_skip_embedding(self, archival, embedder):
        assert await archival.search(USER, "coffee") == []
        assert embedder.calls == []

        await archival.insert(USER, "Loves coffee")
        embedder.calls.clear()
        assert await archival.search(USER, "   ") == []
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_top_k_is_clamped(self, archival):
        for i in range(3):
            await archival.insert(USER, f"coffee note {i}")

        assert len(await archival.search(USER, "coffee", top_k=0)) == 1
        assert len(await archival.search(USER, "coffee", top_k=500)) == 3

    @pytest.mark.asyncio
    async def test_search_excludes_other_users_and_deleted(self, archival):
        mine = await archival.insert(USER, "coffee at noon")
        await archival.insert("other-user", "coffee at dawn")
        await archival.delete(USER, mine)

        assert await archival.search(USER, "coffee") == []


# ============================================================================
# Update and delete
# ============================================================================

class TestUpdateDelete:

    @pytest.mark.asyncio
    async def test_update_reembeds_and_keeps_context(self, archival, embedder):
        entry_id = await archival.insert(USER, "Likes jazz", context="Music")
        embedder.calls.clear()

        result = await archival.update(USER, entry_id, "Likes classical")

        assert result.success
        assert result.message == f"Memory {entry_id} updated."
        assert result.entry.content == "Likes classical"
        assert result.entry.context == "Music"
        assert embedder.calls == ["Music\n\nLikes classical"]

    @pytest.mark.asyncio
    async def test_update_unknown_or_malformed_id(self, archival):
        missing = str(uuid4())
        assert (await archival.update(USER, missing, "x")).message == f"Memory with ID {missing} not found or access denied."
        assert not (await archival.update(USER, "not-a-uuid", "x")).success

    @pytest.mark.asyncio
    async def test_soft_delete_twice(self, archival):
        entry_id = await archival.insert(USER, "temporary")

        first = await archival.delete(USER, entry_id, reason="outdated")
        second = await archival.delete(USER, entry_id)

        assert first.success
        assert first.message == f"Memory {entry_id} deleted."
        assert not second.success
        assert not (await archival.get(USER, entry_id)).success

    @pytest.mark.asyncio
    async def test_summary_entries(self, archival):
        entry_id = await archival.insert(
            USER,
            "User planned a travel itinerary",
            memory_type=ArchivalMemoryType.SUMMARY,
            session_id="s-1",
            metadata={"evicted": 4},
        )

        entry = (await archival.get(USER, entry_id)).entry
        assert entry.memory_type == ArchivalMemoryType.SUMMARY
        assert entry.session_id == "s-1"
        assert entry.meta == {"evicted": 4, "tags": []}


# ============================================================================
# Counting
# ============================================================================

class TestCount:

    @pytest.mark.asyncio
    async def test_count_skips_deleted_and_other_users(self, archival, session_factory):
        kept = [await archival.insert(USER, f"coffee note {i}") for i in range(3)]
        await archival.insert("other-user", "coffee at dawn")
        await archival.delete(USER, kept[0])

        with session_factory() as session:
            assert ArchivalOperations.count(session, USER) == 2
            assert ArchivalOperations.count(session, "other-user") == 1
            assert ArchivalOperations.count(session, "nobody") == 0
