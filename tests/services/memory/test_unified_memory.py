"""Tests for UnifiedMemory: core memory plus archival recall within a token budget."""
import pytest

from agentloom.models.dto.memory import CompiledMemory
from agentloom.services.memory.archival import ArchivalMemory
from agentloom.services.memory.unified import MemoryContext, UnifiedMemory, estimate_tokens

USER = "user-1"


async def seed(archival: ArchivalMemory) -> None:
    await archival.insert(USER, "Drinks coffee black", context="coffee")
    await archival.insert(USER, "Has a dog named Rex", context="dog")


class TestMemoryContext:

    @pytest.mark.asyncio
    async def test_without_archive_is_core_memory(self, memory_manager):
        await memory_manager.upsert_block(USER, "human", "Name: Ada")
        recall = UnifiedMemory(memory_manager)

        prompt = await recall.build_prompt(USER, "coffee")

        assert prompt == (await memory_manager.compile(USER)).prompt
        assert "Related memories" not in prompt

    @pytest.mark.asyncio
    async def test_related_entries_follow_core_memory(self, memory_manager, archival):
        await memory_manager.upsert_block(USER, "human", "Name: Ada")
        await seed(archival)
        recall = UnifiedMemory(memory_manager, archival)

        context = await recall.get_memory_context(USER, "any coffee left?")
        prompt = recall.format_memory_context(context)

        assert [h.entry.content for h in context.related] == ["Drinks coffee black"]
        assert prompt.startswith("<memory_blocks>")
        assert prompt.endswith(
            "## Related memories\n<memories>\n- [relevance: 1.00] coffee: Drinks coffee black\n</memories>"
        )

    @pytest.mark.asyncio
    async def test_min_score_filters_weak_hits(self, memory_manager, archival):
        await seed(archival)

        strict = UnifiedMemory(memory_manager, archival, min_score=0.8)
        loose = UnifiedMemory(memory_manager, archival, min_score=0.5)

        assert (await strict.get_memory_context(USER, "coffee and the dog")).related == []
        assert len((await loose.get_memory_context(USER, "coffee and the dog")).related) == 2

    @pytest.mark.asyncio
    async def test_blank_query_skips_search(self, memory_manager, archival, embedder):
        await seed(archival)
        embedded = len(embedder.calls)

        context = await UnifiedMemory(memory_manager, archival).get_memory_context(USER, "   ")

        assert context.related == []
        assert len(embedder.calls) == embedded

    @pytest.mark.asyncio
    async def test_recall_failure_keeps_core_memory(self, memory_manager, session_factory, failing_embedder):
        store = ArchivalMemory(session_factory=session_factory, embedding_provider=failing_embedder)
        await store.insert(USER, "Drinks coffee black", context="coffee")
        await memory_manager.upsert_block(USER, "human", "Name: Ada")

        context = await UnifiedMemory(memory_manager, store).get_memory_context(USER, "coffee")

        assert context.related == []
        assert "Name: Ada" in context.core.prompt


class TestTokenBudget:

    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    @pytest.mark.asyncio
    async def test_core_memory_is_never_cut(self, memory_manager, archival):
        await memory_manager.upsert_block(USER, "human", "Name: Ada")
        await seed(archival)
        recall = UnifiedMemory(memory_manager, archival)

        context = await recall.get_memory_context(USER, "coffee")
        prompt = recall.format_memory_context(context, max_tokens=1)

        assert prompt == context.core.prompt

    @pytest.mark.asyncio
    async def test_related_memories_truncated_to_budget(self, memory_manager, archival):
        await archival.insert(USER, "coffee " * 40, context="coffee")
        recall = UnifiedMemory(memory_manager, archival)

        context = await recall.get_memory_context(USER, "coffee")
        prompt = recall.format_memory_context(context, max_tokens=31)

        lines = prompt.split("\n")
        assert lines[:2] == ["## Related memories", "<memories>"]
        assert lines[2].endswith("...")
        assert lines[-1] == "</memories>"
        assert estimate_tokens(prompt) <= 31

    def test_empty_context_formats_to_nothing(self, memory_manager):
        assert UnifiedMemory(memory_manager).format_memory_context(MemoryContext(core=CompiledMemory(prompt=""))) == ""
