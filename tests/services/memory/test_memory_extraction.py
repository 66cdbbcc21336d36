"""Tests for MemoryExtractor: profile patches, archival notes and debounced scheduling."""
import asyncio
import json

import pytest

from agentloom.models.dto.messages import ChatMessage
from agentloom.services.memory.extraction import (
    NOTES_SCHEMA,
    PROFILE_DESCRIPTION,
    PROFILE_LABEL,
    USER_PROFILE_SCHEMA,
    MemoryExtractor,
)
from agentloom.services.memory.prompts import PATCH_INSTRUCTION

USER = "user-1"

CONVERSATION = [
    ChatMessage.system("You are helpful."),
    ChatMessage.user("Call me Ada. I work as an engineer and I'm flying to Lisbon in May."),
    ChatMessage.assistant("Nice to meet you, Ada!"),
]


def by_instruction(patch_reply: str, insert_reply: str):
    """Answer patch and insert calls differently, whatever order they run in."""
    def handler(messages, tools):
        return patch_reply if messages[1].content.startswith(PATCH_INSTRUCTION) else insert_reply
    return handler


# ============================================================================
# Profile patches
# ============================================================================

class TestProfilePatch:

    @pytest.mark.asyncio
    async def test_patch_writes_known_fields_to_profile_block(self, make_llm, memory_manager):
        llm = make_llm(['{"preferred_name": "Ada", "occupation": "engineer", "shoe_size": 42}'])
        extractor = MemoryExtractor(llm, memory_manager, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", CONVERSATION, schemas=[USER_PROFILE_SCHEMA])

        assert result.profile_fields == {"preferred_name": "Ada", "occupation": "engineer"}
        assert result.failed_schemas == []
        assert await extractor.get_profile(USER) == {"occupation": "engineer", "preferred_name": "Ada"}

        block = await memory_manager.get_block(USER, PROFILE_LABEL)
        assert block.description == PROFILE_DESCRIPTION

        sent = llm.calls[0]["messages"]
        assert "No existing profile" in sent[0].content
        assert "user: Call me Ada." in sent[1].content
        assert "You are helpful." not in sent[1].content

    @pytest.mark.asyncio
    async def test_null_clears_field_and_prompt_shows_current_profile(self, make_llm, memory_manager):
        await memory_manager.upsert_block(USER, PROFILE_LABEL, json.dumps({"location": "Paris", "preferred_name": "Ada"}))
        llm = make_llm(['```json\n{"location": null}\n```'])
        extractor = MemoryExtractor(llm, memory_manager, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", CONVERSATION, schemas=[USER_PROFILE_SCHEMA])

        assert result.profile_fields == {"location": None}
        assert await extractor.get_profile(USER) == {"preferred_name": "Ada"}
        assert '"location": "Paris"' in llm.calls[0]["messages"][0].content

    @pytest.mark.asyncio
    async def test_no_change_leaves_block_untouched(self, make_llm, memory_manager):
        extractor = MemoryExtractor(make_llm(["{}"]), memory_manager, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", CONVERSATION, schemas=[USER_PROFILE_SCHEMA])

        assert result.profile_fields == {}
        assert await memory_manager.get_block(USER, PROFILE_LABEL) is None

    @pytest.mark.asyncio
    async def test_readonly_profile_is_a_failed_schema(self, make_llm, memory_manager):
        await memory_manager.upsert_block(USER, PROFILE_LABEL, "{}", readonly=True)
        extractor = MemoryExtractor(make_llm(['{"age": 36}']), memory_manager, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", CONVERSATION, schemas=[USER_PROFILE_SCHEMA])

        assert result.failed_schemas == ["user_profile"]
        assert (await memory_manager.get_block(USER, PROFILE_LABEL)).value == "{}"

    @pytest.mark.asyncio
    async def test_unparseable_profile_block_starts_fresh(self, make_llm, memory_manager):
        await memory_manager.upsert_block(USER, PROFILE_LABEL, "likes tea")
        extractor = MemoryExtractor(make_llm([]), memory_manager, debounce_seconds=0)

        assert await extractor.get_profile(USER) == {}


# ============================================================================
# Archival notes
# ============================================================================

class TestNotesInsert:

    @pytest.mark.asyncio
    async def test_notes_are_archived_with_session(self, make_llm, memory_manager, archival):
        llm = make_llm(['[{"context": "travel", "content": "Flying to Lisbon in May"}, {"content": "  "}]'])
        extractor = MemoryExtractor(llm, memory_manager, archival, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", CONVERSATION, schemas=[NOTES_SCHEMA])

        assert len(result.inserted_ids) == 1
        hits = await archival.search(USER, "travel")
        assert [h.entry.content for h in hits] == ["Flying to Lisbon in May"]
        entry = hits[0].entry
        assert entry.session_id == "s-1"
        assert entry.importance == 0.5
        assert entry.meta["source"] == "extraction"
        assert entry.meta["schema"] == "notes"

    @pytest.mark.asyncio
    async def test_notes_need_an_archive(self, make_llm, memory_manager):
        llm = make_llm(['[{"content": "anything"}]'])
        extractor = MemoryExtractor(llm, memory_manager, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", CONVERSATION, schemas=[NOTES_SCHEMA])

        assert result.failed_schemas == ["notes"]
        assert llm.calls == []


# ============================================================================
# Both schemas
# ============================================================================

class TestExtract:

    @pytest.mark.asyncio
    async def test_failing_schema_does_not_stop_the_others(self, make_llm, memory_manager, archival):
        llm = make_llm(handler=by_instruction("not json at all", '[{"context": "pets", "content": "Has a dog"}]'))
        extractor = MemoryExtractor(llm, memory_manager, archival, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", CONVERSATION)

        assert result.failed_schemas == ["user_profile"]
        assert len(result.inserted_ids) == 1
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_empty_transcript_skips_model(self, make_llm, memory_manager, archival):
        llm = make_llm([])
        extractor = MemoryExtractor(llm, memory_manager, archival, debounce_seconds=0)

        result = await extractor.extract(USER, "s-1", [ChatMessage.system("only a system prompt")])

        assert result.profile_fields == {}
        assert result.inserted_ids == []
        assert llm.calls == []


# ============================================================================
# Scheduling
# ============================================================================

class TestSchedule:

    @pytest.mark.asyncio
    async def test_rescheduling_within_debounce_runs_once_with_latest(self, make_llm, memory_manager, archival):
        llm = make_llm(handler=lambda messages, tools: "[]")
        extractor = MemoryExtractor(llm, memory_manager, archival, debounce_seconds=0.05, schemas=[NOTES_SCHEMA])

        first = extractor.schedule("s-1", USER, [ChatMessage.user("first")])
        extractor.schedule("s-1", USER, [ChatMessage.user("first"), ChatMessage.user("second")])
        assert extractor.pending == 1

        await extractor.flush()

        assert first.cancelled()
        assert extractor.pending == 0
        assert len(llm.calls) == 1
        assert "user: second" in llm.calls[0]["messages"][1].content

    @pytest.mark.asyncio
    async def test_sessions_debounce_independently(self, make_llm, memory_manager, archival):
        llm = make_llm(handler=lambda messages, tools: "[]")
        extractor = MemoryExtractor(llm, memory_manager, archival, debounce_seconds=0, schemas=[NOTES_SCHEMA])

        extractor.schedule("s-1", USER, [ChatMessage.user("one")])
        extractor.schedule("s-2", USER, [ChatMessage.user("two")])
        await extractor.flush()

        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_scheduled_run_returns_result(self, make_llm, memory_manager, archival):
        llm = make_llm(['[{"context": "music", "content": "Plays the cello"}]'])
        extractor = MemoryExtractor(llm, memory_manager, archival, debounce_seconds=0, schemas=[NOTES_SCHEMA])

        result = await extractor.schedule("s-1", USER, [ChatMessage.user("I play the cello")])

        assert len(result.inserted_ids) == 1
        assert len(await archival.search(USER, "music")) == 1

    @pytest.mark.asyncio
    async def test_aclose_drops_waiting_runs(self, make_llm, memory_manager, archival):
        llm = make_llm([])
        extractor = MemoryExtractor(llm, memory_manager, archival, debounce_seconds=60)

        task = extractor.schedule("s-1", USER, CONVERSATION)
        await asyncio.sleep(0)
        await extractor.aclose()

        assert task.cancelled()
        assert extractor.pending == 0
        assert llm.calls == []
