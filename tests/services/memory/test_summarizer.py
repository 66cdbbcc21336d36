"""Tests for the Summarizer eviction policies."""
import pytest

from agentloom.models.database.archival import ArchivalMemoryType
from agentloom.models.dto.messages import ChatMessage
from agentloom.services.memory.background import BackgroundTaskQueue
from agentloom.services.memory.summarizer import (
    SUMMARY_PREFIX,
    ArchiveOwner,
    Summarizer,
    SummarizerConfig,
    SummarizerMode,
    render_transcript,
)


def conversation(turns: int, as_dicts: bool = False):
    """System message followed by ``turns`` user/assistant pairs."""
    messages = [ChatMessage.system("You are helpful.")]
    for i in range(turns):
        messages.append(ChatMessage.user(f"u{i}"))
        messages.append(ChatMessage.assistant(f"a{i}"))
    if as_dicts:
        return [m.to_state() for m in messages]
    return messages


def contents(messages):
    return [m["content"] if isinstance(m, dict) else m.content for m in messages]


def quick_queue() -> BackgroundTaskQueue:
    return BackgroundTaskQueue(workers=1, maxsize=10, max_attempts=2, min_wait=0, max_wait=0, name="test")


# ============================================================================
# Static buffer
# ============================================================================

class TestStaticBuffer:
    """Keeps system + newest messages; summary goes to archival in the background."""

    @pytest.mark.asyncio
    async def test_below_limit_is_untouched(self, make_llm):
        llm = make_llm([])
        summarizer = Summarizer(llm, SummarizerConfig(buffer_limit=30, buffer_min=10), queue=quick_queue())

        result = await summarizer.summarize(conversation(3))

        assert not result.summarized
        assert len(result.messages) == 7
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_evicts_and_archives_summary(self, make_llm, archival):
        llm = make_llm(["- The user likes coffee"])
        queue = quick_queue()
        summarizer = Summarizer(
            llm,
            SummarizerConfig(mode=SummarizerMode.STATIC_BUFFER, buffer_limit=10, buffer_min=4),
            archival=archival,
            queue=queue,
        )

        result = await summarizer.summarize(conversation(6), owner=ArchiveOwner("user-1", "session-9"))
        await queue.join()
        await queue.stop()

        assert result.summarized
        assert result.evicted_count == 8
        assert contents(result.messages) == ["You are helpful.", "u4", "a4", "u5", "a5"]
        assert result.summary is None

        prompt = llm.calls[0]["messages"][1].content
        assert "user: u0" in prompt and "assistant: a3" in prompt
        assert "u4" not in prompt
        assert "keep the last 4 messages" in prompt

        hits = await archival.search("user-1", "coffee summary")
        assert len(hits) == 1
        assert hits[0].entry.content == "- The user likes coffee"
        assert hits[0].entry.memory_type == ArchivalMemoryType.SUMMARY
        assert hits[0].entry.session_id == "session-9"
        assert hits[0].entry.meta["evicted_count"] == 8
        assert queue.stats["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_cut_moves_forward_to_user_turn(self, make_llm):
        queue = quick_queue()
        summarizer = Summarizer(make_llm(["summary"]), SummarizerConfig(buffer_limit=10, buffer_min=3), queue=queue)

        result = await summarizer.summarize(conversation(6))
        await queue.join()
        await queue.stop()

        assert contents(result.messages) == ["You are helpful.", "u5", "a5"]
        assert result.evicted_count == 10

    @pytest.mark.asyncio
    async def test_forced_eviction_keeps_only_system(self, make_llm):
        llm = make_llm(["summary"])
        queue = quick_queue()
        summarizer = Summarizer(llm, SummarizerConfig(buffer_limit=30, buffer_min=10), queue=queue)

        result = await summarizer.summarize(conversation(2), force=True)
        await queue.join()
        await queue.stop()

        assert contents(result.messages) == ["You are helpful."]
        assert result.evicted_count == 4
        assert "forget all prior messages" in llm.calls[0]["messages"][1].content

    @pytest.mark.asyncio
    async def test_summary_failure_does_not_reach_caller(self, make_llm):
        queue = quick_queue()
        llm = make_llm([RuntimeError("model down"), RuntimeError("model down")])
        summarizer = Summarizer(llm, SummarizerConfig(buffer_limit=2, buffer_min=2), queue=queue)

        result = await summarizer.summarize(conversation(3))
        await queue.join()
        await queue.stop()

        assert result.summarized
        assert queue.stats["failed"] == 1
        assert len(llm.calls) == 2


# ============================================================================
# Partial evict
# ============================================================================

class TestPartialEvict:
    """Summarizes the older span synchronously and injects it after the system message."""

    def config(self):
        return SummarizerConfig(mode=SummarizerMode.PARTIAL_EVICT, buffer_limit=5, evict_fraction=0.3)

    @pytest.mark.asyncio
    async def test_only_runs_when_forced(self, make_llm):
        llm = make_llm([])
        summarizer = Summarizer(llm, self.config(), queue=quick_queue())

        result = await summarizer.summarize(conversation(5))

        assert not result.summarized
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_injects_summary_before_assistant_boundary(self, make_llm):
        llm = make_llm(["- greeted, asked about u1"])
        summarizer = Summarizer(llm, self.config(), queue=quick_queue())

        result = await summarizer.summarize(conversation(5), force=True)

        assert result.summarized
        assert result.evicted_count == 3
        assert result.summary == "- greeted, asked about u1"
        assert contents(result.messages) == [
            "You are helpful.",
            f"{SUMMARY_PREFIX}- greeted, asked about u1",
            "a1", "u2", "a2", "u3", "a3", "u4", "a4",
        ]
        injected = result.messages[1]
        assert injected.role == "user"
        assert injected.metadata["is_summary"] is True
        assert "keep the last 7 messages" in llm.calls[0]["messages"][1].content

    @pytest.mark.asyncio
    async def test_dict_messages_stay_dicts(self, make_llm):
        summarizer = Summarizer(make_llm(["summary"]), self.config(), queue=quick_queue())

        result = await summarizer.summarize(conversation(5, as_dicts=True), force=True)

        assert all(isinstance(m, dict) for m in result.messages)
        assert result.messages[1]["metadata"]["is_summary"] is True

    @pytest.mark.asyncio
    async def test_no_assistant_boundary_evicts_nothing(self, make_llm):
        llm = make_llm([])
        summarizer = Summarizer(llm, self.config(), queue=quick_queue())
        messages = [ChatMessage.system("sys")] + [ChatMessage.user(f"u{i}") for i in range(4)]

        result = await summarizer.summarize(messages, force=True)

        assert not result.summarized
        assert contents(result.messages) == ["sys", "u0", "u1", "u2", "u3"]
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_retain_target_rounds_half_up(self, make_llm):
        llm = make_llm(["summary"])
        config = SummarizerConfig(mode=SummarizerMode.PARTIAL_EVICT, buffer_limit=5, evict_fraction=0.5)
        summarizer = Summarizer(llm, config, queue=quick_queue())

        # 9 messages at half eviction retain 4.5, rounded up to 5
        result = await summarizer.summarize(conversation(4), force=True)

        assert result.evicted_count == 3
        assert contents(result.messages)[2:] == ["a1", "u2", "a2", "u3", "a3"]
        assert "keep the last 5 messages" in llm.calls[0]["messages"][1].content


class TestModeNone:

    @pytest.mark.asyncio
    async def test_never_touches_messages(self, make_llm):
        llm = make_llm([])
        summarizer = Summarizer(llm, SummarizerConfig(mode=SummarizerMode.NONE, buffer_limit=1), queue=quick_queue())

        result = await summarizer.summarize(conversation(5), force=True)

        assert not result.summarized
        assert len(result.messages) == 11
        assert llm.calls == []


def test_render_transcript_skips_system():
    transcript = render_transcript(conversation(1, as_dicts=True))
    assert transcript == "user: u0\nassistant: a0"


# ============================================================================
# Lifecycle
# ============================================================================

class TestClose:

    @pytest.mark.asyncio
    async def test_aclose_drains_and_stops_own_queue(self, make_llm):
        llm = make_llm(["summary"])
        summarizer = Summarizer(llm, SummarizerConfig(buffer_limit=2, buffer_min=2))

        await summarizer.summarize(conversation(3))
        assert summarizer.queue.running

        await summarizer.aclose()

        assert not summarizer.queue.running
        assert summarizer.queue.stats["succeeded"] == 1
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_aclose_leaves_shared_queue_running(self, make_llm):
        queue = quick_queue()
        summarizer = Summarizer(make_llm(["summary"]), SummarizerConfig(buffer_limit=2, buffer_min=2), queue=queue)

        await summarizer.summarize(conversation(3))
        await summarizer.aclose()

        assert queue.running
        await queue.join()
        await queue.stop()
        assert queue.stats["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_aclose_without_work(self, make_llm):
        summarizer = Summarizer(make_llm([]), SummarizerConfig())
        await summarizer.aclose()
        assert not summarizer.queue.running
