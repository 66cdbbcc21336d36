"""
Workflow Service

Thread-level facade over the compiled workflows: start / resume / stream
deep research runs, drive QA chatbot conversations and memory-backed chat (with
background memory extraction when an extractor is configured).

Compiled graphs and model clients live in a BoundedCache owned by the
service instance, keyed by (kind, model id).
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Any, AsyncIterator, Callable, Dict, Generic, Hashable, List, Optional, Sequence, TypeVar

from agentloom.core.config import settings
from agentloom.core.locks import KeyedLocks
from agentloom.models.dto.messages import ChatMessage
from agentloom.services.llm import get_llm_client_for
from agentloom.services.llm.clients.base import BaseLLMClient
from agentloom.services.llm.providers import ModelSpec
from agentloom.services.memory import (
    ArchivalMemory,
    BackgroundTaskQueue,
    HistoryOptimizer,
    MemoryBlockManager,
    MemoryExtractor,
    Summarizer,
    SummarizerConfig,
    UnifiedMemory,
)
from agentloom.services.tools.registry import Tool
from agentloom.workflows.chatbot import DEFAULT_USER_ID, ChatbotState, Persona, build_chatbot_graph
from agentloom.workflows.deep_research import build_deep_research_graph, create_initial_state
from agentloom.workflows.engine import (
    BaseCheckpointSaver,
    Command,
    CompiledGraph,
    ResumeError,
    RunConfig,
    SQLCheckpointSaver,
    StateSchema,
    StateSnapshot,
)
from agentloom.workflows.qa_chatbot import QAState, build_qa_chatbot_graph

logger = logging.getLogger(__name__)

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """Ordered map with FIFO eviction once ``maxsize`` entries are held."""

    def __init__(self, maxsize: int):
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.maxsize = maxsize
        self._items: "OrderedDict[Hashable, V]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[V]:
        return self._items.get(key)

    def put(self, key: Hashable, value: V) -> V:
        if key not in self._items and len(self._items) >= self.maxsize:
            evicted, _ = self._items.popitem(last=False)
            logger.debug(f"Workflow cache full, evicted {evicted}")
        self._items[key] = value
        return value

    def get_or_create(self, key: Hashable, factory: Callable[[], V]) -> V:
        value = self._items.get(key)
        if value is None:
            value = self.put(key, factory())
        return value

    def keys(self) -> List[Hashable]:
        return list(self._items)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        self._items.clear()


class WorkflowService:
    """Runs deep research, QA chatbot and chat threads against one checkpoint store."""

    def __init__(
        self,
        checkpointer: Optional[BaseCheckpointSaver] = None,
        llm_factory: Callable[[Optional[str]], BaseLLMClient] = get_llm_client_for,
        cache_size: int = settings.WORKFLOW_CACHE_SIZE,
        research_tools: Optional[Sequence[Tool]] = None,
        memory: Optional[MemoryBlockManager] = None,
        archival: Optional[ArchivalMemory] = None,
        summarizer_config: Optional[SummarizerConfig] = None,
        history_max_length: Optional[int] = None,
        persona: Optional[Persona] = None,
        extractor: Optional[MemoryExtractor] = None,
    ):
        self.checkpointer = checkpointer or SQLCheckpointSaver()
        self.llm_factory = llm_factory
        self.research_tools = list(research_tools or [])
        self.graphs: BoundedCache[CompiledGraph] = BoundedCache(cache_size)
        self.models: BoundedCache[BaseLLMClient] = BoundedCache(cache_size)
        self.thread_locks = KeyedLocks()
        self._qa_schema = StateSchema.from_typed_dict(QAState)
        self._chat_schema = StateSchema.from_typed_dict(ChatbotState)

        self.memory = memory or MemoryBlockManager()
        self.archival = archival or ArchivalMemory()
        self.summarizer_config = summarizer_config or SummarizerConfig.from_settings()
        self.history_max_length = history_max_length
        self.persona = persona or Persona()
        # Shared by every chat summarizer; stopped by aclose()
        self.summary_queue = BackgroundTaskQueue(name="chat_summaries")
        self.recall = UnifiedMemory(self.memory, self.archival)
        if extractor is None and settings.MEMORY_EXTRACTION_ENABLED:
            extractor = MemoryExtractor(
                self._model(settings.MEMORY_EXTRACTION_MODEL or None), self.memory, self.archival
            )
        self.extractor = extractor

    # ═══════════════════════════════════════════════════════════════════
    # Graph / model lookup
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def _model_key(model_id: Optional[str]) -> str:
        return ModelSpec.parse(model_id).model_id

    def _model(self, model_id: Optional[str]) -> BaseLLMClient:
        return self.models.get_or_create(self._model_key(model_id), lambda: self.llm_factory(model_id))

    def research_graph(self) -> CompiledGraph:
        # Model-independent: the LLM arrives through the run config
        return self.graphs.get_or_create(
            ("deep_research", None),
            lambda: build_deep_research_graph(self.checkpointer, thread_locks=self.thread_locks),
        )

    def qa_graph(self, model_id: Optional[str] = None) -> CompiledGraph:
        key = ("qa_chatbot", self._model_key(model_id))
        return self.graphs.get_or_create(
            key,
            lambda: build_qa_chatbot_graph(self._model(model_id), self.checkpointer, thread_locks=self.thread_locks),
        )

    def _build_chat_graph(self, model_id: Optional[str]) -> CompiledGraph:
        model = self._model(model_id)
        summarizer = Summarizer(model, self.summarizer_config, archival=self.archival, queue=self.summary_queue)
        return build_chatbot_graph(
            model,
            self.memory,
            archival=self.archival,
            optimizer=HistoryOptimizer(summarizer, max_length=self.history_max_length),
            checkpointer=self.checkpointer,
            persona=self.persona,
            thread_locks=self.thread_locks,
            recall=self.recall,
        )

    def chat_graph(self, model_id: Optional[str] = None) -> CompiledGraph:
        key = ("chatbot", self._model_key(model_id))
        return self.graphs.get_or_create(key, lambda: self._build_chat_graph(model_id))

    def _research_config(
        self,
        thread_id: str,
        model_id: Optional[str],
        abort_signal: Optional[asyncio.Event],
        checkpoint_id: Optional[str] = None,
    ) -> RunConfig:
        return RunConfig(
            thread_id=thread_id,
            checkpoint_id=checkpoint_id,
            configurable={"llm": self._model(model_id), "tools": self.research_tools},
            abort_signal=abort_signal,
        )

    # ═══════════════════════════════════════════════════════════════════
    # Deep research
    # ═══════════════════════════════════════════════════════════════════

    async def start_research(
        self,
        thread_id: str,
        question: str,
        model_id: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        """Run analysis and planning; returns state with ``__interrupt__`` once the plan awaits approval."""
        logger.info(f"🔬 Starting research thread {thread_id}")
        cfg = self._research_config(thread_id, model_id, abort_signal)
        return await self.research_graph().ainvoke(create_initial_state(question), cfg)

    def _waiting_checkpoint(self, thread_id: str) -> str:
        snapshot = self.research_graph().get_state(RunConfig(thread_id=thread_id))
        if not snapshot.is_waiting:
            raise ResumeError(f"Research thread {thread_id} is not waiting for approval")
        return snapshot.checkpoint_id

    async def resume_research(
        self,
        thread_id: str,
        user_feedback: str = "",
        model_id: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> Dict[str, Any]:
        """
        Answer the approval interrupt. Blank feedback approves the plan.

        The waiting checkpoint is pinned in the run config, so a second
        concurrent resume of the same interrupt raises ResumeError.
        """
        checkpoint_id = self._waiting_checkpoint(thread_id)
        cfg = self._research_config(thread_id, model_id, abort_signal, checkpoint_id=checkpoint_id)
        logger.info(f"▶️  Resuming research thread {thread_id} (feedback={bool(user_feedback.strip())})")
        return await self.research_graph().ainvoke(Command(resume={"user_feedback": user_feedback}), cfg)

    async def stream_research(
        self,
        thread_id: str,
        question: Optional[str] = None,
        user_feedback: Optional[str] = None,
        model_id: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Any]:
        """
        Stream step / interrupt events. Pass ``question`` to start a run or
        ``user_feedback`` to answer the approval interrupt.
        """
        if (question is None) == (user_feedback is None):
            raise ValueError("Pass exactly one of question or user_feedback")

        graph = self.research_graph()
        if question is not None:
            cfg = self._research_config(thread_id, model_id, abort_signal)
            stream = graph.astream(create_initial_state(question), cfg)
        else:
            checkpoint_id = self._waiting_checkpoint(thread_id)
            cfg = self._research_config(thread_id, model_id, abort_signal, checkpoint_id=checkpoint_id)
            stream = graph.astream(Command(resume={"user_feedback": user_feedback}), cfg)

        async for event in stream:
            yield event

    def get_state(self, thread_id: str) -> StateSnapshot:
        """Current deep research state for a thread."""
        return self.research_graph().get_state(RunConfig(thread_id=thread_id))

    # ═══════════════════════════════════════════════════════════════════
    # QA chatbot
    # ═══════════════════════════════════════════════════════════════════

    def _qa_input(self, text: str) -> Dict[str, Any]:
        return {"messages": [ChatMessage.user(text).to_state()]}

    async def send_qa_message(self, thread_id: str, text: str, model_id: Optional[str] = None) -> Dict[str, Any]:
        """One conversation turn; returns the thread's state after the reply."""
        return await self.qa_graph(model_id).ainvoke(self._qa_input(text), RunConfig(thread_id=thread_id))

    async def stream_qa(
        self,
        thread_id: str,
        text: str,
        model_id: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Any]:
        cfg = RunConfig(thread_id=thread_id, abort_signal=abort_signal)
        async for event in self.qa_graph(model_id).astream(self._qa_input(text), cfg):
            yield event

    def _qa_values(self, thread_id: str) -> Dict[str, Any]:
        values = self._qa_schema.initial_state()
        checkpoint = self.checkpointer.get(thread_id)
        if checkpoint is not None:
            values.update(checkpoint.state)
        return values

    def get_qa_stage(self, thread_id: str) -> str:
        return self._qa_values(thread_id)["stage"]

    def get_qa_history(self, thread_id: str) -> List[ChatMessage]:
        return [ChatMessage.coerce(m) for m in self._qa_values(thread_id)["messages"]]

    def get_qa_artifacts(self, thread_id: str) -> Dict[str, str]:
        values = self._qa_values(thread_id)
        return {
            "stage": values["stage"],
            "prd_content": values["prd_content"],
            "test_points": values["test_points"],
            "test_cases": values["test_cases"],
        }

    # ═══════════════════════════════════════════════════════════════════
    # Memory-backed chat
    # ═══════════════════════════════════════════════════════════════════

    async def _chat_input(self, user_id: str, text: str) -> Dict[str, Any]:
        await self.memory.initialize_default_blocks(user_id)
        return {"messages": [ChatMessage.user(text).to_state()], "user_id": user_id}

    async def chat(
        self,
        thread_id: str,
        text: str,
        user_id: str = DEFAULT_USER_ID,
        model_id: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> ChatMessage:
        """
        One chat turn. Memory tools may run several times before the reply;
        returns the final assistant message.
        """
        logger.info(f"💬 Chat turn on thread {thread_id} (user={user_id})")
        inputs = await self._chat_input(user_id, text)
        cfg = RunConfig(thread_id=thread_id, abort_signal=abort_signal)
        values = await self.chat_graph(model_id).ainvoke(inputs, cfg)
        self._schedule_extraction(thread_id, user_id, values["messages"])
        return ChatMessage.coerce(values["messages"][-1])

    async def stream_chat(
        self,
        thread_id: str,
        text: str,
        user_id: str = DEFAULT_USER_ID,
        model_id: Optional[str] = None,
        abort_signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[Any]:
        inputs = await self._chat_input(user_id, text)
        cfg = RunConfig(thread_id=thread_id, abort_signal=abort_signal)
        async for event in self.chat_graph(model_id).astream(inputs, cfg):
            yield event
        self._schedule_extraction(thread_id, user_id, self.get_chat_history(thread_id))

    def _schedule_extraction(self, thread_id: str, user_id: str, messages: Sequence[Any]) -> None:
        if self.extractor is not None:
            self.extractor.schedule(thread_id, user_id, messages)

    def get_chat_history(self, thread_id: str) -> List[ChatMessage]:
        """Full transcript, including messages already evicted from the model's context."""
        values = self._chat_schema.initial_state()
        checkpoint = self.checkpointer.get(thread_id)
        if checkpoint is not None:
            values.update(checkpoint.state)
        return [ChatMessage.coerce(m) for m in values["messages"]]

    async def aclose(self) -> None:
        """Let queued chat summaries and memory extractions finish, then stop the summary workers."""
        if self.extractor is not None:
            await self.extractor.flush()
        if self.summary_queue.running:
            await self.summary_queue.join()
            await self.summary_queue.stop()
