"""
Summarizer / Eviction Engine

Keeps a conversation's live message list bounded.

static_buffer: keep the system message plus the newest ``buffer_min``
    messages (cut moved forward to a user turn). The evicted span is
    summarized and archived by a background task; nothing is injected.
partial_evict: on explicit request only. Summarize the older span up to an
    assistant message synchronously and inject the summary as one user
    message right after the system message.
none: never touches the list.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Union

from agentloom.core.config import settings
from agentloom.models.database.archival import ArchivalMemoryType
from agentloom.models.dto.messages import ChatMessage
from agentloom.services.llm.clients.base import BaseLLMClient
from .archival import ArchivalMemory
from .background import BackgroundTaskQueue
from .prompts import SUMMARY_SYSTEM_PROMPT, build_summary_prompt

logger = logging.getLogger(__name__)

Message = Union[ChatMessage, dict]

SUMMARY_PREFIX = "[Previous conversation summary]\n"


class SummarizerMode(str, Enum):
    STATIC_BUFFER = "static_buffer"
    PARTIAL_EVICT = "partial_evict"
    NONE = "none"


@dataclass
class SummarizerConfig:
    mode: SummarizerMode = SummarizerMode.STATIC_BUFFER
    buffer_limit: int = 30
    buffer_min: int = 10
    evict_fraction: float = 0.3

    @classmethod
    def from_settings(cls) -> "SummarizerConfig":
        return cls(
            mode=SummarizerMode(settings.SUMMARIZER_MODE),
            buffer_limit=settings.SUMMARIZER_BUFFER_LIMIT,
            buffer_min=settings.SUMMARIZER_BUFFER_MIN,
            evict_fraction=settings.SUMMARIZER_EVICT_FRACTION,
        )


@dataclass(frozen=True)
class ArchiveOwner:
    """Where static-buffer summaries are archived."""
    user_id: str
    session_id: Optional[str] = None


@dataclass
class SummarizationResult:
    summarized: bool
    messages: List[Message] = field(default_factory=list)
    evicted_count: int = 0
    summary: Optional[str] = None


def _role(message: Message) -> str:
    return message["role"] if isinstance(message, dict) else message.role


def _content(message: Message) -> str:
    return (message.get("content") or "") if isinstance(message, dict) else message.content


def render_transcript(messages: Sequence[Message]) -> str:
    """'role: content' lines, system messages excluded."""
    return "\n".join(
        f"{_role(m)}: {_content(m)}" for m in messages if _role(m) != "system"
    )


class Summarizer:
    """Applies the configured eviction policy to a message list."""

    def __init__(
        self,
        llm: BaseLLMClient,
        config: Optional[SummarizerConfig] = None,
        archival: Optional[ArchivalMemory] = None,
        queue: Optional[BackgroundTaskQueue] = None,
    ):
        self.llm = llm
        self.config = config or SummarizerConfig.from_settings()
        self.archival = archival
        # A queue passed in belongs to the caller; one created here is stopped by aclose()
        self._owns_queue = queue is None
        self.queue = queue or BackgroundTaskQueue(name="summarizer")

    async def aclose(self) -> None:
        """Drain pending archive writes and stop the queue if this summarizer created it."""
        if self._owns_queue and self.queue.running:
            await self.queue.join()
            await self.queue.stop()

    async def summarize(
        self,
        messages: Sequence[Message],
        force: bool = False,
        owner: Optional[ArchiveOwner] = None,
    ) -> SummarizationResult:
        messages = list(messages)
        mode = self.config.mode

        if mode == SummarizerMode.NONE or not messages:
            return SummarizationResult(summarized=False, messages=messages)
        if not force and len(messages) <= self.config.buffer_limit:
            return SummarizationResult(summarized=False, messages=messages)

        if mode == SummarizerMode.STATIC_BUFFER:
            return self._static_buffer(messages, force, owner)

        if not force:
            # Partial eviction only runs on explicit request
            return SummarizationResult(summarized=False, messages=messages)
        return await self._partial_evict(messages)

    # ═══════════════════════════════════════════════════════════════════
    # Policies
    # ═══════════════════════════════════════════════════════════════════

    def _static_buffer(self, messages: List[Message], force: bool, owner: Optional[ArchiveOwner]) -> SummarizationResult:
        retain_count = 0 if force else self.config.buffer_min
        cut = max(1, len(messages) - retain_count)
        while cut < len(messages) and _role(messages[cut]) != "user":
            cut += 1

        evicted = messages[1:cut]
        if not evicted:
            return SummarizationResult(summarized=False, messages=messages)

        retained = [messages[0]] + messages[cut:]
        self.queue.submit(
            f"summarize_and_archive[{len(evicted)}]",
            lambda: self._summarize_and_archive(evicted, retain_count, owner),
        )
        logger.info(f"🧹 Static buffer evicted {len(evicted)} messages, kept {len(retained)}")
        return SummarizationResult(summarized=True, messages=retained, evicted_count=len(evicted))

    async def _partial_evict(self, messages: List[Message]) -> SummarizationResult:
        total = len(messages)
        head = 1 if _role(messages[0]) == "system" else 0
        # Half-up: 4.5 retains 5, where round() would give 4
        retain_target = math.floor((1 - self.config.evict_fraction) * total + 0.5)
        start = max(head + 1, total - retain_target)

        boundary = next(
            (i for i in range(start, total) if _role(messages[i]) == "assistant"),
            None,
        )
        if boundary is None:
            logger.info("Partial evict: no assistant message after target index, nothing evicted")
            return SummarizationResult(summarized=False, messages=messages)

        evicted = messages[head:boundary]
        summary = await self.summarize_messages(evicted, retain_count=total - boundary)

        summary_message = ChatMessage.user(
            f"{SUMMARY_PREFIX}{summary}",
            metadata={"is_summary": True, "summarized_count": len(evicted)},
        )
        injected: Message = summary_message.to_state() if isinstance(messages[0], dict) else summary_message

        logger.info(f"🧹 Partial evict summarized {len(evicted)} of {total} messages")
        return SummarizationResult(
            summarized=True,
            messages=messages[:head] + [injected] + messages[boundary:],
            evicted_count=len(evicted),
            summary=summary,
        )

    # ═══════════════════════════════════════════════════════════════════
    # Model + archive
    # ═══════════════════════════════════════════════════════════════════

    async def summarize_messages(self, messages: Sequence[Message], retain_count: int) -> str:
        prompt = build_summary_prompt(render_transcript(messages), retain_count)
        response = await self.llm.ainvoke([
            ChatMessage.system(SUMMARY_SYSTEM_PROMPT),
            ChatMessage.user(prompt),
        ])
        return response.content.strip()

    async def _summarize_and_archive(
        self,
        evicted: Sequence[Message],
        retain_count: int,
        owner: Optional[ArchiveOwner],
    ) -> Any:
        summary = await self.summarize_messages(evicted, retain_count)
        if self.archival is None or owner is None:
            logger.info(f"Summary of {len(evicted)} evicted messages produced (no archive configured)")
            return summary

        return await self.archival.insert(
            owner.user_id,
            summary,
            context=f"Summary of {len(evicted)} earlier messages",
            tags=["conversation_summary"],
            session_id=owner.session_id,
            memory_type=ArchivalMemoryType.SUMMARY,
            metadata={"evicted_count": len(evicted)},
        )
