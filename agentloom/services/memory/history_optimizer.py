"""
History Optimizer

Shapes the message list sent to the model on every chat turn. The
summarizer runs over ``[system, *history]`` first (a static-buffer eviction
archives its summary in the background), then the result is capped at
``max_length`` messages: the newest ones plus any older message marked
important. The thread's stored transcript is never modified here; callers
use ``evicted_count`` to move their context window forward.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Union

from agentloom.core.config import settings
from agentloom.models.dto.messages import ChatMessage
from .summarizer import ArchiveOwner, Summarizer

logger = logging.getLogger(__name__)

Message = Union[ChatMessage, dict]


def is_important(message: ChatMessage) -> bool:
    """Pinned messages survive trimming (explicit ``important`` flag or an injected summary)."""
    return bool(message.metadata.get("important") or message.metadata.get("is_summary"))


@dataclass
class OptimizedHistory:
    messages: List[ChatMessage] = field(default_factory=list)
    evicted_count: int = 0
    trimmed_count: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.evicted_count or self.trimmed_count)


class HistoryOptimizer:
    """Summarize-then-trim view of a conversation for one model call."""

    def __init__(self, summarizer: Summarizer, max_length: Optional[int] = None):
        self.summarizer = summarizer
        self.max_length = max_length if max_length is not None else settings.HISTORY_MAX_LENGTH
        if self.max_length < 1:
            raise ValueError("max_length must be >= 1")

    @staticmethod
    def trim(messages: Sequence[Message], keep_latest: int) -> List[ChatMessage]:
        """
        Newest ``keep_latest`` messages, preceded by older important ones.

        The recent window never starts on a tool result, since a tool
        message is only valid after the assistant turn that requested it.
        """
        history = [ChatMessage.coerce(m) for m in messages]
        if len(history) <= keep_latest:
            return history

        start = len(history) - keep_latest
        while start < len(history) and history[start].role == "tool":
            start += 1

        pinned = [m for m in history[:start] if m.role != "tool" and is_important(m)]
        return pinned + history[start:]

    async def optimize(
        self,
        system: ChatMessage,
        history: Sequence[Message],
        owner: Optional[ArchiveOwner] = None,
    ) -> OptimizedHistory:
        view: List[Any] = [system, *(ChatMessage.coerce(m) for m in history)]
        result = await self.summarizer.summarize(view, owner=owner)

        retained = [ChatMessage.coerce(m) for m in result.messages[1:]]
        trimmed = self.trim(retained, self.max_length)
        optimized = OptimizedHistory(
            messages=[system, *trimmed],
            evicted_count=result.evicted_count if result.summarized else 0,
            trimmed_count=len(retained) - len(trimmed),
        )
        if optimized.changed:
            logger.info(
                f"🧹 History optimized: {len(history)} -> {len(trimmed)} messages "
                f"(evicted={optimized.evicted_count}, trimmed={optimized.trimmed_count})"
            )
        return optimized
