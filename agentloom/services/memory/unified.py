"""
Unified Memory

One memory context for a chat turn: the user's compiled core memory plus
the archival entries most related to what the user just said, rendered
within a token budget. Core memory is always included in full; related
memories fill whatever budget is left.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional

from agentloom.core.config import settings
from agentloom.models.dto.memory import ArchivalSearchResult, CompiledMemory
from .archival import ArchivalMemory
from .memory_blocks import MemoryBlockManager

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
RELATED_HEADER = "## Related memories"


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass
class MemoryContext:
    core: CompiledMemory
    related: List[ArchivalSearchResult] = field(default_factory=list)


def _related_line(hit: ArchivalSearchResult) -> str:
    entry = hit.entry
    text = f"{entry.context}: {entry.content}" if entry.context else entry.content
    return f"- [relevance: {hit.score:.2f}] {text}"


class UnifiedMemory:
    """Core memory plus recall from the archive, as one prompt section."""

    def __init__(
        self,
        memory: MemoryBlockManager,
        archival: Optional[ArchivalMemory] = None,
        recall_top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        token_budget: Optional[int] = None,
    ):
        self.memory = memory
        self.archival = archival
        self.recall_top_k = recall_top_k if recall_top_k is not None else settings.MEMORY_RECALL_TOP_K
        self.min_score = min_score if min_score is not None else settings.MEMORY_RECALL_MIN_SCORE
        self.token_budget = token_budget if token_budget is not None else settings.MEMORY_CONTEXT_TOKEN_BUDGET

    async def get_memory_context(self, user_id: str, query: str = "") -> MemoryContext:
        core = await self.memory.compile(user_id)
        if self.archival is None or not query.strip():
            return MemoryContext(core=core)

        try:
            hits = await self.archival.search(user_id, query, top_k=self.recall_top_k)
        except Exception as e:
            # Recall is best effort; the turn still gets core memory
            logger.warning(f"Archival recall failed for user {user_id}: {e}")
            hits = []
        return MemoryContext(core=core, related=[h for h in hits if h.score >= self.min_score])

    def format_memory_context(self, context: MemoryContext, max_tokens: Optional[int] = None) -> str:
        budget = self.token_budget if max_tokens is None else max_tokens
        sections = [context.core.prompt] if context.core.prompt else []
        remaining = budget - sum(estimate_tokens(s) for s in sections)

        lines = []
        opening = f"{RELATED_HEADER}\n<memories>"
        closing = "</memories>"
        remaining -= estimate_tokens(f"{opening}\n{closing}")
        for hit in context.related:
            line = _related_line(hit)
            cost = estimate_tokens(line + "\n")
            if cost <= remaining:
                lines.append(line)
                remaining -= cost
                continue
            room = remaining * CHARS_PER_TOKEN - len("...\n")
            if room > 0:
                lines.append(line[:room] + "...")
            break

        if lines:
            sections.append("\n".join([opening, *lines, closing]))
        return "\n\n".join(sections)

    async def build_prompt(self, user_id: str, query: str = "") -> str:
        return self.format_memory_context(await self.get_memory_context(user_id, query))
