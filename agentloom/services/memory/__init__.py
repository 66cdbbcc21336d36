"""Tiered memory: core memory blocks, summarization/eviction, history optimization, archival memory, extraction and recall."""
from .archival import ArchivalMemory
from .background import BackgroundTaskQueue
from .extraction import (
    DEFAULT_MEMORY_SCHEMAS,
    ExtractionResult,
    MemoryExtractor,
    MemorySchema,
    UpdateMode,
)
from .history_optimizer import HistoryOptimizer, OptimizedHistory
from .memory_blocks import DEFAULT_MEMORY_BLOCKS, MemoryBlockManager, compile_prompt
from .summarizer import ArchiveOwner, SummarizationResult, Summarizer, SummarizerConfig, SummarizerMode
from .unified import MemoryContext, UnifiedMemory

__all__ = [
    "ArchivalMemory",
    "BackgroundTaskQueue",
    "DEFAULT_MEMORY_SCHEMAS",
    "ExtractionResult",
    "MemoryExtractor",
    "MemorySchema",
    "UpdateMode",
    "HistoryOptimizer",
    "OptimizedHistory",
    "DEFAULT_MEMORY_BLOCKS",
    "MemoryBlockManager",
    "compile_prompt",
    "ArchiveOwner",
    "SummarizationResult",
    "Summarizer",
    "SummarizerConfig",
    "SummarizerMode",
    "MemoryContext",
    "UnifiedMemory",
]
