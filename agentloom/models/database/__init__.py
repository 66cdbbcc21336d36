"""Database models - import all models to ensure proper registration."""

from agentloom.models.database.checkpoints import Checkpoint
from agentloom.models.database.memory_blocks import BlockEvent, MemoryBlock, MemoryBlockHistory
from agentloom.models.database.archival import ArchivalEntry, ArchivalMemoryType

__all__ = [
    "Checkpoint",
    "BlockEvent",
    "MemoryBlock",
    "MemoryBlockHistory",
    "ArchivalEntry",
    "ArchivalMemoryType",
]
