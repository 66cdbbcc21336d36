"""Agent tools: registry plus core-memory and archival-memory tool sets."""
from .archival_memory import create_archival_memory_tools
from .core_memory import create_core_memory_tools
from .registry import Tool, ToolError, ToolRegistry

__all__ = [
    "Tool",
    "ToolError",
    "ToolRegistry",
    "create_archival_memory_tools",
    "create_core_memory_tools",
]
