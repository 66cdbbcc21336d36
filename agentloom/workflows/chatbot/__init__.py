"""
Chatbot Workflow

General conversation backed by core memory blocks (in the system prompt),
archival memory (through tools) and summarizer-driven history trimming.
"""
from .config import DEFAULT_PERSONA, DEFAULT_USER_ID, Persona
from .edges import route_after_agent
from .graph import GRAPH_NAME, build_chatbot_graph
from .nodes import memory_tool_registry
from .state import ChatbotState

__all__ = [
    "DEFAULT_PERSONA",
    "DEFAULT_USER_ID",
    "Persona",
    "route_after_agent",
    "GRAPH_NAME",
    "build_chatbot_graph",
    "memory_tool_registry",
    "ChatbotState",
]
