"""
Chatbot Workflow Graph

Memory-backed conversation: one invoke per user turn, looping between the
model and the memory tools until the model replies without tool calls.
"""
from typing import Optional

from agentloom.core.locks import KeyedLocks
from agentloom.services.llm.clients.base import BaseLLMClient
from agentloom.services.memory.archival import ArchivalMemory
from agentloom.services.memory.history_optimizer import HistoryOptimizer
from agentloom.services.memory.memory_blocks import MemoryBlockManager
from agentloom.services.memory.unified import UnifiedMemory
from agentloom.workflows.engine import START, BaseCheckpointSaver, CompiledGraph, StateGraph
from .config import DEFAULT_PERSONA, Persona
from .edges import ROUTE_TARGETS, route_after_agent
from .nodes import create_agent_node, create_tools_node
from .state import ChatbotState

GRAPH_NAME = "chatbot"


def build_chatbot_graph(
    model: BaseLLMClient,
    memory: MemoryBlockManager,
    archival: Optional[ArchivalMemory] = None,
    optimizer: Optional[HistoryOptimizer] = None,
    checkpointer: Optional[BaseCheckpointSaver] = None,
    persona: Persona = DEFAULT_PERSONA,
    recursion_limit: Optional[int] = None,
    thread_locks: Optional[KeyedLocks] = None,
    recall: Optional[UnifiedMemory] = None,
) -> CompiledGraph:
    """
    Flow:
        START → agent ─┬─ tool calls → tools ─┐
                ↑      └─ plain reply → END   │
                └─────────────────────────────┘

    With ``recall`` set, the system prompt carries core memory plus archival
    entries related to the latest user message instead of core memory alone.
    """
    workflow = StateGraph(ChatbotState)

    workflow.add_node("agent", create_agent_node(model, memory, archival, optimizer, persona, recall))
    workflow.add_node("tools", create_tools_node(memory, archival))

    workflow.add_edge(START, "agent")
    workflow.add_conditional_edges("agent", route_after_agent, ROUTE_TARGETS)
    workflow.add_edge("tools", "agent")

    return workflow.compile(
        checkpointer=checkpointer,
        recursion_limit=recursion_limit,
        name=GRAPH_NAME,
        thread_locks=thread_locks,
    )
