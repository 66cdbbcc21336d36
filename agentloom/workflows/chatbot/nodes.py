"""
Chatbot Nodes

``agent`` compiles the user's core memory into the system prompt (with
archival entries related to the latest user message when a UnifiedMemory is
given), lets the history optimizer shape the context, and calls the model with the memory
tools bound. ``tools`` runs the tool calls of the latest assistant message
and the graph loops back to ``agent`` until the model answers in plain text.

Tools are rebuilt per call because they are bound to the thread's user.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from langsmith import traceable

from agentloom.models.dto.messages import ChatMessage
from agentloom.services.agents.tool_loop import run_tool_call
from agentloom.services.llm.clients.base import BaseLLMClient
from agentloom.services.memory.archival import ArchivalMemory
from agentloom.services.memory.history_optimizer import HistoryOptimizer
from agentloom.services.memory.memory_blocks import MemoryBlockManager
from agentloom.services.memory.unified import UnifiedMemory
from agentloom.services.memory.summarizer import ArchiveOwner
from agentloom.services.tools import ToolRegistry, create_archival_memory_tools, create_core_memory_tools
from agentloom.workflows.engine import RunConfig
from .config import DEFAULT_PERSONA, DEFAULT_USER_ID, Persona
from .prompts import build_chatbot_system_prompt
from .state import ChatbotState

logger = logging.getLogger(__name__)

Node = Callable[[ChatbotState, RunConfig], Awaitable[Dict[str, Any]]]

FAILURE_REPLY = "Sorry, generating a response failed: {error}. Please try again."


def memory_tool_registry(
    memory: MemoryBlockManager,
    archival: Optional[ArchivalMemory],
    user_id: str,
    session_id: Optional[str] = None,
) -> ToolRegistry:
    """Core memory tools, plus archival tools when an archive is configured."""
    registry = ToolRegistry(create_core_memory_tools(memory, user_id))
    if archival is not None:
        registry.extend(create_archival_memory_tools(archival, user_id, session_id=session_id))
    return registry


def last_message(state: ChatbotState) -> Optional[ChatMessage]:
    messages = state.get("messages") or []
    return ChatMessage.coerce(messages[-1]) if messages else None


def latest_user_text(state: ChatbotState) -> str:
    for message in reversed(state.get("messages") or []):
        message = ChatMessage.coerce(message)
        if message.role == "user":
            return message.content
    return ""


def create_agent_node(
    model: BaseLLMClient,
    memory: MemoryBlockManager,
    archival: Optional[ArchivalMemory] = None,
    optimizer: Optional[HistoryOptimizer] = None,
    persona: Persona = DEFAULT_PERSONA,
    recall: Optional[UnifiedMemory] = None,
) -> Node:
    @traceable(name="chatbot_agent", tags=["llm", "chatbot"])
    async def agent(state: ChatbotState, config: RunConfig) -> Dict[str, Any]:
        user_id = state.get("user_id") or DEFAULT_USER_ID
        registry = memory_tool_registry(memory, archival, user_id, config.thread_id)
        if recall is not None:
            memory_prompt = await recall.build_prompt(user_id, latest_user_text(state))
        else:
            memory_prompt = (await memory.compile(user_id)).prompt
        system = ChatMessage.system(build_chatbot_system_prompt(persona, registry.names(), memory_prompt))

        start = state.get("context_start") or 0
        history = (state.get("messages") or [])[start:]
        evicted = 0
        if optimizer is not None:
            optimized = await optimizer.optimize(system, history, owner=ArchiveOwner(user_id, config.thread_id))
            to_send, evicted = optimized.messages, optimized.evicted_count
        else:
            to_send = [system, *(ChatMessage.coerce(m) for m in history)]

        try:
            response = await model.ainvoke(to_send, tools=registry.schemas() or None)
        except Exception as e:
            logger.error(f"[chatbot] model call failed on thread {config.thread_id}: {e}")
            reply = ChatMessage.assistant(FAILURE_REPLY.format(error=e), metadata={"error": True})
            update: Dict[str, Any] = {"messages": [reply.to_state()], "error": str(e)}
        else:
            logger.info(
                f"[chatbot] thread {config.thread_id}: sent {len(to_send)} messages, "
                f"{len(response.tool_calls)} tool call(s) back"
            )
            update = {"messages": [response.to_state()], "error": ""}

        if evicted:
            update["context_start"] = start + evicted
        return update

    return agent


def create_tools_node(memory: MemoryBlockManager, archival: Optional[ArchivalMemory] = None) -> Node:
    @traceable(name="chatbot_tools", tags=["tools", "chatbot"])
    async def tools(state: ChatbotState, config: RunConfig) -> Dict[str, Any]:
        request = last_message(state)
        if request is None or not request.tool_calls:
            return {"messages": []}

        registry = memory_tool_registry(memory, archival, state.get("user_id") or DEFAULT_USER_ID, config.thread_id)
        results = await asyncio.gather(*(run_tool_call(registry, call) for call in request.tool_calls))
        logger.info(f"[chatbot] ran tools {[call.name for call in request.tool_calls]} on thread {config.thread_id}")
        return {"messages": [message.to_state() for message in results]}

    return tools
