"""
Agent Tool Loop

Invoke the model with a fixed tool set; while it asks for tools, run them
(concurrently, one error-bearing result per failed call) and feed the
results back. Stops on a plain answer or when the step ceiling is hit.

Exceptions from the model call itself propagate: the calling workflow
node turns them into an error state.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from agentloom.core.config import settings
from agentloom.models.dto.messages import ChatMessage, ToolCall
from agentloom.services.llm.clients.base import BaseLLMClient, MessageLike, coerce_messages
from agentloom.services.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

TRUNCATED_NOTE = "[Stopped after reaching the tool step limit]"


class ToolLoopCancelledError(Exception):
    """The abort signal fired while the loop was running."""


async def run_tool_call(registry: ToolRegistry, call: ToolCall) -> ChatMessage:
    """Run one call; a failing tool becomes an "Error: ..." tool message for the model."""
    try:
        output = await registry.execute(call)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"⚠️  Tool {call.name} failed: {e}")
        output = f"Error: {e}"
    return ChatMessage.tool(output, tool_call_id=call.id, name=call.name)


@dataclass
class ToolLoopResult:
    messages: List[ChatMessage]
    final: ChatMessage
    steps: int
    truncated: bool = False
    tool_calls: int = field(default=0)

    @property
    def content(self) -> str:
        return self.final.content


class AgentToolLoop:
    """Model <-> tools cycle with a hard step ceiling."""

    def __init__(self, llm: BaseLLMClient, registry: ToolRegistry, max_steps: Optional[int] = None):
        self.llm = llm
        self.registry = registry
        self.max_steps = max_steps if max_steps is not None else settings.TOOL_LOOP_MAX_STEPS
        if self.max_steps < 1:
            raise ValueError("max_steps must be >= 1")

    async def _run_tool(self, call: ToolCall) -> ChatMessage:
        return await run_tool_call(self.registry, call)

    @staticmethod
    def _check_abort(abort_signal: Optional[asyncio.Event]) -> None:
        if abort_signal is not None and abort_signal.is_set():
            raise ToolLoopCancelledError("Tool loop aborted")

    async def run(
        self,
        messages: Sequence[MessageLike],
        abort_signal: Optional[asyncio.Event] = None,
    ) -> ToolLoopResult:
        history = coerce_messages(messages)
        tools = self.registry.schemas() or None
        tool_calls = 0

        for step in range(1, self.max_steps + 1):
            self._check_abort(abort_signal)
            response = await self.llm.ainvoke(history, tools=tools)
            history.append(response)

            if not response.tool_calls:
                logger.debug(f"Tool loop finished in {step} step(s), {tool_calls} tool call(s)")
                return ToolLoopResult(history, response, step, tool_calls=tool_calls)

            self._check_abort(abort_signal)
            results = await asyncio.gather(*(self._run_tool(call) for call in response.tool_calls))
            history.extend(results)
            tool_calls += len(results)

        logger.warning(f"⚠️  Tool loop hit the step ceiling ({self.max_steps}); returning partial result")
        return ToolLoopResult(history, self._partial(history), self.max_steps, truncated=True, tool_calls=tool_calls)

    @staticmethod
    def _partial(history: List[ChatMessage]) -> ChatMessage:
        """Latest non-empty assistant text, else the latest tool output."""
        for message in reversed(history):
            if message.role == "assistant" and message.content.strip():
                text = message.content
                break
        else:
            text = next((m.content for m in reversed(history) if m.role == "tool"), "")
        return ChatMessage.assistant(f"{text}\n\n{TRUNCATED_NOTE}".strip(), metadata={"truncated": True})
