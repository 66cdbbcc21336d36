"""Chatbot routing: run tools while the model asks for them."""
import logging

from agentloom.models.dto.messages import ChatMessage
from agentloom.workflows.engine import END
from .state import ChatbotState

logger = logging.getLogger(__name__)

ROUTE_TARGETS = {"tools": "tools", END: END}


def route_after_agent(state: ChatbotState) -> str:
    messages = state.get("messages") or []
    if not messages:
        return END
    last = ChatMessage.coerce(messages[-1])
    if last.role == "assistant" and last.tool_calls:
        logger.debug(f"[chatbot] {len(last.tool_calls)} tool call(s) -> tools")
        return "tools"
    return END
