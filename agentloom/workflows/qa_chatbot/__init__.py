"""
QA Chatbot Workflow

Stage-routed PRD -> test points -> test cases -> review conversation.
"""
from .edges import ROUTE_TARGETS, ROUTING_TABLE, route_after_router
from .graph import GRAPH_NAME, build_qa_chatbot_graph
from .intent import CONTINUE_PATTERNS, detect_user_intent, last_user_message
from .state import QAState

__all__ = [
    "ROUTE_TARGETS",
    "ROUTING_TABLE",
    "route_after_router",
    "GRAPH_NAME",
    "build_qa_chatbot_graph",
    "CONTINUE_PATTERNS",
    "detect_user_intent",
    "last_user_message",
    "QAState",
]
