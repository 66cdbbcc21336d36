"""
QA Chatbot Workflow Graph

One turn per invoke: route the user's message by (stage, intent), run one
generating node, stop.
"""
from typing import Optional

from agentloom.core.locks import KeyedLocks
from agentloom.services.llm.clients.base import BaseLLMClient
from agentloom.workflows.engine import END, START, BaseCheckpointSaver, CompiledGraph, StateGraph
from .edges import ROUTE_TARGETS, route_after_router
from .nodes import (
    create_gen_review_node,
    create_gen_test_cases_node,
    create_gen_test_points_node,
    create_handle_other_node,
    create_handle_revise_node,
    create_router_node,
)
from .state import QAState

GRAPH_NAME = "qa_chatbot"


def build_qa_chatbot_graph(
    model: BaseLLMClient,
    checkpointer: Optional[BaseCheckpointSaver] = None,
    thread_locks: Optional[KeyedLocks] = None,
) -> CompiledGraph:
    """
    Flow:
        START → router ─┬─ gen_test_points ─┐
                        ├─ gen_test_cases  ─┤
                        ├─ gen_review      ─┼→ END
                        ├─ handle_revise   ─┤
                        └─ handle_other    ─┘
    """
    workflow = StateGraph(QAState)

    workflow.add_node("router", create_router_node())
    workflow.add_node("gen_test_points", create_gen_test_points_node(model))
    workflow.add_node("gen_test_cases", create_gen_test_cases_node(model))
    workflow.add_node("gen_review", create_gen_review_node(model))
    workflow.add_node("handle_revise", create_handle_revise_node(model))
    workflow.add_node("handle_other", create_handle_other_node(model))

    workflow.add_edge(START, "router")
    workflow.add_conditional_edges("router", route_after_router, ROUTE_TARGETS)

    for target in ROUTE_TARGETS:
        workflow.add_edge(target, END)

    return workflow.compile(checkpointer=checkpointer, name=GRAPH_NAME, thread_locks=thread_locks)
