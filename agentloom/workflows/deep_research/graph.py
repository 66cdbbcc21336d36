"""
Deep Research Workflow Graph

Assembles nodes into a StateGraph with a durable checkpointer.
"""
from typing import Optional

from agentloom.core.locks import KeyedLocks
from agentloom.workflows.engine import (
    END,
    START,
    BaseCheckpointSaver,
    CompiledGraph,
    StateGraph,
)
from .nodes import (
    HumanApprovalNode,
    analyze_question_node,
    coordinate_research_node,
    generate_canvas_node,
    generate_plan_node,
    route_after_plan,
    route_after_research,
)
from .state import DeepResearchState

GRAPH_NAME = "deep_research"


def build_deep_research_graph(
    checkpointer: Optional[BaseCheckpointSaver] = None,
    recursion_limit: Optional[int] = None,
    thread_locks: Optional[KeyedLocks] = None,
) -> CompiledGraph:
    """
    Construct the deep research workflow graph.

    Flow:
        START
          ↓
        analyze_question (LLM, JSON analysis)
          ↓
        generate_plan (LLM, structured output)  ←──────────┐
          ↓ (failed run → END)                             │
        human_approval (interrupt) ── feedback / no plan ──┘
          ↓ approved
        coordinate_research (tool loop, one section per step) ⟲ until all sections done
          ↓
        generate_canvas (LLM, final artifact)
          ↓
        END

    The service injects the model as ``configurable["llm"]`` and research
    tools as ``configurable["tools"]``.
    """
    workflow = StateGraph(DeepResearchState)

    # ========================================================================
    # Add Nodes
    # ========================================================================

    workflow.add_node("analyze_question", analyze_question_node)
    workflow.add_node("generate_plan", generate_plan_node)

    # Two-phase interrupt; routes itself via Command(goto=...)
    workflow.add_node(
        "human_approval",
        HumanApprovalNode(),
        ends=["generate_plan", "coordinate_research"],
    )

    workflow.add_node("coordinate_research", coordinate_research_node)
    workflow.add_node("generate_canvas", generate_canvas_node)

    # ========================================================================
    # Add Edges
    # ========================================================================

    workflow.add_edge(START, "analyze_question")
    workflow.add_edge("analyze_question", "generate_plan")
    workflow.add_conditional_edges(
        "generate_plan",
        route_after_plan,
        {"human_approval": "human_approval", END: END},
    )

    workflow.add_conditional_edges(
        "coordinate_research",
        route_after_research,
        {
            "coordinate_research": "coordinate_research",
            "generate_canvas": "generate_canvas",
        },
    )
    workflow.add_edge("generate_canvas", END)

    return workflow.compile(
        checkpointer=checkpointer,
        recursion_limit=recursion_limit,
        name=GRAPH_NAME,
        thread_locks=thread_locks,
    )
