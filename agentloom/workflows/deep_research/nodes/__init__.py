"""
Deep Research Workflow Nodes

Export all node functions for graph assembly.
"""
from .analyze_question import analyze_question_node
from .generate_plan import generate_plan_node, route_after_plan
from .human_approval import HumanApprovalNode, extract_feedback
from .coordinate_research import coordinate_research_node, next_section_index, route_after_research
from .generate_canvas import generate_canvas_node

__all__ = [
    "analyze_question_node",
    "generate_plan_node",
    "route_after_plan",
    "HumanApprovalNode",
    "extract_feedback",
    "coordinate_research_node",
    "next_section_index",
    "route_after_research",
    "generate_canvas_node",
]
