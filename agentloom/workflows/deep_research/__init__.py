"""
Deep Research Workflow

Question analysis -> plan -> human approval -> per-section research -> report.
"""
from .graph import GRAPH_NAME, build_deep_research_graph
from .state import DeepResearchState, QuestionAnalysis, ResearchPlan, create_initial_state, validate_state

__all__ = [
    "GRAPH_NAME",
    "build_deep_research_graph",
    "DeepResearchState",
    "QuestionAnalysis",
    "ResearchPlan",
    "create_initial_state",
    "validate_state",
]
