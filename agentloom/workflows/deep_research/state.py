"""
Deep Research State Schema

Workflow state for one research thread plus the structured shapes the LLM
produces (question analysis, research plan).
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from typing_extensions import Annotated, NotRequired, TypedDict

from agentloom.workflows.engine import append, replace, signed_accumulate
from .config import MIN_PLAN_SECTIONS

ResearchStatus = Literal["analyzing", "planning", "waiting_approval", "executing", "generating", "completed", "error"]
ApprovalStatus = Literal["pending", "approved", "rejected"]


class QuestionAnalysis(BaseModel):
    """LLM analysis of the research question."""
    core_theme: str
    keywords: List[str] = Field(default_factory=list)
    complexity: Literal["simple", "medium", "complex"] = "medium"
    estimated_time: float = Field(default=0, description="Estimated research time in hours")
    research_directions: List[str] = Field(default_factory=list)
    source_types: List[str] = Field(default_factory=list)


class PlanSection(BaseModel):
    title: str = Field(description="Section title")
    description: str = Field(description="What this section covers")
    priority: int = Field(description="Higher runs first")


class ResearchPlan(BaseModel):
    """Structured research plan (validated model output)."""
    title: str = Field(description="Research title")
    description: str = Field(description="Research description")
    objectives: List[str] = Field(description="Research objectives")
    methodology: List[str] = Field(description="Research methods")
    expected_outcome: str = Field(description="Expected outcome")
    sections: List[PlanSection] = Field(min_length=MIN_PLAN_SECTIONS, description=f"At least {MIN_PLAN_SECTIONS} sections")


class DeepResearchState(TypedDict):
    """
    State for the deep research workflow (one thread per research session).

    - generated_content accumulates one entry per researched section
    - progress: negative updates are increments, non-negative ones set it
    - messages accumulate the LLM conversation as plain dicts
    """

    question: str
    user_feedback: NotRequired[str]
    analysis: NotRequired[Optional[Dict[str, Any]]]
    plan: NotRequired[Optional[Dict[str, Any]]]
    generated_content: Annotated[List[Dict[str, Any]], append]   # {section_index, title, content, timestamp}
    status: Annotated[ResearchStatus, replace.with_default("analyzing")]
    progress: Annotated[float, signed_accumulate]
    error: NotRequired[Optional[str]]
    final_artifact: NotRequired[Optional[str]]
    messages: Annotated[List[Dict[str, Any]], append]
    approval_status: NotRequired[Optional[ApprovalStatus]]


def create_initial_state(question: str) -> Dict[str, Any]:
    """Input for a fresh research run."""
    return {
        "question": question,
        "status": "analyzing",
        "progress": 0,
    }


def validate_state(state: Dict[str, Any]) -> bool:
    return bool(
        state.get("question")
        and state.get("status")
        and isinstance(state.get("progress"), (int, float))
        and not isinstance(state.get("progress"), bool)
    )
