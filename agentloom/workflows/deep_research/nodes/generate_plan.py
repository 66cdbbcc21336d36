"""
Generate Plan Node

Structured-output call producing a ResearchPlan. The first plan uses the
planning prompt; after a rejection the user's feedback is sent instead,
continuing the same conversation.
"""
import logging

from langsmith import traceable

from agentloom.models.dto.messages import ChatMessage
from agentloom.workflows.engine import END, RunConfig
from ..config import MIN_PLAN_SECTIONS, PROGRESS_PLANNED
from ..prompts import build_plan_prompt
from ..state import DeepResearchState, ResearchPlan
from .utils import LLM_NOT_CONFIGURED, already_failed, error_update, get_llm, log_node

logger = logging.getLogger(__name__)


@log_node("generate_plan")
@traceable(name="generate_plan", tags=["llm", "structured_output", "deep_research"])
async def generate_plan_node(state: DeepResearchState, config: RunConfig) -> dict:
    if already_failed(state):
        return {"status": "error"}

    llm = get_llm(config)
    if llm is None:
        return error_update(LLM_NOT_CONFIGURED)

    feedback = (state.get("user_feedback") or "").strip()
    if feedback:
        prompt = ChatMessage.user(feedback)
    else:
        prompt = ChatMessage.user(build_plan_prompt(state["question"], state.get("analysis"), MIN_PLAN_SECTIONS))

    conversation = [*(state.get("messages") or []), prompt.to_state()]
    try:
        result = await llm.with_structured_output(ResearchPlan).ainvoke(conversation)
    except Exception as e:
        logger.error(f"Plan generation failed: {e}")
        return error_update(f"Plan generation failed: {e}", user_feedback="", messages=[prompt.to_state()])

    plan = result.parsed
    logger.info(f"Plan '{plan.title}' with {len(plan.sections)} sections (revision={bool(feedback)})")
    return {
        "plan": plan.model_dump(),
        "status": "waiting_approval",
        "progress": PROGRESS_PLANNED,
        "approval_status": "pending",
        "user_feedback": "",
        "messages": [prompt.to_state(), result.raw.to_state()],
    }


def route_after_plan(state: DeepResearchState) -> str:
    """A failed run ends here instead of waiting for approval of a missing plan."""
    return END if already_failed(state) else "human_approval"
