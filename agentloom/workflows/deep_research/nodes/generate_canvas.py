"""
Generate Canvas Node

Final LLM call: merge researched sections (in plan order) into one report
artifact.
"""
import logging
from uuid import uuid4

from langsmith import traceable

from agentloom.models.dto.messages import ChatMessage
from agentloom.workflows.engine import RunConfig
from ..config import PROGRESS_COMPLETED
from ..prompts import CANVAS_SYSTEM_PROMPT, build_canvas_prompt
from ..state import DeepResearchState
from .utils import LLM_NOT_CONFIGURED, already_failed, error_update, get_llm, log_node

logger = logging.getLogger(__name__)


@log_node("generate_canvas")
@traceable(name="generate_canvas", tags=["llm", "deep_research"])
async def generate_canvas_node(state: DeepResearchState, config: RunConfig) -> dict:
    if already_failed(state):
        return {"status": "error"}

    llm = get_llm(config)
    if llm is None:
        return error_update(LLM_NOT_CONFIGURED)

    sections = sorted(state.get("generated_content") or [], key=lambda s: s["section_index"])
    system = ChatMessage.system(CANVAS_SYSTEM_PROMPT.format(artifact_id=f"research-{uuid4().hex[:12]}"))
    prompt = ChatMessage.user(build_canvas_prompt(state["question"], sections))

    try:
        response = await llm.ainvoke([system, prompt])
    except Exception as e:
        logger.error(f"Report generation failed: {e}")
        return error_update(f"Report generation failed: {e}")

    return {
        "final_artifact": response.content,
        "status": "completed",
        "progress": PROGRESS_COMPLETED,
        "messages": [system.to_state(), prompt.to_state(), response.to_state()],
    }
