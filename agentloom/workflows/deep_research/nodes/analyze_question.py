"""
Analyze Question Node

First LLM call: extract theme, keywords, complexity and research
directions from the raw question.
"""
import logging

from langsmith import traceable
from pydantic import ValidationError

from agentloom.models.dto.messages import ChatMessage
from agentloom.workflows.engine import RunConfig
from ..config import PROGRESS_ANALYZED
from ..prompts import build_analysis_prompt
from ..state import DeepResearchState, QuestionAnalysis
from .utils import LLM_NOT_CONFIGURED, already_failed, error_update, get_llm, log_node

logger = logging.getLogger(__name__)


@log_node("analyze_question")
@traceable(name="analyze_question", tags=["llm", "deep_research"])
async def analyze_question_node(state: DeepResearchState, config: RunConfig) -> dict:
    """
    Analyze the research question into a QuestionAnalysis.

    Model and parse failures end the run in ``status="error"``.
    """
    if already_failed(state):
        return {"status": "error"}

    llm = get_llm(config)
    if llm is None:
        return error_update(LLM_NOT_CONFIGURED)

    prompt = ChatMessage.user(build_analysis_prompt(state["question"]))
    try:
        response = await llm.ainvoke([prompt])
    except Exception as e:
        logger.error(f"Question analysis call failed: {e}")
        return error_update(f"Question analysis failed: {e}", messages=[prompt.to_state()])

    history = [prompt.to_state(), response.to_state()]
    try:
        analysis = QuestionAnalysis.model_validate(llm.parse_json_response(response.content))
    except (ValueError, ValidationError) as e:
        return error_update(f"Question analysis failed: {e}", messages=history)

    return {
        "analysis": analysis.model_dump(),
        "status": "planning",
        "progress": PROGRESS_ANALYZED,
        "messages": history,
    }
