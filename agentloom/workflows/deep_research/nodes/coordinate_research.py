"""
Coordinate Research Node

Researches one plan section per step with the agent tool loop. The graph
loops back here until every section has content. Failures are recorded as
the section's content rather than ending the run.
"""
import logging
from typing import Any, Dict, List, Optional

from langsmith import traceable

from agentloom.models.dto.messages import ChatMessage
from agentloom.services.agents.tool_loop import AgentToolLoop, ToolLoopCancelledError
from agentloom.services.tools.registry import Tool, ToolRegistry
from agentloom.workflows.engine import RunConfig
from ..config import PROGRESS_RESEARCH_SHARE, RESEARCH_MAX_TOOL_STEPS, UNTITLED_SECTION
from ..prompts import RESEARCH_SYSTEM_PROMPT, build_section_prompt
from ..state import DeepResearchState
from .utils import LLM_NOT_CONFIGURED, already_failed, error_update, get_llm, log_node, utc_timestamp

logger = logging.getLogger(__name__)


def next_section_index(state: Dict[str, Any]) -> Optional[int]:
    """First plan section without generated content, or None when all are done."""
    sections = (state.get("plan") or {}).get("sections") or []
    done = {item.get("section_index") for item in state.get("generated_content") or []}
    for index in range(len(sections)):
        if index not in done:
            return index
    return None


def _registry(config: RunConfig) -> ToolRegistry:
    tools = config.get("tools") or []
    if isinstance(tools, ToolRegistry):
        return tools
    return ToolRegistry(t for t in tools if isinstance(t, Tool))


@log_node("coordinate_research")
@traceable(name="coordinate_research", tags=["llm", "tools", "deep_research"])
async def coordinate_research_node(state: DeepResearchState, config: RunConfig) -> dict:
    if already_failed(state):
        return {"status": "error"}

    llm = get_llm(config)
    if llm is None:
        return error_update(LLM_NOT_CONFIGURED)

    sections: List[Dict[str, Any]] = (state.get("plan") or {}).get("sections") or []
    index = next_section_index(state)
    if index is None:
        return {"status": "executing"}

    section = sections[index]
    title = section.get("title") or UNTITLED_SECTION
    loop = AgentToolLoop(llm, _registry(config), max_steps=RESEARCH_MAX_TOOL_STEPS)
    messages = [
        ChatMessage.system(RESEARCH_SYSTEM_PROMPT),
        ChatMessage.user(build_section_prompt(state["question"], section)),
    ]

    try:
        result = await loop.run(messages, abort_signal=config.abort_signal)
        content = result.content
        logger.info(f"Section {index + 1}/{len(sections)} '{title}' done in {result.steps} step(s)")
    except ToolLoopCancelledError:
        raise
    except Exception as e:
        logger.warning(f"Section {index + 1}/{len(sections)} '{title}' failed: {e}")
        content = f"**Research failed**: {e}"

    return {
        "generated_content": [{
            "section_index": index,
            "title": title,
            "content": content,
            "timestamp": utc_timestamp(),
        }],
        "progress": -(PROGRESS_RESEARCH_SHARE / max(len(sections), 1)),
        "status": "executing",
    }


def route_after_research(state: DeepResearchState) -> str:
    """Loop until every section is researched (or the run failed)."""
    if already_failed(state) or next_section_index(state) is None:
        return "generate_canvas"
    return "coordinate_research"
