"""
Human Approval Node

Two-phase interrupt: ``suspend`` publishes the plan and the thread waits;
``resume`` receives the reviewer's answer. Blank feedback on a plan with
sections approves it; anything else sends the plan back for revision.
"""
import logging
from typing import Any, Dict, Optional

from langsmith import traceable

from agentloom.workflows.engine import Command, InterruptNode, RunConfig

logger = logging.getLogger(__name__)

APPROVAL_MESSAGE = "Waiting for the user to approve the research plan"


def extract_feedback(value: Any) -> str:
    """Resume value may be the feedback string or {"user_feedback"|"userFeedback": str}."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("user_feedback", "userFeedback"):
            feedback = value.get(key)
            if isinstance(feedback, str):
                return feedback
    return ""


class HumanApprovalNode(InterruptNode):

    async def suspend(self, state: Dict[str, Any], config: RunConfig) -> Dict[str, Any]:
        return {
            "type": "waiting_approval",
            "message": APPROVAL_MESSAGE,
            "plan": state.get("plan"),
        }

    @traceable(name="human_approval", tags=["interrupt", "deep_research"])
    async def resume(self, state: Dict[str, Any], value: Any, config: RunConfig) -> Command:
        feedback = extract_feedback(value)
        plan: Optional[Dict[str, Any]] = state.get("plan") or {}
        has_sections = bool(plan.get("sections"))

        if feedback.strip() or not has_sections:
            logger.info(f"Plan rejected (feedback={bool(feedback.strip())}, sections={has_sections})")
            return Command(
                update={"user_feedback": feedback, "approval_status": "rejected"},
                goto="generate_plan",
            )

        logger.info("Plan approved")
        return Command(update={"approval_status": "approved"}, goto="coordinate_research")
