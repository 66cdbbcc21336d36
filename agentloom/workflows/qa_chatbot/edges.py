"""QA chatbot routing: (stage, intent) -> next node."""
import logging
from typing import Dict, Tuple

from .state import QAState

logger = logging.getLogger(__name__)

ROUTE_TARGETS = ["gen_test_points", "gen_test_cases", "gen_review", "handle_revise", "handle_other"]

ROUTING_TABLE: Dict[Tuple[str, str], str] = {
    ("test_points", "continue"): "gen_test_cases",
    ("test_points", "revise"): "gen_test_points",
    ("test_cases", "continue"): "gen_review",
    ("test_cases", "revise"): "gen_test_cases",
    ("completed", "revise"): "handle_revise",
}


def route_after_router(state: QAState) -> str:
    """
    Conditional edge after ``router``.

    ``init`` always starts test point generation; other stages follow
    ROUTING_TABLE and anything not listed goes to ``handle_other``.
    """
    stage = state.get("stage") or "init"
    intent = state.get("user_intent") or "other"

    if stage == "init":
        target = "gen_test_points"
    else:
        target = ROUTING_TABLE.get((stage, intent), "handle_other")

    logger.debug(f"[qa_chatbot] stage={stage} intent={intent} -> {target}")
    return target
