"""
QA Chatbot State Schema

One thread per conversation; the stage advances PRD -> test points ->
test cases -> reviewed cases as the user says "continue".
"""
from typing import Any, Dict, List, Literal, Optional

from typing_extensions import Annotated, NotRequired, TypedDict

from agentloom.workflows.engine import append, replace

QAStage = Literal["init", "test_points", "test_cases", "review", "completed"]
UserIntent = Literal["continue", "revise", "other"]


class QAState(TypedDict):
    """
    State for the QA chatbot workflow.

    Artifacts (prd_content, test_points, test_cases) hold the latest full
    text of each stage; messages hold the whole conversation.
    """

    messages: Annotated[List[Dict[str, Any]], append]
    stage: Annotated[QAStage, replace.with_default("init")]
    user_intent: Annotated[UserIntent, replace.with_default("other")]
    prd_content: Annotated[str, replace.with_default("")]
    test_points: Annotated[str, replace.with_default("")]
    test_cases: Annotated[str, replace.with_default("")]
    error: NotRequired[Optional[str]]   # last model failure, "" once a node succeeds
