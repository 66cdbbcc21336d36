"""
Chatbot State Schema

``messages`` holds the whole transcript. ``context_start`` is the index of
the first message still in the model's context; messages before it were
evicted by the summarizer and live on only as archived summaries.
"""
from typing import Any, Dict, List, Optional

from typing_extensions import Annotated, NotRequired, TypedDict

from agentloom.workflows.engine import append, replace
from .config import DEFAULT_USER_ID


class ChatbotState(TypedDict):
    messages: Annotated[List[Dict[str, Any]], append]
    user_id: Annotated[str, replace.with_default(DEFAULT_USER_ID)]
    context_start: Annotated[int, replace.with_default(0)]
    error: NotRequired[Optional[str]]   # last model failure, "" once a turn succeeds
