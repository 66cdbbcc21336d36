"""User intent detection for the QA chatbot router."""
from typing import Any, Dict, Optional

from .state import UserIntent

CONTINUE_PATTERNS = (
    "继续", "可以", "没问题", "好的", "好", "ok", "确认", "通过", "下一步", "进行下一步",
    "没有问题", "可以继续", "继续吧", "continue", "yes", "next", "行", "嗯", "是", "对",
)
"""Exact replies (or reply prefixes followed by a comma) meaning 'go to the next stage'"""

REVISE_MIN_CHARS = 5
"""Longer replies that are not a continue phrase are treated as revision requests"""


def detect_user_intent(message: str) -> UserIntent:
    text = (message or "").lower().strip()

    for pattern in CONTINUE_PATTERNS:
        if text == pattern or text.startswith(pattern + "，") or text.startswith(pattern + ","):
            return "continue"

    if len(text) > REVISE_MIN_CHARS:
        return "revise"
    return "other"


def last_user_message(state: Dict[str, Any]) -> str:
    """Content of the final message when it is a user message, else ""."""
    messages = state.get("messages") or []
    if not messages:
        return ""
    last: Optional[Dict[str, Any]] = messages[-1]
    if last.get("role") != "user":
        return ""
    return last.get("content") or ""
