"""Shared helpers for deep research nodes."""
import functools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from agentloom.services.llm.clients.base import BaseLLMClient
from agentloom.workflows.engine import RunConfig

logger = logging.getLogger(__name__)

LLM_NOT_CONFIGURED = "LLM not configured"


def get_llm(config: Optional[RunConfig]) -> Optional[BaseLLMClient]:
    """LLM injected by the service through ``configurable["llm"]``."""
    if config is None:
        return None
    return config.get("llm")


def error_update(message: str, **extra: Any) -> Dict[str, Any]:
    return {"status": "error", "error": message, **extra}


def already_failed(state: Dict[str, Any]) -> bool:
    return state.get("status") == "error"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _summary(state: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "status": state.get("status"),
        "progress": state.get("progress"),
        "analysis": bool(state.get("analysis")),
        "plan": bool(state.get("plan")),
        "sections_done": len(state.get("generated_content") or []),
        "approval_status": state.get("approval_status"),
        "error": state.get("error"),
    }


def log_node(name: str):
    """Log a compact view of state going in and the update coming out."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(state: Dict[str, Any], config: RunConfig) -> Dict[str, Any]:
            logger.info(f"[{name}] in: {_summary(state)}")
            result = await fn(state, config)
            logger.info(f"[{name}] out: {_summary(result)} keys={sorted(result)}")
            return result

        return wrapper

    return decorator
