"""
LLM Configuration

Provider defaults for the model capability. Selected provider and the
shared sampling settings come from core settings; per-provider default
models can be overridden from the environment.
"""
import os

from agentloom.core.config import settings


# ============================================================================
# Provider default models
# ============================================================================

ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")


# ============================================================================
# Shared LLM Configuration
# ============================================================================

LLM_MAX_TOKENS = settings.LLM_MAX_TOKENS
"""Max tokens for a single response"""

LLM_TEMPERATURE = settings.LLM_TEMPERATURE
"""Sampling temperature"""

LLM_TIMEOUT = settings.LLM_TIMEOUT
"""Per-request timeout (seconds)"""


# ============================================================================
# Retry Configuration
# ============================================================================

LLM_RETRY_MAX_ATTEMPTS = settings.LLM_MAX_RETRIES
"""Max attempts for transient provider failures"""

LLM_RETRY_MIN_WAIT = 1
LLM_RETRY_MAX_WAIT = 10
