"""LLM Infrastructure Package - the model capability used by workflows and memory."""
from .factory import get_llm_client, get_llm_client_for
from .providers import ModelProvider, ModelSpec
from .clients import (
    AnthropicClient,
    BaseLLMClient,
    OpenAIClient,
    StructuredOutput,
    StructuredOutputError,
)

__all__ = [
    "get_llm_client",
    "get_llm_client_for",
    "ModelProvider",
    "ModelSpec",
    "BaseLLMClient",
    "AnthropicClient",
    "OpenAIClient",
    "StructuredOutput",
    "StructuredOutputError",
]
