"""LLM Clients Package - Provider implementations."""
from .base import BaseLLMClient, StructuredOutput, StructuredOutputError, collect_stream
from .anthropic import AnthropicClient
from .openai import OpenAIClient

__all__ = [
    "BaseLLMClient",
    "StructuredOutput",
    "StructuredOutputError",
    "collect_stream",
    "AnthropicClient",
    "OpenAIClient",
]
