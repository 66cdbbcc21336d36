"""
LLM Client Factory - Provider selection and instantiation.

A registry keyed by ModelProvider; each provider implements BaseLLMClient.
"""
from typing import Dict, Optional, Type, Union

from agentloom.core.config import settings
from .clients.base import BaseLLMClient
from .clients.anthropic import AnthropicClient
from .clients.openai import OpenAIClient
from .providers import ModelProvider, ModelSpec

CLIENT_REGISTRY: Dict[ModelProvider, Type[BaseLLMClient]] = {
    ModelProvider.OPENAI: OpenAIClient,
    ModelProvider.ANTHROPIC: AnthropicClient,
}


def get_llm_client(
    provider: Union[ModelProvider, str, None] = None,
    model: Optional[str] = None,
) -> BaseLLMClient:
    """
    Factory function to get LLM client.

    Args:
        provider: Provider enum or its value (defaults to settings.LLM_PROVIDER)
        model: Override model (defaults to provider's config default)

    Returns:
        LLM client instance

    Raises:
        ValueError: If provider not recognized or API key missing
    """
    raw = provider or settings.LLM_PROVIDER
    try:
        key = ModelProvider(raw)
    except ValueError:
        raise ValueError(f"Unknown LLM provider: {raw}. Use one of: {[p.value for p in ModelProvider]}.") from None
    return CLIENT_REGISTRY[key](model=model)


def get_llm_client_for(model_id: Optional[str]) -> BaseLLMClient:
    """Build a client from a "provider:model" id (see ModelSpec.parse)."""
    spec = ModelSpec.parse(model_id)
    return get_llm_client(spec.provider, spec.model)
