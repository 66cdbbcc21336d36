"""Embedding services for semantic vector generation."""

from functools import lru_cache

from agentloom.core.config import settings
from .base import EmbeddingProvider
from .openai import OpenAIEmbeddingProvider


@lru_cache()
def get_embedding_provider() -> EmbeddingProvider:
    """Get configured embedding provider (singleton)."""
    if settings.EMBEDDING_PROVIDER != "openai":
        raise ValueError(f"Unsupported embedding provider: {settings.EMBEDDING_PROVIDER}")
    if not settings.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY is required for embedding generation")
    return OpenAIEmbeddingProvider(
        api_key=settings.OPENAI_API_KEY,
        model=settings.EMBEDDING_MODEL,
        dimension=settings.EMBEDDING_DIMENSIONS,
        base_url=settings.OPENAI_BASE_URL or None,
    )


__all__ = ["EmbeddingProvider", "OpenAIEmbeddingProvider", "get_embedding_provider"]
