"""OpenAI embedding provider implementation."""

import logging
from typing import Optional

from openai import APIConnectionError, APITimeoutError, OpenAI, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .base import EmbeddingProvider

logger = logging.getLogger(__name__)

_TRANSIENT = (APIConnectionError, APITimeoutError, RateLimitError)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI (or OpenAI-compatible) embeddings endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        base_url: Optional[str] = None,
    ):
        self.client = OpenAI(api_key=api_key, base_url=base_url or None)
        self._model = model
        self._dimension = dimension

    @retry(
        retry=retry_if_exception_type(_TRANSIENT),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _create(self, payload):
        return self.client.embeddings.create(model=self._model, input=payload)

    def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        response = self._create(text)
        return response.data[0].embedding

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        # Filter empty texts and track indices
        valid = [(i, text) for i, text in enumerate(texts) if text and text.strip()]
        if not valid:
            return [[] for _ in texts]

        response = self._create([text for _, text in valid])

        # Map results back to original positions
        results: list[list[float]] = [[] for _ in texts]
        for (idx, _), embedding_data in zip(valid, response.data):
            results[idx] = embedding_data.embedding
        logger.debug(f"Embedded {len(valid)}/{len(texts)} texts with {self._model}")
        return results

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model
