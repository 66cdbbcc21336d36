"""Abstract base class for embedding providers."""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """
    Turns text into vectors for archival memory search.

    Implementations are synchronous; async callers wrap them with
    ``asyncio.to_thread``.
    """

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding for single text."""

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts (empty inputs map to [])."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return embedding dimension."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return model identifier stored alongside each vector."""
