"""
Pytest configuration and fixtures for testing.

Everything runs against an in-memory SQLite database and scripted fake
models, so no Postgres, network or API keys are needed.
"""
import re
from typing import Any, Callable, List, Optional, Sequence, Union

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from agentloom.core.database import make_session_factory
from agentloom.models.dto.messages import ChatMessage, StreamChunk
from agentloom.services.embeddings.base import EmbeddingProvider
from agentloom.services.llm.clients.base import BaseLLMClient
from agentloom.services.memory.archival import ArchivalMemory
from agentloom.services.memory.memory_blocks import MemoryBlockManager

# Import all models so SQLModel.metadata knows every table
import agentloom.models.database  # noqa: F401

Scripted = Union[str, ChatMessage, BaseException]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeChatModel(BaseLLMClient):
    """
    Scripted model client.

    Replies come from ``responses`` in order (str -> assistant message,
    exception -> raised), or from ``handler(messages, tools)`` when given.
    Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        responses: Optional[Sequence[Scripted]] = None,
        handler: Optional[Callable[[List[ChatMessage], Any], Scripted]] = None,
        model: str = "fake-model",
    ):
        self.model = model
        self._responses = list(responses or [])
        self.handler = handler
        self.calls: List[dict] = []

    async def ainvoke(self, messages, tools=None, temperature=None, max_tokens=None) -> ChatMessage:
        history = [ChatMessage.coerce(m) for m in messages]
        self.calls.append({"messages": history, "tools": tools})

        if self.handler is not None:
            response = self.handler(history, tools)
        elif self._responses:
            response = self._responses.pop(0)
        else:
            raise AssertionError("FakeChatModel ran out of scripted responses")

        if isinstance(response, BaseException):
            raise response
        if isinstance(response, str):
            response = ChatMessage.assistant(response)
        return response

    async def astream(self, messages, tools=None, temperature=None, max_tokens=None):
        message = await self.ainvoke(messages, tools, temperature, max_tokens)
        for word in re.findall(r"\S+\s*", message.content):
            yield StreamChunk(kind="content", content=word)


class FakeEmbeddingProvider(EmbeddingProvider):
    """One dimension per vocabulary word: 1.0 when the text mentions it."""

    VOCABULARY = ("coffee", "dog", "python", "travel", "music", "summary")

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[str] = []

    def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        lowered = text.lower()
        return [1.0 if word in lowered else 0.0 for word in self.VOCABULARY]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_text(t) if t and t.strip() else [] for t in texts]

    @property
    def dimension(self) -> int:
        return len(self.VOCABULARY)

    @property
    def model_name(self) -> str:
        return "fake-embedding"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture(name="db_engine")
def db_engine_fixture():
    """Fresh in-memory database per test (one shared connection)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    try:
        yield engine
    finally:
        SQLModel.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """get_db_session-style context manager bound to the test database."""
    return make_session_factory(db_engine)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

@pytest.fixture
def make_llm() -> Callable[..., FakeChatModel]:
    return FakeChatModel


@pytest.fixture
def embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def failing_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider(fail=True)


@pytest.fixture
def memory_manager(session_factory) -> MemoryBlockManager:
    return MemoryBlockManager(session_factory=session_factory, default_limit=200)


@pytest.fixture
def archival(session_factory, embedder) -> ArchivalMemory:
    return ArchivalMemory(session_factory=session_factory, embedding_provider=embedder)
