"""
Database connection and session management.

Synchronous SQLAlchemy engine built from settings.DATABASE_URL.
Postgres URLs are rewritten to the psycopg3 driver; SQLite is supported for
local runs and tests.
"""

import logging
from contextlib import contextmanager
from typing import Callable, ContextManager, Generator
from urllib.parse import urlparse

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel, create_engine

from agentloom.core.config import settings

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ContextManager[Session]]


def normalize_database_url(url: str) -> str:
    """Ensure Postgres URLs specify the psycopg (v3) driver."""
    if not url:
        raise ValueError("DATABASE_URL could not be constructed from settings")
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


def build_engine(url: str) -> Engine:
    """Create an engine for the given URL with dialect-appropriate options."""
    url = normalize_database_url(url)
    parsed = urlparse(url)

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=settings.DB_ECHO,
        )
    else:
        engine = create_engine(
            url,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
            echo=settings.DB_ECHO,
        )

    # Never log the password
    logger.info(f"Database engine configured: {parsed.scheme} host={parsed.hostname} db={parsed.path.lstrip('/')}")
    return engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    class_=Session,
    expire_on_commit=False,  # Objects stay readable after the scope closes
    autoflush=False,         # Explicit control over when to flush
)


def make_session_factory(bind: Engine) -> SessionFactory:
    """Build a get_db_session-style context manager bound to another engine."""
    local = sessionmaker(bind=bind, class_=Session, expire_on_commit=False, autoflush=False)

    @contextmanager
    def session_scope() -> Generator[Session, None, None]:
        session = local()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return session_scope


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside request handlers.
    Used by workflow nodes, the checkpointer and memory services.
    Auto-commits on success, auto-rolls back on exception.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine = engine) -> None:
    """Create all tables directly (SQLite/dev). Postgres deployments use Alembic."""
    # Import models so they register on SQLModel.metadata
    from agentloom.models.database import (  # noqa: F401
        ArchivalEntry,
        Checkpoint,
        MemoryBlock,
        MemoryBlockHistory,
    )

    SQLModel.metadata.create_all(bind)
    logger.info("✅ Database tables created")
