"""Column types shared by the table models.

Postgres gets JSONB and pgvector; SQLite falls back to plain JSON so the
same models run in local development and the test suite.
"""

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

from agentloom.core.config import settings

JSONType = JSON().with_variant(JSONB(), "postgresql")


def embedding_type(dimensions: int = settings.EMBEDDING_DIMENSIONS):
    """pgvector column on Postgres, JSON list elsewhere."""
    return Vector(dimensions).with_variant(JSON(), "sqlite")
