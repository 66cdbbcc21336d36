"""Alembic environment configuration for synchronous migrations."""

from logging.config import fileConfig

from sqlalchemy import pool, create_engine
from sqlalchemy.engine import Connection

from alembic import context

from agentloom.core.config import settings
from agentloom.core.database import normalize_database_url

# Import all models for autogenerate
from agentloom.models.database.checkpoints import Checkpoint  # noqa: F401
from agentloom.models.database.memory_blocks import MemoryBlock, MemoryBlockHistory  # noqa: F401
from agentloom.models.database.archival import ArchivalEntry  # noqa: F401

# Import SQLModel's metadata
from sqlmodel import SQLModel

# Alembic Config object
config = context.config

# Interpret the config file for Python logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Set target metadata for autogenerate
target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=normalize_database_url(settings.get_migration_url()),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode (synchronous)."""
    connectable = create_engine(
        normalize_database_url(settings.get_migration_url()),
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        do_run_migrations(connection)

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
