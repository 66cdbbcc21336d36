"""create checkpoint and memory tables

Revision ID: 5a1f0c2e9b73
Revises:
Create Date: 2026-10-19 09:12:44.318201

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel.sql.sqltypes
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5a1f0c2e9b73'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # Workflow checkpoints (append-only tree per thread)
    op.create_table(
        'checkpoints',
        sa.Column('thread_id', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('checkpoint_id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column('parent_checkpoint_id', sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column('seq', sa.Integer(), nullable=False),
        sa.Column('state', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('source_node', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=True),
        sa.Column('next_node', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=True),
        sa.Column('interrupt', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('meta', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('thread_id', 'checkpoint_id'),
        sa.UniqueConstraint('thread_id', 'seq', name='uq_checkpoints_thread_seq'),
    )
    op.create_index('ix_checkpoints_parent_checkpoint_id', 'checkpoints', ['parent_checkpoint_id'])
    op.create_index('ix_checkpoints_created_at', 'checkpoints', ['created_at'])

    # Core memory blocks
    op.create_table(
        'memory_blocks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('agent_id', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False, server_default=''),
        sa.Column('label', sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('limit', sa.Integer(), nullable=False),
        sa.Column('readonly', sa.Boolean(), nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('meta', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'agent_id', 'label', name='uq_memory_blocks_user_agent_label'),
    )
    op.create_index('ix_memory_blocks_user_id', 'memory_blocks', ['user_id'])

    op.create_table(
        'memory_block_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('block_id', sa.Uuid(), nullable=True),
        sa.Column('user_id', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('agent_id', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False, server_default=''),
        sa.Column('label', sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column('event', sa.Enum('APPEND', 'REPLACE', 'RETHINK', 'DELETE', name='blockevent'), nullable=False),
        sa.Column('previous_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['block_id'], ['memory_blocks.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_memory_block_history_block_id', 'memory_block_history', ['block_id'])
    op.create_index('ix_memory_block_history_user_id', 'memory_block_history', ['user_id'])
    op.create_index('ix_memory_block_history_event', 'memory_block_history', ['event'])
    op.create_index('ix_memory_block_history_created_at', 'memory_block_history', ['created_at'])

    # Archival memory
    op.create_table(
        'archival_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column('session_id', sqlmodel.sql.sqltypes.AutoString(length=255), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('context', sa.Text(), nullable=True),
        sa.Column(
            'memory_type',
            sa.Enum('SUMMARY', 'EVENT', 'INTERACTION', 'NOTE', 'RELATIONSHIP', name='archivalmemorytype'),
            nullable=False,
        ),
        sa.Column('importance', sa.Float(), nullable=False),
        sa.Column('meta', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_reason', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('embedding', Vector(1536), nullable=True),
        sa.Column('embedding_model', sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_archival_entries_user_id', 'archival_entries', ['user_id'])
    op.create_index('ix_archival_entries_session_id', 'archival_entries', ['session_id'])
    op.create_index('ix_archival_entries_memory_type', 'archival_entries', ['memory_type'])
    op.create_index('ix_archival_entries_is_deleted', 'archival_entries', ['is_deleted'])
    op.create_index(
        'ix_archival_entries_embedding',
        'archival_entries',
        ['embedding'],
        postgresql_using='ivfflat',
        postgresql_with={'lists': 100},
        postgresql_ops={'embedding': 'vector_cosine_ops'},
    )


def downgrade() -> None:
    op.drop_index('ix_archival_entries_embedding', table_name='archival_entries')
    op.drop_table('archival_entries')
    op.drop_table('memory_block_history')
    op.drop_table('memory_blocks')
    op.drop_table('checkpoints')
    op.execute("DROP TYPE IF EXISTS archivalmemorytype")
    op.execute("DROP TYPE IF EXISTS blockevent")
