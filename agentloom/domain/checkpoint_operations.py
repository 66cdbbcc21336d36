"""Domain operations for workflow checkpoints.

Rows are append-only; nothing here updates or deletes a checkpoint.
"""

from typing import Any, List, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlmodel import select

from agentloom.domain.exceptions import EntityNotFoundError
from agentloom.models.database.checkpoints import Checkpoint


class CheckpointOperations:
    """Domain operations for Checkpoint snapshots."""

    @staticmethod
    def create(
        session: Session,
        thread_id: str,
        parent_checkpoint_id: Optional[str],
        state: dict[str, Any],
        source_node: Optional[str] = None,
        next_node: Optional[str] = None,
        interrupt: Optional[dict[str, Any]] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> Checkpoint:
        """
        Append a checkpoint to a thread.

        The parent (when given) must belong to the same thread. It does not
        have to be the current tip: writing under an older parent forks.
        Callers serialize writes per thread, so max(seq)+1 is race-free.
        """
        if parent_checkpoint_id is not None:
            parent = session.get(Checkpoint, (thread_id, parent_checkpoint_id))
            if parent is None:
                raise EntityNotFoundError("Checkpoint", parent_checkpoint_id)

        current_max = session.exec(
            select(func.max(Checkpoint.seq)).where(Checkpoint.thread_id == thread_id)
        ).one()
        seq = (current_max or 0) + 1

        checkpoint = Checkpoint(
            thread_id=thread_id,
            checkpoint_id=str(uuid4()),
            parent_checkpoint_id=parent_checkpoint_id,
            seq=seq,
            state=state,
            source_node=source_node,
            next_node=next_node,
            interrupt=interrupt,
            meta=meta or {},
        )
        session.add(checkpoint)
        session.flush()
        return checkpoint

    @staticmethod
    def get(session: Session, thread_id: str, checkpoint_id: str) -> Optional[Checkpoint]:
        """Get a specific checkpoint."""
        return session.get(Checkpoint, (thread_id, checkpoint_id))

    @staticmethod
    def get_latest(session: Session, thread_id: str) -> Optional[Checkpoint]:
        """Most recently written checkpoint (tip of the active branch)."""
        stmt = select(Checkpoint).where(
            Checkpoint.thread_id == thread_id
        ).order_by(Checkpoint.seq.desc()).limit(1)
        return session.exec(stmt).first()

    @staticmethod
    def list_by_thread(session: Session, thread_id: str, limit: Optional[int] = None) -> List[Checkpoint]:
        """All checkpoints of a thread, newest first (every branch)."""
        stmt = select(Checkpoint).where(
            Checkpoint.thread_id == thread_id
        ).order_by(Checkpoint.seq.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(session.exec(stmt).all())

    @staticmethod
    def get_lineage(session: Session, thread_id: str, checkpoint_id: str) -> List[Checkpoint]:
        """Walk parent links from checkpoint_id back to the root (newest first)."""
        by_id = {cp.checkpoint_id: cp for cp in CheckpointOperations.list_by_thread(session, thread_id)}
        if checkpoint_id not in by_id:
            raise EntityNotFoundError("Checkpoint", checkpoint_id)

        lineage = []
        current: Optional[str] = checkpoint_id
        while current is not None:
            checkpoint = by_id[current]
            lineage.append(checkpoint)
            current = checkpoint.parent_checkpoint_id
        return lineage
