"""
Checkpoint savers.

``SQLCheckpointSaver`` persists snapshots through CheckpointOperations and
is what services use. ``InMemoryCheckpointSaver`` keeps the same contract
in process memory for scripts and tests.

Savers are synchronous; the executor serializes all writes for a thread.
"""
import copy
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic_core import to_jsonable_python

from agentloom.core.database import SessionFactory, get_db_session
from agentloom.domain.checkpoint_operations import CheckpointOperations
from agentloom.domain.exceptions import EntityNotFoundError
from agentloom.models.database.checkpoints import Checkpoint
from agentloom.models.database.mixins.timestamp import utcnow


@dataclass(frozen=True)
class CheckpointTuple:
    thread_id: str
    checkpoint_id: str
    parent_checkpoint_id: Optional[str]
    state: Dict[str, Any]
    seq: int = 0
    source_node: Optional[str] = None
    next_node: Optional[str] = None
    interrupt: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


class BaseCheckpointSaver(ABC):
    """put / get / list over immutable per-thread snapshots."""

    @abstractmethod
    def put(
        self,
        thread_id: str,
        parent_checkpoint_id: Optional[str],
        state: Dict[str, Any],
        *,
        source_node: Optional[str] = None,
        next_node: Optional[str] = None,
        interrupt: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Append a snapshot; returns its checkpoint_id. Any existing parent may be used (fork)."""

    @abstractmethod
    def get(self, thread_id: str, checkpoint_id: Optional[str] = None) -> Optional[CheckpointTuple]:
        """Specific checkpoint, or the latest written one when checkpoint_id is omitted."""

    @abstractmethod
    def list(self, thread_id: str, limit: Optional[int] = None) -> List[CheckpointTuple]:
        """Every checkpoint of the thread, newest first."""

    def lineage(self, thread_id: str, checkpoint_id: Optional[str] = None) -> List[CheckpointTuple]:
        """Path from the given checkpoint (default: latest) back to the root."""
        current = self.get(thread_id, checkpoint_id)
        path = []
        while current is not None:
            path.append(current)
            if current.parent_checkpoint_id is None:
                break
            current = self.get(thread_id, current.parent_checkpoint_id)
        return path


class InMemoryCheckpointSaver(BaseCheckpointSaver):
    """Process-local saver. Snapshots are deep-copied in and out."""

    def __init__(self) -> None:
        self._threads: Dict[str, List[CheckpointTuple]] = {}
        self._lock = threading.Lock()

    def put(self, thread_id, parent_checkpoint_id, state, *, source_node=None, next_node=None, interrupt=None, metadata=None) -> str:
        with self._lock:
            history = self._threads.setdefault(thread_id, [])
            if parent_checkpoint_id is not None and not any(
                cp.checkpoint_id == parent_checkpoint_id for cp in history
            ):
                raise EntityNotFoundError("Checkpoint", parent_checkpoint_id)

            checkpoint = CheckpointTuple(
                thread_id=thread_id,
                checkpoint_id=str(uuid4()),
                parent_checkpoint_id=parent_checkpoint_id,
                state=copy.deepcopy(state),
                seq=len(history) + 1,
                source_node=source_node,
                next_node=next_node,
                interrupt=copy.deepcopy(interrupt),
                metadata=copy.deepcopy(metadata or {}),
                created_at=utcnow(),
            )
            history.append(checkpoint)
            return checkpoint.checkpoint_id

    def get(self, thread_id, checkpoint_id=None) -> Optional[CheckpointTuple]:
        with self._lock:
            history = self._threads.get(thread_id, [])
            if checkpoint_id is None:
                found = history[-1] if history else None
            else:
                found = next((cp for cp in history if cp.checkpoint_id == checkpoint_id), None)
            return copy.deepcopy(found)

    def list(self, thread_id, limit=None) -> List[CheckpointTuple]:
        with self._lock:
            items = list(reversed(self._threads.get(thread_id, [])))
        return copy.deepcopy(items[:limit] if limit is not None else items)


def _to_tuple(row: Checkpoint) -> CheckpointTuple:
    return CheckpointTuple(
        thread_id=row.thread_id,
        checkpoint_id=row.checkpoint_id,
        parent_checkpoint_id=row.parent_checkpoint_id,
        state=dict(row.state or {}),
        seq=row.seq,
        source_node=row.source_node,
        next_node=row.next_node,
        interrupt=row.interrupt,
        metadata=dict(row.meta or {}),
        created_at=row.created_at,
    )


class SQLCheckpointSaver(BaseCheckpointSaver):
    """Saver backed by the ``checkpoints`` table."""

    def __init__(self, session_factory: SessionFactory = get_db_session):
        self.session_factory = session_factory

    def put(self, thread_id, parent_checkpoint_id, state, *, source_node=None, next_node=None, interrupt=None, metadata=None) -> str:
        with self.session_factory() as session:
            row = CheckpointOperations.create(
                session,
                thread_id=thread_id,
                parent_checkpoint_id=parent_checkpoint_id,
                state=to_jsonable_python(state),
                source_node=source_node,
                next_node=next_node,
                interrupt=to_jsonable_python(interrupt) if interrupt is not None else None,
                meta=to_jsonable_python(metadata or {}),
            )
            return row.checkpoint_id

    def get(self, thread_id, checkpoint_id=None) -> Optional[CheckpointTuple]:
        with self.session_factory() as session:
            if checkpoint_id is None:
                row = CheckpointOperations.get_latest(session, thread_id)
            else:
                row = CheckpointOperations.get(session, thread_id, checkpoint_id)
            return _to_tuple(row) if row is not None else None

    def list(self, thread_id, limit=None) -> List[CheckpointTuple]:
        with self.session_factory() as session:
            return [_to_tuple(row) for row in CheckpointOperations.list_by_thread(session, thread_id, limit)]

    def lineage(self, thread_id, checkpoint_id=None) -> List[CheckpointTuple]:
        with self.session_factory() as session:
            if checkpoint_id is None:
                latest = CheckpointOperations.get_latest(session, thread_id)
                if latest is None:
                    return []
                checkpoint_id = latest.checkpoint_id
            try:
                rows = CheckpointOperations.get_lineage(session, thread_id, checkpoint_id)
            except EntityNotFoundError:
                return []
            return [_to_tuple(row) for row in rows]
