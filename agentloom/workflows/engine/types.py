"""Public value types of the graph engine."""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple, Union

START = "__start__"
END = "__end__"
INTERRUPT_KEY = "__interrupt__"


@dataclass
class Command:
    """
    Control directive.

    Returned by a node: ``update`` is merged like a normal return value and
    ``goto`` replaces edge resolution for this step (must be one of the
    node's declared ``ends``).
    Passed as invoke input: ``resume`` is delivered to the waiting node.
    ``interrupt_id`` names the waiting checkpoint being answered (see
    ``StateSnapshot.interrupt_id``); a resume that names no interrupt, or
    one that was already answered, raises ResumeError.
    """
    update: Optional[Dict[str, Any]] = None
    goto: Optional[str] = None
    resume: Any = None
    interrupt_id: Optional[str] = None


@dataclass
class RunConfig:
    """Per-run configuration handed to every node."""
    thread_id: str
    checkpoint_id: Optional[str] = None
    recursion_limit: Optional[int] = None
    configurable: Dict[str, Any] = field(default_factory=dict)
    abort_signal: Optional[asyncio.Event] = None

    @classmethod
    def coerce(cls, config: Union["RunConfig", Mapping[str, Any]]) -> "RunConfig":
        """Accept a RunConfig or a plain dict ({"thread_id": ..., "configurable": {...}})."""
        if isinstance(config, RunConfig):
            return config
        data = dict(config)
        configurable = dict(data.pop("configurable", {}) or {})
        thread_id = data.pop("thread_id", None) or configurable.pop("thread_id", None)
        if not thread_id:
            raise ValueError("thread_id is required in run config")
        checkpoint_id = data.pop("checkpoint_id", None) or configurable.pop("checkpoint_id", None)
        return cls(thread_id=thread_id, checkpoint_id=checkpoint_id, configurable=configurable, **data)

    def get(self, key: str, default: Any = None) -> Any:
        return self.configurable.get(key, default)

    def for_thread(self) -> "RunConfig":
        """Same run settings, pointed at the thread tip instead of a fixed checkpoint."""
        return RunConfig(
            thread_id=self.thread_id,
            recursion_limit=self.recursion_limit,
            configurable=self.configurable,
            abort_signal=self.abort_signal,
        )


@dataclass(frozen=True)
class StateSnapshot:
    """State of a thread at one checkpoint."""
    values: Dict[str, Any]
    next: Tuple[str, ...]
    checkpoint_id: Optional[str]
    parent_checkpoint_id: Optional[str]
    created_at: Optional[datetime]
    metadata: Dict[str, Any]
    interrupt: Optional[Dict[str, Any]] = None

    @property
    def is_waiting(self) -> bool:
        return self.interrupt is not None

    @property
    def interrupt_id(self) -> Optional[str]:
        """Id to put in Command(interrupt_id=...) when answering this interrupt."""
        return self.checkpoint_id if self.interrupt is not None else None


@dataclass(frozen=True)
class StepEvent:
    """Emitted after a node's output was merged and checkpointed."""
    node: str
    update: Dict[str, Any]
    values: Dict[str, Any]
    checkpoint_id: str
    step: int


@dataclass(frozen=True)
class InterruptEvent:
    """Emitted when a node suspended awaiting external input."""
    node: str
    payload: Any
    checkpoint_id: str


class InterruptNode(ABC):
    """
    Two-phase node that pauses for external input.

    ``suspend`` runs first and returns the payload shown to the caller; the
    engine then persists a waiting marker and stops. A later resume calls
    ``resume`` with the external value, as a fresh call, and its return
    value is handled like any node output (update dict or Command).
    Both phases must be safe to re-run.
    """

    @abstractmethod
    async def suspend(self, state: Dict[str, Any], config: RunConfig) -> Any:
        ...

    @abstractmethod
    async def resume(self, state: Dict[str, Any], value: Any, config: RunConfig) -> Union[Dict[str, Any], Command, None]:
        ...
