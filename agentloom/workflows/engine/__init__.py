"""Stateful graph engine: definitions, reducers, checkpointing and execution."""
from .checkpointer import BaseCheckpointSaver, CheckpointTuple, InMemoryCheckpointSaver, SQLCheckpointSaver
from .errors import (
    GraphCancelledError,
    GraphError,
    GraphRecursionError,
    GraphValidationError,
    InvalidRouteError,
    InvalidUpdateError,
    ResumeError,
    ThreadNotFoundError,
)
from .executor import CompiledGraph
from .graph import GraphDefinition, StateGraph
from .reducers import Reducer, append, get_reducer, register_reducer, replace, signed_accumulate
from .state import StateSchema
from .types import (
    END,
    INTERRUPT_KEY,
    START,
    Command,
    InterruptEvent,
    InterruptNode,
    RunConfig,
    StateSnapshot,
    StepEvent,
)

__all__ = [
    "BaseCheckpointSaver",
    "CheckpointTuple",
    "InMemoryCheckpointSaver",
    "SQLCheckpointSaver",
    "GraphCancelledError",
    "GraphError",
    "GraphRecursionError",
    "GraphValidationError",
    "InvalidRouteError",
    "InvalidUpdateError",
    "ResumeError",
    "ThreadNotFoundError",
    "CompiledGraph",
    "GraphDefinition",
    "StateGraph",
    "Reducer",
    "append",
    "get_reducer",
    "register_reducer",
    "replace",
    "signed_accumulate",
    "StateSchema",
    "END",
    "INTERRUPT_KEY",
    "START",
    "Command",
    "InterruptEvent",
    "InterruptNode",
    "RunConfig",
    "StateSnapshot",
    "StepEvent",
]
