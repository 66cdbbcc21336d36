"""
Graph definitions.

``StateGraph`` is the mutable builder; ``compile`` validates it into an
immutable ``GraphDefinition`` (plain maps of names to callables and
targets) and wraps that in the executor.
"""
import inspect
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Type, Union

from .errors import GraphValidationError
from .state import StateSchema
from .types import END, START, InterruptNode

Router = Callable[[Dict[str, Any]], str]


@dataclass(frozen=True)
class NodeSpec:
    name: str
    action: Any
    ends: Tuple[str, ...] = ()
    takes_config: bool = False

    @property
    def is_interrupt(self) -> bool:
        return isinstance(self.action, InterruptNode)


@dataclass(frozen=True)
class ConditionalEdge:
    source: str
    router: Router
    path_map: Mapping[str, str]


@dataclass(frozen=True)
class GraphDefinition:
    """Validated, immutable node/edge data consumed by the executor."""
    schema: StateSchema
    nodes: Mapping[str, NodeSpec]
    edges: Mapping[str, str]
    branches: Mapping[str, ConditionalEdge]

    def targets_of(self, source: str) -> Tuple[str, ...]:
        if source in self.edges:
            return (self.edges[source],)
        if source in self.branches:
            return tuple(dict.fromkeys(self.branches[source].path_map.values()))
        if source in self.nodes:
            return self.nodes[source].ends
        return ()


def _takes_config(action: Any) -> bool:
    try:
        params = [
            p for p in inspect.signature(action).parameters.values()
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
        ]
    except (TypeError, ValueError):
        return False
    return len(params) >= 2


class StateGraph:
    """Builder for a state machine over a TypedDict schema."""

    def __init__(self, state_schema: Union[Type, StateSchema]):
        self.schema = state_schema if isinstance(state_schema, StateSchema) else StateSchema.from_typed_dict(state_schema)
        self._nodes: Dict[str, NodeSpec] = {}
        self._edges: Dict[str, str] = {}
        self._branches: Dict[str, ConditionalEdge] = {}

    def add_node(self, name: str, action: Any, ends: Optional[Sequence[str]] = None) -> "StateGraph":
        """
        Register a node.

        Args:
            name: Unique node name
            action: ``fn(state)`` / ``fn(state, config)`` (sync or async), or an InterruptNode
            ends: Targets this node may choose with ``Command(goto=...)``
        """
        if name in (START, END):
            raise GraphValidationError(f"'{name}' is reserved")
        if name in self._nodes:
            raise GraphValidationError(f"Node '{name}' already exists")
        if not (callable(action) or isinstance(action, InterruptNode)):
            raise GraphValidationError(f"Node '{name}' action must be callable or an InterruptNode")

        takes_config = False if isinstance(action, InterruptNode) else _takes_config(action)
        self._nodes[name] = NodeSpec(name, action, tuple(ends or ()), takes_config)
        return self

    def _check_free(self, source: str) -> None:
        if source == END:
            raise GraphValidationError("END cannot have outgoing edges")
        if source in self._edges or source in self._branches:
            raise GraphValidationError(f"'{source}' already has an outgoing edge (no fan-out)")

    def add_edge(self, source: str, target: str) -> "StateGraph":
        self._check_free(source)
        self._edges[source] = target
        return self

    def set_entry_point(self, name: str) -> "StateGraph":
        return self.add_edge(START, name)

    def add_conditional_edges(
        self,
        source: str,
        router: Router,
        path_map: Union[Mapping[str, str], Iterable[str]],
    ) -> "StateGraph":
        """
        Route from ``source`` by calling ``router(state)``.

        ``path_map`` is the finite set of allowed targets: either a mapping
        of router result -> node, or a list of node names the router may
        return directly. Anything else fails at run time.
        """
        self._check_free(source)
        if path_map is None:
            raise GraphValidationError(f"Conditional edge from '{source}' must declare its targets")
        mapping = dict(path_map) if isinstance(path_map, Mapping) else {t: t for t in path_map}
        if not mapping:
            raise GraphValidationError(f"Conditional edge from '{source}' declares no targets")
        self._branches[source] = ConditionalEdge(source, router, MappingProxyType(mapping))
        return self

    def validate(self) -> GraphDefinition:
        known = set(self._nodes) | {END}

        if START not in self._edges and START not in self._branches:
            raise GraphValidationError("Graph has no entry point (add an edge from START)")

        for source, target in self._edges.items():
            if source != START and source not in self._nodes:
                raise GraphValidationError(f"Edge source '{source}' is not a node")
            if target not in known:
                raise GraphValidationError(f"Edge target '{target}' (from '{source}') is not a node")

        for source, branch in self._branches.items():
            if source != START and source not in self._nodes:
                raise GraphValidationError(f"Conditional edge source '{source}' is not a node")
            missing = [t for t in branch.path_map.values() if t not in known]
            if missing:
                raise GraphValidationError(f"Conditional edge from '{source}' targets unknown nodes: {missing}")

        for name, spec in self._nodes.items():
            missing = [t for t in spec.ends if t not in known]
            if missing:
                raise GraphValidationError(f"Node '{name}' declares unknown ends: {missing}")
            if name not in self._edges and name not in self._branches and not spec.ends:
                raise GraphValidationError(f"Node '{name}' has no outgoing edge and declares no ends")

        return GraphDefinition(
            schema=self.schema,
            nodes=MappingProxyType(dict(self._nodes)),
            edges=MappingProxyType(dict(self._edges)),
            branches=MappingProxyType(dict(self._branches)),
        )

    def compile(
        self,
        checkpointer=None,
        recursion_limit: Optional[int] = None,
        name: Optional[str] = None,
        thread_locks=None,
    ):
        """Validate and wrap in an executor. Graphs sharing a store should share ``thread_locks``."""
        from .executor import CompiledGraph

        return CompiledGraph(
            self.validate(),
            checkpointer=checkpointer,
            recursion_limit=recursion_limit,
            name=name,
            thread_locks=thread_locks,
        )
