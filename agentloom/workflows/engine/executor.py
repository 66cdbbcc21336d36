"""
Graph executor.

Runs a GraphDefinition one node at a time per thread:

    resolve node -> execute -> merge via reducers -> checkpoint -> route

Interrupt nodes stop the loop after persisting a waiting marker; a later
``Command(resume=..., interrupt_id=...)`` naming that marker re-enters the
node through ``resume``. Each marker can be answered once.
"""
import asyncio
import copy
import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Tuple, Union

from agentloom.core.config import settings
from agentloom.core.locks import KeyedLocks
from .checkpointer import BaseCheckpointSaver, CheckpointTuple, InMemoryCheckpointSaver
from .errors import (
    GraphCancelledError,
    GraphRecursionError,
    InvalidRouteError,
    InvalidUpdateError,
    ResumeError,
    ThreadNotFoundError,
)
from .graph import GraphDefinition, NodeSpec
from .types import END, INTERRUPT_KEY, START, Command, InterruptEvent, RunConfig, StateSnapshot, StepEvent

logger = logging.getLogger(__name__)

GraphInput = Union[Mapping[str, Any], Command, None]
GraphEvent = Union[StepEvent, InterruptEvent]


class CompiledGraph:
    """Executable, checkpointed state machine."""

    def __init__(
        self,
        definition: GraphDefinition,
        checkpointer: Optional[BaseCheckpointSaver] = None,
        recursion_limit: Optional[int] = None,
        name: Optional[str] = None,
        thread_locks: Optional[KeyedLocks] = None,
    ):
        self.definition = definition
        self.schema = definition.schema
        self.checkpointer = checkpointer or InMemoryCheckpointSaver()
        self.recursion_limit = recursion_limit or settings.GRAPH_RECURSION_LIMIT
        self.name = name or definition.schema.name
        self._thread_locks = thread_locks or KeyedLocks()

    # ═══════════════════════════════════════════════════════════════════
    # Public API
    # ═══════════════════════════════════════════════════════════════════

    async def ainvoke(self, input: GraphInput, config: Union[RunConfig, Mapping[str, Any]]) -> Dict[str, Any]:
        """
        Run until END or an interrupt; return the thread's state.

        When the run stopped at an interrupt the returned dict also carries
        ``"__interrupt__": [payload]``.
        """
        cfg = RunConfig.coerce(config)
        interrupts: List[Any] = []
        async for event in self.astream(input, cfg):
            if isinstance(event, InterruptEvent):
                interrupts.append(event.payload)

        values = dict(self.get_state(cfg.for_thread()).values)
        if interrupts:
            values[INTERRUPT_KEY] = interrupts
        return values

    async def astream(self, input: GraphInput, config: Union[RunConfig, Mapping[str, Any]]) -> AsyncIterator[GraphEvent]:
        """
        Yield a StepEvent per executed node (and an InterruptEvent on suspend).

        input:
            dict     start a new run from START, merging the dict into state
            None     continue from the checkpoint (e.g. after update_state)
            Command  resume a thread waiting on an interrupt; the interrupt is
                     named by ``Command.interrupt_id`` or a pinned ``checkpoint_id``
        A ``checkpoint_id`` in the config forks from that checkpoint.
        """
        cfg = RunConfig.coerce(config)
        limit = cfg.recursion_limit or self.recursion_limit

        async with self._thread_locks.hold(cfg.thread_id):
            base = self._load(cfg)

            if isinstance(input, Command):
                async for event in self._resume(base, input, cfg, limit):
                    yield event
                return

            if input is None:
                if base is None:
                    raise ThreadNotFoundError(f"Thread '{cfg.thread_id}' has no checkpoints to continue from")
                if base.interrupt:
                    yield InterruptEvent(base.interrupt["node"], base.interrupt.get("payload"), base.checkpoint_id)
                    return
                state, parent = base.state, base.checkpoint_id
                next_node = self._next_from_checkpoint(base)
            else:
                previous = base.state if base is not None else self.schema.initial_state()
                state = self.schema.apply(previous, input)
                parent = self.checkpointer.put(
                    cfg.thread_id,
                    base.checkpoint_id if base is not None else None,
                    state,
                    source_node=START,
                    metadata={"source": "input", "step": -1, "writes": {START: dict(input)}},
                )
                next_node = self._resolve_next(START, state)

            async for event in self._loop(cfg, state, parent, next_node, limit):
                yield event

    def get_state(self, config: Union[RunConfig, Mapping[str, Any]]) -> StateSnapshot:
        """Merged state and routing info at the latest (or given) checkpoint."""
        cfg = RunConfig.coerce(config)
        checkpoint = self._load(cfg, required=bool(cfg.checkpoint_id))
        if checkpoint is None:
            return StateSnapshot(
                values=self.schema.initial_state(),
                next=(),
                checkpoint_id=None,
                parent_checkpoint_id=None,
                created_at=None,
                metadata={},
            )
        return self._snapshot(checkpoint)

    def get_state_history(self, config: Union[RunConfig, Mapping[str, Any]]) -> List[StateSnapshot]:
        """Snapshots on the active branch, newest first."""
        cfg = RunConfig.coerce(config)
        return [self._snapshot(cp) for cp in self.checkpointer.lineage(cfg.thread_id, cfg.checkpoint_id)]

    async def aupdate_state(
        self,
        config: Union[RunConfig, Mapping[str, Any]],
        values: Mapping[str, Any],
        as_node: Optional[str] = None,
    ) -> str:
        """
        Write a new checkpoint with ``values`` merged in, as if ``as_node``
        had returned them. With a ``checkpoint_id`` in the config this forks
        from that checkpoint. Returns the new checkpoint id.
        """
        cfg = RunConfig.coerce(config)
        if as_node is not None and as_node not in self.definition.nodes and as_node != START:
            raise InvalidUpdateError(f"Unknown node '{as_node}'")

        async with self._thread_locks.hold(cfg.thread_id):
            base = self._load(cfg, required=True)
            state = self.schema.apply(base.state, values)
            return self.checkpointer.put(
                cfg.thread_id,
                base.checkpoint_id,
                state,
                source_node=as_node or base.source_node,
                next_node=None if as_node else base.next_node,
                metadata={"source": "update", "writes": {as_node or "__update__": dict(values)}},
            )

    # ═══════════════════════════════════════════════════════════════════
    # Execution loop
    # ═══════════════════════════════════════════════════════════════════

    async def _loop(
        self,
        cfg: RunConfig,
        state: Dict[str, Any],
        parent: str,
        next_node: str,
        limit: int,
        step: int = 0,
    ) -> AsyncIterator[GraphEvent]:
        while next_node != END:
            if step >= limit:
                raise GraphRecursionError(
                    f"Recursion limit of {limit} reached without hitting END (thread {cfg.thread_id}, node '{next_node}')"
                )
            self._check_abort(cfg)
            spec = self.definition.nodes[next_node]

            if spec.is_interrupt:
                payload = await self._run_cancellable(spec.action.suspend(copy.deepcopy(state), cfg), cfg)
                checkpoint_id = self.checkpointer.put(
                    cfg.thread_id,
                    parent,
                    state,
                    next_node=spec.name,
                    interrupt={"node": spec.name, "payload": payload, "status": "waiting"},
                    metadata={"source": "interrupt", "step": step},
                )
                logger.info(f"⏸️  [{self.name}] thread {cfg.thread_id} waiting at '{spec.name}'")
                yield InterruptEvent(spec.name, payload, checkpoint_id)
                return

            logger.debug(f"[{self.name}] step {step}: running '{spec.name}'")
            result = await self._execute(spec, state, cfg)
            update, goto = self._split(spec, result)
            state = self.schema.apply(state, update)
            parent = self.checkpointer.put(
                cfg.thread_id,
                parent,
                state,
                source_node=spec.name,
                next_node=goto,
                metadata={"source": "loop", "step": step, "writes": {spec.name: update}},
            )
            yield StepEvent(spec.name, update, copy.deepcopy(state), parent, step)

            next_node = goto or self._resolve_next(spec.name, state)
            step += 1

        logger.debug(f"[{self.name}] thread {cfg.thread_id} reached END after {step} steps")

    async def _resume(
        self,
        base: Optional[CheckpointTuple],
        command: Command,
        cfg: RunConfig,
        limit: int,
    ) -> AsyncIterator[GraphEvent]:
        if base is None:
            raise ThreadNotFoundError(f"Thread '{cfg.thread_id}' not found")

        target = command.interrupt_id or cfg.checkpoint_id
        if command.interrupt_id and cfg.checkpoint_id and command.interrupt_id != cfg.checkpoint_id:
            raise ResumeError(
                f"Command targets interrupt {command.interrupt_id} but the config pins checkpoint {cfg.checkpoint_id}"
            )

        if target is not None:
            # The waiting point the caller saw must still be the tip.
            latest = self.checkpointer.get(cfg.thread_id)
            if latest is None or latest.checkpoint_id != target:
                raise ResumeError(f"Interrupt {target} on thread {cfg.thread_id} was already resumed")
            base = latest
        if not base.interrupt:
            raise ResumeError(f"Thread {cfg.thread_id} is not waiting on an interrupt")
        if target is None:
            raise ResumeError(
                f"Resume on thread {cfg.thread_id} must name its interrupt "
                f"(Command.interrupt_id or a checkpoint_id in the config)"
            )

        spec = self.definition.nodes[base.interrupt["node"]]
        state = self.schema.apply(base.state, command.update) if command.update else base.state

        self._check_abort(cfg)
        result = await self._run_cancellable(spec.action.resume(copy.deepcopy(state), command.resume, cfg), cfg)
        update, goto = self._split(spec, result)
        state = self.schema.apply(state, update)
        parent = self.checkpointer.put(
            cfg.thread_id,
            base.checkpoint_id,
            state,
            source_node=spec.name,
            next_node=goto,
            metadata={"source": "resume", "step": 0, "writes": {spec.name: update}},
        )
        logger.info(f"▶️  [{self.name}] thread {cfg.thread_id} resumed at '{spec.name}'")
        yield StepEvent(spec.name, update, copy.deepcopy(state), parent, 0)

        next_node = goto or self._resolve_next(spec.name, state)
        async for event in self._loop(cfg.for_thread(), state, parent, next_node, limit, step=1):
            yield event

    async def _execute(self, spec: NodeSpec, state: Dict[str, Any], cfg: RunConfig) -> Any:
        args = (copy.deepcopy(state), cfg) if spec.takes_config else (copy.deepcopy(state),)
        if asyncio.iscoroutinefunction(spec.action):
            return await self._run_cancellable(spec.action(*args), cfg)
        return await self._run_cancellable(asyncio.to_thread(spec.action, *args), cfg)

    async def _run_cancellable(self, awaitable, cfg: RunConfig) -> Any:
        """Await ``awaitable`` unless the abort signal fires first."""
        signal = cfg.abort_signal
        if signal is None:
            return await awaitable

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done and not signal.is_set():
            return task.result()

        # Aborted: whatever the node produced (or raised) is discarded
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"[{self.name}] aborted node on thread {cfg.thread_id} ended with {e!r}")
        raise GraphCancelledError(f"Run on thread {cfg.thread_id} aborted")

    def _check_abort(self, cfg: RunConfig) -> None:
        if cfg.abort_signal is not None and cfg.abort_signal.is_set():
            raise GraphCancelledError(f"Run on thread {cfg.thread_id} aborted")

    # ═══════════════════════════════════════════════════════════════════
    # Routing and helpers
    # ═══════════════════════════════════════════════════════════════════

    def _split(self, spec: NodeSpec, result: Any) -> Tuple[Dict[str, Any], Optional[str]]:
        if result is None:
            return {}, None
        if isinstance(result, Command):
            if result.goto is not None and result.goto not in spec.ends:
                raise InvalidRouteError(
                    f"Node '{spec.name}' issued goto '{result.goto}', declared ends are {list(spec.ends)}"
                )
            return dict(result.update or {}), result.goto
        if isinstance(result, Mapping):
            return dict(result), None
        raise InvalidUpdateError(f"Node '{spec.name}' returned {type(result).__name__}; expected dict or Command")

    def _resolve_next(self, source: str, state: Dict[str, Any]) -> str:
        definition = self.definition
        if source in definition.edges:
            return definition.edges[source]

        if source in definition.branches:
            branch = definition.branches[source]
            key = branch.router(state)
            if key not in branch.path_map:
                raise InvalidRouteError(
                    f"Router for '{source}' returned '{key}', declared targets are {list(branch.path_map)}"
                )
            return branch.path_map[key]

        raise InvalidRouteError(f"Node '{source}' has no outgoing edge and returned no Command")

    def _next_from_checkpoint(self, checkpoint: CheckpointTuple) -> str:
        if checkpoint.next_node:
            return checkpoint.next_node
        return self._resolve_next(checkpoint.source_node or START, checkpoint.state)

    def _load(self, cfg: RunConfig, required: bool = False) -> Optional[CheckpointTuple]:
        checkpoint = self.checkpointer.get(cfg.thread_id, cfg.checkpoint_id)
        if checkpoint is None and (required or cfg.checkpoint_id):
            target = cfg.checkpoint_id or "latest"
            raise ThreadNotFoundError(f"Checkpoint '{target}' not found on thread '{cfg.thread_id}'")
        return checkpoint

    def _snapshot(self, checkpoint: CheckpointTuple) -> StateSnapshot:
        if checkpoint.interrupt:
            next_nodes: Tuple[str, ...] = (checkpoint.interrupt["node"],)
        else:
            try:
                target = self._next_from_checkpoint(checkpoint)
            except InvalidRouteError:
                target = END
            next_nodes = () if target == END else (target,)

        values = self.schema.initial_state()
        values.update(checkpoint.state)
        return StateSnapshot(
            values=values,
            next=next_nodes,
            checkpoint_id=checkpoint.checkpoint_id,
            parent_checkpoint_id=checkpoint.parent_checkpoint_id,
            created_at=checkpoint.created_at,
            metadata=checkpoint.metadata,
            interrupt=checkpoint.interrupt,
        )
