"""
State reducers.

A reducer merges a node's partial output into accumulated state:
``merged = reducer(previous, incoming)``. Each carries its own zero value
so a schema can build initial state without per-field special cases.
"""
import copy
from typing import Any, Callable, Dict

from .errors import InvalidUpdateError


class Reducer:
    """Named merge function plus zero-value factory."""

    def __init__(self, name: str, fn: Callable[[Any, Any], Any], zero: Callable[[], Any]):
        self.name = name
        self.fn = fn
        self._zero = zero

    def __call__(self, previous: Any, incoming: Any) -> Any:
        return self.fn(previous, incoming)

    def zero(self) -> Any:
        return self._zero()

    def with_default(self, value: Any) -> "Reducer":
        """Same merge rule, different zero value (deep-copied per state)."""
        return Reducer(self.name, self.fn, lambda: copy.deepcopy(value))

    def __repr__(self) -> str:
        return f"Reducer({self.name!r})"


def _replace(previous: Any, incoming: Any) -> Any:
    # None means "not provided"
    return previous if incoming is None else incoming


def _append(previous: Any, incoming: Any) -> Any:
    if not isinstance(incoming, (list, tuple)):
        raise InvalidUpdateError(f"append reducer expects a list, got {type(incoming).__name__}")
    return list(previous or []) + list(incoming)


def _signed_accumulate(previous: Any, incoming: Any) -> Any:
    # Negative = add this magnitude; non-negative = set absolute value.
    if incoming is None:
        return previous
    if isinstance(incoming, bool) or not isinstance(incoming, (int, float)):
        raise InvalidUpdateError(f"signed_accumulate reducer expects a number, got {type(incoming).__name__}")
    return (previous or 0) - incoming if incoming < 0 else incoming


replace = Reducer("replace", _replace, lambda: None)
append = Reducer("append", _append, list)
signed_accumulate = Reducer("signed_accumulate", _signed_accumulate, lambda: 0)

REDUCERS: Dict[str, Reducer] = {r.name: r for r in (replace, append, signed_accumulate)}


def get_reducer(name: str) -> Reducer:
    try:
        return REDUCERS[name]
    except KeyError:
        raise KeyError(f"Unknown reducer '{name}'. Registered: {sorted(REDUCERS)}") from None


def register_reducer(reducer: Reducer) -> Reducer:
    REDUCERS[reducer.name] = reducer
    return reducer
