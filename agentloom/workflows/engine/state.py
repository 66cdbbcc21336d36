"""
State schemas.

A schema is built from a TypedDict whose fields are annotated with
reducers::

    class ChatState(TypedDict, total=False):
        messages: Annotated[List[dict], append]
        progress: Annotated[float, signed_accumulate]
        status: Annotated[str, replace.with_default("idle")]
        title: str                      # no reducer -> replace, zero None

Merging is a fold over the update's keys through each field's reducer.
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Type

from typing_extensions import Annotated, NotRequired, Required, get_args, get_origin, get_type_hints

from .errors import InvalidUpdateError
from .reducers import Reducer, replace

_WRAPPERS = (NotRequired, Required)


@dataclass(frozen=True)
class Channel:
    """One state field: its annotation and reducer."""
    name: str
    annotation: Any
    reducer: Reducer

    def zero(self) -> Any:
        return self.reducer.zero()


class StateSchema:
    """Ordered set of channels with a generic merge step."""

    def __init__(self, channels: Mapping[str, Channel], name: str = "State"):
        self.channels: Dict[str, Channel] = dict(channels)
        self.name = name

    @classmethod
    def from_typed_dict(cls, typed_dict: Type) -> "StateSchema":
        hints = get_type_hints(typed_dict, include_extras=True)
        channels = {}
        for field_name, hint in hints.items():
            while get_origin(hint) in _WRAPPERS:
                hint = get_args(hint)[0]

            reducer = replace
            if get_origin(hint) is Annotated:
                for meta in hint.__metadata__:
                    if isinstance(meta, Reducer):
                        reducer = meta
                    elif callable(meta):
                        reducer = Reducer(getattr(meta, "__name__", "custom"), meta, lambda: None)
            channels[field_name] = Channel(field_name, hint, reducer)
        return cls(channels, name=typed_dict.__name__)

    def initial_state(self) -> Dict[str, Any]:
        return {name: channel.zero() for name, channel in self.channels.items()}

    def apply(self, state: Mapping[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
        """Return a new state with ``update`` folded in. ``state`` is not mutated."""
        unknown = [key for key in update if key not in self.channels]
        if unknown:
            raise InvalidUpdateError(f"Update has fields not in {self.name}: {unknown}")

        merged = dict(state)
        for key, incoming in update.items():
            channel = self.channels[key]
            previous = merged.get(key, channel.zero())
            merged[key] = channel.reducer(previous, incoming)
        return merged
