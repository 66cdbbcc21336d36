"""Tests for state reducers and schema merging."""
from typing import List

import pytest
from typing_extensions import Annotated, NotRequired, TypedDict

from agentloom.workflows.engine import (
    InvalidUpdateError,
    StateSchema,
    append,
    get_reducer,
    replace,
    signed_accumulate,
)


class ProgressState(TypedDict):
    messages: Annotated[List[dict], append]
    progress: Annotated[float, signed_accumulate]
    status: Annotated[str, replace.with_default("idle")]
    title: NotRequired[str]


@pytest.fixture
def schema() -> StateSchema:
    return StateSchema.from_typed_dict(ProgressState)


# ============================================================================
# Reducers
# ============================================================================

class TestSignedAccumulate:
    """Negative values add their magnitude; non-negative values set."""

    def test_three_increments_then_absolute(self, schema):
        state = schema.initial_state()
        for _ in range(3):
            state = schema.apply(state, {"progress": -20})
        assert state["progress"] == 60

        state = schema.apply(state, {"progress": 100})
        assert state["progress"] == 100

    def test_zero_sets_value(self):
        assert signed_accumulate(45, 0) == 0

    def test_fractional_increments(self):
        value = 30
        for _ in range(3):
            value = signed_accumulate(value, -(40 / 3))
        assert value == pytest.approx(70)

    def test_rejects_non_numbers(self):
        with pytest.raises(InvalidUpdateError):
            signed_accumulate(0, "10")
        with pytest.raises(InvalidUpdateError):
            signed_accumulate(0, True)


class TestReplaceAndAppend:

    def test_replace_none_keeps_previous(self):
        assert replace("old", None) == "old"
        assert replace("old", "new") == "new"

    def test_append_extends(self):
        assert append([1], [2, 3]) == [1, 2, 3]
        assert append(None, (4,)) == [4]

    def test_append_rejects_scalar(self):
        with pytest.raises(InvalidUpdateError, match="expects a list"):
            append([], "not-a-list")

    def test_with_default_is_copied_per_state(self):
        reducer = append.with_default(["seed"])
        first, second = reducer.zero(), reducer.zero()
        first.append("x")
        assert second == ["seed"]

    def test_registry_lookup(self):
        assert get_reducer("signed_accumulate") is signed_accumulate
        with pytest.raises(KeyError, match="Unknown reducer"):
            get_reducer("missing")


# ============================================================================
# Schema
# ============================================================================

class TestStateSchema:

    def test_initial_state_uses_reducer_zeros(self, schema):
        assert schema.initial_state() == {"messages": [], "progress": 0, "status": "idle", "title": None}

    def test_apply_does_not_mutate_input(self, schema):
        state = schema.initial_state()
        merged = schema.apply(state, {"messages": [{"role": "user"}], "title": "t"})
        assert state["messages"] == []
        assert merged["messages"] == [{"role": "user"}]
        assert merged["title"] == "t"

    def test_unknown_field_rejected(self, schema):
        with pytest.raises(InvalidUpdateError, match="not in ProgressState"):
            schema.apply(schema.initial_state(), {"nope": 1})
