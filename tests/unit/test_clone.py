"""Tests for utils/clone.py: deep_clone and shared references."""
from __future__ import annotations

import weakref

from microflow.core.state import State
from microflow.steps.base import Step
from microflow.utils.clone import deep_clone, is_shared_reference


class _Payload:
    def __init__(self, items: list[int]) -> None:
        self.items = items


# ---------------------------------------------------------------------------
# deep_clone
# ---------------------------------------------------------------------------


def test_nested_containers_are_copied() -> None:
    source = {"a": [1, {"b": 2}], "t": (1, [2]), "s": {1, 2}, "f": frozenset({3})}
    clone = deep_clone(source)

    assert clone == source
    assert clone is not source
    assert clone["a"] is not source["a"]
    assert clone["a"][1] is not source["a"][1]
    assert clone["t"][1] is not source["t"][1]
    assert clone["s"] is not source["s"]


def test_cycles_are_preserved() -> None:
    source: dict[str, object] = {"name": "root"}
    source["self"] = source
    clone = deep_clone(source)

    assert clone is not source
    assert clone["self"] is clone


def test_shared_sub_objects_stay_shared() -> None:
    shared = [1, 2]
    clone = deep_clone({"a": shared, "b": shared})
    assert clone["a"] is clone["b"]
    assert clone["a"] is not shared


def test_plain_objects_fall_back_to_deepcopy() -> None:
    payload = _Payload([1, 2])
    clone = deep_clone({"p": payload})
    assert clone["p"] is not payload
    assert clone["p"].items == [1, 2]
    assert clone["p"].items is not payload.items


def test_engine_objects_and_callables_are_shared() -> None:
    step = Step(name="s")
    state = State()
    error = ValueError("x")

    def fn() -> None:
        return None

    clone = deep_clone({"step": step, "state": state, "fn": fn, "error": error})
    assert clone["step"] is step
    assert clone["state"] is state
    assert clone["fn"] is fn
    assert clone["error"] is error


# ---------------------------------------------------------------------------
# is_shared_reference
# ---------------------------------------------------------------------------


def test_is_shared_reference() -> None:
    assert is_shared_reference(print)
    assert is_shared_reference(weakref.WeakSet())
    assert is_shared_reference(State())
    assert not is_shared_reference({"a": 1})
    assert not is_shared_reference(_Payload([]))
