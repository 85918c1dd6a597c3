"""Cycle-safe deep clone used for state snapshots."""
from __future__ import annotations

import copy
import weakref
from typing import Any

_WEAK_TYPES: tuple[type, ...] = (
    weakref.ref,
    weakref.WeakKeyDictionary,
    weakref.WeakValueDictionary,
    weakref.WeakSet,
)

_IMMUTABLE_TYPES: tuple[type, ...] = (str, bytes, int, float, complex, bool, type(None))


def is_shared_reference(value: Any) -> bool:
    """Whether *value* is passed through by reference instead of being cloned.

    Callables, exceptions, weak collections and engine objects that opt in via a
    ``_clone_by_reference`` class attribute (steps, workflows, states and event
    dispatchers) are shared between a snapshot and its source.
    """
    if isinstance(value, (_WEAK_TYPES, BaseException)):
        return True
    if getattr(type(value), "_clone_by_reference", False):
        return True
    return callable(value)


def deep_clone(value: Any, memo: dict[int, Any] | None = None) -> Any:
    """Return a deep clone of *value*.

    Dicts, lists, tuples, sets and frozensets are copied recursively; cycles are
    preserved through *memo*. Anything :func:`is_shared_reference` accepts is
    returned as-is. Other objects go through :func:`copy.deepcopy` with the same
    memo so shared sub-objects stay shared in the clone.
    """
    if memo is None:
        memo = {}

    if isinstance(value, _IMMUTABLE_TYPES):
        return value

    key = id(value)
    if key in memo:
        return memo[key]

    if is_shared_reference(value):
        return value

    if isinstance(value, dict):
        cloned_dict: dict[Any, Any] = {}
        memo[key] = cloned_dict
        for item_key, item_value in value.items():
            cloned_dict[deep_clone(item_key, memo)] = deep_clone(item_value, memo)
        return cloned_dict

    if isinstance(value, list):
        cloned_list: list[Any] = []
        memo[key] = cloned_list
        cloned_list.extend(deep_clone(item, memo) for item in value)
        return cloned_list

    if isinstance(value, set):
        cloned_set: set[Any] = set()
        memo[key] = cloned_set
        cloned_set.update(deep_clone(item, memo) for item in value)
        return cloned_set

    if isinstance(value, tuple):
        cloned_tuple = tuple(deep_clone(item, memo) for item in value)
        memo[key] = cloned_tuple
        return cloned_tuple

    if isinstance(value, frozenset):
        cloned_frozen = frozenset(deep_clone(item, memo) for item in value)
        memo[key] = cloned_frozen
        return cloned_frozen

    return copy.deepcopy(value, memo)
