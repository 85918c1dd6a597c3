"""Shared test fixtures."""
from __future__ import annotations

from typing import Any, Callable

import pytest

from microflow.core.state import State
from microflow.steps.base import Step


@pytest.fixture
def state() -> State:
    return State({"user": "ada", "count": 0})


@pytest.fixture
def calls() -> list[Any]:
    return []


@pytest.fixture
def recording_step(calls: list[Any]) -> Callable[..., Step]:
    """Factory for steps that append their name to ``calls`` and return *result*."""

    def _make(name: str, result: Any = None) -> Step:
        def _record(context: State) -> Any:
            calls.append(name)
            return result if result is not None else name

        return Step(name=name, callable=_record)

    return _make


@pytest.fixture
def failing_step() -> Callable[..., Step]:
    """Factory for steps whose callable raises ``RuntimeError(message)``."""

    def _make(name: str = "boom", message: str = "boom") -> Step:
        def _raise(context: State) -> None:
            raise RuntimeError(message)

        return Step(name=name, callable=_raise)

    return _make
