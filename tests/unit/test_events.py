"""Tests for core/events.py: EventDispatcher and the step/workflow vocabularies."""
from __future__ import annotations

from typing import Any

import pytest

from microflow.core.constants import StateEvent, StepEvent, WorkflowEvent
from microflow.core.events import EventDispatcher, StateEvents, StepEvents, WorkflowEvents
from microflow.core.exceptions import EventError


# ---------------------------------------------------------------------------
# Subscription and delivery
# ---------------------------------------------------------------------------


class TestEventDispatcher:
    def test_emit_delivers_payload_in_registration_order(self) -> None:
        bus = EventDispatcher(["tick"])
        seen: list[tuple[str, Any]] = []
        bus.on("tick", lambda p: seen.append(("first", p)))
        bus.on("tick", lambda p: seen.append(("second", p)))

        assert bus.emit("tick", {"n": 1}) is True
        assert seen == [("first", {"n": 1}), ("second", {"n": 1})]

    def test_once_fires_a_single_time(self) -> None:
        bus = EventDispatcher(["tick"])
        seen: list[Any] = []
        bus.once("tick", seen.append)

        bus.emit("tick", 1)
        bus.emit("tick", 2)

        assert seen == [1]
        assert bus.listener_count("tick") == 0

    def test_off_removes_handler(self) -> None:
        bus = EventDispatcher(["tick"])
        seen: list[Any] = []
        bus.on("tick", seen.append)
        bus.off("tick", seen.append)
        bus.emit("tick", 1)
        assert seen == []

    def test_off_unknown_handler_is_ignored(self) -> None:
        bus = EventDispatcher(["tick"])
        bus.off("tick", lambda p: None)
        assert bus.listener_count("tick") == 0

    def test_remove_listener_is_alias_for_off(self) -> None:
        bus = EventDispatcher(["tick"])

        def handler(payload: Any) -> None:
            return None

        bus.on("tick", handler)
        bus.remove_listener("tick", handler)
        assert bus.listener_count("tick") == 0

    def test_handler_returning_false_suppresses_delivery(self) -> None:
        bus = EventDispatcher(["tick"])
        seen: list[str] = []
        bus.on("tick", lambda p: seen.append("a") or False)
        bus.on("tick", lambda p: seen.append("b"))

        assert bus.emit("tick") is False
        assert seen == ["a"]

    def test_handler_exception_does_not_stop_delivery(self) -> None:
        bus = EventDispatcher(["tick"])
        seen: list[str] = []

        def broken(payload: Any) -> None:
            raise RuntimeError("handler bug")

        bus.on("tick", broken)
        bus.on("tick", lambda p: seen.append("after"))

        assert bus.emit("tick") is True
        assert seen == ["after"]

    def test_on_returns_self_for_chaining(self) -> None:
        bus = EventDispatcher(["a", "b"])
        assert bus.on("a", print).on("b", print) is bus


# ---------------------------------------------------------------------------
# Closed vocabulary
# ---------------------------------------------------------------------------


class TestClosedChannels:
    def test_unknown_channel_on_raises(self) -> None:
        bus = EventDispatcher(["tick"])
        with pytest.raises(EventError):
            bus.on("tock", print)

    def test_unknown_channel_emit_raises(self) -> None:
        bus = EventDispatcher(["tick"])
        with pytest.raises(EventError) as exc_info:
            bus.emit("tock")
        assert exc_info.value.details["event_name"] == "tock"

    def test_step_events_register_every_step_event(self) -> None:
        bus = StepEvents()
        for event in StepEvent:
            assert bus.listener_count(event) == 0
        assert set(bus.event_names) == {str(e) for e in StepEvent}

    def test_workflow_events_register_every_workflow_event(self) -> None:
        bus = WorkflowEvents()
        assert set(bus.event_names) == {str(e) for e in WorkflowEvent}
        with pytest.raises(EventError):
            bus.emit(StepEvent.STEP_CREATED)

    def test_state_events_register_every_state_event(self) -> None:
        bus = StateEvents()
        assert set(bus.event_names) == {"set", "merge", "deleted", "frozen"}
        assert set(bus.event_names) == {str(e) for e in StateEvent}
