"""Tests for callbacks/handler.py."""
from __future__ import annotations

from typing import Any

from microflow.callbacks.handler import (
    CompositeCallbackHandler,
    LoggingCallbackHandler,
    WorkflowCallbackHandler,
    attach_handler,
    attach_step_handler,
)
from microflow.steps.base import Step
from microflow.workflows.engine import Workflow


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ConcreteHandler(WorkflowCallbackHandler):
    """Minimal concrete subclass that uses all default no-op implementations."""


class RecordingHandler(WorkflowCallbackHandler):
    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def on_workflow_started(self, workflow: Workflow) -> None:
        self.calls.append(("workflow_started", workflow.name))

    def on_workflow_completed(self, workflow: Workflow) -> None:
        self.calls.append(("workflow_completed", workflow.name))

    def on_workflow_failed(self, workflow: Workflow, error: BaseException | None) -> None:
        self.calls.append(("workflow_failed", str(error)))

    def on_workflow_paused(self, workflow: Workflow) -> None:
        self.calls.append(("workflow_paused",))

    def on_workflow_resumed(self, workflow: Workflow) -> None:
        self.calls.append(("workflow_resumed",))

    def on_workflow_cancelled(self, workflow: Workflow) -> None:
        self.calls.append(("workflow_cancelled",))

    def on_step_started(self, step: Step) -> None:
        self.calls.append(("step_started", step.name))

    def on_step_completed(self, step: Step, result: Any) -> None:
        self.calls.append(("step_completed", step.name, result))

    def on_step_failed(self, step: Step, error: BaseException | None) -> None:
        self.calls.append(("step_failed", step.name, str(error)))


class ExplodingHandler(WorkflowCallbackHandler):
    def on_step_started(self, step: Step) -> None:
        raise RuntimeError("handler blew up")

    def on_workflow_completed(self, workflow: Workflow) -> None:
        raise RuntimeError("handler blew up")


# ---------------------------------------------------------------------------
# WorkflowCallbackHandler default no-op implementations
# ---------------------------------------------------------------------------


def test_default_hooks_are_noops() -> None:
    h = ConcreteHandler()
    wf = Workflow()
    step = Step()
    h.on_workflow_started(wf)
    h.on_workflow_completed(wf)
    h.on_workflow_failed(wf, None)
    h.on_workflow_paused(wf)
    h.on_workflow_resumed(wf)
    h.on_workflow_cancelled(wf)
    h.on_step_started(step)
    h.on_step_completed(step, None)
    h.on_step_failed(step, None)


# ---------------------------------------------------------------------------
# attach_handler
# ---------------------------------------------------------------------------


async def test_attach_handler_observes_workflow_and_steps() -> None:
    handler = RecordingHandler()
    wf = Workflow([Step(name="a", callable=lambda ctx: 1)], name="flow")
    attach_handler(wf, handler)

    await wf.execute()

    assert handler.calls == [
        ("workflow_started", "flow"),
        ("step_started", "a"),
        ("step_completed", "a", 1),
        ("workflow_completed", "flow"),
    ]


async def test_attach_handler_reports_failures(failing_step: Any) -> None:
    handler = RecordingHandler()
    wf = Workflow([failing_step(message="nope")])
    attach_handler(wf, handler)

    await wf.execute()

    assert ("step_failed", "boom", "nope") in handler.calls
    assert ("workflow_failed", "nope") in handler.calls
    assert not any(call[0] == "workflow_completed" for call in handler.calls)


async def test_steps_added_later_are_observed() -> None:
    handler = RecordingHandler()
    wf = Workflow()
    attach_handler(wf, handler)
    wf.push_step(Step(name="pushed"))
    wf.push_steps([Step(name="batch")])

    await wf.execute()

    started = [call[1] for call in handler.calls if call[0] == "step_started"]
    assert started == ["pushed", "batch"]


async def test_pause_resume_and_cancel_hooks() -> None:
    handler = RecordingHandler()
    wf = Workflow()
    wf.push_steps([Step(callable=lambda ctx: wf.pause()), Step(callable=lambda ctx: wf.cancel())])
    attach_handler(wf, handler)

    await wf.execute()
    await wf.resume()

    names = [call[0] for call in handler.calls if call[0].startswith("workflow_")]
    assert names == [
        "workflow_started",
        "workflow_paused",
        "workflow_resumed",
        "workflow_started",
        "workflow_cancelled",
    ]


async def test_attach_step_handler() -> None:
    handler = RecordingHandler()
    step = Step(name="solo", callable=lambda ctx: "x")
    attach_step_handler(step, handler)

    await step.execute()

    assert handler.calls == [("step_started", "solo"), ("step_completed", "solo", "x")]


# ---------------------------------------------------------------------------
# LoggingCallbackHandler
# ---------------------------------------------------------------------------


async def test_logging_handler_runs_without_raising(failing_step: Any) -> None:
    wf = Workflow([Step(callable=lambda ctx: 1), failing_step()], exit_on_failure=False)
    attach_handler(wf, LoggingCallbackHandler())
    await wf.execute()


# ---------------------------------------------------------------------------
# CompositeCallbackHandler
# ---------------------------------------------------------------------------


async def test_composite_fans_out_to_all_handlers() -> None:
    first, second = RecordingHandler(), RecordingHandler()
    wf = Workflow([Step(name="a")])
    attach_handler(wf, CompositeCallbackHandler([first, second]))

    await wf.execute()

    assert first.calls == second.calls
    assert ("step_started", "a") in first.calls


async def test_composite_isolates_handler_errors() -> None:
    recorder = RecordingHandler()
    wf = Workflow([Step(name="a")])
    attach_handler(wf, CompositeCallbackHandler([ExplodingHandler(), recorder]))

    await wf.execute()

    assert ("step_started", "a") in recorder.calls
    assert ("workflow_completed", wf.name) in recorder.calls


def test_composite_copies_handler_list() -> None:
    handlers: list[WorkflowCallbackHandler] = [RecordingHandler()]
    composite = CompositeCallbackHandler(handlers)
    handlers.clear()
    composite.on_step_started(Step())
    assert len(composite._handlers) == 1
