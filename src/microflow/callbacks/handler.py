from __future__ import annotations

from abc import ABC
from typing import TYPE_CHECKING, Any

import structlog

from microflow.core.constants import StepEvent, WorkflowEvent

if TYPE_CHECKING:
    from microflow.steps.base import Step
    from microflow.workflows.engine import Workflow

logger = structlog.get_logger(__name__)


class WorkflowCallbackHandler(ABC):
    """Override any methods to observe a workflow. All have default no-op implementations.

    Hooks run synchronously inside event dispatch; use :func:`attach_handler`
    to wire a handler to a workflow and its steps.
    """

    def on_workflow_started(self, workflow: Workflow) -> None:
        pass

    def on_workflow_completed(self, workflow: Workflow) -> None:
        pass

    def on_workflow_failed(self, workflow: Workflow, error: BaseException | None) -> None:
        pass

    def on_workflow_paused(self, workflow: Workflow) -> None:
        pass

    def on_workflow_resumed(self, workflow: Workflow) -> None:
        pass

    def on_workflow_cancelled(self, workflow: Workflow) -> None:
        pass

    def on_step_started(self, step: Step) -> None:
        pass

    def on_step_completed(self, step: Step, result: Any) -> None:
        pass

    def on_step_failed(self, step: Step, error: BaseException | None) -> None:
        pass


class LoggingCallbackHandler(WorkflowCallbackHandler):
    """Logs all lifecycle events via structlog."""

    def on_workflow_started(self, workflow: Workflow) -> None:
        logger.info("workflow_start", workflow=workflow.name, workflow_id=workflow.id)

    def on_workflow_completed(self, workflow: Workflow) -> None:
        logger.info(
            "workflow_end",
            workflow=workflow.name,
            status=str(workflow.status),
            steps_run=len(workflow.output_data),
            execution_time_ms=workflow.execution_time_ms,
        )

    def on_workflow_failed(self, workflow: Workflow, error: BaseException | None) -> None:
        logger.error(
            "workflow_error",
            workflow=workflow.name,
            error=str(error) if error else None,
            exc_info=error,
        )

    def on_workflow_paused(self, workflow: Workflow) -> None:
        logger.info("workflow_paused", workflow=workflow.name, at_index=workflow.current_step_index)

    def on_workflow_resumed(self, workflow: Workflow) -> None:
        logger.info("workflow_resumed", workflow=workflow.name, at_index=workflow.current_step_index)

    def on_workflow_cancelled(self, workflow: Workflow) -> None:
        logger.info("workflow_cancelled", workflow=workflow.name)

    def on_step_started(self, step: Step) -> None:
        logger.debug("step_start", step=step.name, step_type=str(step.type))

    def on_step_completed(self, step: Step, result: Any) -> None:
        logger.debug(
            "step_end",
            step=step.name,
            execution_time_ms=step.execution_time_ms,
        )

    def on_step_failed(self, step: Step, error: BaseException | None) -> None:
        logger.error("step_error", step=step.name, error=str(error) if error else None)


class CompositeCallbackHandler(WorkflowCallbackHandler):
    """Fans out all callback calls to multiple handlers.

    Each handler is called in order. Exceptions from individual handlers are
    caught and logged so one failing handler does not block the others.
    """

    def __init__(self, handlers: list[WorkflowCallbackHandler]) -> None:
        self._handlers = list(handlers)

    def _fan_out(self, hook: str, *args: Any) -> None:
        for handler in self._handlers:
            try:
                getattr(handler, hook)(*args)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "callback_handler_error",
                    callback_event=hook,
                    handler=type(handler).__name__,
                    error=str(exc),
                )

    def on_workflow_started(self, workflow: Workflow) -> None:
        self._fan_out("on_workflow_started", workflow)

    def on_workflow_completed(self, workflow: Workflow) -> None:
        self._fan_out("on_workflow_completed", workflow)

    def on_workflow_failed(self, workflow: Workflow, error: BaseException | None) -> None:
        self._fan_out("on_workflow_failed", workflow, error)

    def on_workflow_paused(self, workflow: Workflow) -> None:
        self._fan_out("on_workflow_paused", workflow)

    def on_workflow_resumed(self, workflow: Workflow) -> None:
        self._fan_out("on_workflow_resumed", workflow)

    def on_workflow_cancelled(self, workflow: Workflow) -> None:
        self._fan_out("on_workflow_cancelled", workflow)

    def on_step_started(self, step: Step) -> None:
        self._fan_out("on_step_started", step)

    def on_step_completed(self, step: Step, result: Any) -> None:
        self._fan_out("on_step_completed", step, result)

    def on_step_failed(self, step: Step, error: BaseException | None) -> None:
        self._fan_out("on_step_failed", step, error)


def attach_step_handler(step: Step, handler: WorkflowCallbackHandler) -> None:
    """Subscribe *handler* to the lifecycle events of a single *step*."""
    step.events.on(StepEvent.STEP_RUNNING, lambda p: handler.on_step_started(p["step"]))
    step.events.on(
        StepEvent.STEP_COMPLETED,
        lambda p: handler.on_step_completed(p["step"], p.get("result")),
    )
    step.events.on(
        StepEvent.STEP_FAILED,
        lambda p: handler.on_step_failed(p["step"], p.get("error")),
    )


def attach_handler(workflow: Workflow, handler: WorkflowCallbackHandler) -> None:
    """Subscribe *handler* to *workflow* and to every step it holds.

    Steps added to the workflow afterwards are subscribed as they are added.
    """
    events = workflow.events
    events.on(WorkflowEvent.WORKFLOW_STARTED, lambda p: handler.on_workflow_started(p["workflow"]))
    events.on(
        WorkflowEvent.WORKFLOW_COMPLETED,
        lambda p: handler.on_workflow_completed(p["workflow"]),
    )
    events.on(
        WorkflowEvent.WORKFLOW_FAILED,
        lambda p: handler.on_workflow_failed(p["workflow"], p.get("error")),
    )
    events.on(WorkflowEvent.WORKFLOW_PAUSED, lambda p: handler.on_workflow_paused(p["workflow"]))
    events.on(WorkflowEvent.WORKFLOW_RESUMED, lambda p: handler.on_workflow_resumed(p["workflow"]))
    events.on(
        WorkflowEvent.WORKFLOW_CANCELLED,
        lambda p: handler.on_workflow_cancelled(p["workflow"]),
    )
    events.on(
        WorkflowEvent.WORKFLOW_STEP_ADDED,
        lambda p: attach_step_handler(p["step"], handler),
    )

    def _attach_added(payload: dict[str, Any]) -> None:
        for step in payload["steps"]:
            attach_step_handler(step, handler)

    events.on(WorkflowEvent.WORKFLOW_STEPS_ADDED, _attach_added)

    for step in workflow.get_steps():
        attach_step_handler(step, handler)
