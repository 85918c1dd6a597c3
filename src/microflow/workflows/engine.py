"""Workflow engine: an ordered, pausable driver over steps.

A :class:`Workflow` runs its steps one at a time against its own
:class:`~microflow.core.state.State`, which every step borrows for the duration
of its execution. Steps steer the driver through the control signal they raise
(break, continue, skip, pause); failures either abort the run or are recorded
and skipped past, depending on ``exit_on_failure``.
"""
from __future__ import annotations

import time
import uuid
from collections.abc import Iterable, Mapping
from typing import Any, ClassVar

import structlog

from microflow.core.config import EngineConfig
from microflow.core.constants import StepType, WorkflowEvent, WorkflowStatus
from microflow.core.events import WorkflowEvents
from microflow.core.exceptions import WorkflowError
from microflow.core.state import State
from microflow.core.types import ControlSignal, StepOutput
from microflow.steps.base import Step
from microflow.utils.async_helpers import run_sync

logger = structlog.get_logger(__name__)

_SIGNAL_KEYS = ("should_break", "should_continue", "should_skip", "should_pause")


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class Workflow:
    """Ordered step driver with pause/resume, cancellation and a failure policy.

    Args:
        steps: Initial steps, run in order.
        name: Human-readable workflow name. Defaults to ``"workflow_<id>"``.
        exit_on_failure: Abort on the first failing step. Defaults to
            ``config.exit_on_failure``.
        freeze_on_completion: Freeze the workflow state after a successful run.
            Defaults to ``config.freeze_on_completion``.
        config: Engine configuration supplying defaults.
        throw_on_empty: Raise :class:`WorkflowError` when a workflow with no
            steps is executed, instead of completing it immediately.

    Once the workflow state is frozen, every step-management method raises
    :class:`~microflow.core.exceptions.StateFrozenError`.

    Example::

        wf = Workflow([
            Step(name="fetch", callable=lambda ctx: ctx.set("rows", [1, 2, 3])),
            SkipStep(subject=lambda: wf.state.get("rows"), operator="==", value=[]),
            Step(name="report", callable=lambda ctx: len(ctx.get("rows"))),
        ])
        state = await wf.execute()
        assert wf.output_data[-1].result == 3
    """

    default_state: ClassVar[dict[str, Any]] = {
        "id": None,
        "name": None,
        "steps": [],
        "current_step_index": 0,
        "output_data": [],
        "should_break": False,
        "should_continue": False,
        "should_skip": False,
        "should_pause": False,
        "exit_on_failure": True,
        "freeze_on_completion": False,
        "throw_on_empty": False,
        "status": WorkflowStatus.PENDING,
        "error": None,
        "start_time": None,
        "execution_time_ms": None,
    }
    _clone_by_reference: ClassVar[bool] = True

    def __init__(
        self,
        steps: Iterable[Step] | None = None,
        name: str | None = None,
        exit_on_failure: bool | None = None,
        freeze_on_completion: bool | None = None,
        config: EngineConfig | None = None,
        throw_on_empty: bool = False,
    ) -> None:
        self.config = config or EngineConfig()
        workflow_id = str(uuid.uuid4())
        self.events = WorkflowEvents()
        self.state = State(
            {
                "id": workflow_id,
                "name": name or f"workflow_{workflow_id}",
                "exit_on_failure": (
                    self.config.exit_on_failure if exit_on_failure is None else exit_on_failure
                ),
                "freeze_on_completion": (
                    self.config.freeze_on_completion
                    if freeze_on_completion is None
                    else freeze_on_completion
                ),
                "throw_on_empty": throw_on_empty,
            },
            defaults=self.default_state,
        )
        self._running_step: Step | None = None

        initial = list(steps or [])
        for index, step in enumerate(initial):
            self._require_step(step, index)
        self._steps.extend(initial)

        self.events.emit(WorkflowEvent.WORKFLOW_CREATED, {"workflow": self})

    def __repr__(self) -> str:
        return f"Workflow(name={self.name!r}, steps={len(self._steps)}, status={self.status!r})"

    # ------------------------------------------------------------------ #
    # State-backed attributes
    # ------------------------------------------------------------------ #

    @property
    def id(self) -> str:
        return self.state.get("id")

    @property
    def name(self) -> str:
        return self.state.get("name")

    @property
    def status(self) -> WorkflowStatus:
        return self.state.get("status")

    @property
    def error(self) -> BaseException | None:
        return self.state.get("error")

    @property
    def output_data(self) -> list[StepOutput]:
        """A copy of the outputs recorded so far, in execution order."""
        return list(self.state.get("output_data"))

    @property
    def current_step_index(self) -> int:
        return self.state.get("current_step_index")

    @property
    def start_time(self) -> int | None:
        return self.state.get("start_time")

    @property
    def execution_time_ms(self) -> int | None:
        return self.state.get("execution_time_ms")

    @property
    def exit_on_failure(self) -> bool:
        return bool(self.state.get("exit_on_failure"))

    @property
    def freeze_on_completion(self) -> bool:
        return bool(self.state.get("freeze_on_completion"))

    @property
    def throw_on_empty(self) -> bool:
        return bool(self.state.get("throw_on_empty"))

    @property
    def _steps(self) -> list[Step]:
        return self.state.get("steps")

    # ------------------------------------------------------------------ #
    # Step management
    # ------------------------------------------------------------------ #

    def get_steps(self) -> list[Step]:
        return list(self._steps)

    def is_empty(self) -> bool:
        return not self._steps

    def push_step(self, step: Step) -> None:
        self.state.require_writable("steps")
        self._require_step(step)
        self._steps.append(step)
        self._emit(WorkflowEvent.WORKFLOW_STEP_ADDED, step=step, index=len(self._steps) - 1)

    def push_steps(self, steps: Iterable[Step]) -> None:
        self.state.require_writable("steps")
        added = list(steps)
        for index, step in enumerate(added):
            self._require_step(step, index)
        self._steps.extend(added)
        self._emit(WorkflowEvent.WORKFLOW_STEPS_ADDED, steps=added)

    def add_step_at_index(self, step: Step, index: int) -> None:
        self.state.require_writable("steps")
        self._require_step(step)
        self._steps.insert(index, step)
        self._emit(WorkflowEvent.WORKFLOW_STEP_ADDED, step=step, index=index)

    def unshift_step(self, step: Step) -> None:
        self.add_step_at_index(step, 0)

    def pop_step(self) -> Step | None:
        self.state.require_writable("steps")
        if not self._steps:
            return None
        step = self._steps.pop()
        self._emit(WorkflowEvent.WORKFLOW_STEP_REMOVED, steps=[step])
        return step

    def shift_step(self) -> Step | None:
        self.state.require_writable("steps")
        if not self._steps:
            return None
        step = self._steps.pop(0)
        self._emit(WorkflowEvent.WORKFLOW_STEP_SHIFTED, step=step)
        return step

    def remove_step(self, index: int, count: int = 1) -> list[Step]:
        """Remove *count* steps starting at *index* and return them."""
        self.state.require_writable("steps")
        if count < 1:
            return []
        if index < 0:
            index += len(self._steps)
        removed = self._steps[index : index + count]
        del self._steps[index : index + count]
        if removed:
            self._emit(WorkflowEvent.WORKFLOW_STEP_REMOVED, steps=removed)
        return removed

    def remove_step_by_id(self, step_id: str) -> Step | None:
        for index, step in enumerate(self._steps):
            if step.id == step_id:
                return self.remove_step(index)[0]
        return None

    def move_step(self, from_index: int, to_index: int) -> None:
        """Move the step at *from_index* so it ends up at *to_index*.

        Raises:
            WorkflowError: If *from_index* is out of range.
        """
        self.state.require_writable("steps")
        try:
            step = self._steps.pop(from_index)
        except IndexError:
            raise WorkflowError(
                f"No step at index {from_index}",
                details={"workflow_id": self.id, "from_index": from_index},
            ) from None
        self._steps.insert(to_index, step)
        self._emit(
            WorkflowEvent.WORKFLOW_STEP_MOVED,
            step=step,
            from_index=from_index,
            to_index=to_index,
        )

    def clear_steps(self) -> None:
        self.state.require_writable("steps")
        self._steps.clear()
        self._emit(WorkflowEvent.WORKFLOW_STEPS_CLEARED)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    async def execute(self, initial_state: Mapping[str, Any] | None = None) -> State:
        """Run the workflow and return its state.

        A fresh run rewinds the cursor, outputs and signals first; a RESUMED
        workflow continues from the stored step index instead. *initial_state*
        is merged into the workflow state before any step runs.

        Returns:
            The workflow's own :class:`State`.

        Raises:
            WorkflowError: If the workflow has no steps and ``throw_on_empty``
                is set.
        """
        if self.throw_on_empty and self.is_empty():
            raise WorkflowError(
                "Cannot execute an empty workflow",
                details={"workflow_id": self.id},
            )
        if self.status != WorkflowStatus.RESUMED:
            self.rewind()
            self.state.set("start_time", _now_ms())
        if initial_state:
            self.state.merge(initial_state)

        self._set_status(WorkflowStatus.RUNNING)
        self._emit(WorkflowEvent.WORKFLOW_STARTED)
        logger.info(
            "workflow started",
            workflow=self.name,
            workflow_id=self.id,
            steps=len(self._steps),
            from_index=self.current_step_index,
        )

        while self.current_step_index < len(self._steps):
            if self.state.get("should_break") or self.state.get("should_continue"):
                break
            if self.status == WorkflowStatus.CANCELLED:
                break

            index = self.current_step_index
            step = self._steps[index]

            if self.state.get("should_skip"):
                self.state.set("should_skip", False)
                self.state.set("current_step_index", index + 1)
                self._emit(WorkflowEvent.WORKFLOW_STEP_SKIPPED, step=step, index=index)
                logger.debug("workflow step skipped", workflow=self.name, step=step.name)
                continue

            if step.type == StepType.DELAY and index + 1 < len(self._steps):
                self._steps[index + 1].mark_as_pending()

            self._running_step = step
            try:
                output = await step.execute(self.state)
            except Exception as exc:
                self.state.set("current_step_index", index + 1)
                self._record_output(step.prepare_return_data(None, exc))
                if self.status == WorkflowStatus.CANCELLED:
                    break
                self._record_failure(step, exc)
                if self.exit_on_failure:
                    break
                if self._pause_if_requested():
                    return self.state
                continue
            finally:
                self._running_step = None

            self.state.set("current_step_index", index + 1)
            self._record_output(output)
            self._merge_signal(step.signal)

            if self.status == WorkflowStatus.CANCELLED:
                break
            if self._pause_if_requested():
                return self.state

        return self._finish()

    def execute_sync(self, initial_state: Mapping[str, Any] | None = None) -> State:
        """Blocking wrapper around :meth:`execute`."""
        return run_sync(self.execute(initial_state))

    def pause(self) -> None:
        """Request a pause at the next step boundary."""
        self.state.set("should_pause", True)
        logger.debug("workflow pause requested", workflow=self.name)

    async def resume(self) -> State:
        """Continue a PAUSED workflow from its stored step index.

        Raises:
            WorkflowError: If the workflow is not paused.
        """
        if self.status != WorkflowStatus.PAUSED:
            raise WorkflowError(
                f"Workflow {self.name!r} cannot resume from status {self.status!r}",
                details={"workflow_id": self.id, "status": str(self.status)},
            )
        self._set_status(WorkflowStatus.RESUMED)
        self._emit(WorkflowEvent.WORKFLOW_RESUMED, index=self.current_step_index)
        logger.info("workflow resumed", workflow=self.name, at_index=self.current_step_index)
        return await self.execute()

    def cancel(self) -> None:
        """Stop the workflow and cancel whatever its running step is waiting on."""
        self._set_status(WorkflowStatus.CANCELLED)
        self._emit(WorkflowEvent.WORKFLOW_CANCELLED)
        logger.info("workflow cancelled", workflow=self.name, at_index=self.current_step_index)
        if self._running_step is not None:
            self._running_step.cancel()

    def rewind(self, reset_steps: bool = False) -> None:
        """Reset the cursor, signals, outputs and status; optionally every step too."""
        self.state.merge(
            {
                "current_step_index": 0,
                "output_data": [],
                "status": WorkflowStatus.PENDING,
                "error": None,
                "execution_time_ms": None,
                **{key: False for key in _SIGNAL_KEYS},
            }
        )
        if reset_steps:
            for step in self._steps:
                step.reset()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _finish(self) -> State:
        self.state.prepare(self.start_time)
        if self.status == WorkflowStatus.CANCELLED:
            return self.state

        if any(output.failed for output in self.output_data):
            self._set_status(WorkflowStatus.FAILED)
            logger.warning(
                "workflow finished with failures",
                workflow=self.name,
                execution_time_ms=self.execution_time_ms,
            )
            return self.state

        self._set_status(WorkflowStatus.COMPLETED)
        self._emit(WorkflowEvent.WORKFLOW_COMPLETED)
        logger.info(
            "workflow completed",
            workflow=self.name,
            steps_run=len(self.output_data),
            execution_time_ms=self.execution_time_ms,
        )

        if self.freeze_on_completion:
            self._set_status(WorkflowStatus.FROZEN)
            self._emit(WorkflowEvent.WORKFLOW_FROZEN)
            self.state.freeze()
        return self.state

    def _record_failure(self, step: Step, exc: Exception) -> None:
        self.state.set("error", exc)
        self._set_status(WorkflowStatus.FAILED)
        self._emit(WorkflowEvent.WORKFLOW_ERRORED, step=step, error=exc)
        self._emit(WorkflowEvent.WORKFLOW_FAILED, step=step, error=exc)
        logger.error(
            "workflow step failed",
            workflow=self.name,
            step=step.name,
            error=str(exc),
            exit_on_failure=self.exit_on_failure,
        )

    def _record_output(self, output: StepOutput) -> None:
        self.state.require_writable("output_data")
        self.state.get("output_data").append(output)

    def _pause_if_requested(self) -> bool:
        if not self.state.get("should_pause"):
            return False
        self.state.set("should_pause", False)
        self._set_status(WorkflowStatus.PAUSED)
        self._emit(WorkflowEvent.WORKFLOW_PAUSED, index=self.current_step_index)
        logger.info("workflow paused", workflow=self.name, at_index=self.current_step_index)
        return True

    def _merge_signal(self, signal: ControlSignal) -> None:
        for key, raised in signal.raised().items():
            self.state.set(key, raised)

    def _set_status(self, status: WorkflowStatus) -> None:
        self.state.set("status", status)

    def _emit(self, event: WorkflowEvent, **payload: Any) -> None:
        self.events.emit(event, {"workflow": self, **payload})

    def _require_step(self, step: Any, index: int | None = None) -> None:
        if not isinstance(step, Step):
            where = f" at index {index}" if index is not None else ""
            raise WorkflowError(
                f"Invalid step{where}: expected a Step, got {type(step).__name__}",
                details={"workflow_id": self.id},
            )
