from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from microflow.core.constants import DelayType, StepStatus


class ControlSignal(BaseModel):
    """Control-flow intent raised by a step and consumed by the workflow driver.

    Attributes:
        should_break: Stop the current workflow pass; loops stop iterating.
        should_continue: End the current pass; loops move to the next iteration.
        should_skip: Skip exactly one upcoming step.
        should_pause: Pause the workflow at the next step boundary.
    """

    should_break: bool = False
    should_continue: bool = False
    should_skip: bool = False
    should_pause: bool = False

    def merge(self, other: ControlSignal) -> ControlSignal:
        """OR the flags of *other* into this signal and return ``self``."""
        self.should_break = self.should_break or other.should_break
        self.should_continue = self.should_continue or other.should_continue
        self.should_skip = self.should_skip or other.should_skip
        self.should_pause = self.should_pause or other.should_pause
        return self

    def any(self) -> bool:
        return (
            self.should_break
            or self.should_continue
            or self.should_skip
            or self.should_pause
        )

    def raised(self) -> dict[str, bool]:
        """Return only the flags that are set, keyed by their state names."""
        return {name: True for name, value in self.model_dump().items() if value}


class StepOutput(BaseModel):
    """Outcome of one attempted step, as recorded in ``Workflow.output_data``.

    Attributes:
        step_id: Id of the step that produced this output.
        step_name: Display name of the step.
        status: Terminal status of the attempt (COMPLETE or FAILED).
        result: Value returned by the step's callable (``None`` on failure).
        state: Snapshot of the step's own state after the attempt.
        signal: Control signal raised by the step.
        error: String form of the raised error, when the attempt failed.
        execution_time_ms: Wall-clock duration of the attempt.
    """

    step_id: str
    step_name: str
    status: StepStatus
    result: Any = None
    state: dict[str, Any] = Field(default_factory=dict)
    signal: ControlSignal = Field(default_factory=ControlSignal)
    error: str | None = None
    execution_time_ms: int | None = None

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED


class DelayResult(BaseModel):
    """Result returned by a :class:`~microflow.steps.delay.DelayStep`.

    Attributes:
        delay_type: ABSOLUTE or RELATIVE.
        target: Wall-clock time the delay was waiting for.
        elapsed_ms: Time actually spent suspended.
        immediate: True when the delay resolved without suspending.
    """

    delay_type: DelayType
    target: datetime
    elapsed_ms: int = 0
    immediate: bool = False
