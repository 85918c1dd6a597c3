"""Tests for steps/flow_control.py and steps/skip.py."""
from __future__ import annotations

from typing import Any

import pytest

from microflow.core.constants import FlowControlType, WorkflowEvent, WorkflowStatus
from microflow.core.exceptions import ConfigurationError
from microflow.core.state import State
from microflow.steps.flow_control import FlowControlStep
from microflow.steps.skip import SkipStep
from microflow.workflows.engine import Workflow


# ---------------------------------------------------------------------------
# FlowControlStep
# ---------------------------------------------------------------------------


class TestFlowControlStep:
    async def test_break_signal_when_condition_holds(self) -> None:
        step = FlowControlStep(subject=3, operator=">", value=1)
        output = await step.execute(State())
        assert output.result is True
        assert output.signal.should_break is True
        assert output.signal.should_continue is False

    async def test_no_signal_when_condition_fails(self) -> None:
        step = FlowControlStep(subject=0, operator=">", value=1)
        output = await step.execute(State())
        assert output.result is False
        assert not output.signal.any()

    async def test_continue_signal(self) -> None:
        step = FlowControlStep(
            flow_control_type=FlowControlType.CONTINUE, subject="a", operator="==", value="a"
        )
        output = await step.execute(State())
        assert output.signal.should_continue is True
        assert output.signal.should_break is False

    async def test_signal_is_reset_between_runs(self) -> None:
        flag = {"on": True}
        step = FlowControlStep(subject=lambda: flag["on"], operator="==", value=True)
        assert (await step.execute(State())).signal.should_break is True
        flag["on"] = False
        assert (await step.execute(State())).signal.should_break is False

    def test_invalid_type_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            FlowControlStep(flow_control_type="return", subject=1, operator="==", value=1)

    async def test_break_stops_top_level_workflow(self, recording_step: Any, calls: list[Any]) -> None:
        wf = Workflow(
            [
                recording_step("first"),
                FlowControlStep(subject=1, operator="==", value=1),
                recording_step("never"),
            ]
        )
        await wf.execute()

        assert calls == ["first"]
        assert wf.status == WorkflowStatus.COMPLETED
        assert wf.state.get("should_break") is True
        assert len(wf.output_data) == 2


# ---------------------------------------------------------------------------
# SkipStep
# ---------------------------------------------------------------------------


class TestSkipStep:
    async def test_skips_exactly_one_step(self, recording_step: Any, calls: list[Any]) -> None:
        skipped: list[Any] = []
        wf = Workflow(
            [
                recording_step("a"),
                SkipStep(subject=True, operator="==", value=True),
                recording_step("b"),
                recording_step("c"),
            ]
        )
        wf.events.on(WorkflowEvent.WORKFLOW_STEP_SKIPPED, lambda p: skipped.append(p["step"].name))

        await wf.execute()

        assert calls == ["a", "c"]
        assert skipped == ["b"]
        assert wf.state.get("should_skip") is False
        assert [o.step_name for o in wf.output_data] == ["a", wf.get_steps()[1].name, "c"]
        assert wf.status == WorkflowStatus.COMPLETED

    async def test_false_condition_skips_nothing(self, recording_step: Any, calls: list[Any]) -> None:
        wf = Workflow([SkipStep(subject=1, operator="==", value=2), recording_step("a")])
        await wf.execute()
        assert calls == ["a"]

    async def test_skip_as_last_step_is_harmless(self, recording_step: Any, calls: list[Any]) -> None:
        wf = Workflow([recording_step("a"), SkipStep(subject=1, operator="==", value=1)])
        await wf.execute()
        assert calls == ["a"]
        assert wf.status == WorkflowStatus.COMPLETED

    async def test_signal_reported_on_output(self) -> None:
        output = await SkipStep(subject="x", operator="===", value="x").execute(State())
        assert output.result is True
        assert output.signal.should_skip is True
