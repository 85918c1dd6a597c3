"""Tests for steps/delay.py: absolute and relative delays, cancellation."""
from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from microflow.core.config import EngineConfig
from microflow.core.constants import DelayType, StepEvent, StepStatus, WorkflowStatus
from microflow.core.exceptions import ConfigurationError, DelayCancelledError, InvalidTimestampError
from microflow.core.state import State
from microflow.core.types import DelayResult
from microflow.steps.base import Step
from microflow.steps.delay import DelayStep, parse_timestamp
from microflow.workflows.engine import Workflow


# ---------------------------------------------------------------------------
# parse_timestamp
# ---------------------------------------------------------------------------


class TestParseTimestamp:
    def test_aware_datetime_passes_through(self) -> None:
        moment = datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(moment) == moment

    def test_iso_string(self) -> None:
        parsed = parse_timestamp("2020-01-01T00:00:00+00:00")
        assert parsed == datetime(2020, 1, 1, tzinfo=timezone.utc)

    def test_epoch_numbers_are_utc_milliseconds(self) -> None:
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(1_500) == datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc)
        assert parse_timestamp(946684800000) == datetime(2000, 1, 1, tzinfo=timezone.utc)

    def test_current_epoch_milliseconds_are_valid(self) -> None:
        now_ms = time.time() * 1000
        parsed = parse_timestamp(now_ms)
        assert abs(parsed.timestamp() * 1000 - now_ms) < 1

    def test_naive_values_become_aware(self) -> None:
        assert parse_timestamp("2020-01-01T00:00:00").tzinfo is not None
        assert parse_timestamp(datetime(2020, 1, 1)).tzinfo is not None

    @pytest.mark.parametrize("value", ["yesterday", None, True, [2020], ""])
    def test_invalid_values_raise(self, value: Any) -> None:
        with pytest.raises(InvalidTimestampError):
            parse_timestamp(value)


# ---------------------------------------------------------------------------
# ABSOLUTE delays
# ---------------------------------------------------------------------------


class TestAbsoluteDelay:
    @pytest.mark.parametrize(
        "timestamp",
        [
            datetime(2000, 1, 1, tzinfo=timezone.utc),
            "2000-01-01T00:00:00+00:00",
            946684800000,
            (time.time() - 60) * 1000,
        ],
    )
    async def test_past_timestamp_resolves_immediately(self, timestamp: Any) -> None:
        step = DelayStep(delay_type=DelayType.ABSOLUTE, delay_timestamp=timestamp)
        started = time.monotonic()

        output = await step.execute(State())

        assert time.monotonic() - started < 1
        assert isinstance(output.result, DelayResult)
        assert output.result.immediate is True
        assert output.status == StepStatus.COMPLETE

    async def test_near_future_timestamp_waits(self) -> None:
        target = datetime.now(timezone.utc) + timedelta(milliseconds=30)
        step = DelayStep(delay_type="absolute", delay_timestamp=target)
        output = await step.execute(State())
        assert output.result.immediate is False
        assert output.result.target == target

    async def test_emits_absolute_complete(self) -> None:
        seen: list[Any] = []
        step = DelayStep(delay_type=DelayType.ABSOLUTE, delay_timestamp=0)
        step.events.on(StepEvent.DELAY_STEP_ABSOLUTE_COMPLETE, seen.append)
        await step.execute(State())
        assert len(seen) == 1

    def test_invalid_timestamp_raises_at_construction(self) -> None:
        with pytest.raises(InvalidTimestampError):
            DelayStep(delay_type=DelayType.ABSOLUTE, delay_timestamp="not a date")


# ---------------------------------------------------------------------------
# RELATIVE delays
# ---------------------------------------------------------------------------


class TestRelativeDelay:
    async def test_zero_duration_is_immediate(self) -> None:
        output = await DelayStep(delay_duration=0).execute(State())
        assert output.result.immediate is True
        assert output.result.delay_type == DelayType.RELATIVE

    async def test_short_duration_sleeps(self) -> None:
        seen: list[Any] = []
        step = DelayStep(delay_duration=20)
        step.events.on(StepEvent.DELAY_STEP_RELATIVE_COMPLETE, seen.append)
        started = time.monotonic()

        output = await step.execute(State())

        assert time.monotonic() - started >= 0.015
        assert output.result.immediate is False
        assert len(seen) == 1

    async def test_scheduled_duration_wakes_up(self) -> None:
        step = DelayStep(delay_duration=30, config=EngineConfig(short_delay_threshold_ms=0))
        output = await step.execute(State())
        assert output.result.immediate is False
        assert step.is_pending is False

    @pytest.mark.parametrize("duration", [-1, "10", True, None])
    def test_invalid_duration_raises(self, duration: Any) -> None:
        with pytest.raises(ConfigurationError):
            DelayStep(delay_duration=duration)

    def test_invalid_delay_type_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            DelayStep(delay_type="eventually")


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestDelayCancel:
    async def test_cancel_rejects_pending_wait(self) -> None:
        cancelled: list[Any] = []
        step = DelayStep(delay_duration=10_000)
        step.events.on(StepEvent.DELAY_STEP_CANCELLED, cancelled.append)

        task = asyncio.create_task(step.execute(State()))
        await asyncio.sleep(0.01)
        assert step.is_pending is True

        assert step.cancel() is True
        with pytest.raises(DelayCancelledError):
            await task

        assert step.status == StepStatus.FAILED
        assert step.is_pending is False
        assert len(cancelled) == 1

    def test_cancel_without_pending_wait(self) -> None:
        assert DelayStep(delay_duration=10_000).cancel() is False

    async def test_workflow_cancel_interrupts_delay(self, recording_step: Any, calls: list[Any]) -> None:
        delay = DelayStep(delay_duration=10_000)
        wf = Workflow([delay, recording_step("after")])

        task = asyncio.create_task(wf.execute())
        await asyncio.sleep(0.01)
        wf.cancel()
        await task

        assert wf.status == WorkflowStatus.CANCELLED
        assert calls == []
        assert wf.output_data[0].failed
        assert wf.error is None


# ---------------------------------------------------------------------------
# Interaction with the workflow
# ---------------------------------------------------------------------------


async def test_step_after_delay_is_marked_pending() -> None:
    statuses: list[StepStatus] = []
    after = Step(name="after")
    delay = DelayStep(delay_duration=0)
    delay.events.on(
        StepEvent.DELAY_STEP_RELATIVE_COMPLETE, lambda p: statuses.append(after.status)
    )

    await Workflow([delay, after]).execute()

    assert statuses == [StepStatus.PENDING]
    assert after.status == StepStatus.COMPLETE
