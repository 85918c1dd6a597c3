from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any

from microflow.core.config import EngineConfig
from microflow.core.constants import DelayType, StepEvent, StepType
from microflow.core.exceptions import (
    ConfigurationError,
    DelayCancelledError,
    InvalidTimestampError,
)
from microflow.core.state import State
from microflow.core.types import DelayResult
from microflow.steps.base import Step

_COMPLETE_EVENTS = {
    DelayType.ABSOLUTE: StepEvent.DELAY_STEP_ABSOLUTE_COMPLETE,
    DelayType.RELATIVE: StepEvent.DELAY_STEP_RELATIVE_COMPLETE,
}


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


def parse_timestamp(value: Any) -> datetime:
    """Parse a datetime, ISO-8601 string or epoch-milliseconds number into an aware datetime.

    Naive datetimes and strings are interpreted as local time.

    Raises:
        InvalidTimestampError: If *value* cannot be interpreted as a point in time.
    """
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            parsed = datetime.fromisoformat(value.strip())
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        else:
            raise TypeError(f"unsupported timestamp type {type(value).__name__}")
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise InvalidTimestampError(
            f"Invalid delay timestamp: {value!r}",
            details={"timestamp": repr(value), "reason": str(exc)},
        ) from exc

    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


class DelayStep(Step):
    """Suspends the workflow until a point in time or for a duration.

    ABSOLUTE delays wait until ``delay_timestamp`` (a datetime, an ISO-8601
    string or epoch milliseconds); a timestamp in the past resolves immediately.
    RELATIVE delays wait ``delay_duration`` milliseconds.

    Short waits sleep directly. Longer ones are scheduled on the event loop and
    can be aborted with :meth:`cancel`, which fails the pending wait with
    :class:`~microflow.core.exceptions.DelayCancelledError`.
    """

    def __init__(
        self,
        name: str | None = None,
        delay_type: DelayType | str = DelayType.RELATIVE,
        delay_timestamp: datetime | str | float | None = None,
        delay_duration: float = 0,
        config: EngineConfig | None = None,
        log_suppress: bool = False,
    ) -> None:
        super().__init__(name=name, type=StepType.DELAY, log_suppress=log_suppress)
        try:
            self.delay_type = DelayType(delay_type)
        except ValueError:
            raise ConfigurationError(
                f"Invalid delay type: {delay_type!r}",
                details={"delay_type": str(delay_type)},
            ) from None

        self.delay_timestamp: datetime | None = None
        self.delay_duration: float = 0
        if self.delay_type == DelayType.ABSOLUTE:
            self.delay_timestamp = parse_timestamp(delay_timestamp)
        else:
            if isinstance(delay_duration, bool) or not isinstance(delay_duration, (int, float)):
                raise ConfigurationError(
                    f"delay_duration must be a number of milliseconds, got {delay_duration!r}",
                    details={"step": self.name},
                )
            if delay_duration < 0:
                raise ConfigurationError(
                    f"delay_duration must be >= 0, got {delay_duration}",
                    details={"step": self.name},
                )
            self.delay_duration = delay_duration

        self.short_delay_threshold_ms = (config or EngineConfig()).short_delay_threshold_ms
        self._pending: tuple[asyncio.Future[None], asyncio.TimerHandle] | None = None
        self.set_callable(self.wait)

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    async def wait(self, context: State) -> DelayResult:
        started = _now_ms()
        now = datetime.now(timezone.utc)
        if self.delay_type == DelayType.ABSOLUTE:
            target = self.delay_timestamp
            remaining_ms = (target - now).total_seconds() * 1000
        else:
            remaining_ms = float(self.delay_duration)
            target = now + timedelta(milliseconds=remaining_ms)

        immediate = remaining_ms <= 0
        if immediate:
            self._log("debug", "delay skipped", delay_type=str(self.delay_type))
        elif remaining_ms < self.short_delay_threshold_ms:
            await asyncio.sleep(remaining_ms / 1000)
        else:
            await self._schedule(remaining_ms)

        self.events.emit(_COMPLETE_EVENTS[self.delay_type], {"step": self, "target": target})
        return DelayResult(
            delay_type=self.delay_type,
            target=target,
            elapsed_ms=_now_ms() - started,
            immediate=immediate,
        )

    async def _schedule(self, delay_ms: float) -> None:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        def _wake() -> None:
            if not future.done():
                future.set_result(None)

        handle = loop.call_later(delay_ms / 1000, _wake)
        self._pending = (future, handle)
        self._log("debug", "delay scheduled", delay_ms=delay_ms)
        try:
            await future
        finally:
            handle.cancel()
            self._pending = None

    def cancel(self) -> bool:
        """Cancel a scheduled wake-up. Returns ``False`` when nothing is pending."""
        if self._pending is None:
            return False
        future, handle = self._pending
        handle.cancel()
        if not future.done():
            future.set_exception(
                DelayCancelledError(
                    f"Delay step {self.name!r} was cancelled",
                    details={"step": self.name},
                )
            )
        self._pending = None
        self.events.emit(StepEvent.DELAY_STEP_CANCELLED, {"step": self})
        self._log("info", "delay cancelled")
        return True
