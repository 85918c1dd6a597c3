from __future__ import annotations

import time
import uuid
from typing import Any, ClassVar

import structlog

from microflow.core.constants import StepEvent, StepStatus, StepType
from microflow.core.events import StepEvents
from microflow.core.state import State
from microflow.core.types import ControlSignal, StepOutput
from microflow.steps.callables import CallableKind, callable_kind, run_callable

logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


async def _noop(context: State) -> None:
    return None


class Step:
    """A single executable unit with a lifecycle and a callable.

    Status moves WAITING → RUNNING → COMPLETE | FAILED; ``mark_as_pending`` and
    ``mark_as_waiting`` can park a step without making it terminal. Every
    transition emits the matching :class:`StepEvent` on :attr:`events`.

    Args:
        name: Display name. Defaults to ``"<type>_<id>"``.
        type: Declared step type; specialised subclasses set it themselves.
        callable: A function taking the borrowed state, another Step, or a
            Workflow. Defaults to a no-op.
        log_suppress: Silence this step's log lines (events still fire).

    Example::

        step = Step(name="greet", callable=lambda ctx: f"hello {ctx.get('user')}")
        output = await step.execute(State({"user": "ada"}))
        assert output.result == "hello ada"
    """

    default_state: ClassVar[dict[str, Any]] = {
        "id": None,
        "name": None,
        "type": StepType.ACTION,
        "status": StepStatus.WAITING,
        "callable": None,
        "log_suppress": False,
        "start_time": None,
        "execution_time_ms": None,
    }
    _clone_by_reference: ClassVar[bool] = True

    def __init__(
        self,
        name: str | None = None,
        type: StepType | str = StepType.ACTION,  # noqa: A002
        callable: Any = None,  # noqa: A002
        log_suppress: bool = False,
    ) -> None:
        step_id = str(uuid.uuid4())
        step_type = StepType(type)
        self.events = StepEvents()
        self.signal = ControlSignal()
        self.context: State | None = None
        self.state = State(
            {
                "id": step_id,
                "name": name or f"{step_type}_{step_id}",
                "type": step_type,
                "log_suppress": log_suppress,
            },
            defaults=self.default_state,
        )
        self.set_callable(callable if callable is not None else _noop)
        self.events.emit(StepEvent.STEP_CREATED, {"step": self})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, status={self.status!r})"

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
    def type(self) -> StepType:
        return self.state.get("type")

    @property
    def status(self) -> StepStatus:
        return self.state.get("status")

    @property
    def callable(self) -> Any:
        return self.state.get("callable")

    @property
    def log_suppress(self) -> bool:
        return bool(self.state.get("log_suppress"))

    @property
    def start_time(self) -> int | None:
        return self.state.get("start_time")

    @property
    def execution_time_ms(self) -> int | None:
        return self.state.get("execution_time_ms")

    def set_callable(self, callable: Any) -> None:  # noqa: A002
        """Replace the unit of work. Raises ConfigurationError for unsupported values."""
        callable_kind(callable)
        self.state.set("callable", callable)

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    async def execute(self, context: State | None = None) -> StepOutput:
        """Run the callable with the borrowed *context* and return its output.

        *context* is the owning workflow's state when run by a driver; a
        standalone step runs against its own state. A Step callable is unwrapped
        one level to its own callable; a Workflow callable runs to completion and
        its duration is adopted.

        Raises:
            Exception: Whatever the callable raised, after the step is marked FAILED.
        """
        borrowed = context if context is not None else self.state
        self.signal = ControlSignal()
        self.mark_as_running()

        target = self.callable
        inner: Step | None = None
        if callable_kind(target) == CallableKind.STEP:
            inner = target
            inner.signal = ControlSignal()
            target = inner.callable

        adopted_duration: int | None = None
        self.context = borrowed
        try:
            result = await run_callable(target, borrowed)
            if callable_kind(target) == CallableKind.WORKFLOW:
                adopted_duration = target.execution_time_ms
        except Exception as exc:
            self._record_duration()
            self.mark_as_failed(exc)
            raise
        finally:
            self.context = None

        if inner is not None:
            self.signal.merge(inner.signal)

        self._record_duration(adopted_duration)
        self.mark_as_complete(result)
        return self.prepare_return_data(result)

    def prepare_return_data(self, result: Any, error: BaseException | None = None) -> StepOutput:
        """Package *result* with a snapshot of this step's state."""
        return StepOutput(
            step_id=self.id,
            step_name=self.name,
            status=self.status,
            result=result,
            state=self.state.get_snapshot_clone(),
            signal=self.signal.model_copy(),
            error=str(error) if error is not None else None,
            execution_time_ms=self.execution_time_ms,
        )

    def cancel(self) -> bool:
        """Abort pending work. Plain steps have nothing to cancel."""
        return False

    def reset(self) -> None:
        """Return the step to WAITING and clear timing and signals."""
        self.state.set("start_time", None)
        self.state.set("execution_time_ms", None)
        self.signal = ControlSignal()
        self.mark_as_waiting()

    # ------------------------------------------------------------------ #
    # Lifecycle transitions
    # ------------------------------------------------------------------ #

    def mark_as_running(self) -> None:
        self.state.set("start_time", _now_ms())
        self.state.set("execution_time_ms", None)
        self._transition(StepStatus.RUNNING, StepEvent.STEP_RUNNING)
        self._log("debug", "step started")

    def mark_as_complete(self, result: Any = None) -> None:
        self._transition(StepStatus.COMPLETE, StepEvent.STEP_COMPLETED, result=result)
        self._log("debug", "step completed", execution_time_ms=self.execution_time_ms)

    def mark_as_failed(self, error: BaseException | None = None) -> None:
        self._transition(StepStatus.FAILED, StepEvent.STEP_FAILED, error=error)
        self._log("error", "step failed", error=str(error) if error else None)

    def mark_as_waiting(self) -> None:
        self._transition(StepStatus.WAITING, StepEvent.STEP_WAITING)
        self._log("debug", "step waiting")

    def mark_as_pending(self) -> None:
        self._transition(StepStatus.PENDING, StepEvent.STEP_PENDING)
        self._log("debug", "step pending")

    def _transition(self, status: StepStatus, event: StepEvent, **payload: Any) -> None:
        self.state.set("status", status)
        self.events.emit(event, {"step": self, **payload})

    def _record_duration(self, duration_ms: int | None = None) -> None:
        if duration_ms is None and self.start_time is not None:
            duration_ms = _now_ms() - self.start_time
        self.state.set("execution_time_ms", duration_ms)

    def _log(self, level: str, event: str, **kwargs: Any) -> None:
        if self.log_suppress:
            return
        getattr(logger, level)(
            event,
            step=self.name,
            step_id=self.id,
            step_type=str(self.type),
            **kwargs,
        )
