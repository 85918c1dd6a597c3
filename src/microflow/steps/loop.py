from __future__ import annotations

from collections.abc import Iterable, Iterator
from itertools import islice
from typing import TYPE_CHECKING, Any, ClassVar

from microflow.core.config import EngineConfig
from microflow.core.constants import Comparator, LoopType, StepEvent, StepType, WorkflowStatus
from microflow.core.exceptions import ConfigurationError, WorkflowError
from microflow.core.state import State
from microflow.steps.base import Step
from microflow.steps.logic import LogicStep

if TYPE_CHECKING:
    from microflow.workflows.engine import Workflow

BREAK_REASON_MAX_ITERATIONS = "max_iterations"
BREAK_REASON_SIGNAL = "break_signal"


def _is_workflow(value: Any) -> bool:
    # Deferred: the engine module imports the steps package.
    from microflow.workflows.engine import Workflow

    return isinstance(value, Workflow)


class LoopStep(LogicStep):
    """Runs a sub-workflow repeatedly, WHILE a condition holds or FOR_EACH item.

    Every iteration sees ``current_item`` and ``iteration`` (1-based) in the
    sub-workflow state. A BREAK raised inside the body stops the loop; a
    CONTINUE ends only the current iteration. Running ``max_iterations`` times
    stops the loop without raising, before another item is drawn from the source
    or the condition is checked again.

    The loop records why it stopped in its own state (``should_break`` and
    ``break_reason``); neither leaks into the parent workflow. The result is one
    list of step outputs per iteration.

    Args:
        sub_workflow: The loop body.
        loop_type: ``LoopType.WHILE`` or ``LoopType.FOR_EACH``.
        subject: WHILE subject; usually a zero-argument callable.
        operator: WHILE comparator.
        value: WHILE comparison value.
        iterable: FOR_EACH source, or a zero-argument callable returning one.
        max_iterations: Iteration bound. Defaults to ``config.max_iterations``.
        config: Engine configuration supplying defaults.

    Raises:
        ConfigurationError: On a missing body, an unknown loop type, a
            non-iterable FOR_EACH source or an incomplete WHILE condition.
    """

    default_state: ClassVar[dict[str, Any]] = {
        **Step.default_state,
        "iterations": 0,
        "should_break": False,
        "break_reason": None,
    }

    def __init__(
        self,
        name: str | None = None,
        sub_workflow: Workflow | None = None,
        loop_type: LoopType | str = LoopType.WHILE,
        subject: Any = None,
        operator: Comparator | str | None = None,
        value: Any = None,
        iterable: Iterable[Any] | Any = None,
        max_iterations: int | None = None,
        config: EngineConfig | None = None,
        log_suppress: bool = False,
    ) -> None:
        super().__init__(
            name=name,
            subject=subject,
            operator=operator,
            value=value,
            log_suppress=log_suppress,
            type=StepType.LOOP,
        )
        config = config or EngineConfig()

        if not _is_workflow(sub_workflow):
            raise ConfigurationError(
                f"Loop step {self.name!r} requires a Workflow as its sub_workflow",
                details={"step": self.name},
            )
        try:
            self.loop_type = LoopType(loop_type)
        except ValueError:
            raise ConfigurationError(
                f"Invalid loop type: {loop_type!r}",
                details={"loop_type": str(loop_type)},
            ) from None

        if self.loop_type == LoopType.FOR_EACH and not (
            callable(iterable) or isinstance(iterable, Iterable)
        ):
            raise ConfigurationError(
                f"Loop step {self.name!r} requires an iterable for for_each loops",
                details={"step": self.name, "iterable": repr(iterable)},
            )
        if self.loop_type == LoopType.WHILE and not self.conditional_is_valid():
            raise ConfigurationError(
                f"Loop step {self.name!r} requires a valid condition for while loops",
                details={"step": self.name},
            )

        self.max_iterations = max_iterations if max_iterations is not None else config.max_iterations
        if self.max_iterations < 0:
            raise ConfigurationError(
                f"max_iterations must be >= 0, got {self.max_iterations}",
                details={"step": self.name},
            )

        self.sub_workflow = sub_workflow
        self.iterable = iterable
        self.set_callable(self.loop)

    @property
    def iterations(self) -> int:
        return self.state.get("iterations")

    @property
    def break_reason(self) -> str | None:
        return self.state.get("break_reason")

    async def loop(self, context: State) -> list[list[Any]]:
        body = self.sub_workflow
        results: list[list[Any]] = []
        reason: str | None = None
        iteration = 0

        self.state.merge({"iterations": 0, "should_break": False, "break_reason": None})
        body.rewind()

        # islice stops at the bound without pulling one more item
        for item in islice(self._items(), self.max_iterations):
            iteration += 1

            await body.execute({"current_item": item, "iteration": iteration})
            if body.status == WorkflowStatus.FAILED:
                raise WorkflowError(
                    f"Loop body {body.name!r} failed on iteration {iteration}",
                    details={"step": self.name, "iteration": iteration},
                ) from body.error

            results.append(list(body.output_data))
            should_break = bool(body.state.get("should_break"))
            self.state.set("iterations", iteration)
            self.events.emit(
                StepEvent.LOOP_ITERATION_COMPLETE,
                {"step": self, "iteration": iteration, "item": item},
            )
            body.rewind()

            if should_break:
                reason = BREAK_REASON_SIGNAL
                break
        else:
            if iteration >= self.max_iterations:
                reason = BREAK_REASON_MAX_ITERATIONS

        if reason is not None:
            self.state.merge({"should_break": True, "break_reason": reason})
            self.events.emit(
                StepEvent.LOOP_BREAK,
                {"step": self, "iteration": iteration, "reason": reason},
            )
            self._log("info", "loop stopped", reason=reason, iterations=iteration)
        else:
            self._log("debug", "loop finished", iterations=iteration)
        return results

    def _items(self) -> Iterator[Any]:
        if self.loop_type == LoopType.FOR_EACH:
            source = self.iterable() if callable(self.iterable) else self.iterable
            if not isinstance(source, Iterable):
                raise ConfigurationError(
                    f"Loop step {self.name!r} source is not iterable",
                    details={"step": self.name, "iterable": repr(source)},
                )
            yield from source
            return

        while self.check_condition():
            yield None
