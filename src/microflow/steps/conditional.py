from __future__ import annotations

from typing import Any

from microflow.core.constants import Comparator, StepEvent
from microflow.core.exceptions import ConfigurationError
from microflow.core.state import State
from microflow.steps.callables import callable_kind
from microflow.steps.logic import LogicStep


def _is_runnable(branch: Any) -> bool:
    if branch is None:
        return False
    try:
        callable_kind(branch)
    except ConfigurationError:
        return False
    return True


class ConditionalStep(LogicStep):
    """If/else branching: runs ``step_left`` when the condition holds, else ``step_right``.

    Each branch may be a function, a Step or a Workflow. A missing branch
    yields ``None``.
    """

    def __init__(
        self,
        name: str | None = None,
        subject: Any = None,
        operator: Comparator | str | None = None,
        value: Any = None,
        step_left: Any = None,
        step_right: Any = None,
        log_suppress: bool = False,
    ) -> None:
        super().__init__(
            name=name,
            subject=subject,
            operator=operator,
            value=value,
            log_suppress=log_suppress,
        )
        self.step_left = step_left
        self.step_right = step_right
        self.set_callable(self.branch)

    async def branch(self, context: State) -> Any:
        if self.check_condition():
            event, selected = StepEvent.CONDITIONAL_TRUE_BRANCH_EXECUTED, self.step_left
        else:
            event, selected = StepEvent.CONDITIONAL_FALSE_BRANCH_EXECUTED, self.step_right

        self.events.emit(event, {"step": self})
        self._log("debug", "conditional branch selected", branch=str(event))

        if not _is_runnable(selected):
            return None
        return await self.run_branch(selected, context)
