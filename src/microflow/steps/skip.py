from __future__ import annotations

from typing import Any

from microflow.core.constants import Comparator
from microflow.core.state import State
from microflow.steps.logic import LogicStep


class SkipStep(LogicStep):
    """Skips the next step in the workflow when its condition holds."""

    def __init__(
        self,
        name: str | None = None,
        subject: Any = None,
        operator: Comparator | str | None = None,
        value: Any = None,
        log_suppress: bool = False,
    ) -> None:
        super().__init__(
            name=name,
            subject=subject,
            operator=operator,
            value=value,
            log_suppress=log_suppress,
        )
        self.set_callable(self.should_skip)

    async def should_skip(self, context: State) -> bool:
        triggered = self.check_condition()
        self.signal.should_skip = triggered
        return triggered
