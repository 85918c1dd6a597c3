from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from microflow.core.constants import Comparator, StepEvent
from microflow.core.exceptions import ConfigurationError
from microflow.core.state import State
from microflow.steps.logic import LogicStep


class Case(LogicStep):
    """One arm of a :class:`SwitchStep`.

    A case without a subject of its own compares the switch subject; with
    ``force_subject_override`` it always does. ``is_matched`` reports whether
    this case won the most recent switch evaluation.
    """

    def __init__(
        self,
        name: str | None = None,
        subject: Any = None,
        operator: Comparator | str | None = None,
        value: Any = None,
        callable: Any = None,  # noqa: A002
        force_subject_override: bool = False,
        log_suppress: bool = False,
    ) -> None:
        super().__init__(
            name=name,
            subject=subject,
            operator=operator,
            value=value,
            callable=callable,
            log_suppress=log_suppress,
        )
        self.force_subject_override = force_subject_override
        self.switch_subject: Any = None
        self.is_matched = False

    def resolve_subject(self) -> Any:
        subject = self.subject
        if self.switch_subject is not None and (subject is None or self.force_subject_override):
            subject = self.switch_subject
        if subject is None:
            raise ConfigurationError(
                f"No subject set for case {self.name!r}",
                details={"case": self.name},
            )
        return subject() if callable(subject) else subject


class SwitchStep(LogicStep):
    """Runs the first matching :class:`Case`, or ``default_case`` when none match.

    Cases are checked in declaration order and later cases are never
    evaluated once one matches. ``default_case`` may be a Case, a Step, a
    Workflow or a function; without one an unmatched switch returns ``None``.
    """

    def __init__(
        self,
        name: str | None = None,
        cases: Iterable[Case] | None = None,
        default_case: Any = None,
        subject: Any = None,
        log_suppress: bool = False,
    ) -> None:
        super().__init__(name=name, subject=subject, log_suppress=log_suppress)
        self.cases: list[Case] = list(cases or [])
        for case in self.cases:
            if not isinstance(case, Case):
                raise ConfigurationError(
                    f"Switch cases must be Case instances, got {type(case).__name__}",
                    details={"step": self.name},
                )
        self.default_case = default_case
        self.set_callable(self.switch)

    async def switch(self, context: State) -> Any:
        for case in self.cases:
            case.is_matched = False

        for case in self.cases:
            case.switch_subject = self.subject
            if not case.check_condition():
                continue
            case.is_matched = True
            self.events.emit(StepEvent.SWITCH_CASE_MATCHED, {"step": self, "case": case})
            self._log("debug", "switch case matched", case=case.name)
            return await self.run_branch(case, context)

        if self.default_case is None:
            return None

        self.events.emit(StepEvent.SWITCH_DEFAULT_EXECUTED, {"step": self})
        self._log("debug", "switch default executed")
        return await self.run_branch(self.default_case, context)
