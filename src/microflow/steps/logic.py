"""Condition evaluation shared by every branching step."""
from __future__ import annotations

import operator as op
from typing import Any, Callable

from microflow.core.constants import COMPARATOR_ALIASES, Comparator, StepType
from microflow.core.exceptions import ConfigurationError, UnknownOperatorError
from microflow.core.state import State
from microflow.steps.base import Step
from microflow.steps.callables import run_callable

_RELATIONAL: dict[Comparator, Callable[[Any, Any], bool]] = {
    Comparator.GREATER_THAN: op.gt,
    Comparator.LESS_THAN: op.lt,
    Comparator.GREATER_THAN_OR_EQUAL: op.ge,
    Comparator.LESS_THAN_OR_EQUAL: op.le,
}


def resolve_operator(operator: Comparator | str) -> Comparator:
    """Map a comparator name, symbol or short alias onto a :class:`Comparator`.

    Raises:
        UnknownOperatorError: If *operator* is not part of the vocabulary.
    """
    if isinstance(operator, Comparator):
        return operator
    if isinstance(operator, str):
        key = operator.strip()
        if key in COMPARATOR_ALIASES:
            return COMPARATOR_ALIASES[key]
        try:
            return Comparator(key.lower())
        except ValueError:
            pass
    raise UnknownOperatorError(operator)


def _kind(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    return type(value).__name__


def _as_number(value: Any) -> float | None:
    if isinstance(value, (bool, int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return None
    return None


def strict_equals(subject: Any, value: Any) -> bool:
    return _kind(subject) == _kind(value) and subject == value


def loose_equals(subject: Any, value: Any) -> bool:
    """Equality that coerces numbers, bools and numeric strings when types differ."""
    if subject is None or value is None:
        return subject is None and value is None
    if _kind(subject) == _kind(value):
        return subject == value
    left, right = _as_number(subject), _as_number(value)
    if left is not None and right is not None:
        return left == right
    return subject == value


def evaluate_condition(subject: Any, operator: Comparator | str, value: Any) -> bool:
    """Compare *subject* against *value* with *operator*.

    Relational comparisons with ``None`` on either side are False. Operands of
    different kinds are compared numerically (``"10" > 5`` is True) and the
    comparison is False when either side is not numeric.

    Raises:
        UnknownOperatorError: If *operator* is not a known comparator.
        ConfigurationError: If two values of the same kind cannot be ordered.
    """
    comparator = resolve_operator(operator)

    if comparator == Comparator.EQUALS:
        return loose_equals(subject, value)
    if comparator == Comparator.NOT_EQUALS:
        return not loose_equals(subject, value)
    if comparator == Comparator.STRICT_EQUALS:
        return strict_equals(subject, value)
    if comparator == Comparator.STRICT_NOT_EQUALS:
        return not strict_equals(subject, value)

    if subject is None or value is None:
        return False
    compare = _RELATIONAL[comparator]
    if _kind(subject) != _kind(value):
        left, right = _as_number(subject), _as_number(value)
        if left is None or right is None:
            return False
        return compare(left, right)
    try:
        return bool(compare(subject, value))
    except TypeError:
        raise ConfigurationError(
            f"Cannot compare {_kind(subject)} values with {operator!r}",
            details={"operator": str(comparator), "kind": _kind(subject)},
        ) from None


class LogicStep(Step):
    """A step carrying a ``subject operator value`` condition.

    *subject* may be a zero-argument callable; it is resolved on every
    :meth:`check_condition` call so loops can observe changing values.
    """

    def __init__(
        self,
        name: str | None = None,
        subject: Any = None,
        operator: Comparator | str | None = None,
        value: Any = None,
        callable: Any = None,  # noqa: A002
        log_suppress: bool = False,
        type: StepType | str = StepType.LOGIC,  # noqa: A002
    ) -> None:
        super().__init__(
            name=name,
            type=type,
            callable=callable,
            log_suppress=log_suppress,
        )
        self.set_conditional(subject, operator, value)

    def set_conditional(
        self,
        subject: Any = None,
        operator: Comparator | str | None = None,
        value: Any = None,
    ) -> None:
        self.subject = subject
        self.operator = resolve_operator(operator) if operator is not None else None
        self.value = value

    def resolve_subject(self) -> Any:
        return self.subject() if callable(self.subject) else self.subject

    def conditional_is_valid(self) -> bool:
        return (
            self.subject is not None
            and self.operator is not None
            and self.value is not None
        )

    def check_condition(self) -> bool:
        """Evaluate the configured condition against the current subject.

        Raises:
            ConfigurationError: If no operator is configured.
        """
        if self.operator is None:
            raise ConfigurationError(
                f"No operator configured for step {self.name!r}",
                details={"step": self.name},
            )
        return evaluate_condition(self.resolve_subject(), self.operator, self.value)

    async def run_branch(self, branch: Any, context: State) -> Any:
        """Run *branch* against *context*, adopting the signal a Step branch raises."""
        result = await run_callable(branch, context)
        if isinstance(branch, Step):
            self.signal.merge(branch.signal)
        return result
