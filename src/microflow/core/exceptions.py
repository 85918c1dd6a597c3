from __future__ import annotations

from typing import Any


class MicroflowError(Exception):
    """Base exception for all microflow errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"ERR_OPERATOR"``).
        details: Arbitrary key/value context about the error.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}

    @property
    def is_retryable(self) -> bool:
        """Whether the operation that raised this error can be retried."""
        return False


class ConfigurationError(MicroflowError): ...


class UnknownOperatorError(ConfigurationError):
    """A condition was configured with an operator outside the comparator vocabulary."""

    def __init__(self, operator: Any) -> None:
        super().__init__(
            f"Unknown operator: {operator!r}",
            code="ERR_OPERATOR",
            details={"operator": operator},
        )
        self.operator = operator


class InvalidTimestampError(ConfigurationError): ...


class InvalidStatePathError(ConfigurationError): ...


class StateFrozenError(MicroflowError):
    """A write was attempted against a frozen :class:`~microflow.core.state.State`."""


class EventError(MicroflowError): ...


class WorkflowError(MicroflowError): ...


class DelayCancelledError(MicroflowError):
    """A pending delay was cancelled before it fired."""

    @property
    def is_retryable(self) -> bool:
        return False
