"""Caller-level retry policy with exponential backoff and jitter for steps."""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel, Field

from microflow.core.constants import StepEvent
from microflow.core.exceptions import MicroflowError
from microflow.core.types import StepOutput

if TYPE_CHECKING:
    from microflow.core.state import State
    from microflow.steps.base import Step

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class RetryPolicy(BaseModel):
    """Configurable retry policy with exponential backoff.

    Steps never retry on their own; wrap a step (or any async callable) in a
    policy to re-run it on failure.

    Attributes:
        max_retries: Maximum number of retry attempts (0 = no retries).
        backoff_base: Base delay in seconds for exponential backoff.
        backoff_max: Maximum delay in seconds (caps the exponential growth).
        jitter: If ``True``, add random jitter to the backoff delay.
        retryable_exceptions: Tuple of exception types that are eligible for retry.
    """

    max_retries: int = Field(default=3, ge=0, le=50)
    backoff_base: float = Field(default=1.0, ge=0.0)
    backoff_max: float = Field(default=60.0, ge=0.0)
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,)

    model_config = {"arbitrary_types_allowed": True}

    def _is_retryable(self, exc: Exception) -> bool:
        """Determine whether an exception should be retried.

        A microflow error whose own class (below :class:`MicroflowError`)
        overrides ``is_retryable`` decides for itself; so does any other
        exception exposing ``is_retryable``. Everything else is retried when it
        is an instance of ``retryable_exceptions``.
        """
        if isinstance(exc, MicroflowError):
            for klass in type(exc).__mro__:
                if klass is MicroflowError:
                    break
                if "is_retryable" in klass.__dict__:
                    return bool(exc.is_retryable)
        elif hasattr(exc, "is_retryable"):
            return bool(exc.is_retryable)

        return isinstance(exc, self.retryable_exceptions)

    def _compute_delay(self, attempt: int) -> float:
        """Compute the backoff delay for the given attempt (0-indexed).

        ``backoff_base * 2^attempt``, capped at ``backoff_max``; with ``jitter``
        the delay is uniform between 0 and that value.
        """
        delay: float = min(self.backoff_base * (2 ** attempt), self.backoff_max)
        if self.jitter:
            delay = random.uniform(0, delay)  # noqa: S311
        return delay

    async def execute(
        self,
        fn: Callable[..., Awaitable[_T]],
        *args: Any,
        on_retry: Callable[[int, float, Exception], None] | None = None,
        **kwargs: Any,
    ) -> _T:
        """Execute *fn* with retry logic.

        Calls ``await fn(*args, **kwargs)`` and retries on retryable
        exceptions up to ``max_retries`` times with exponential backoff.
        *on_retry* is called with ``(attempt, delay, exc)`` before each retry.

        Raises:
            Exception: The last exception raised by *fn* if all retries are
                exhausted, or immediately if the exception is not retryable.
        """
        for attempt in range(1 + self.max_retries):
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:
                if not self._is_retryable(exc):
                    raise

                if attempt >= self.max_retries:
                    logger.warning(
                        "Retry exhausted after %d attempt(s): %s",
                        attempt + 1,
                        exc,
                    )
                    raise

                delay = self._compute_delay(attempt)
                logger.info(
                    "Retry attempt %d/%d after %.2fs: %s",
                    attempt + 1,
                    self.max_retries,
                    delay,
                    exc,
                )
                if on_retry is not None:
                    on_retry(attempt + 1, delay, exc)
                await asyncio.sleep(delay)

        raise AssertionError("unreachable")  # pragma: no cover

    async def execute_step(self, step: Step, context: State | None = None) -> StepOutput:
        """Run ``step.execute(context)`` under this policy.

        Emits ``step_retrying`` on the step before every retry with the attempt
        number, the backoff delay and the error that triggered it.
        """

        def _announce(attempt: int, delay: float, exc: Exception) -> None:
            step.events.emit(
                StepEvent.STEP_RETRYING,
                {"step": step, "attempt": attempt, "delay": delay, "error": exc},
            )

        return await self.execute(step.execute, context, on_retry=_announce)

    def as_decorator(
        self,
    ) -> Callable[[Callable[..., Awaitable[_T]]], Callable[..., Awaitable[_T]]]:
        """Return a decorator that wraps async functions with this retry policy.

        Usage::

            policy = RetryPolicy(max_retries=5)

            @policy.as_decorator()
            async def fragile_call():
                ...
        """

        def decorator(
            fn: Callable[..., Awaitable[_T]],
        ) -> Callable[..., Awaitable[_T]]:
            @functools.wraps(fn)
            async def wrapper(*args: Any, **kwargs: Any) -> _T:
                return await self.execute(fn, *args, **kwargs)

            return wrapper

        return decorator
