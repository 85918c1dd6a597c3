from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field

from microflow.core.constants import DEFAULT_MAX_ITERATIONS, SHORT_DELAY_THRESHOLD_MS
from microflow.utils.logging import configure_logging

_TRUTHY = {"1", "true", "yes", "on"}


class EngineConfig(BaseModel):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True
    exit_on_failure: bool = True
    freeze_on_completion: bool = False
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1, le=100_000)
    short_delay_threshold_ms: int = Field(default=SHORT_DELAY_THRESHOLD_MS, ge=0, le=60_000)
    """Relative delays shorter than this use a direct sleep instead of a scheduled wake."""

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create an :class:`EngineConfig` from ``MICROFLOW_*`` environment variables.

        Reads the following env vars (all optional):

        * ``MICROFLOW_LOG_LEVEL`` → ``log_level``
        * ``MICROFLOW_LOG_JSON`` → ``log_json`` (``1``/``true``/``yes``/``on`` are truthy)
        * ``MICROFLOW_EXIT_ON_FAILURE`` → ``exit_on_failure``
        * ``MICROFLOW_FREEZE_ON_COMPLETION`` → ``freeze_on_completion``
        * ``MICROFLOW_MAX_ITERATIONS`` → ``max_iterations`` (integer, 1–100000)
        * ``MICROFLOW_SHORT_DELAY_THRESHOLD_MS`` → ``short_delay_threshold_ms``

        Any variable that is not set or is empty is left at its default value.

        Returns:
            An :class:`EngineConfig` populated from the environment.
        """
        kwargs: dict[str, Any] = {}

        log_level = os.environ.get("MICROFLOW_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level.upper()

        for env_name, field_name in (
            ("MICROFLOW_LOG_JSON", "log_json"),
            ("MICROFLOW_EXIT_ON_FAILURE", "exit_on_failure"),
            ("MICROFLOW_FREEZE_ON_COMPLETION", "freeze_on_completion"),
        ):
            raw = os.environ.get(env_name)
            if raw:
                kwargs[field_name] = raw.strip().lower() in _TRUTHY

        max_iterations = os.environ.get("MICROFLOW_MAX_ITERATIONS")
        if max_iterations:
            kwargs["max_iterations"] = int(max_iterations)

        threshold = os.environ.get("MICROFLOW_SHORT_DELAY_THRESHOLD_MS")
        if threshold:
            kwargs["short_delay_threshold_ms"] = int(threshold)

        return cls(**kwargs)

    def configure_logging(self) -> None:
        """Apply ``log_level`` / ``log_json`` via :func:`microflow.utils.logging.configure_logging`."""
        configure_logging(self.log_level, json=self.log_json)
