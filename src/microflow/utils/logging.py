from __future__ import annotations

import logging
import sys
from typing import IO, Any, cast

import structlog

_PACKAGE = "microflow"


def add_component(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Tag engine records with the subpackage that emitted them.

    ``microflow.steps.loop`` becomes ``component="steps"`` and
    ``microflow.workflows.engine`` becomes ``component="workflows"``, so step and
    driver output can be filtered apart. Records from other loggers are left
    untouched, as is an explicit ``component`` passed by the caller.
    """
    name = event_dict.get("logger")
    if isinstance(name, str) and name.startswith(_PACKAGE + "."):
        event_dict.setdefault("component", name.split(".")[1])
    return event_dict


def configure_logging(
    level: str = "INFO",
    json: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog for microflow.

    In production (json=True) uses JSONRenderer for machine-parseable output.
    In development (json=False) uses ConsoleRenderer for human-readable output.
    Both structlog loggers and the stdlib loggers used by the retry helpers go
    through the same processor chain, including :func:`add_component`.

    Args:
        level: Standard logging level string, e.g. "DEBUG", "INFO", "WARNING".
        json: If True, render log entries as JSON. If False, use coloured console output.
        stream: Where to write log lines. Defaults to ``sys.stdout``.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_component,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream is None)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    # Step and workflow logs flow through a single structured handler.
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(name: str, **context: Any) -> structlog.BoundLogger:
    """Return a named structlog logger, optionally bound to *context*.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.
        **context: Key/value pairs attached to every record, e.g. ``workflow="etl"``.

    Returns:
        A structlog BoundLogger bound to *name*.
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return cast(structlog.BoundLogger, logger)
