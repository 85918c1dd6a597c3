"""The callable contract shared by steps, cases and branches.

A step's unit of work is one of three variants: a plain function taking the
borrowed state, another :class:`~microflow.steps.base.Step`, or a
:class:`~microflow.workflows.engine.Workflow`. :func:`callable_kind` tags a
value with its variant and :func:`run_callable` is the single place that
invokes one.
"""
from __future__ import annotations

import inspect
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from microflow.core.constants import WorkflowStatus
from microflow.core.exceptions import ConfigurationError, WorkflowError

if TYPE_CHECKING:
    from microflow.core.state import State


class CallableKind(StrEnum):
    FUNCTION = "function"
    STEP = "step"
    WORKFLOW = "workflow"


def callable_kind(target: Any) -> CallableKind:
    """Classify *target* as a function, Step or Workflow.

    Raises:
        ConfigurationError: If *target* is none of the three.
    """
    # Deferred: steps and workflows both depend on this module.
    from microflow.steps.base import Step
    from microflow.workflows.engine import Workflow

    if isinstance(target, Workflow):
        return CallableKind.WORKFLOW
    if isinstance(target, Step):
        return CallableKind.STEP
    if callable(target):
        return CallableKind.FUNCTION
    raise ConfigurationError(
        "Invalid callable type. Must be one of function, Step, or Workflow.",
        details={"callable": repr(target)},
    )


async def run_callable(target: Any, context: State) -> Any:
    """Invoke *target* with the borrowed *context* and return its result.

    * Functions are called with *context*; awaitable results are awaited.
    * Steps are executed through their full lifecycle; their ``result`` is returned.
    * Workflows run to completion on their own state; their ``output_data`` is
      returned. A workflow that ends FAILED raises :class:`WorkflowError`.
    """
    kind = callable_kind(target)

    if kind == CallableKind.WORKFLOW:
        await target.execute()
        if target.status == WorkflowStatus.FAILED:
            raise WorkflowError(
                f"Sub-workflow {target.name!r} failed",
                details={"workflow_id": target.id, "error": str(target.error)},
            ) from target.error
        return list(target.output_data)

    if kind == CallableKind.STEP:
        output = await target.execute(context)
        return output.result

    result = target(context)
    if inspect.isawaitable(result):
        result = await result
    return result
