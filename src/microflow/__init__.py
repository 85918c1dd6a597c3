"""microflow: embeddable async workflow composition."""

from microflow.__version__ import __version__

from microflow.callbacks.handler import (
    CompositeCallbackHandler,
    LoggingCallbackHandler,
    WorkflowCallbackHandler,
    attach_handler,
)
from microflow.core.config import EngineConfig
from microflow.core.constants import (
    Comparator,
    DelayType,
    FlowControlType,
    LoopType,
    StateEvent,
    StepEvent,
    StepStatus,
    StepType,
    WorkflowEvent,
    WorkflowStatus,
)
from microflow.core.events import EventDispatcher, StateEvents, StepEvents, WorkflowEvents
from microflow.core.exceptions import (
    ConfigurationError,
    DelayCancelledError,
    EventError,
    InvalidStatePathError,
    InvalidTimestampError,
    MicroflowError,
    StateFrozenError,
    UnknownOperatorError,
    WorkflowError,
)
from microflow.core.state import State
from microflow.core.types import ControlSignal, DelayResult, StepOutput
from microflow.resilience.retry import RetryPolicy
from microflow.steps import (
    Case,
    ConditionalStep,
    DelayStep,
    FlowControlStep,
    LogicStep,
    LoopStep,
    SkipStep,
    Step,
    SwitchStep,
    evaluate_condition,
)
from microflow.utils.logging import configure_logging
from microflow.workflows import Workflow

__all__ = [
    "__version__",
    # Core
    "State",
    "EngineConfig",
    "configure_logging",
    # Steps
    "Step",
    "LogicStep",
    "ConditionalStep",
    "SwitchStep",
    "Case",
    "LoopStep",
    "FlowControlStep",
    "SkipStep",
    "DelayStep",
    "evaluate_condition",
    # Workflows
    "Workflow",
    # Results
    "ControlSignal",
    "StepOutput",
    "DelayResult",
    # Events
    "EventDispatcher",
    "StateEvents",
    "StepEvents",
    "WorkflowEvents",
    "StateEvent",
    "StepEvent",
    "WorkflowEvent",
    # Constants
    "StepType",
    "StepStatus",
    "WorkflowStatus",
    "LoopType",
    "FlowControlType",
    "DelayType",
    "Comparator",
    # Callbacks
    "WorkflowCallbackHandler",
    "LoggingCallbackHandler",
    "CompositeCallbackHandler",
    "attach_handler",
    # Resilience
    "RetryPolicy",
    # Exceptions
    "MicroflowError",
    "ConfigurationError",
    "UnknownOperatorError",
    "InvalidTimestampError",
    "InvalidStatePathError",
    "StateFrozenError",
    "EventError",
    "WorkflowError",
    "DelayCancelledError",
]
