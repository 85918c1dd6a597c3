from microflow.steps.base import Step
from microflow.steps.callables import CallableKind, callable_kind, run_callable
from microflow.steps.conditional import ConditionalStep
from microflow.steps.delay import DelayStep
from microflow.steps.flow_control import FlowControlStep
from microflow.steps.logic import LogicStep, evaluate_condition, resolve_operator
from microflow.steps.loop import LoopStep
from microflow.steps.skip import SkipStep
from microflow.steps.switch import Case, SwitchStep

__all__ = [
    "CallableKind",
    "Case",
    "ConditionalStep",
    "DelayStep",
    "FlowControlStep",
    "LogicStep",
    "LoopStep",
    "SkipStep",
    "Step",
    "SwitchStep",
    "callable_kind",
    "evaluate_condition",
    "resolve_operator",
    "run_callable",
]
