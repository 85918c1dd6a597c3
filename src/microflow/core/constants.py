from __future__ import annotations

from enum import StrEnum


class StepType(StrEnum):
    ACTION = "action"
    LOGIC = "logic"
    DELAY = "delay"
    LOOP = "loop"


class StepStatus(StrEnum):
    WAITING = "waiting"
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


class WorkflowStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"
    RESUMED = "resumed"
    CANCELLED = "cancelled"
    FROZEN = "frozen"


class LoopType(StrEnum):
    WHILE = "while"
    FOR_EACH = "for_each"


class FlowControlType(StrEnum):
    BREAK = "break"
    CONTINUE = "continue"


class DelayType(StrEnum):
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


class Comparator(StrEnum):
    EQUALS = "equals"
    STRICT_EQUALS = "strict_equals"
    NOT_EQUALS = "not_equals"
    STRICT_NOT_EQUALS = "strict_not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"


# Symbolic and short aliases accepted wherever a Comparator is expected.
COMPARATOR_ALIASES: dict[str, Comparator] = {
    "==": Comparator.EQUALS,
    "===": Comparator.STRICT_EQUALS,
    "!=": Comparator.NOT_EQUALS,
    "!==": Comparator.STRICT_NOT_EQUALS,
    ">": Comparator.GREATER_THAN,
    "<": Comparator.LESS_THAN,
    ">=": Comparator.GREATER_THAN_OR_EQUAL,
    "<=": Comparator.LESS_THAN_OR_EQUAL,
    "eq": Comparator.EQUALS,
    "ne": Comparator.NOT_EQUALS,
    "gt": Comparator.GREATER_THAN,
    "lt": Comparator.LESS_THAN,
    "gte": Comparator.GREATER_THAN_OR_EQUAL,
    "lte": Comparator.LESS_THAN_OR_EQUAL,
}


class StepEvent(StrEnum):
    # Lifecycle
    STEP_CREATED = "step_created"
    STEP_RUNNING = "step_running"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"
    STEP_RETRYING = "step_retrying"
    STEP_WAITING = "step_waiting"
    STEP_PENDING = "step_pending"

    # Control-flow introspection
    CONDITIONAL_TRUE_BRANCH_EXECUTED = "conditional_true_branch_executed"
    CONDITIONAL_FALSE_BRANCH_EXECUTED = "conditional_false_branch_executed"
    SWITCH_CASE_MATCHED = "switch_case_matched"
    SWITCH_DEFAULT_EXECUTED = "switch_default_executed"
    LOOP_ITERATION_COMPLETE = "loop_iteration_complete"
    LOOP_BREAK = "loop_break"

    # Delays
    DELAY_STEP_ABSOLUTE_COMPLETE = "delay_step_absolute_complete"
    DELAY_STEP_RELATIVE_COMPLETE = "delay_step_relative_complete"
    DELAY_STEP_CANCELLED = "delay_step_cancelled"


class WorkflowEvent(StrEnum):
    WORKFLOW_CREATED = "workflow_created"
    WORKFLOW_STARTED = "workflow_started"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_ERRORED = "workflow_errored"
    WORKFLOW_FAILED = "workflow_failed"
    WORKFLOW_PAUSED = "workflow_paused"
    WORKFLOW_RESUMED = "workflow_resumed"
    WORKFLOW_CANCELLED = "workflow_cancelled"
    WORKFLOW_FROZEN = "workflow_frozen"
    WORKFLOW_STEP_ADDED = "workflow_step_added"
    WORKFLOW_STEPS_ADDED = "workflow_steps_added"
    WORKFLOW_STEP_REMOVED = "workflow_step_removed"
    WORKFLOW_STEP_MOVED = "workflow_step_moved"
    WORKFLOW_STEP_SHIFTED = "workflow_step_shifted"
    WORKFLOW_STEPS_CLEARED = "workflow_steps_cleared"
    WORKFLOW_STEP_SKIPPED = "workflow_step_skipped"


DEFAULT_MAX_ITERATIONS = 20
SHORT_DELAY_THRESHOLD_MS = 100


class StateEvent(StrEnum):
    SET = "set"
    MERGE = "merge"
    DELETED = "deleted"
    FROZEN = "frozen"
