"""Pure domain layer: value objects, collaborator protocols, clock."""

from procurement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from procurement_kernel.domain.workflow import (
    Actor,
    ApprovalLabels,
    Decision,
    DecisionOutcome,
    DecisionRecord,
    EntityRef,
    EntityType,
    ProgressState,
    ProgressView,
    StatusCode,
    Step,
    StepProjection,
    StepStatus,
    TerminalState,
    WorkflowDefinition,
    WorkflowSummary,
    parse_decision,
    validate_steps,
)

__all__ = [
    "Actor",
    "ApprovalLabels",
    "Clock",
    "Decision",
    "DecisionOutcome",
    "DecisionRecord",
    "DeterministicClock",
    "EntityRef",
    "EntityType",
    "ProgressState",
    "ProgressView",
    "StatusCode",
    "Step",
    "StepProjection",
    "StepStatus",
    "SystemClock",
    "TerminalState",
    "WorkflowDefinition",
    "WorkflowSummary",
    "parse_decision",
    "validate_steps",
]
