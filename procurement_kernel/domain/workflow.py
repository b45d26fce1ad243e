"""
Approval workflow domain types (``procurement_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the approval engine: workflow definitions and
their steps, append-only decision records, actors, and the derived
progress / outcome / projection results.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* Steps of a definition are contiguous by ``step_order`` starting at 1
  (checked by ``validate_steps``; enforced at definition creation).
* ``min_approvals`` is a positive quorum of *distinct* actors.
* ``DecisionRecord`` is immutable.  There is no stored "current step":
  records plus the definition determine progress.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID


class EntityType(str, Enum):
    """Kinds of procurement records governed by approval workflows."""

    REQUEST = "Request"
    ORDER = "Order"
    CONTRACT = "Contract"
    INVOICE = "Invoice"


class Decision(str, Enum):
    """Decision an approver records against the current step."""

    APPROVED = "approved"
    REJECTED = "rejected"


# Wire values accepted from the host ("approve" / "reject") plus the
# stored enum values themselves.
_DECISION_ALIASES: dict[str, Decision] = {
    "approve": Decision.APPROVED,
    "approved": Decision.APPROVED,
    "reject": Decision.REJECTED,
    "rejected": Decision.REJECTED,
}


def parse_decision(value: str | Decision) -> Decision:
    """Parse a decision from its wire form.

    Raises:
        ValueError: if ``value`` is not a known decision.
    """
    if isinstance(value, Decision):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Decision must be a string, got {type(value).__name__}")
    try:
        return _DECISION_ALIASES[value.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown decision {value!r}") from None


class TerminalState(str, Enum):
    """Terminal outcome of a workflow; NONE while steps remain open."""

    NONE = "none"
    APPROVED = "approved"
    REJECTED = "rejected"


class StepStatus(str, Enum):
    """Per-step status in the read-side projection."""

    COMPLETED = "completed"
    CURRENT = "current"
    REJECTED = "rejected"
    PENDING = "pending"


class StatusCode(str, Enum):
    """Stable outcome code of a decision, independent of display text."""

    STEP_PENDING = "step_pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    UNCHANGED = "unchanged"


# =========================================================================
# Definition types
# =========================================================================


@dataclass(frozen=True)
class Step:
    """One stage of a workflow.

    ``allowed_approver_roles`` holds the primary role plus any alternates;
    ``primary_role`` (when set) is one of them, kept for display.
    ``min_approvals`` > 1 turns the step into a parallel quorum step.
    """

    step_order: int
    name: str
    allowed_approver_roles: frozenset[str]
    min_approvals: int = 1
    description: str | None = None
    primary_role: str | None = None


@dataclass(frozen=True)
class WorkflowDefinition:
    """An ordered, scoped approval workflow for one entity type.

    ``scope_id=None`` marks the default definition for the entity type;
    a scoped definition overrides it for that scope.
    """

    workflow_id: UUID
    name: str
    entity_type: EntityType
    steps: tuple[Step, ...]
    display_name: str = ""
    scope_id: str | None = None
    active: bool = True

    @property
    def is_usable(self) -> bool:
        return len(self.steps) > 0

    def step_at(self, step_order: int) -> Step | None:
        for step in self.steps:
            if step.step_order == step_order:
                return step
        return None

    def next_step(self, step: Step) -> Step | None:
        return self.step_at(step.step_order + 1)


def validate_steps(steps: tuple[Step, ...]) -> list[str]:
    """Return the structural problems of a step sequence (empty if valid)."""
    problems: list[str] = []
    if not steps:
        problems.append("workflow must have at least one step")
        return problems

    orders = [s.step_order for s in steps]
    if orders != list(range(1, len(steps) + 1)):
        problems.append(
            f"step orders must be contiguous from 1 in ascending order, got {orders}"
        )
    for step in steps:
        if not step.name or not step.name.strip():
            problems.append(f"step {step.step_order} has no name")
        if step.min_approvals < 1:
            problems.append(
                f"step {step.step_order} min_approvals must be positive, "
                f"got {step.min_approvals}"
            )
        if not step.allowed_approver_roles:
            problems.append(f"step {step.step_order} has no approver roles")
        elif (
            step.primary_role is not None
            and step.primary_role not in step.allowed_approver_roles
        ):
            problems.append(
                f"step {step.step_order} primary role {step.primary_role!r} "
                f"is not among its approver roles"
            )
    return problems


# =========================================================================
# Actors and decision records
# =========================================================================


@dataclass(frozen=True)
class Actor:
    """Who is deciding.

    ``bypass_approval_gating`` is an explicit capability that lets the
    actor decide any step regardless of its approver roles.
    """

    actor_id: str
    roles: frozenset[str] = frozenset()
    bypass_approval_gating: bool = False


@dataclass(frozen=True)
class DecisionRecord:
    """Record of a single approve/reject decision. Immutable.

    ``step_name`` is copied at decision time so history survives later
    edits of the definition.  ``created_at`` orders history for display
    only; state derivation never reads it.
    """

    record_id: UUID
    entity_type: EntityType
    entity_id: str
    step_order: int
    step_name: str
    decision: Decision
    actor_id: str
    comment: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class EntityRef:
    """Host-supplied reference to a governed record."""

    entity_type: EntityType
    entity_id: str
    scope_id: str | None = None


# =========================================================================
# Derived results
# =========================================================================


@dataclass(frozen=True)
class ProgressState:
    """Progress of one entity through its workflow.

    ``current_step`` is the first step without quorum; None once every
    step is complete.  ``rejected_step`` is reported for display when the
    workflow is terminal-rejected.
    """

    completed_steps: tuple[Step, ...]
    current_step: Step | None
    terminal: TerminalState
    approvals_on_current_step: int
    required_on_current_step: int
    rejected_step: Step | None = None
    rejected_by: str | None = None


@dataclass(frozen=True)
class ApprovalLabels:
    """Display labels used for resulting statuses."""

    approved_label: str = "Approved"
    rejected_label: str = "Rejected"
    pending_suffix: str = "Pending"

    def pending_label(self, step_name: str) -> str:
        return f"{step_name} {self.pending_suffix}".rstrip()


@dataclass(frozen=True)
class DecisionOutcome:
    """Result of a recorded decision.

    ``resulting_label`` is the caller's ``current_label`` when the
    decision did not complete the step (``StatusCode.UNCHANGED``).
    """

    status_code: StatusCode
    resulting_label: str | None
    step_name: str
    step_order: int
    next_step_name: str | None
    step_completed: bool
    record: DecisionRecord


@dataclass(frozen=True)
class StepProjection:
    """A step reshaped for a status/history view."""

    step: Step
    status: StepStatus
    approved_count: int
    required_count: int


@dataclass(frozen=True)
class WorkflowSummary:
    workflow_id: UUID
    name: str
    display_name: str


@dataclass(frozen=True)
class ProgressView:
    """Read-side projection: workflow steps with status plus full history."""

    entity_type: EntityType
    entity_id: str
    workflow: WorkflowSummary
    steps: tuple[StepProjection, ...]
    history: tuple[DecisionRecord, ...] = field(default=())
    terminal: TerminalState = TerminalState.NONE
    current_step_order: int | None = None
