"""
procurement_engines.approval -- Pure approval workflow evaluation engine.

Responsibility:
    Select the applicable workflow definition, compute an entity's
    progress through it from its decision history, check whether an
    actor may decide the current step, derive the outcome of a freshly
    recorded decision, and reshape progress for display.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel/domain/ types.

Invariants enforced:
    - Quorum is counted over *distinct* approving actors, never records,
      so one actor deciding twice cannot satisfy ``min_approvals > 1``.
    - Sequential gating: step K+1 is never current while step K lacks
      quorum.
    - Determinism: records are reduced to per-step actor sets, so the
      result does not depend on record order and repeated calls on the
      same inputs return equal results.
    - Rejection at or before the current step is terminal and takes
      precedence over approval.
    - Read and write paths share ``compute_progress``; the projection has
      no independent notion of "current step".

Failure modes:
    - ValueError from ``compute_progress`` when the definition has no
      steps (resolution never returns such a definition).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Sequence

from procurement_kernel.domain.workflow import (
    Actor,
    ApprovalLabels,
    Decision,
    DecisionOutcome,
    DecisionRecord,
    ProgressState,
    StatusCode,
    Step,
    StepProjection,
    StepStatus,
    TerminalState,
    WorkflowDefinition,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def select_workflow(
    scoped: WorkflowDefinition | None,
    default: WorkflowDefinition | None,
) -> WorkflowDefinition | None:
    """Apply the two-tier lookup to already-fetched candidates.

    The scoped definition wins whenever it exists and is active; the
    default (``scope_id=None``) applies only in its absence.  A matched
    definition with zero steps resolves to nothing rather than falling
    through to the default.
    """
    matched = scoped if scoped is not None and scoped.active else None
    if matched is None and default is not None and default.active:
        matched = default
    if matched is None or not matched.is_usable:
        return None
    return matched


def _actors_by_step(
    records: Iterable[DecisionRecord],
) -> tuple[dict[int, set[str]], dict[int, set[str]]]:
    approvals: dict[int, set[str]] = {}
    rejections: dict[int, set[str]] = {}
    for record in records:
        target = approvals if record.decision == Decision.APPROVED else rejections
        target.setdefault(record.step_order, set()).add(record.actor_id)
    return approvals, rejections


def compute_progress(
    definition: WorkflowDefinition,
    records: Iterable[DecisionRecord],
) -> ProgressState:
    """Derive the progress state from a definition and its decision history.

    Args:
        definition: A usable workflow definition.
        records: Every decision recorded for the entity, in any order.

    Returns:
        ProgressState with completed steps, current step, terminal state
        and the quorum counters of the current step.
    """
    if not definition.is_usable:
        raise ValueError(f"Workflow '{definition.name}' has no steps")

    approvals, rejections = _actors_by_step(records)
    steps = sorted(definition.steps, key=lambda s: s.step_order)

    completed: list[Step] = []
    current: Step | None = None
    for step in steps:
        if len(approvals.get(step.step_order, ())) >= step.min_approvals:
            completed.append(step)
            continue
        current = step
        break

    boundary = current.step_order if current is not None else steps[-1].step_order
    rejected_orders = sorted(
        order
        for order in rejections
        if order <= boundary and definition.step_at(order) is not None
    )

    approvals_on_current = len(approvals.get(current.step_order, ())) if current else 0
    required_on_current = current.min_approvals if current else 0

    if rejected_orders:
        rejected_step = definition.step_at(rejected_orders[0])
        return ProgressState(
            completed_steps=tuple(completed),
            current_step=current,
            terminal=TerminalState.REJECTED,
            approvals_on_current_step=approvals_on_current,
            required_on_current_step=required_on_current,
            rejected_step=rejected_step,
            rejected_by=min(rejections[rejected_orders[0]]),
        )

    return ProgressState(
        completed_steps=tuple(completed),
        current_step=current,
        terminal=TerminalState.APPROVED if current is None else TerminalState.NONE,
        approvals_on_current_step=approvals_on_current,
        required_on_current_step=required_on_current,
    )


def is_authorized(actor: Actor, step: Step) -> bool:
    """True if the actor holds one of the step's roles or bypasses gating."""
    if actor.bypass_approval_gating:
        return True
    return not actor.roles.isdisjoint(step.allowed_approver_roles)


def has_approved(
    records: Iterable[DecisionRecord],
    step_order: int,
    actor_id: str,
) -> bool:
    """True if ``actor_id`` already has an approval recorded at ``step_order``."""
    return any(
        r.decision == Decision.APPROVED
        and r.step_order == step_order
        and r.actor_id == actor_id
        for r in records
    )


def can_decide(
    definition: WorkflowDefinition,
    records: Sequence[DecisionRecord],
    actor: Actor,
) -> bool:
    """True if the actor could approve the entity's current step right now."""
    progress = compute_progress(definition, records)
    if progress.terminal != TerminalState.NONE or progress.current_step is None:
        return False
    step = progress.current_step
    return is_authorized(actor, step) and not has_approved(
        records, step.step_order, actor.actor_id,
    )


def derive_outcome(
    definition: WorkflowDefinition,
    progress_after: ProgressState,
    record: DecisionRecord,
    labels: ApprovalLabels,
    current_label: str | None = None,
) -> DecisionOutcome:
    """Derive the resulting status of ``record``.

    ``progress_after`` must be computed from a record set that already
    contains ``record``.

    - Rejection: the fixed rejected label, unconditionally terminal.
    - Approval that completed its step: ``"<next step> Pending"`` or the
      terminal approved label when no step follows.
    - Approval short of quorum: the caller's ``current_label`` unchanged.
    """
    step = definition.step_at(record.step_order)
    if step is None:
        raise ValueError(
            f"Step {record.step_order} is not part of workflow '{definition.name}'"
        )

    if record.decision == Decision.REJECTED:
        return DecisionOutcome(
            status_code=StatusCode.REJECTED,
            resulting_label=labels.rejected_label,
            step_name=step.name,
            step_order=step.step_order,
            next_step_name=None,
            step_completed=False,
            record=record,
        )

    step_completed = any(
        s.step_order == step.step_order for s in progress_after.completed_steps
    )
    if not step_completed:
        return DecisionOutcome(
            status_code=StatusCode.UNCHANGED,
            resulting_label=current_label,
            step_name=step.name,
            step_order=step.step_order,
            next_step_name=None,
            step_completed=False,
            record=record,
        )

    next_step = definition.next_step(step)
    if next_step is not None:
        return DecisionOutcome(
            status_code=StatusCode.STEP_PENDING,
            resulting_label=labels.pending_label(next_step.name),
            step_name=step.name,
            step_order=step.step_order,
            next_step_name=next_step.name,
            step_completed=True,
            record=record,
        )

    return DecisionOutcome(
        status_code=StatusCode.APPROVED,
        resulting_label=labels.approved_label,
        step_name=step.name,
        step_order=step.step_order,
        next_step_name=None,
        step_completed=True,
        record=record,
    )


def project_steps(
    definition: WorkflowDefinition,
    records: Sequence[DecisionRecord],
) -> tuple[ProgressState, tuple[StepProjection, ...]]:
    """Reshape ``compute_progress`` output into per-step display rows."""
    progress = compute_progress(definition, records)
    approvals, _ = _actors_by_step(records)
    completed_orders = {s.step_order for s in progress.completed_steps}

    projections: list[StepProjection] = []
    for step in sorted(definition.steps, key=lambda s: s.step_order):
        if (
            progress.terminal == TerminalState.REJECTED
            and progress.rejected_step is not None
            and step.step_order == progress.rejected_step.step_order
        ):
            status = StepStatus.REJECTED
        elif step.step_order in completed_orders:
            status = StepStatus.COMPLETED
        elif (
            progress.terminal == TerminalState.NONE
            and progress.current_step is not None
            and step.step_order == progress.current_step.step_order
        ):
            status = StepStatus.CURRENT
        else:
            status = StepStatus.PENDING

        projections.append(
            StepProjection(
                step=step,
                status=status,
                approved_count=len(approvals.get(step.step_order, ())),
                required_count=step.min_approvals,
            )
        )

    return progress, tuple(projections)


def order_history(records: Iterable[DecisionRecord]) -> tuple[DecisionRecord, ...]:
    """Display order: by ``created_at``, ties broken by ``record_id``."""
    return tuple(
        sorted(records, key=lambda r: (r.created_at or _EPOCH, str(r.record_id)))
    )
