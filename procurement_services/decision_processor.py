"""
procurement_services.decision_processor -- Approval decision orchestration.

Responsibility:
    Resolves the workflow governing an entity, validates and records one
    approve/reject decision against its current step, and derives the
    resulting status.  Also serves the read-side progress view and the
    "pending for actor" query.  All evaluation is delegated to the pure
    functions in ``procurement_engines.approval``.

Architecture position:
    Services -- stateful orchestration over engines + kernel collaborators.
    Holds no session itself; storage goes through the WorkflowDefinitionStore
    and DecisionLedger protocols.

Invariants enforced:
    - Validation strictly precedes the append: no error path leaves a
      record behind.
    - Duplicate guard, append and recomputation run inside the ledger's
      per-entity critical section.
    - Progress is always recomputed from the full record set; there is no
      stored "current step".
    - Any decision against a terminal (approved or rejected) workflow is
      refused.

Failure modes:
    - InvalidDecisionInputError on malformed input.
    - WorkflowNotConfiguredError when no usable definition resolves.
    - WorkflowAlreadyTerminalError, ForbiddenApproverError,
      DuplicateApprovalError on refused decisions.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import uuid4

from procurement_engines.approval import (
    can_decide,
    compute_progress,
    derive_outcome,
    has_approved,
    is_authorized,
    order_history,
    project_steps,
    select_workflow,
)
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.protocols import DecisionLedger, WorkflowDefinitionStore
from procurement_kernel.domain.workflow import (
    Actor,
    ApprovalLabels,
    Decision,
    DecisionOutcome,
    DecisionRecord,
    EntityRef,
    EntityType,
    ProgressView,
    TerminalState,
    WorkflowDefinition,
    WorkflowSummary,
    parse_decision,
)
from procurement_kernel.exceptions import (
    DuplicateApprovalError,
    ForbiddenApproverError,
    InvalidDecisionInputError,
    WorkflowAlreadyTerminalError,
    WorkflowNotConfiguredError,
)
from procurement_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.decision_processor")

MAX_COMMENT_LENGTH = 2000


def coerce_entity_type(value: EntityType | str) -> EntityType:
    """Parse an entity type from its wire form."""
    if isinstance(value, EntityType):
        return value
    try:
        return EntityType(value)
    except ValueError:
        raise InvalidDecisionInputError(
            "entity_type", f"unknown entity type {value!r}",
        ) from None


def _require_entity_id(entity_id: str) -> None:
    if not isinstance(entity_id, str) or not entity_id.strip():
        raise InvalidDecisionInputError("entity_id", "must be a non-empty string")


class WorkflowResolver:
    """Finds the workflow governing an entity: scoped first, then default."""

    def __init__(self, store: WorkflowDefinitionStore) -> None:
        self._store = store

    def resolve(
        self,
        entity_type: EntityType,
        scope_id: str | None = None,
    ) -> WorkflowDefinition | None:
        scoped = (
            self._store.find_active(entity_type, scope_id)
            if scope_id is not None
            else None
        )
        default = self._store.find_active(entity_type, None)
        return select_workflow(scoped, default)


class DecisionProcessor:
    """Records approval decisions and reports workflow progress."""

    def __init__(
        self,
        store: WorkflowDefinitionStore,
        ledger: DecisionLedger,
        labels: ApprovalLabels | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._resolver = WorkflowResolver(store)
        self._ledger = ledger
        self._labels = labels or ApprovalLabels()
        self._clock = clock or SystemClock()

    def decide(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        actor: Actor,
        decision: Decision | str,
        comment: str | None = None,
        scope_id: str | None = None,
        current_label: str | None = None,
    ) -> DecisionOutcome:
        """Record one decision against the entity's current step.

        Args:
            entity_type: Kind of record being decided.
            entity_id: Host identifier of the record.
            actor: Who decides; roles are supplied by the host.
            decision: ``approve``/``reject`` or a Decision.
            comment: Optional free text stored on the record.
            scope_id: Organizational scope used for workflow lookup.
            current_label: The entity's current display status, echoed
                back when the decision does not complete the step.

        Returns:
            DecisionOutcome describing the resulting status.
        """
        entity_type = coerce_entity_type(entity_type)
        _require_entity_id(entity_id)
        if actor is None or not actor.actor_id:
            raise InvalidDecisionInputError("actor_id", "actor is required")
        try:
            parsed = parse_decision(decision)
        except ValueError as exc:
            raise InvalidDecisionInputError("decision", str(exc)) from None
        if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
            raise InvalidDecisionInputError(
                "comment", f"exceeds {MAX_COMMENT_LENGTH} characters",
            )

        with self._ledger.lock_entity(entity_type, entity_id):
            definition = self._resolver.resolve(entity_type, scope_id)
            if definition is None:
                raise WorkflowNotConfiguredError(entity_type.value, scope_id)

            with LogContext.bind(workflow_id=str(definition.workflow_id)):
                return self._record(
                    definition, entity_type, entity_id, actor, parsed,
                    comment, current_label,
                )

    def _record(
        self,
        definition: WorkflowDefinition,
        entity_type: EntityType,
        entity_id: str,
        actor: Actor,
        parsed: Decision,
        comment: str | None,
        current_label: str | None,
    ) -> DecisionOutcome:
        """Guard, append and re-evaluate; runs under the entity lock."""
        records = list(self._ledger.list_for(entity_type, entity_id))
        progress = compute_progress(definition, records)
        if progress.terminal != TerminalState.NONE:
            raise WorkflowAlreadyTerminalError(
                entity_type.value, entity_id, progress.terminal.value,
            )

        step = progress.current_step
        if not is_authorized(actor, step):
            raise ForbiddenApproverError(
                actor.actor_id,
                step.step_order,
                step.name,
                tuple(sorted(step.allowed_approver_roles)),
            )

        # Only a second approval is a duplicate; an approver may still reject.
        if parsed == Decision.APPROVED and has_approved(
            records, step.step_order, actor.actor_id,
        ):
            raise DuplicateApprovalError(
                entity_type.value, entity_id, step.step_order, actor.actor_id,
            )

        record = self._ledger.append(
            DecisionRecord(
                record_id=uuid4(),
                entity_type=entity_type,
                entity_id=entity_id,
                step_order=step.step_order,
                step_name=step.name,
                decision=parsed,
                actor_id=actor.actor_id,
                comment=comment,
                created_at=self._clock.now(),
            )
        )

        progress_after = compute_progress(
            definition, self._ledger.list_for(entity_type, entity_id),
        )
        outcome = derive_outcome(
            definition, progress_after, record, self._labels, current_label,
        )

        logger.info(
            "approval_decision_recorded",
            extra={
                "workflow_name": definition.name,
                "step_order": outcome.step_order,
                "step_name": outcome.step_name,
                "decision": parsed.value,
                "status_code": outcome.status_code.value,
                "step_completed": outcome.step_completed,
                "record_id": str(record.record_id),
            },
        )
        return outcome

    def progress(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        scope_id: str | None = None,
    ) -> ProgressView:
        """Return the workflow steps with status plus the decision history."""
        entity_type = coerce_entity_type(entity_type)
        _require_entity_id(entity_id)
        definition = self._resolver.resolve(entity_type, scope_id)
        if definition is None:
            raise WorkflowNotConfiguredError(entity_type.value, scope_id)

        records = list(self._ledger.list_for(entity_type, entity_id))
        progress, projections = project_steps(definition, records)
        current = progress.current_step
        return ProgressView(
            entity_type=entity_type,
            entity_id=entity_id,
            workflow=WorkflowSummary(
                workflow_id=definition.workflow_id,
                name=definition.name,
                display_name=definition.display_name,
            ),
            steps=projections,
            history=order_history(records),
            terminal=progress.terminal,
            current_step_order=(
                current.step_order
                if current is not None and progress.terminal == TerminalState.NONE
                else None
            ),
        )

    def pending_for_actor(
        self,
        actor: Actor,
        entities: Iterable[EntityRef],
    ) -> list[EntityRef]:
        """Filter ``entities`` to those whose current step ``actor`` can approve.

        Entities without a configured workflow are skipped.
        """
        pending: list[EntityRef] = []
        for ref in entities:
            definition = self._resolver.resolve(ref.entity_type, ref.scope_id)
            if definition is None:
                continue
            records = list(self._ledger.list_for(ref.entity_type, ref.entity_id))
            if can_decide(definition, records, actor):
                pending.append(ref)
        return pending
