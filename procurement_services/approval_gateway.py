"""
procurement_services.approval_gateway -- Host-facing approval entry point.

Responsibility:
    Runs a decision inside one database transaction, maps the outcome to
    the host's concrete status via the StatusResolver, and hands the
    committed decision to the NotificationSink.  Also serves the progress
    view for status/history screens.

Architecture position:
    Services -- the only layer that opens transactions around the
    decision processor.  Wires the SQL store and ledger to one session.

Invariants enforced:
    - One decision, one transaction: the lock, the append and the
      recomputation commit together or not at all.
    - Notification happens only after commit.  A failing sink is logged
      and never undoes the decision.
    - Refused decisions are logged at WARNING with their error code and
      re-raised unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from procurement_kernel.db.engine import get_session_factory, session_scope
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.protocols import (
    DecisionNotification,
    NotificationSink,
    ResolvedStatus,
    StatusResolver,
)
from procurement_kernel.domain.workflow import (
    Actor,
    ApprovalLabels,
    DecisionOutcome,
    EntityType,
    ProgressView,
    StatusCode,
)
from procurement_kernel.exceptions import ProcurementKernelError
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.decision_ledger import SqlDecisionLedger
from procurement_kernel.services.notification import LoggingNotificationSink
from procurement_kernel.services.status_resolver import CodeStatusResolver
from procurement_kernel.services.workflow_store import SqlWorkflowDefinitionStore
from procurement_services.decision_processor import DecisionProcessor

logger = get_logger("services.approval_gateway")


@dataclass(frozen=True)
class DecisionResult:
    """What the host needs to update the entity after a decision."""

    resulting_label: str | None
    step_name: str
    step_order: int
    next_step_name: str | None
    status_code: StatusCode
    resolved_status: ResolvedStatus | None
    outcome: DecisionOutcome

    @property
    def status_changed(self) -> bool:
        return self.resolved_status is not None


class ApprovalGateway:
    """Transactional facade over DecisionProcessor for a SQL-backed host."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        labels: ApprovalLabels | None = None,
        status_resolver: StatusResolver | None = None,
        notification_sink: NotificationSink | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._labels = labels or ApprovalLabels()
        self._status_resolver = status_resolver or CodeStatusResolver()
        self._notification_sink = notification_sink or LoggingNotificationSink()
        self._clock = clock or SystemClock()

    def _processor(self, session: Session) -> DecisionProcessor:
        return DecisionProcessor(
            store=SqlWorkflowDefinitionStore(session),
            ledger=SqlDecisionLedger(session),
            labels=self._labels,
            clock=self._clock,
        )

    def _factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    def decide(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        actor_id: str,
        actor_roles: Iterable[str],
        decision: str,
        comment: str | None = None,
        scope_id: str | None = None,
        current_label: str | None = None,
        bypass_approval_gating: bool = False,
    ) -> DecisionResult:
        """Record a decision and return the entity's resulting status."""
        actor = Actor(
            actor_id=actor_id,
            roles=frozenset(actor_roles or ()),
            bypass_approval_gating=bypass_approval_gating,
        )
        with LogContext.bind(
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
        ):
            try:
                with session_scope(self._factory()) as session:
                    outcome = self._processor(session).decide(
                        entity_type,
                        entity_id,
                        actor,
                        decision,
                        comment=comment,
                        scope_id=scope_id,
                        current_label=current_label,
                    )
            except ProcurementKernelError as exc:
                logger.warning(
                    "approval_decision_refused",
                    extra={"error_code": exc.code, "reason": str(exc)},
                )
                raise

            record = outcome.record
            resolved = self._status_resolver.resolve(
                record.entity_type,
                outcome.status_code,
                outcome.resulting_label,
                step_order=(
                    outcome.step_order + 1
                    if outcome.status_code == StatusCode.STEP_PENDING
                    else outcome.step_order
                ),
            )

            self._notify(
                DecisionNotification(
                    entity_type=record.entity_type,
                    entity_id=record.entity_id,
                    actor_id=record.actor_id,
                    decision=record.decision.value,
                    step_name=outcome.step_name,
                    step_order=outcome.step_order,
                    status_code=outcome.status_code,
                    resulting_label=outcome.resulting_label,
                    next_step_name=outcome.next_step_name,
                    comment=record.comment,
                )
            )

        return DecisionResult(
            resulting_label=outcome.resulting_label,
            step_name=outcome.step_name,
            step_order=outcome.step_order,
            next_step_name=outcome.next_step_name,
            status_code=outcome.status_code,
            resolved_status=resolved,
            outcome=outcome,
        )

    def progress(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        scope_id: str | None = None,
    ) -> ProgressView:
        with session_scope(self._factory()) as session:
            return self._processor(session).progress(entity_type, entity_id, scope_id)

    def _notify(self, notification: DecisionNotification) -> None:
        try:
            self._notification_sink.notify(notification)
        except Exception:
            logger.exception(
                "approval_notification_failed",
                extra={"status_code": notification.status_code.value},
            )
