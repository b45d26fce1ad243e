"""
Tests for DecisionProcessor.

Every test runs twice: against the in-memory store and ledger, and
against the SQLAlchemy store and ledger on the test database session.

Tests cover:
- Single-step, quorum, forbidden-approver, rejection and not-configured scenarios
- Bypass capability counting toward quorum
- Scoped-over-default workflow resolution
- Input validation before any append
- Progress view and pending-for-actor query
- Structured logging on success only
"""

from dataclasses import dataclass
from typing import Callable

import pytest

from procurement_kernel.domain.protocols import DecisionLedger, WorkflowDefinitionStore
from procurement_kernel.domain.workflow import (
    ApprovalLabels,
    Decision,
    EntityRef,
    EntityType,
    StatusCode,
    StepStatus,
    TerminalState,
    WorkflowDefinition,
)
from procurement_kernel.exceptions import (
    DuplicateApprovalError,
    ForbiddenApproverError,
    InvalidDecisionInputError,
    WorkflowAlreadyTerminalError,
    WorkflowNotConfiguredError,
)
from procurement_kernel.logging_config import LogContext
from procurement_kernel.services.decision_ledger import (
    InMemoryDecisionLedger,
    SqlDecisionLedger,
)
from procurement_kernel.services.workflow_definition_service import (
    WorkflowDefinitionService,
)
from procurement_kernel.services.workflow_store import (
    InMemoryWorkflowDefinitionStore,
    SqlWorkflowDefinitionStore,
)
from procurement_services.decision_processor import (
    MAX_COMMENT_LENGTH,
    DecisionProcessor,
)
from tests.conftest import make_actor, make_definition, make_request_workflow, make_step


@dataclass
class Backend:
    store: WorkflowDefinitionStore
    ledger: DecisionLedger
    install: Callable[[WorkflowDefinition], WorkflowDefinition]


@pytest.fixture(params=["memory", "sql"])
def backend(request, deterministic_clock) -> Backend:
    if request.param == "memory":
        store = InMemoryWorkflowDefinitionStore()

        def install(definition: WorkflowDefinition) -> WorkflowDefinition:
            store.add(definition)
            return definition

        return Backend(store, InMemoryDecisionLedger(), install)

    session = request.getfixturevalue("session")
    service = WorkflowDefinitionService(session, deterministic_clock)

    def install_sql(definition: WorkflowDefinition) -> WorkflowDefinition:
        return service.create_definition(
            name=definition.name,
            entity_type=definition.entity_type,
            steps=definition.steps,
            display_name=definition.display_name,
            scope_id=definition.scope_id,
            active=definition.active,
        )

    return Backend(
        SqlWorkflowDefinitionStore(session), SqlDecisionLedger(session), install_sql,
    )


@pytest.fixture
def processor(backend, deterministic_clock) -> DecisionProcessor:
    return DecisionProcessor(backend.store, backend.ledger, clock=deterministic_clock)


def quorum_workflow() -> WorkflowDefinition:
    """Step 1 needs two distinct finance approvers; step 2 one admin."""
    return make_definition(
        steps=(
            make_step(1, "Finance Review", roles=("finance",), min_approvals=2),
            make_step(2, "Director Sign-off", roles=("admin",)),
        ),
        entity_type=EntityType.ORDER,
        name="order_quorum",
    )


# =========================================================================
# Scenarios
# =========================================================================


class TestSingleStepWorkflow:
    def test_approval_completes_workflow(self, backend, processor):
        backend.install(
            make_definition(
                steps=(make_step(1, "Unit Manager Approval", roles=("unit_manager",)),),
            )
        )

        outcome = processor.decide(
            EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve",
        )

        assert outcome.status_code == StatusCode.APPROVED
        assert outcome.resulting_label == "Approved"
        assert outcome.next_step_name is None
        assert outcome.step_completed is True

    def test_decision_after_approval_is_terminal(self, backend, processor):
        backend.install(
            make_definition(steps=(make_step(1, roles=("unit_manager",)),))
        )
        processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve")

        with pytest.raises(WorkflowAlreadyTerminalError) as exc_info:
            processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u2", "unit_manager"), "approve")

        assert exc_info.value.terminal == "approved"
        assert exc_info.value.code == "WORKFLOW_ALREADY_TERMINAL"

        with pytest.raises(WorkflowAlreadyTerminalError):
            processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u3", bypass=True), "reject")


class TestQuorumWorkflow:
    def test_two_distinct_approvers_complete_step(self, backend, processor):
        backend.install(quorum_workflow())

        first = processor.decide(
            EntityType.ORDER, "PO-1", make_actor("f1", "finance"), "approve",
            current_label="Finance Review Pending",
        )
        second = processor.decide(
            EntityType.ORDER, "PO-1", make_actor("f2", "finance"), "approve",
            current_label="Finance Review Pending",
        )

        assert first.status_code == StatusCode.UNCHANGED
        assert first.resulting_label == "Finance Review Pending"
        assert first.step_completed is False
        assert second.status_code == StatusCode.STEP_PENDING
        assert second.resulting_label == "Director Sign-off Pending"
        assert second.next_step_name == "Director Sign-off"

    def test_same_actor_twice_is_duplicate(self, backend, processor):
        backend.install(quorum_workflow())
        actor = make_actor("f1", "finance")
        processor.decide(EntityType.ORDER, "PO-1", actor, "approve")

        with pytest.raises(DuplicateApprovalError) as exc_info:
            processor.decide(EntityType.ORDER, "PO-1", actor, "approve")

        assert exc_info.value.step_order == 1
        assert len(backend.ledger.list_for(EntityType.ORDER, "PO-1")) == 1
        view = processor.progress(EntityType.ORDER, "PO-1")
        assert view.current_step_order == 1
        assert view.steps[0].approved_count == 1

    def test_approver_may_still_reject_step_short_of_quorum(self, backend, processor):
        backend.install(quorum_workflow())
        actor = make_actor("f1", "finance")
        processor.decide(EntityType.ORDER, "PO-1", actor, "approve")

        outcome = processor.decide(
            EntityType.ORDER, "PO-1", actor, "reject", comment="Quote expired",
        )

        assert outcome.status_code == StatusCode.REJECTED
        assert outcome.resulting_label == "Rejected"
        records = backend.ledger.list_for(EntityType.ORDER, "PO-1")
        assert sorted(r.decision for r in records) == [Decision.APPROVED, Decision.REJECTED]
        assert processor.progress(EntityType.ORDER, "PO-1").terminal == TerminalState.REJECTED

    def test_full_workflow_to_approved(self, backend, processor):
        backend.install(quorum_workflow())
        processor.decide(EntityType.ORDER, "PO-1", make_actor("f1", "finance"), "approve")
        processor.decide(EntityType.ORDER, "PO-1", make_actor("f2", "finance"), "approve")

        outcome = processor.decide(EntityType.ORDER, "PO-1", make_actor("d1", "admin"), "approve")

        assert outcome.status_code == StatusCode.APPROVED
        assert outcome.step_name == "Director Sign-off"


class TestForbiddenApprover:
    def test_role_outside_current_step_is_forbidden(self, backend, processor):
        backend.install(quorum_workflow())

        with pytest.raises(ForbiddenApproverError) as exc_info:
            processor.decide(EntityType.ORDER, "PO-1", make_actor("d1", "admin"), "approve")

        assert exc_info.value.step_order == 1
        assert exc_info.value.allowed_roles == ("finance",)
        assert list(backend.ledger.list_for(EntityType.ORDER, "PO-1")) == []

    def test_bypass_counts_toward_quorum(self, backend, processor):
        backend.install(quorum_workflow())

        first = processor.decide(
            EntityType.ORDER, "PO-1", make_actor("d1", "admin", bypass=True), "approve",
        )
        second = processor.decide(
            EntityType.ORDER, "PO-1", make_actor("f1", "finance"), "approve",
        )

        assert first.status_code == StatusCode.UNCHANGED
        assert second.status_code == StatusCode.STEP_PENDING


class TestRejection:
    def test_rejection_is_terminal(self, backend, processor):
        backend.install(quorum_workflow())

        outcome = processor.decide(
            EntityType.ORDER, "PO-1", make_actor("f1", "finance"), "reject",
            comment="Over budget",
        )

        assert outcome.status_code == StatusCode.REJECTED
        assert outcome.resulting_label == "Rejected"
        assert outcome.record.comment == "Over budget"
        assert outcome.record.decision == Decision.REJECTED

        for actor in (make_actor("f2", "finance"), make_actor("x", bypass=True)):
            with pytest.raises(WorkflowAlreadyTerminalError):
                processor.decide(EntityType.ORDER, "PO-1", actor, "approve")

    def test_rejection_at_second_step(self, backend, processor):
        backend.install(make_request_workflow(name="request_approval"))
        processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve")

        outcome = processor.decide(
            EntityType.REQUEST, "REQ-1", make_actor("p1", "purchasing"), "reject",
        )

        assert outcome.step_order == 2
        view = processor.progress(EntityType.REQUEST, "REQ-1")
        assert view.terminal == TerminalState.REJECTED
        assert [s.status for s in view.steps] == [StepStatus.COMPLETED, StepStatus.REJECTED]


class TestWorkflowResolution:
    def test_no_definition_is_not_configured(self, processor):
        with pytest.raises(WorkflowNotConfiguredError) as exc_info:
            processor.decide(
                EntityType.INVOICE, "INV-1", make_actor("a", "finance"), "approve",
                scope_id="hr",
            )

        assert exc_info.value.entity_type == "Invoice"
        assert exc_info.value.scope_id == "hr"

    def test_scoped_only_definition_does_not_cover_other_scopes(self, backend, processor):
        backend.install(make_request_workflow(name="it_only", scope_id="it"))

        with pytest.raises(WorkflowNotConfiguredError):
            processor.decide(
                EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve",
                scope_id="hr",
            )

    def test_scoped_definition_overrides_default(self, backend, processor):
        backend.install(make_request_workflow(name="request_default"))
        backend.install(
            make_definition(
                steps=(make_step(1, "IT Manager Approval", roles=("it_manager",)),),
                name="request_it",
                scope_id="it",
            )
        )

        with pytest.raises(ForbiddenApproverError):
            processor.decide(
                EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve",
                scope_id="it",
            )
        outcome = processor.decide(
            EntityType.REQUEST, "REQ-2", make_actor("u1", "unit_manager"), "approve",
            scope_id="hr",
        )

        assert outcome.next_step_name == "Purchasing Approval"
        assert processor.progress(EntityType.REQUEST, "REQ-1", scope_id="it").workflow.name == "request_it"

    def test_inactive_definition_is_ignored(self, backend, processor):
        backend.install(make_request_workflow(name="retired", active=False))

        with pytest.raises(WorkflowNotConfiguredError):
            processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve")


# =========================================================================
# Input validation
# =========================================================================


class TestInputValidation:
    @pytest.fixture(autouse=True)
    def _install(self, backend):
        backend.install(make_request_workflow(name="request_approval"))

    def test_unknown_entity_type(self, processor):
        with pytest.raises(InvalidDecisionInputError) as exc_info:
            processor.decide("PurchaseCard", "X-1", make_actor("u1", "unit_manager"), "approve")
        assert exc_info.value.field == "entity_type"

    def test_entity_type_accepted_as_string(self, processor):
        outcome = processor.decide("Request", "REQ-1", make_actor("u1", "unit_manager"), "approve")
        assert outcome.record.entity_type == EntityType.REQUEST

    def test_malformed_decision(self, backend, processor):
        with pytest.raises(InvalidDecisionInputError) as exc_info:
            processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "maybe")

        assert exc_info.value.field == "decision"
        assert list(backend.ledger.list_for(EntityType.REQUEST, "REQ-1")) == []

    @pytest.mark.parametrize("wire", ["approve", "APPROVE", "approved", Decision.APPROVED])
    def test_decision_wire_values(self, processor, wire):
        outcome = processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), wire)
        assert outcome.record.decision == Decision.APPROVED

    def test_empty_entity_id(self, processor):
        with pytest.raises(InvalidDecisionInputError) as exc_info:
            processor.decide(EntityType.REQUEST, "  ", make_actor("u1", "unit_manager"), "approve")
        assert exc_info.value.field == "entity_id"

    @pytest.mark.parametrize("entity_id", ["", "   "])
    def test_progress_requires_entity_id(self, processor, entity_id):
        with pytest.raises(InvalidDecisionInputError) as exc_info:
            processor.progress(EntityType.REQUEST, entity_id)
        assert exc_info.value.field == "entity_id"

    def test_missing_actor_id(self, processor):
        with pytest.raises(InvalidDecisionInputError) as exc_info:
            processor.decide(EntityType.REQUEST, "REQ-1", make_actor("", "unit_manager"), "approve")
        assert exc_info.value.field == "actor_id"

    def test_overlong_comment(self, backend, processor):
        with pytest.raises(InvalidDecisionInputError) as exc_info:
            processor.decide(
                EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve",
                comment="x" * (MAX_COMMENT_LENGTH + 1),
            )

        assert exc_info.value.field == "comment"
        assert list(backend.ledger.list_for(EntityType.REQUEST, "REQ-1")) == []


# =========================================================================
# Read side
# =========================================================================


class TestProgressView:
    def test_view_without_decisions(self, backend, processor):
        backend.install(
            make_definition(
                steps=(
                    make_step(
                        1, "Unit Manager Approval", roles=("unit_manager",),
                        description="Approval by the requesting unit's manager",
                    ),
                    make_step(2, "Purchasing Approval", roles=("purchasing",)),
                ),
                name="request_approval",
                display_name="Request Approval",
            )
        )

        view = processor.progress(EntityType.REQUEST, "REQ-1")

        assert view.workflow.display_name == "Request Approval"
        assert view.current_step_order == 1
        assert view.history == ()
        assert view.steps[0].step.description == "Approval by the requesting unit's manager"
        assert [s.status for s in view.steps] == [StepStatus.CURRENT, StepStatus.PENDING]

    def test_history_in_decision_order(self, backend, processor, deterministic_clock):
        backend.install(quorum_workflow())
        for actor_id, roles in (("f1", ("finance",)), ("f2", ("finance",)), ("d1", ("admin",))):
            processor.decide(EntityType.ORDER, "PO-1", make_actor(actor_id, *roles), "approve")
            deterministic_clock.advance(60)

        view = processor.progress(EntityType.ORDER, "PO-1")

        assert [r.actor_id for r in view.history] == ["f1", "f2", "d1"]
        assert [r.step_name for r in view.history] == [
            "Finance Review", "Finance Review", "Director Sign-off",
        ]
        assert view.terminal == TerminalState.APPROVED
        assert view.current_step_order is None

    def test_progress_without_workflow(self, processor):
        with pytest.raises(WorkflowNotConfiguredError):
            processor.progress(EntityType.CONTRACT, "C-1")


class TestPendingForActor:
    def test_filters_to_decidable_entities(self, backend, processor):
        backend.install(make_request_workflow(name="request_approval"))
        processor.decide(EntityType.REQUEST, "REQ-2", make_actor("u1", "unit_manager"), "approve")
        processor.decide(EntityType.REQUEST, "REQ-3", make_actor("u1", "unit_manager"), "reject")

        refs = [
            EntityRef(EntityType.REQUEST, "REQ-1"),
            EntityRef(EntityType.REQUEST, "REQ-2"),
            EntityRef(EntityType.REQUEST, "REQ-3"),
            EntityRef(EntityType.INVOICE, "INV-1"),
        ]

        manager = processor.pending_for_actor(make_actor("u2", "unit_manager"), refs)
        buyer = processor.pending_for_actor(make_actor("p1", "purchasing"), refs)

        assert [r.entity_id for r in manager] == ["REQ-1"]
        assert [r.entity_id for r in buyer] == ["REQ-2"]

    def test_own_partial_approval_not_pending(self, backend, processor):
        backend.install(quorum_workflow())
        actor = make_actor("f1", "finance")
        processor.decide(EntityType.ORDER, "PO-1", actor, "approve")

        ref = EntityRef(EntityType.ORDER, "PO-1")

        assert processor.pending_for_actor(actor, [ref]) == []
        assert processor.pending_for_actor(make_actor("f2", "finance"), [ref]) == [ref]


# =========================================================================
# Logging and labels
# =========================================================================


class TestLoggingAndLabels:
    def test_success_logs_decision(self, backend, processor, captured_logs):
        definition = backend.install(make_request_workflow(name="request_approval"))
        processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve")

        recorded = [r for r in captured_logs() if r["message"] == "approval_decision_recorded"]

        assert len(recorded) == 1
        assert recorded[0]["status_code"] == "step_pending"
        assert recorded[0]["workflow_name"] == "request_approval"
        assert recorded[0]["workflow_id"] == str(definition.workflow_id)
        assert "workflow_id" not in LogContext.get_all()

    def test_refused_decision_not_logged(self, backend, processor, captured_logs):
        backend.install(make_request_workflow(name="request_approval"))
        with pytest.raises(ForbiddenApproverError):
            processor.decide(EntityType.REQUEST, "REQ-1", make_actor("p1", "purchasing"), "approve")

        assert not any(r["message"] == "approval_decision_recorded" for r in captured_logs())

    def test_configured_labels(self, backend, deterministic_clock):
        backend.install(make_request_workflow(name="request_approval"))
        labels = ApprovalLabels(
            approved_label="Satınalma Havuzunda",
            rejected_label="Reddedildi",
            pending_suffix="Bekliyor",
        )
        processor = DecisionProcessor(
            backend.store, backend.ledger, labels=labels, clock=deterministic_clock,
        )

        pending = processor.decide(EntityType.REQUEST, "REQ-1", make_actor("u1", "unit_manager"), "approve")
        done = processor.decide(EntityType.REQUEST, "REQ-1", make_actor("p1", "purchasing"), "approve")

        assert pending.resulting_label == "Purchasing Approval Bekliyor"
        assert done.resulting_label == "Satınalma Havuzunda"
