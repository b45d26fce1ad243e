"""
WorkflowDefinitionService -- administration of approval workflow definitions.

Responsibility:
    Creates, updates, lists, activates/deactivates, deletes and seeds
    workflow definitions.  This is the administrative surface the engine
    only ever reads from.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - Workflow names are unique.
    - Steps are renumbered 1..n from list order, then checked for a name,
      positive quorum and at least one approver role (``validate_steps``).
    - At most one active definition per (entity_type, scope_id), so
      resolution is never ambiguous.
    - Seeding is idempotent: definitions whose name already exists are
      skipped.

Failure modes:
    - InvalidWorkflowDefinitionError on structural violations.
    - DuplicateWorkflowDefinitionError on name clash or second active
      definition for the same entity type and scope.
    - WorkflowDefinitionNotFoundError for an unknown id or name.
    - WorkflowDefinitionInUseError when deleting an active definition whose
      entity type already has recorded decisions.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.workflow import (
    EntityType,
    Step,
    WorkflowDefinition,
    validate_steps,
)
from procurement_kernel.exceptions import (
    DuplicateWorkflowDefinitionError,
    InvalidWorkflowDefinitionError,
    WorkflowDefinitionInUseError,
    WorkflowDefinitionNotFoundError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models.decision import DecisionRecordModel
from procurement_kernel.models.workflow import (
    WorkflowDefinitionModel,
    WorkflowStepModel,
)

logger = get_logger("services.workflow_definitions")


def _require_name(name: str) -> None:
    if not name or not name.strip():
        raise InvalidWorkflowDefinitionError(str(name), "name is required")


def _numbered_steps(name: str, steps: Sequence[Step]) -> tuple[Step, ...]:
    """Number steps 1..n from list order and validate them."""
    numbered = tuple(
        replace(step, step_order=index) for index, step in enumerate(steps, start=1)
    )
    problems = validate_steps(numbered)
    if problems:
        raise InvalidWorkflowDefinitionError(name, "; ".join(problems))
    return numbered


class WorkflowDefinitionService:
    """Manages the workflow definition lifecycle."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

    def create_definition(
        self,
        name: str,
        entity_type: EntityType,
        steps: Sequence[Step],
        display_name: str = "",
        scope_id: str | None = None,
        active: bool = True,
    ) -> WorkflowDefinition:
        """Create a workflow definition with its steps and approver roles."""
        _require_name(name)
        steps = _numbered_steps(name, steps)

        if self._find_by_name(name) is not None:
            raise DuplicateWorkflowDefinitionError(name, "name already exists")

        if active:
            self._ensure_no_other_active(name, entity_type, scope_id)

        model = WorkflowDefinitionModel(
            name=name,
            display_name=display_name or name,
            entity_type=entity_type.value,
            scope_id=scope_id,
            active=active,
            created_at=self._clock.now(),
        )
        model.steps = [WorkflowStepModel.from_dto(step) for step in steps]
        self._session.add(model)
        self._session.flush()

        logger.info(
            "workflow_definition_created",
            extra={
                "workflow_id": str(model.id),
                "workflow_name": name,
                "workflow_entity_type": entity_type.value,
                "scope_id": scope_id,
                "step_count": len(model.steps),
                "active": active,
            },
        )
        return model.to_dto()

    def update_definition(
        self,
        workflow_id: UUID,
        name: str | None = None,
        display_name: str | None = None,
        steps: Sequence[Step] | None = None,
        active: bool | None = None,
    ) -> WorkflowDefinition:
        """Update a definition in place.  Arguments left as None are kept.

        ``steps`` replaces the whole step list; the new steps are numbered
        and validated exactly as on creation.  Progress of in-flight
        entities is recomputed against the new steps on their next read.
        """
        model = self._load(workflow_id)
        new_name = model.name if name is None else name
        _require_name(new_name)
        new_steps = _numbered_steps(new_name, steps) if steps is not None else None

        if new_name != model.name and self._find_by_name(new_name) is not None:
            raise DuplicateWorkflowDefinitionError(new_name, "name already exists")

        new_active = model.active if active is None else active
        if new_active:
            self._ensure_no_other_active(
                model.name, EntityType(model.entity_type), model.scope_id,
            )

        model.name = new_name
        model.active = new_active
        if display_name is not None:
            model.display_name = display_name or new_name
        if new_steps is not None:
            # Old rows go first: (workflow_id, step_order) is unique.
            model.steps.clear()
            self._session.flush()
            model.steps = [WorkflowStepModel.from_dto(step) for step in new_steps]
        self._session.flush()

        logger.info(
            "workflow_definition_updated",
            extra={
                "workflow_id": str(workflow_id),
                "workflow_name": new_name,
                "steps_replaced": new_steps is not None,
                "step_count": len(model.steps),
                "active": new_active,
            },
        )
        return model.to_dto()

    def get_definition(self, workflow_id: UUID) -> WorkflowDefinition:
        return self._load(workflow_id).to_dto()

    def get_by_name(self, name: str) -> WorkflowDefinition:
        model = self._find_by_name(name)
        if model is None:
            raise WorkflowDefinitionNotFoundError(name)
        return model.to_dto()

    def list_definitions(
        self,
        active_only: bool = False,
        entity_type: EntityType | None = None,
    ) -> list[WorkflowDefinition]:
        stmt = select(WorkflowDefinitionModel).order_by(WorkflowDefinitionModel.name)
        if active_only:
            stmt = stmt.where(WorkflowDefinitionModel.active.is_(True))
        if entity_type is not None:
            stmt = stmt.where(WorkflowDefinitionModel.entity_type == entity_type.value)
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def set_active(self, workflow_id: UUID, active: bool) -> WorkflowDefinition:
        """Activate or deactivate a definition."""
        model = self._load(workflow_id)
        if active and not model.active:
            self._ensure_no_other_active(
                model.name, EntityType(model.entity_type), model.scope_id,
            )
        model.active = active
        self._session.flush()

        logger.info(
            "workflow_definition_activation_changed",
            extra={"workflow_id": str(workflow_id), "active": active},
        )
        return model.to_dto()

    def delete_definition(self, workflow_id: UUID) -> None:
        """Delete a definition with its steps and approver roles.

        Decision records name no workflow: an active definition governs
        every recorded decision of its entity type.  Such a definition is
        refused; deactivate it instead.
        """
        model = self._load(workflow_id)
        if model.active:
            decision_count = self._session.execute(
                select(func.count()).select_from(DecisionRecordModel).where(
                    DecisionRecordModel.entity_type == model.entity_type,
                )
            ).scalar_one()
            if decision_count:
                raise WorkflowDefinitionInUseError(model.name, decision_count)

        name = model.name
        self._session.delete(model)
        self._session.flush()

        logger.info(
            "workflow_definition_deleted",
            extra={"workflow_id": str(workflow_id), "workflow_name": name},
        )

    def seed_definitions(
        self,
        definitions: Iterable[WorkflowDefinition],
    ) -> list[WorkflowDefinition]:
        """Create each definition whose name is not present yet.

        Returns:
            The definitions actually created, in input order.
        """
        created: list[WorkflowDefinition] = []
        for definition in definitions:
            if self._find_by_name(definition.name) is not None:
                logger.debug(
                    "workflow_definition_seed_skipped",
                    extra={"workflow_name": definition.name},
                )
                continue
            created.append(
                self.create_definition(
                    name=definition.name,
                    entity_type=definition.entity_type,
                    steps=definition.steps,
                    display_name=definition.display_name,
                    scope_id=definition.scope_id,
                    active=definition.active,
                )
            )
        return created

    def _ensure_no_other_active(
        self,
        name: str,
        entity_type: EntityType,
        scope_id: str | None,
    ) -> None:
        scope_clause = (
            WorkflowDefinitionModel.scope_id.is_(None)
            if scope_id is None
            else WorkflowDefinitionModel.scope_id == scope_id
        )
        clash = self._session.execute(
            select(WorkflowDefinitionModel.name).where(
                WorkflowDefinitionModel.entity_type == entity_type.value,
                WorkflowDefinitionModel.active.is_(True),
                WorkflowDefinitionModel.name != name,
                scope_clause,
            )
        ).scalars().first()
        if clash is not None:
            scope = scope_id if scope_id is not None else "default"
            raise DuplicateWorkflowDefinitionError(
                name,
                f"workflow '{clash}' is already active for "
                f"{entity_type.value} (scope {scope})",
            )

    def _find_by_name(self, name: str) -> WorkflowDefinitionModel | None:
        return self._session.execute(
            select(WorkflowDefinitionModel).where(WorkflowDefinitionModel.name == name)
        ).scalar_one_or_none()

    def _load(self, workflow_id: UUID) -> WorkflowDefinitionModel:
        model = self._session.execute(
            select(WorkflowDefinitionModel).where(WorkflowDefinitionModel.id == workflow_id)
        ).scalar_one_or_none()
        if model is None:
            raise WorkflowDefinitionNotFoundError(str(workflow_id))
        return model
