"""
Workflow definition stores -- exact-match lookup of active definitions.

Responsibility:
    ``find_active(entity_type, scope_id)`` returns the active definition
    whose scope matches exactly (``None`` matches the default only).  The
    scoped-then-default policy lives in the resolver, not here.

Architecture position:
    Kernel > Services.  Read-only from the engine's perspective; writes
    go through WorkflowDefinitionService.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.domain.workflow import EntityType, WorkflowDefinition
from procurement_kernel.models.workflow import WorkflowDefinitionModel


class SqlWorkflowDefinitionStore:
    """Definition store over the approval_workflows tables."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_active(
        self,
        entity_type: EntityType,
        scope_id: str | None,
    ) -> WorkflowDefinition | None:
        scope_clause = (
            WorkflowDefinitionModel.scope_id.is_(None)
            if scope_id is None
            else WorkflowDefinitionModel.scope_id == scope_id
        )
        model = self._session.execute(
            select(WorkflowDefinitionModel)
            .where(
                WorkflowDefinitionModel.entity_type == entity_type.value,
                WorkflowDefinitionModel.active.is_(True),
                scope_clause,
            )
            .order_by(WorkflowDefinitionModel.created_at, WorkflowDefinitionModel.name)
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None


class InMemoryWorkflowDefinitionStore:
    """Definition store over a fixed set of definitions (e.g. a YAML set)."""

    def __init__(self, definitions: Iterable[WorkflowDefinition] = ()) -> None:
        self._definitions: list[WorkflowDefinition] = list(definitions)

    def add(self, definition: WorkflowDefinition) -> None:
        self._definitions.append(definition)

    def find_active(
        self,
        entity_type: EntityType,
        scope_id: str | None,
    ) -> WorkflowDefinition | None:
        for definition in self._definitions:
            if (
                definition.active
                and definition.entity_type == entity_type
                and definition.scope_id == scope_id
            ):
                return definition
        return None
