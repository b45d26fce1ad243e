"""
Collaborator interfaces consumed by the approval engine.

The engine owns none of these concerns.  Hosts plug in their own
implementations; the kernel ships SQLAlchemy-backed and in-memory ones
(``services.workflow_store``, ``services.decision_ledger``), a stable
code resolver (``services.status_resolver``) and a logging sink.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Protocol, Sequence

from procurement_kernel.domain.workflow import (
    DecisionRecord,
    EntityType,
    StatusCode,
    WorkflowDefinition,
)


class WorkflowDefinitionStore(Protocol):
    """Read-only source of workflow definitions."""

    def find_active(
        self,
        entity_type: EntityType,
        scope_id: str | None,
    ) -> WorkflowDefinition | None:
        """Return the active definition matching ``scope_id`` exactly."""
        ...


class DecisionLedger(Protocol):
    """Append-only store of decision records.

    ``lock_entity`` opens the per-entity critical section: the duplicate
    guard, the append and the recomputation that follows must all run
    while it is held.
    """

    def lock_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
    ) -> AbstractContextManager[None]:
        ...

    def append(self, record: DecisionRecord) -> DecisionRecord:
        ...

    def list_for(
        self,
        entity_type: EntityType,
        entity_id: str,
    ) -> Sequence[DecisionRecord]:
        ...


@dataclass(frozen=True)
class ResolvedStatus:
    """Concrete domain status: stable code plus display label."""

    code: str
    label: str | None


class StatusResolver(Protocol):
    """Maps a decision outcome to the host's concrete status."""

    def resolve(
        self,
        entity_type: EntityType,
        status_code: StatusCode,
        label: str | None,
        step_order: int | None = None,
    ) -> ResolvedStatus | None:
        """Return None when the entity keeps its current status."""
        ...


@dataclass(frozen=True)
class DecisionNotification:
    """Payload handed to the notification sink after a committed decision."""

    entity_type: EntityType
    entity_id: str
    actor_id: str
    decision: str
    step_name: str
    step_order: int
    status_code: StatusCode
    resulting_label: str | None
    next_step_name: str | None
    comment: str | None = None


class NotificationSink(Protocol):
    def notify(self, notification: DecisionNotification) -> None:
        ...
