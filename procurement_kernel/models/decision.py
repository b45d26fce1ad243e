"""
Module: procurement_kernel.models.decision
Responsibility: ORM persistence for the decision ledger and the per-entity
    lock rows that serialize decisions.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Decision records are append-only: ORM listeners reject UPDATE and
      DELETE with ImmutabilityViolationError.
    - UNIQUE(entity_type, entity_id, step_order, actor_id, decision) backs
      the duplicate-approval guard at the database level.
    - One lock row per (entity_type, entity_id).

Failure modes:
    - IntegrityError on a duplicate decision or lock row.
    - ImmutabilityViolationError on decision UPDATE/DELETE.

Audit relevance:
    The decision table is the source of truth for approval state; nothing
    else stores the current step.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base, UUIDString
from procurement_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from procurement_kernel.domain.workflow import DecisionRecord


class DecisionRecordModel(Base):
    """Persistent approve/reject decision. Append-only."""

    __tablename__ = "approval_decision_records"

    __table_args__ = (
        CheckConstraint(
            "decision IN ('approved', 'rejected')",
            name="ck_approval_decisions_valid_decision",
        ),
        Index("ix_approval_decisions_entity", "entity_type", "entity_id"),
        UniqueConstraint(
            "entity_type", "entity_id", "step_order", "actor_id", "decision",
            name="uq_approval_decisions_actor_step",
        ),
    )

    record_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    step_name: Mapped[str] = mapped_column(String(200), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DecisionRecord {self.record_id} {self.entity_type}/{self.entity_id} "
            f"step={self.step_order} decision={self.decision}>"
        )

    def to_dto(self) -> DecisionRecord:
        """Convert ORM model to frozen domain DTO."""
        from procurement_kernel.domain.workflow import (
            Decision,
            DecisionRecord as DecisionRecordDTO,
            EntityType,
        )

        created_at = self.created_at
        if created_at is not None and created_at.tzinfo is None:
            # SQLite hands back naive values for timezone-aware columns
            created_at = created_at.replace(tzinfo=UTC)

        return DecisionRecordDTO(
            record_id=self.record_id,
            entity_type=EntityType(self.entity_type),
            entity_id=self.entity_id,
            step_order=self.step_order,
            step_name=self.step_name,
            decision=Decision(self.decision),
            actor_id=self.actor_id,
            comment=self.comment,
            created_at=created_at,
        )

    @classmethod
    def from_dto(cls, dto: DecisionRecord) -> DecisionRecordModel:
        """Create ORM model from domain DTO."""
        return cls(
            record_id=dto.record_id,
            entity_type=dto.entity_type.value,
            entity_id=dto.entity_id,
            step_order=dto.step_order,
            step_name=dto.step_name,
            decision=dto.decision.value,
            actor_id=dto.actor_id,
            comment=dto.comment,
            created_at=dto.created_at,
        )


class EntityLockModel(Base):
    """Lock row locked FOR UPDATE while a decision on the entity is processed."""

    __tablename__ = "approval_entity_locks"

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", name="uq_approval_entity_locks"),
    )

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(100), nullable=False)


# =============================================================================
# ORM-Level Immutability for Decisions (Append-Only)
# =============================================================================


@event.listens_for(DecisionRecordModel, "before_update")
def prevent_decision_update(mapper, connection, target):
    """Prevent updates to decision records."""
    raise ImmutabilityViolationError(
        entity_type="DecisionRecord",
        entity_id=str(target.record_id),
        reason="Decision records are immutable -- cannot modify",
    )


@event.listens_for(DecisionRecordModel, "before_delete")
def prevent_decision_delete(mapper, connection, target):
    """Prevent deletion of decision records."""
    raise ImmutabilityViolationError(
        entity_type="DecisionRecord",
        entity_id=str(target.record_id),
        reason="Decision records are immutable -- cannot delete",
    )
