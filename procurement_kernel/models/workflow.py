"""
Module: procurement_kernel.models.workflow
Responsibility: ORM persistence for approval workflow definitions, their
    steps and the approver roles of each step.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Workflow name is unique.
    - (workflow_id, step_order) is unique; step_order and min_approvals are
      positive (check constraints).  Contiguity from 1 is enforced by
      WorkflowDefinitionService before insert.
    - (step_id, role_key) is unique.

Failure modes:
    - IntegrityError on duplicate name / step order / role.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from procurement_kernel.domain.workflow import Step, WorkflowDefinition


_ENTITY_TYPE_CHECK = "entity_type IN ('Request', 'Order', 'Contract', 'Invoice')"


class WorkflowDefinitionModel(Base):
    """Persistent workflow definition.

    ``scope_id`` NULL marks the default definition for the entity type.
    """

    __tablename__ = "approval_workflows"

    __table_args__ = (
        CheckConstraint(_ENTITY_TYPE_CHECK, name="ck_approval_workflows_entity_type"),
        Index("ix_approval_workflows_lookup", "entity_type", "scope_id", "active"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    scope_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    steps: Mapped[list["WorkflowStepModel"]] = relationship(
        "WorkflowStepModel",
        back_populates="workflow",
        order_by="WorkflowStepModel.step_order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalWorkflow {self.name} {self.entity_type} "
            f"scope={self.scope_id} active={self.active}>"
        )

    def to_dto(self) -> WorkflowDefinition:
        """Convert ORM model to frozen domain DTO."""
        from procurement_kernel.domain.workflow import EntityType, WorkflowDefinition

        return WorkflowDefinition(
            workflow_id=self.id,
            name=self.name,
            display_name=self.display_name,
            entity_type=EntityType(self.entity_type),
            scope_id=self.scope_id,
            active=self.active,
            steps=tuple(s.to_dto() for s in sorted(self.steps, key=lambda s: s.step_order)),
        )


class WorkflowStepModel(Base):
    """Persistent workflow step."""

    __tablename__ = "approval_workflow_steps"

    __table_args__ = (
        UniqueConstraint("workflow_id", "step_order", name="uq_approval_steps_order"),
        CheckConstraint("step_order >= 1", name="ck_approval_steps_order_positive"),
        CheckConstraint("min_approvals >= 1", name="ck_approval_steps_quorum_positive"),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_workflows.id"),
        nullable=False,
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    min_approvals: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    workflow: Mapped["WorkflowDefinitionModel"] = relationship(
        "WorkflowDefinitionModel",
        back_populates="steps",
    )
    roles: Mapped[list["StepApproverRoleModel"]] = relationship(
        "StepApproverRoleModel",
        back_populates="step",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ApprovalStep {self.step_order} {self.name} quorum={self.min_approvals}>"

    def to_dto(self) -> Step:
        from procurement_kernel.domain.workflow import Step

        primary = next((r.role_key for r in self.roles if r.is_primary), None)
        return Step(
            step_order=self.step_order,
            name=self.name,
            allowed_approver_roles=frozenset(r.role_key for r in self.roles),
            min_approvals=self.min_approvals,
            description=self.description,
            primary_role=primary,
        )

    @classmethod
    def from_dto(cls, dto: Step) -> WorkflowStepModel:
        """Create ORM model (with its role rows) from domain DTO."""
        model = cls(
            step_order=dto.step_order,
            name=dto.name,
            description=dto.description,
            min_approvals=dto.min_approvals,
        )
        model.roles = [
            StepApproverRoleModel(role_key=role, is_primary=(role == dto.primary_role))
            for role in sorted(dto.allowed_approver_roles)
        ]
        return model


class StepApproverRoleModel(Base):
    """One role allowed to decide a step: the primary role or an alternate."""

    __tablename__ = "approval_step_roles"

    __table_args__ = (
        UniqueConstraint("step_id", "role_key", name="uq_approval_step_roles"),
    )

    step_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("approval_workflow_steps.id"),
        nullable=False,
    )
    role_key: Mapped[str] = mapped_column(String(100), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    step: Mapped["WorkflowStepModel"] = relationship(
        "WorkflowStepModel",
        back_populates="roles",
    )
