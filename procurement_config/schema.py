"""
Workflow set schema.

Defines the human-authored, reviewable source artifact for approval
workflows.  YAML files are parsed into these types by the loader, checked
by the validator, and turned into kernel domain objects by the bridges.

Key distinction:
  WorkflowSetDef      = source artifact (human-authored, versioned)
  WorkflowDefinition  = runtime domain object (procurement_kernel.domain)
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StepDef:
    """One approval step.

    ``primary_role`` plus ``alternate_roles`` make up the roles allowed to
    decide the step.  Step order comes from list position.
    """

    name: str
    primary_role: str | None = None
    alternate_roles: tuple[str, ...] = ()
    min_approvals: int = 1
    description: str | None = None

    @property
    def roles(self) -> tuple[str, ...]:
        roles = [self.primary_role] if self.primary_role else []
        roles.extend(r for r in self.alternate_roles if r not in roles)
        return tuple(roles)


@dataclass(frozen=True)
class WorkflowDef:
    """A workflow for one entity type, optionally bound to a scope."""

    name: str
    entity_type: str
    steps: tuple[StepDef, ...]
    display_name: str = ""
    scope_id: str | None = None
    active: bool = True


@dataclass(frozen=True)
class ApprovalLabelsDef:
    """Display labels applied to decision outcomes."""

    approved_label: str = "Approved"
    rejected_label: str = "Rejected"
    pending_suffix: str = "Pending"


@dataclass(frozen=True)
class WorkflowSetDef:
    """Root configuration artifact: every workflow of one named set."""

    set_id: str
    version: int
    workflows: tuple[WorkflowDef, ...]
    labels: ApprovalLabelsDef = field(default_factory=ApprovalLabelsDef)
    description: str = ""
    checksum: str = ""
