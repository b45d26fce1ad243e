"""
Config -> Kernel Bridges.

Functions that convert a WorkflowSetDef into kernel domain objects.  They
live in procurement_config (the producer) because the kernel must NEVER
import procurement_config.

Usage:
    from procurement_config.bridges import build_definitions, build_labels

    workflow_set = get_workflow_set()
    definitions = build_definitions(workflow_set)
    labels = build_labels(workflow_set)
"""

from __future__ import annotations

from uuid import UUID, uuid5

from procurement_config.schema import StepDef, WorkflowDef, WorkflowSetDef
from procurement_kernel.domain.workflow import (
    ApprovalLabels,
    EntityType,
    Step,
    WorkflowDefinition,
)

# Fixed namespace for deterministic workflow UUIDs of configured sets.
# Seeded definitions get database-generated ids instead.
_WORKFLOW_UUID_NAMESPACE = UUID("6f1c2a4e-8d3b-4b8e-9a57-0c2e5d7f9b14")


def _build_step(step_order: int, step: StepDef) -> Step:
    return Step(
        step_order=step_order,
        name=step.name,
        allowed_approver_roles=frozenset(step.roles),
        min_approvals=step.min_approvals,
        description=step.description,
        primary_role=step.primary_role,
    )


def build_definition(workflow: WorkflowDef) -> WorkflowDefinition:
    """Build one domain definition; steps are numbered from list order."""
    return WorkflowDefinition(
        workflow_id=uuid5(_WORKFLOW_UUID_NAMESPACE, workflow.name),
        name=workflow.name,
        display_name=workflow.display_name or workflow.name,
        entity_type=EntityType(workflow.entity_type),
        scope_id=workflow.scope_id,
        active=workflow.active,
        steps=tuple(
            _build_step(index, step)
            for index, step in enumerate(workflow.steps, start=1)
        ),
    )


def build_definitions(workflow_set: WorkflowSetDef) -> tuple[WorkflowDefinition, ...]:
    """Build every workflow of the set, in file order."""
    return tuple(build_definition(w) for w in workflow_set.workflows)


def build_labels(workflow_set: WorkflowSetDef) -> ApprovalLabels:
    labels = workflow_set.labels
    return ApprovalLabels(
        approved_label=labels.approved_label,
        rejected_label=labels.rejected_label,
        pending_suffix=labels.pending_suffix,
    )
