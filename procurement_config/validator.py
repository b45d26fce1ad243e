"""
Configuration Validator (``procurement_config.validator``).

Responsibility
--------------
Validates a ``WorkflowSetDef`` before its workflows are built into
domain definitions or seeded into the database.

Invariants enforced
-------------------
* Workflow names are unique within the set.
* Entity types are known.
* Every workflow has at least one step; every step has a name, at least
  one approver role and a positive quorum.
* At most one active workflow per (entity_type, scope_id).

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the set MUST
  NOT be used.
* Validation warnings (``ConfigValidationResult.warnings``)  -> the set
  may be used but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from procurement_config.schema import WorkflowSetDef

_ENTITY_TYPES = frozenset({"Request", "Order", "Contract", "Invoice"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block use but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_workflow_set(workflow_set: WorkflowSetDef) -> ConfigValidationResult:
    """Run every structural check on a workflow set."""
    result = ConfigValidationResult()

    _validate_unique_names(workflow_set, result)
    _validate_workflows(workflow_set, result)
    _validate_single_active(workflow_set, result)
    _validate_default_coverage(workflow_set, result)
    _validate_labels(workflow_set, result)

    return result


def _validate_unique_names(
    workflow_set: WorkflowSetDef, result: ConfigValidationResult,
) -> None:
    seen: set[str] = set()
    for workflow in workflow_set.workflows:
        if workflow.name in seen:
            result.add_error(f"Duplicate workflow name: {workflow.name}")
        seen.add(workflow.name)


def _validate_workflows(
    workflow_set: WorkflowSetDef, result: ConfigValidationResult,
) -> None:
    for workflow in workflow_set.workflows:
        if not workflow.name or not workflow.name.strip():
            result.add_error("Workflow without a name")
        if workflow.entity_type not in _ENTITY_TYPES:
            result.add_error(
                f"Workflow '{workflow.name}' has unknown entity type "
                f"'{workflow.entity_type}'"
            )
        if not workflow.steps:
            result.add_error(f"Workflow '{workflow.name}' has no steps")

        for index, step in enumerate(workflow.steps, start=1):
            where = f"Workflow '{workflow.name}' step {index}"
            if not step.name or not step.name.strip():
                result.add_error(f"{where} has no name")
            if not step.roles:
                result.add_error(f"{where} ('{step.name}') has no approver roles")
            if step.min_approvals < 1:
                result.add_error(
                    f"{where} ('{step.name}') min_approvals must be positive, "
                    f"got {step.min_approvals}"
                )
            if step.primary_role and step.primary_role in step.alternate_roles:
                result.add_warning(
                    f"{where} ('{step.name}') lists primary role "
                    f"'{step.primary_role}' as an alternate too"
                )


def _validate_single_active(
    workflow_set: WorkflowSetDef, result: ConfigValidationResult,
) -> None:
    active: dict[tuple[str, str | None], str] = {}
    for workflow in workflow_set.workflows:
        if not workflow.active:
            continue
        key = (workflow.entity_type, workflow.scope_id)
        if key in active:
            scope = workflow.scope_id if workflow.scope_id is not None else "default"
            result.add_error(
                f"Workflows '{active[key]}' and '{workflow.name}' are both active "
                f"for {workflow.entity_type} (scope {scope})"
            )
        else:
            active[key] = workflow.name


def _validate_default_coverage(
    workflow_set: WorkflowSetDef, result: ConfigValidationResult,
) -> None:
    """Scoped workflows without a default leave other scopes unconfigured."""
    scoped_types = {
        w.entity_type for w in workflow_set.workflows
        if w.active and w.scope_id is not None
    }
    default_types = {
        w.entity_type for w in workflow_set.workflows
        if w.active and w.scope_id is None
    }
    for entity_type in sorted(scoped_types - default_types):
        result.add_warning(
            f"{entity_type} has scoped workflows but no active default workflow"
        )


def _validate_labels(
    workflow_set: WorkflowSetDef, result: ConfigValidationResult,
) -> None:
    labels = workflow_set.labels
    if not labels.approved_label.strip():
        result.add_error("labels.approved_label must not be empty")
    if not labels.rejected_label.strip():
        result.add_error("labels.rejected_label must not be empty")
    if not labels.pending_suffix.strip():
        result.add_warning("labels.pending_suffix is empty; pending labels equal step names")
