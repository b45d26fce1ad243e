"""ORM models. Importing this package registers every table on Base.metadata."""

from procurement_kernel.models.decision import DecisionRecordModel, EntityLockModel
from procurement_kernel.models.workflow import (
    StepApproverRoleModel,
    WorkflowDefinitionModel,
    WorkflowStepModel,
)

__all__ = [
    "DecisionRecordModel",
    "EntityLockModel",
    "StepApproverRoleModel",
    "WorkflowDefinitionModel",
    "WorkflowStepModel",
]
