"""Services for the procurement kernel (storage and collaborator implementations)."""

from procurement_kernel.services.decision_ledger import (
    InMemoryDecisionLedger,
    SqlDecisionLedger,
)
from procurement_kernel.services.notification import (
    LoggingNotificationSink,
    RecordingNotificationSink,
)
from procurement_kernel.services.status_resolver import CodeStatusResolver
from procurement_kernel.services.workflow_definition_service import (
    WorkflowDefinitionService,
)
from procurement_kernel.services.workflow_store import (
    InMemoryWorkflowDefinitionStore,
    SqlWorkflowDefinitionStore,
)

__all__ = [
    "CodeStatusResolver",
    "InMemoryDecisionLedger",
    "InMemoryWorkflowDefinitionStore",
    "LoggingNotificationSink",
    "RecordingNotificationSink",
    "SqlDecisionLedger",
    "SqlWorkflowDefinitionStore",
    "WorkflowDefinitionService",
]
