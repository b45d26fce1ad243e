"""
procurement_services -- Package init and public API.

Responsibility:
    Orchestration that composes the pure approval engine
    (procurement_engines/) with the kernel's storage collaborators, plus
    the transactional gateway hosts call.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_engine_purity.py):
        procurement_services/ -> procurement_engines/  (allowed)
        procurement_services/ -> procurement_kernel/   (allowed)
        procurement_engines/  -> procurement_services/ (FORBIDDEN)
        procurement_kernel/   -> procurement_services/ (FORBIDDEN)
"""

from procurement_services.approval_gateway import ApprovalGateway, DecisionResult
from procurement_services.decision_processor import (
    DecisionProcessor,
    WorkflowResolver,
)

__all__ = [
    "ApprovalGateway",
    "DecisionProcessor",
    "DecisionResult",
    "WorkflowResolver",
]
