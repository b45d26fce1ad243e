"""
CodeStatusResolver -- maps decision outcomes to stable status codes.

Codes are built from the entity type and the outcome, never parsed out
of display labels:

    step_pending  -> ORDER_STEP_2_PENDING   (order of the next step)
    approved      -> REQUEST_APPROVED
    rejected      -> INVOICE_REJECTED
    unchanged     -> None (entity keeps its status)

Hosts with their own status tables supply a different StatusResolver.
"""

from __future__ import annotations

from procurement_kernel.domain.protocols import ResolvedStatus
from procurement_kernel.domain.workflow import EntityType, StatusCode


class CodeStatusResolver:
    """Default StatusResolver producing ``<ENTITY>_<OUTCOME>`` codes."""

    def resolve(
        self,
        entity_type: EntityType,
        status_code: StatusCode,
        label: str | None,
        step_order: int | None = None,
    ) -> ResolvedStatus | None:
        prefix = entity_type.value.upper()

        if status_code == StatusCode.UNCHANGED:
            return None
        if status_code == StatusCode.STEP_PENDING:
            if step_order is None:
                raise ValueError("step_order is required for a pending status")
            return ResolvedStatus(code=f"{prefix}_STEP_{step_order}_PENDING", label=label)
        if status_code == StatusCode.APPROVED:
            return ResolvedStatus(code=f"{prefix}_APPROVED", label=label)
        return ResolvedStatus(code=f"{prefix}_REJECTED", label=label)
