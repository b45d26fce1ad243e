"""
Pure calculation engines for the procurement approval kernel.

Engines take domain value objects in and return domain value objects
out: no database, no clock, no environment.
"""

from procurement_engines.approval import (
    can_decide,
    compute_progress,
    derive_outcome,
    has_approved,
    is_authorized,
    order_history,
    project_steps,
    select_workflow,
)

__all__ = [
    "can_decide",
    "compute_progress",
    "derive_outcome",
    "has_approved",
    "is_authorized",
    "order_history",
    "project_steps",
    "select_workflow",
]
