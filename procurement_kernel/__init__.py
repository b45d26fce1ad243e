"""
Procurement Kernel - approval workflow engine.

Decides, for a procurement record (request, order, contract, invoice),
whether an actor may move it forward, which step it is blocked on, and
what its next status is:
- Quorum-based, multi-step workflow definitions
- Append-only decision ledger as the single source of truth
- State derived purely from decision history, never stored
- Per-entity critical section for concurrent decisions
"""

__version__ = "0.1.0"
