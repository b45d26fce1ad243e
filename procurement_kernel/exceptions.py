"""
Typed Exception Hierarchy for the Procurement Approval Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval decisions are rejected for precise, distinct reasons. The host
application has to turn each of them into a different user-facing message
(403 for a forbidden approver, 409 for a duplicate approval, 400 for
malformed input). Parsing message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        processor.decide(...)
    except Exception as e:
        if "already approved" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        processor.decide(...)
    except DuplicateApprovalError as e:
        api_response(409, code=e.code, step=e.step_order)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementKernelError (base)
    |
    +-- ApprovalWorkflowError
    |   +-- WorkflowNotConfiguredError
    |   +-- WorkflowAlreadyTerminalError
    |   +-- ForbiddenApproverError
    |   +-- DuplicateApprovalError
    |   +-- InvalidDecisionInputError
    |
    +-- WorkflowDefinitionError
    |   +-- InvalidWorkflowDefinitionError
    |   +-- DuplicateWorkflowDefinitionError
    |   +-- WorkflowDefinitionNotFoundError
    |   +-- WorkflowDefinitionInUseError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|------------------------------------
Decision     | WORKFLOW_NOT_CONFIGURED       | No active definition resolves
             | WORKFLOW_ALREADY_TERMINAL     | Entity already approved/rejected
             | FORBIDDEN_APPROVER            | Actor roles miss the current step
             | DUPLICATE_APPROVAL            | Actor already approved this step
             | INVALID_DECISION_INPUT        | Malformed decision / missing actor
-------------|-------------------------------|------------------------------------
Definition   | INVALID_WORKFLOW_DEFINITION   | Steps empty, gaps, bad quorum
             | DUPLICATE_WORKFLOW_DEFINITION | Name taken / second active default
             | WORKFLOW_DEFINITION_NOT_FOUND | Definition id/name doesn't exist
             | WORKFLOW_DEFINITION_IN_USE    | Delete of an active definition
             |                               | whose entity type has decisions
-------------|-------------------------------|------------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Update/delete of a decision record

===============================================================================
PROPAGATION
===============================================================================

Every decision error is a definitive rejection of that attempt. Validation
strictly precedes the ledger append, so no error leaves a partial record
behind. The kernel never retries internally and never logs on the failure
path; the host adapter decides how to surface the error.
"""


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"


# Approval decision exceptions


class ApprovalWorkflowError(ProcurementKernelError):
    """Base exception for rejected approval decisions."""

    code: str = "APPROVAL_WORKFLOW_ERROR"


class WorkflowNotConfiguredError(ApprovalWorkflowError):
    """No active workflow definition resolves for the entity."""

    code: str = "WORKFLOW_NOT_CONFIGURED"

    def __init__(self, entity_type: str, scope_id: str | None = None):
        self.entity_type = entity_type
        self.scope_id = scope_id
        scope = f" (scope {scope_id})" if scope_id is not None else ""
        super().__init__(
            f"No active approval workflow configured for {entity_type}{scope}"
        )


class WorkflowAlreadyTerminalError(ApprovalWorkflowError):
    """The entity's workflow has already been approved or rejected."""

    code: str = "WORKFLOW_ALREADY_TERMINAL"

    def __init__(self, entity_type: str, entity_id: str, terminal: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.terminal = terminal
        super().__init__(
            f"Approval workflow for {entity_type} {entity_id} is already "
            f"{terminal}; no further decisions are accepted"
        )


class ForbiddenApproverError(ApprovalWorkflowError):
    """Actor's roles do not intersect the current step's approver roles."""

    code: str = "FORBIDDEN_APPROVER"

    def __init__(
        self,
        actor_id: str,
        step_order: int,
        step_name: str,
        allowed_roles: tuple[str, ...],
    ):
        self.actor_id = actor_id
        self.step_order = step_order
        self.step_name = step_name
        self.allowed_roles = allowed_roles
        super().__init__(
            f"Actor {actor_id} may not decide step {step_order} "
            f"'{step_name}' (allowed roles: {', '.join(allowed_roles)})"
        )


class DuplicateApprovalError(ApprovalWorkflowError):
    """The actor already approved the current step."""

    code: str = "DUPLICATE_APPROVAL"

    def __init__(self, entity_type: str, entity_id: str, step_order: int, actor_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.step_order = step_order
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} already approved step {step_order} "
            f"of {entity_type} {entity_id}"
        )


class InvalidDecisionInputError(ApprovalWorkflowError):
    """Decision request is malformed."""

    code: str = "INVALID_DECISION_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid decision input '{field}': {reason}")


# Workflow definition exceptions


class WorkflowDefinitionError(ProcurementKernelError):
    """Base exception for workflow definition administration errors."""

    code: str = "WORKFLOW_DEFINITION_ERROR"


class InvalidWorkflowDefinitionError(WorkflowDefinitionError):
    """Workflow definition violates a structural invariant."""

    code: str = "INVALID_WORKFLOW_DEFINITION"

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid workflow definition '{name}': {reason}")


class DuplicateWorkflowDefinitionError(WorkflowDefinitionError):
    """
    Workflow name already exists, or a second active definition was
    requested for the same entity type and scope.
    """

    code: str = "DUPLICATE_WORKFLOW_DEFINITION"

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Duplicate workflow definition '{name}': {reason}")


class WorkflowDefinitionNotFoundError(WorkflowDefinitionError):
    """Workflow definition with the given identifier was not found."""

    code: str = "WORKFLOW_DEFINITION_NOT_FOUND"

    def __init__(self, workflow_ref: str):
        self.workflow_ref = workflow_ref
        super().__init__(f"Workflow definition not found: {workflow_ref}")


class WorkflowDefinitionInUseError(WorkflowDefinitionError):
    """
    Active workflow definition still governs recorded decisions and
    cannot be deleted; deactivate it instead.
    """

    code: str = "WORKFLOW_DEFINITION_IN_USE"

    def __init__(self, name: str, decision_count: int):
        self.name = name
        self.decision_count = decision_count
        super().__init__(
            f"Workflow definition '{name}' governs {decision_count} recorded "
            f"decision(s); deactivate it instead of deleting"
        )


# Immutability exceptions


class ImmutabilityError(ProcurementKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Decision records are append-only once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
