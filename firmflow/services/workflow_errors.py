"""Workflow error hierarchy shared by the transition engine and the request flow."""


class WorkflowError(Exception):
    """Base exception for workflow errors."""

    kind = "workflow_error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class InvalidActionError(WorkflowError):
    """Action is not defined for the current status (or the status is terminal)."""

    kind = "invalid_action"
    status_code = 400


class UnauthorizedError(WorkflowError):
    """Actor's role or assignment does not permit the action."""

    kind = "unauthorized"
    status_code = 403


class MissingInputError(WorkflowError):
    """Action requires text or an assignee and none was supplied."""

    kind = "missing_input"
    status_code = 400


class ConflictError(WorkflowError):
    """Another transition won the race for this version."""

    kind = "conflict"
    status_code = 409

    def __init__(self, message: str, expected: int | None = None, actual: int | None = None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class NotFoundError(WorkflowError):
    """Service, request, assignment or assignee not found in the organization."""

    kind = "not_found"
    status_code = 404


class InvariantViolationError(WorkflowError):
    """Internal consistency check failed. The transaction is rolled back."""

    kind = "invariant_violation"
    status_code = 500
