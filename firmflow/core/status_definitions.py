"""Service status registry: phases, labels and terminal/completion sets."""

from __future__ import annotations

from firmflow.db.enums import ServiceStatus, StatusPhase


STATUS_PHASE_MAP: dict[ServiceStatus, StatusPhase] = {
    ServiceStatus.PENDING: StatusPhase.CREATION,
    ServiceStatus.ASSIGNED: StatusPhase.ASSIGNMENT,
    ServiceStatus.IN_PROGRESS: StatusPhase.EXECUTION,
    ServiceStatus.WAITING_FOR_CLIENT: StatusPhase.EXECUTION,
    ServiceStatus.ON_HOLD: StatusPhase.EXECUTION,
    ServiceStatus.UNDER_REVIEW: StatusPhase.REVIEW,
    ServiceStatus.CHANGES_REQUESTED: StatusPhase.REVIEW,
    ServiceStatus.COMPLETED: StatusPhase.COMPLETION,
    ServiceStatus.DELIVERED: StatusPhase.COMPLETION,
    ServiceStatus.INVOICED: StatusPhase.BILLING,
    ServiceStatus.CLOSED: StatusPhase.FINAL,
    ServiceStatus.CANCELLED: StatusPhase.FINAL,
}

STATUS_LABELS: dict[ServiceStatus, str] = {
    ServiceStatus.PENDING: "Pending",
    ServiceStatus.ASSIGNED: "Assigned",
    ServiceStatus.IN_PROGRESS: "In Progress",
    ServiceStatus.WAITING_FOR_CLIENT: "Waiting for Client",
    ServiceStatus.ON_HOLD: "On Hold",
    ServiceStatus.UNDER_REVIEW: "Under Review",
    ServiceStatus.CHANGES_REQUESTED: "Changes Requested",
    ServiceStatus.COMPLETED: "Completed",
    ServiceStatus.DELIVERED: "Delivered",
    ServiceStatus.INVOICED: "Invoiced",
    ServiceStatus.CLOSED: "Closed",
    ServiceStatus.CANCELLED: "Cancelled",
}

STATUS_DESCRIPTIONS: dict[ServiceStatus, str] = {
    ServiceStatus.PENDING: "Created, waiting for a project manager to assign it",
    ServiceStatus.ASSIGNED: "Assigned, work not started yet",
    ServiceStatus.IN_PROGRESS: "Work is being done",
    ServiceStatus.WAITING_FOR_CLIENT: "Blocked on documents or information from the client",
    ServiceStatus.ON_HOLD: "Paused internally",
    ServiceStatus.UNDER_REVIEW: "Submitted work awaiting manager review",
    ServiceStatus.CHANGES_REQUESTED: "Reviewer sent the work back",
    ServiceStatus.COMPLETED: "Work approved",
    ServiceStatus.DELIVERED: "Deliverables handed to the client",
    ServiceStatus.INVOICED: "Invoice generated",
    ServiceStatus.CLOSED: "Done",
    ServiceStatus.CANCELLED: "Cancelled",
}

TERMINAL_STATUSES = frozenset({ServiceStatus.CLOSED, ServiceStatus.CANCELLED})

# completed_at is set on every status in this set
COMPLETED_OR_LATER = frozenset(
    {
        ServiceStatus.COMPLETED,
        ServiceStatus.DELIVERED,
        ServiceStatus.INVOICED,
        ServiceStatus.CLOSED,
    }
)

# Statuses in which exactly one ACTIVE assignment owns the service
WORKING_STATUSES = frozenset(
    {
        ServiceStatus.ASSIGNED,
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.WAITING_FOR_CLIENT,
        ServiceStatus.ON_HOLD,
        ServiceStatus.UNDER_REVIEW,
        ServiceStatus.CHANGES_REQUESTED,
    }
)

# Counted as "active" in stats rollups
ACTIVE_STATUSES = frozenset(
    {
        ServiceStatus.PENDING,
        ServiceStatus.ASSIGNED,
        ServiceStatus.IN_PROGRESS,
        ServiceStatus.WAITING_FOR_CLIENT,
        ServiceStatus.ON_HOLD,
        ServiceStatus.UNDER_REVIEW,
        ServiceStatus.CHANGES_REQUESTED,
    }
)


def is_valid_status(value: str) -> bool:
    return ServiceStatus.has_value(value)


def is_terminal(status: ServiceStatus | str) -> bool:
    """CLOSED and CANCELLED accept no further transitions."""
    return ServiceStatus(status) in TERMINAL_STATUSES


def get_phase(status: ServiceStatus | str) -> StatusPhase:
    return STATUS_PHASE_MAP[ServiceStatus(status)]


def has_reached_completion(status: ServiceStatus | str) -> bool:
    return ServiceStatus(status) in COMPLETED_OR_LATER


def get_status_defs() -> list[dict]:
    """Serializable status list in workflow order (metadata endpoint)."""
    return [
        {
            "value": status.value,
            "label": STATUS_LABELS[status],
            "description": STATUS_DESCRIPTIONS[status],
            "phase": STATUS_PHASE_MAP[status].value,
            "is_terminal": status in TERMINAL_STATUSES,
        }
        for status in ServiceStatus
    ]
