"""Append-only service status history (audit trail) and replay."""

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from firmflow.core.transition_rules import is_valid_step
from firmflow.db.enums import HistoryAction, ServiceStatus
from firmflow.db.models import Service, ServiceStatusHistory
from firmflow.schemas.auth import Actor
from firmflow.services.workflow_errors import InvariantViolationError

CREATION_ACTIONS = {HistoryAction.CREATE.value, HistoryAction.CREATE_FROM_REQUEST.value}


def append(
    db: Session,
    service: Service,
    *,
    sequence: int,
    from_status: ServiceStatus | str | None,
    to_status: ServiceStatus | str,
    action: str,
    actor: Actor | None,
    changed_at: datetime,
    reason: str | None = None,
    notes: str | None = None,
    details: dict[str, Any] | None = None,
) -> ServiceStatusHistory:
    """
    Add one history record to the caller's transaction.

    Flushes so a duplicate sequence fails here, inside the transaction
    that produced it. Never commits.
    """
    record = ServiceStatusHistory(
        organization_id=service.organization_id,
        service_id=service.id,
        sequence=sequence,
        from_status=ServiceStatus(from_status).value if from_status is not None else None,
        to_status=ServiceStatus(to_status).value,
        action=action,
        changed_by_id=actor.id if actor else None,
        changed_by_role=actor.role.value if actor else None,
        reason=reason,
        notes=notes,
        details=details,
        changed_at=changed_at,
    )
    db.add(record)
    db.flush()
    return record


def get_history(db: Session, org_id: UUID, service_id: UUID) -> list[ServiceStatusHistory]:
    """History for a service in sequence order."""
    return list(
        db.execute(
            select(ServiceStatusHistory)
            .where(
                ServiceStatusHistory.organization_id == org_id,
                ServiceStatusHistory.service_id == service_id,
            )
            .order_by(ServiceStatusHistory.sequence)
        )
        .scalars()
        .all()
    )


def replay_status(records: Sequence[ServiceStatusHistory]) -> ServiceStatus | None:
    """Reconstruct the current status from history (None for an empty history)."""
    if not records:
        return None
    last = max(records, key=lambda r: r.sequence)
    return ServiceStatus(last.to_status)


def verify_walk(records: Sequence[ServiceStatusHistory]) -> ServiceStatus:
    """
    Check that history is a valid walk of the transition table.

    Returns the replayed status.

    Raises:
        InvariantViolationError: gap in sequence, broken link or an unknown step
    """
    ordered = sorted(records, key=lambda r: r.sequence)
    if not ordered:
        raise InvariantViolationError("Service has no history")

    first = ordered[0]
    if (
        first.sequence != 1
        or first.from_status is not None
        or first.to_status != ServiceStatus.PENDING.value
        or first.action not in CREATION_ACTIONS
    ):
        raise InvariantViolationError("History does not start with a creation record")

    previous = first
    for record in ordered[1:]:
        if record.sequence != previous.sequence + 1:
            raise InvariantViolationError(
                f"History sequence jumps from {previous.sequence} to {record.sequence}"
            )
        if record.from_status != previous.to_status:
            raise InvariantViolationError(
                f"Record {record.sequence} starts from {record.from_status}, "
                f"expected {previous.to_status}"
            )
        if not is_valid_step(record.from_status, record.to_status, record.action):
            raise InvariantViolationError(
                f"Record {record.sequence}: {record.action} does not lead "
                f"{record.from_status} -> {record.to_status}"
            )
        previous = record

    return ServiceStatus(previous.to_status)
