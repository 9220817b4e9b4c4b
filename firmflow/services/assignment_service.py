"""
Assignment ledger - who owns a service, and how ownership got there.

Every change of ownership appends a new ServiceAssignment. The previous
one is marked DELEGATED or REVOKED, never removed, so the chain of
previous_assignment_id pointers is the full provenance of the current owner.

Functions here flush but never commit; the transition engine owns the
transaction.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from firmflow.db.enums import AssigneeType, AssignmentStatus, AssignmentType
from firmflow.db.models import Service, ServiceAssignment
from firmflow.schemas.auth import Actor
from firmflow.services.workflow_errors import (
    InvalidActionError,
    InvariantViolationError,
    MissingInputError,
    NotFoundError,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Reads
# =============================================================================


def get_active_assignment(db: Session, service_id: UUID) -> ServiceAssignment | None:
    """Return the single ACTIVE assignment for a service, if any."""
    active = list(
        db.execute(
            select(ServiceAssignment).where(
                ServiceAssignment.service_id == service_id,
                ServiceAssignment.status == AssignmentStatus.ACTIVE.value,
            )
        )
        .scalars()
        .all()
    )
    if len(active) > 1:
        raise InvariantViolationError(
            f"Service {service_id} has {len(active)} active assignments"
        )
    return active[0] if active else None


def list_assignments(db: Session, org_id: UUID, service_id: UUID) -> list[ServiceAssignment]:
    """All assignments for a service, oldest first."""
    return list(
        db.execute(
            select(ServiceAssignment)
            .where(
                ServiceAssignment.organization_id == org_id,
                ServiceAssignment.service_id == service_id,
            )
            .order_by(ServiceAssignment.delegation_level, ServiceAssignment.assigned_at)
        )
        .scalars()
        .all()
    )


def get_assignment(db: Session, org_id: UUID, assignment_id: UUID) -> ServiceAssignment:
    assignment = db.execute(
        select(ServiceAssignment).where(
            ServiceAssignment.id == assignment_id,
            ServiceAssignment.organization_id == org_id,
        )
    ).scalar_one_or_none()
    if not assignment:
        raise NotFoundError(f"Assignment {assignment_id} not found")
    return assignment


def _count_assignments(db: Session, service_id: UUID) -> int:
    return db.execute(
        select(func.count(ServiceAssignment.id)).where(ServiceAssignment.service_id == service_id)
    ).scalar_one()


def get_chain(db: Session, assignment: ServiceAssignment) -> list[ServiceAssignment]:
    """
    Walk previous_assignment_id back to the root.

    Returns the chain root first. The walk is bounded by the number of
    assignments the service has; exceeding it means the chain has a cycle.
    """
    bound = _count_assignments(db, assignment.service_id)
    chain = [assignment]
    current = assignment
    while current.previous_assignment_id is not None:
        if len(chain) > bound:
            raise InvariantViolationError(
                f"Assignment chain for service {assignment.service_id} does not terminate"
            )
        previous = db.get(ServiceAssignment, current.previous_assignment_id)
        if previous is None:
            break
        chain.append(previous)
        current = previous
    chain.reverse()
    return chain


def verify_ledger(db: Session, service_id: UUID) -> None:
    """
    Check the ledger invariants for one service.

    - at most one ACTIVE assignment
    - every chain root is the level 0 INITIAL assignment
    - every back pointer targets the same service at a strictly lower level

    Raises:
        InvariantViolationError
    """
    assignments = list(
        db.execute(select(ServiceAssignment).where(ServiceAssignment.service_id == service_id))
        .scalars()
        .all()
    )
    by_id = {a.id: a for a in assignments}

    active_count = sum(1 for a in assignments if a.status == AssignmentStatus.ACTIVE.value)
    if active_count > 1:
        raise InvariantViolationError(
            f"Service {service_id} has {active_count} active assignments"
        )

    for assignment in assignments:
        if assignment.previous_assignment_id is None:
            if (
                assignment.delegation_level != 0
                or assignment.assignment_type != AssignmentType.INITIAL.value
            ):
                raise InvariantViolationError(
                    f"Assignment {assignment.id} has no predecessor but is not the initial assignment"
                )
            continue
        previous = by_id.get(assignment.previous_assignment_id)
        if previous is None:
            raise InvariantViolationError(
                f"Assignment {assignment.id} points outside service {service_id}"
            )
        if previous.delegation_level >= assignment.delegation_level:
            raise InvariantViolationError(
                f"Assignment {assignment.id} does not increase the delegation level"
            )


# =============================================================================
# Writes
# =============================================================================


def _append(
    db: Session,
    service: Service,
    *,
    assignee_id: UUID,
    assignee_type: AssigneeType,
    assigner: Actor,
    assignment_type: AssignmentType,
    level: int,
    previous: ServiceAssignment | None,
    reason: str | None,
    now: datetime,
) -> ServiceAssignment:
    assignment = ServiceAssignment(
        organization_id=service.organization_id,
        service_id=service.id,
        assignee_id=assignee_id,
        assignee_type=assignee_type.value,
        assigned_by_id=assigner.id,
        assigned_by_role=assigner.role.value,
        delegation_level=level,
        previous_assignment_id=previous.id if previous else None,
        delegation_reason=reason,
        assignment_type=assignment_type.value,
        status=AssignmentStatus.ACTIVE.value,
        assigned_at=now,
    )
    db.add(assignment)
    db.flush()
    return assignment


def _require_active(assignment: ServiceAssignment) -> None:
    if assignment.status != AssignmentStatus.ACTIVE.value:
        raise InvariantViolationError(
            f"Assignment {assignment.id} is {assignment.status}, expected active"
        )


def assign(
    db: Session,
    service: Service,
    assignee_id: UUID,
    assignee_type: AssigneeType,
    assigner: Actor,
    now: datetime,
) -> ServiceAssignment:
    """Create the INITIAL (level 0) assignment. The service must have no owner."""
    if get_active_assignment(db, service.id) is not None:
        raise InvariantViolationError(f"Service {service.id} already has an active assignment")
    return _append(
        db,
        service,
        assignee_id=assignee_id,
        assignee_type=assignee_type,
        assigner=assigner,
        assignment_type=AssignmentType.INITIAL,
        level=0,
        previous=None,
        reason=None,
        now=now,
    )


def delegate(
    db: Session,
    service: Service,
    from_assignment: ServiceAssignment,
    to_assignee_id: UUID,
    to_assignee_type: AssigneeType,
    assigner: Actor,
    reason: str | None,
    now: datetime,
) -> ServiceAssignment:
    """Hand the active assignment over. The old one stays in the ledger as DELEGATED."""
    _require_active(from_assignment)
    from_assignment.status = AssignmentStatus.DELEGATED.value
    # Release the active slot before the new row claims it
    db.flush()
    return _append(
        db,
        service,
        assignee_id=to_assignee_id,
        assignee_type=to_assignee_type,
        assigner=assigner,
        assignment_type=AssignmentType.DELEGATION,
        level=from_assignment.delegation_level + 1,
        previous=from_assignment,
        reason=reason,
        now=now,
    )


def reassign(
    db: Session,
    service: Service,
    current: ServiceAssignment,
    to_assignee_id: UUID,
    to_assignee_type: AssigneeType,
    manager: Actor,
    reason: str | None,
    now: datetime,
) -> ServiceAssignment:
    """Manager moves the service to someone else; the current owner is revoked."""
    _require_active(current)
    revoke(db, current, manager.id, reason or "Reassigned", now)
    db.flush()
    return _append(
        db,
        service,
        assignee_id=to_assignee_id,
        assignee_type=to_assignee_type,
        assigner=manager,
        assignment_type=AssignmentType.RE_ASSIGNMENT,
        level=current.delegation_level + 1,
        previous=current,
        reason=reason,
        now=now,
    )


def take_back(
    db: Session,
    service: Service,
    current: ServiceAssignment,
    delegator_type: AssigneeType,
    actor: Actor,
    reason: str | None,
    now: datetime,
) -> ServiceAssignment:
    """Return the service to whoever handed the current assignment over."""
    _require_active(current)
    revoke(db, current, actor.id, reason or "Taken back", now)
    db.flush()
    return _append(
        db,
        service,
        assignee_id=current.assigned_by_id,
        assignee_type=delegator_type,
        assigner=actor,
        assignment_type=AssignmentType.TAKE_BACK,
        level=current.delegation_level + 1,
        previous=current,
        reason=reason,
        now=now,
    )


def revoke(
    db: Session,
    assignment: ServiceAssignment,
    revoker_id: UUID,
    reason: str | None,
    now: datetime,
) -> ServiceAssignment:
    """
    Revoke an ACTIVE or DELEGATED assignment, recording who and why.

    Raises:
        InvalidActionError: assignment is already completed or revoked
        MissingInputError: no reason given
    """
    if assignment.status not in (
        AssignmentStatus.ACTIVE.value,
        AssignmentStatus.DELEGATED.value,
    ):
        raise InvalidActionError(
            f"Cannot revoke assignment {assignment.id} in status {assignment.status}"
        )
    if not reason or not reason.strip():
        raise MissingInputError(f"Revoking assignment {assignment.id} requires a reason")
    assignment.status = AssignmentStatus.REVOKED.value
    assignment.revoked_at = now
    assignment.revoked_by_id = revoker_id
    assignment.revoked_reason = reason.strip()
    return assignment


def revoke_active(
    db: Session,
    service_id: UUID,
    revoker_id: UUID,
    reason: str | None,
    now: datetime,
) -> ServiceAssignment | None:
    active = get_active_assignment(db, service_id)
    if active is None:
        return None
    revoke(db, active, revoker_id, reason, now)
    db.flush()
    return active


def complete_active(db: Session, service_id: UUID, now: datetime) -> ServiceAssignment | None:
    """Close out the current owner's assignment when the work is approved."""
    active = get_active_assignment(db, service_id)
    if active is None:
        return None
    active.status = AssignmentStatus.COMPLETED.value
    active.completed_at = now
    db.flush()
    return active
