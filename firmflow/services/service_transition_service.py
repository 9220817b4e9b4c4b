"""
Service transition engine.

attempt() is the single entry point for changing a service's status.
It validates the action against the transition table, checks the actor's
role and assignment, applies ledger and timestamp side effects, appends
one history record and commits, all in one transaction.

Concurrency is optimistic: the status write is a compare-and-set on
services.version, so of two attempts that read the same version only
one commits; the other raises ConflictError.
"""

import logging
from datetime import datetime
from typing import Any, Callable, TypedDict
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from firmflow.core.clock import utc_now
from firmflow.core.status_definitions import (
    WORKING_STATUSES,
    has_reached_completion,
    is_terminal,
)
from firmflow.core.structured_logging import build_log_context
from firmflow.core.transition_rules import (
    OWNERSHIP_ACTIONS,
    ActionRule,
    Gate,
    InputRequirement,
    allowed_rules,
    get_rule,
)
from firmflow.db.enums import (
    ROLES_ADMIN,
    ROLES_CAN_MANAGE_ASSIGNMENTS,
    ROLES_WORKER,
    AssigneeType,
    Role,
    ServiceAction,
    ServiceStatus,
)
from firmflow.db.models import Service, ServiceAssignment, ServiceStatusHistory
from firmflow.schemas.auth import Actor
from firmflow.schemas.service import TransitionInput
from firmflow.services import assignment_service, membership_service, status_history_service
from firmflow.services.workflow_errors import (
    ConflictError,
    InvalidActionError,
    InvariantViolationError,
    MissingInputError,
    NotFoundError,
    UnauthorizedError,
    WorkflowError,
)


logger = logging.getLogger(__name__)

# Free text on these actions is the history reason; on all others it is notes
REASON_ACTIONS = frozenset(
    {ServiceAction.PUT_ON_HOLD, ServiceAction.REQUEST_CHANGES, ServiceAction.CANCEL}
)


class TransitionResult(TypedDict):
    """Result of an accepted transition."""

    service: Service
    new_status: ServiceStatus
    audit_record: ServiceStatusHistory


# =============================================================================
# Public API
# =============================================================================


def attempt(
    db: Session,
    org_id: UUID,
    service_id: UUID,
    action: ServiceAction | str,
    actor: Actor,
    data: TransitionInput | None = None,
    *,
    expected_version: int | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> TransitionResult:
    """
    Attempt a workflow action against a service.

    Checks run in this order: service exists, expected_version matches,
    action is defined for the current status, actor passes the gate,
    required input is present, the named assignee is valid.

    Raises:
        NotFoundError, ConflictError, InvalidActionError, UnauthorizedError,
        MissingInputError, InvariantViolationError
    """
    data = data or TransitionInput()
    try:
        service = _load_service(db, org_id, service_id)
        _check_expected_version(service, expected_version)
        rule = _resolve_rule(service, action)
        if rule.external:
            raise InvalidActionError(
                f"'{rule.action.value}' is recorded by its own event, not submitted"
            )
        return _apply(db, service, rule, actor, data, clock)
    except WorkflowError as exc:
        db.rollback()
        _log_rejection(exc, org_id, service_id, action, actor)
        raise


def record_invoice(
    db: Session,
    org_id: UUID,
    service_id: UUID,
    actor: Actor,
    invoice_id: str,
    *,
    expected_version: int | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> TransitionResult:
    """Record the external invoice-generated event (DELIVERED -> INVOICED)."""
    action = ServiceAction.INVOICE_GENERATED
    try:
        service = _load_service(db, org_id, service_id)
        _check_expected_version(service, expected_version)
        rule = _resolve_rule(service, action)
        return _apply(
            db,
            service,
            rule,
            actor,
            TransitionInput(),
            clock,
            extra_details={"invoice_id": invoice_id},
        )
    except WorkflowError as exc:
        db.rollback()
        _log_rejection(exc, org_id, service_id, action, actor)
        raise


def available_actions(
    db: Session,
    org_id: UUID,
    service_id: UUID,
    actor: Actor,
) -> list[ActionRule]:
    """Actions the actor may attempt on the service right now."""
    service = _load_service(db, org_id, service_id)
    if is_terminal(service.status):
        return []
    active = assignment_service.get_active_assignment(db, service.id)
    return [
        rule
        for rule in allowed_rules(service.status)
        if _passes_gate(rule.gate, actor, active)
    ]


# =============================================================================
# Checks
# =============================================================================


def _load_service(db: Session, org_id: UUID, service_id: UUID) -> Service:
    service = db.execute(
        select(Service).where(Service.id == service_id, Service.organization_id == org_id)
    ).scalar_one_or_none()
    if not service:
        raise NotFoundError(f"Service {service_id} not found")
    return service


def _check_expected_version(service: Service, expected_version: int | None) -> None:
    if expected_version is not None and expected_version != service.version:
        raise ConflictError(
            f"Service {service.id} is at version {service.version}, not {expected_version}",
            expected=expected_version,
            actual=service.version,
        )


def _resolve_rule(service: Service, action: ServiceAction | str) -> ActionRule:
    if is_terminal(service.status):
        raise InvalidActionError(f"Service is {service.status} and accepts no actions")
    rule = get_rule(service.status, action)
    if rule is None:
        action_name = action.value if isinstance(action, ServiceAction) else action
        raise InvalidActionError(f"'{action_name}' is not allowed from {service.status}")
    return rule


def _passes_gate(gate: Gate, actor: Actor, active: ServiceAssignment | None) -> bool:
    if actor.role == Role.CLIENT:
        return False
    is_admin = actor.role in ROLES_ADMIN
    is_assignee = active is not None and active.assignee_id == actor.id

    if gate == Gate.MANAGER:
        return actor.role in ROLES_CAN_MANAGE_ASSIGNMENTS
    if gate == Gate.ASSIGNEE:
        return is_assignee or is_admin
    if gate == Gate.WORKER:
        return is_assignee and actor.role in ROLES_WORKER
    if gate == Gate.DELEGATOR:
        return is_admin or (active is not None and active.assigned_by_id == actor.id)
    return False


def _check_input(rule: ActionRule, data: TransitionInput) -> None:
    if rule.requires == InputRequirement.TEXT and not data.has_text():
        raise MissingInputError(f"'{rule.action.value}' requires a reason or notes")
    if rule.requires == InputRequirement.ASSIGNEE and data.assignee_id is None:
        raise MissingInputError(f"'{rule.action.value}' requires an assignee")


def _resolve_delegator(db: Session, service: Service, current: ServiceAssignment) -> AssigneeType:
    """
    Assignee type for the user a take-back returns the service to.

    Raises:
        NotFoundError: the delegator is no longer an active member
    """
    membership = membership_service.get_membership_for_org(
        db, service.organization_id, current.assigned_by_id
    )
    if membership and Role.has_value(membership.role) and Role(membership.role) in ROLES_ADMIN:
        # Admins hold taken-back work as managers
        return AssigneeType.PROJECT_MANAGER
    return membership_service.resolve_assignee(
        db, service.organization_id, current.assigned_by_id
    )


# =============================================================================
# Apply
# =============================================================================


def _apply(
    db: Session,
    service: Service,
    rule: ActionRule,
    actor: Actor,
    data: TransitionInput,
    clock: Callable[[], datetime],
    extra_details: dict[str, Any] | None = None,
) -> TransitionResult:
    active = assignment_service.get_active_assignment(db, service.id)
    if not _passes_gate(rule.gate, actor, active):
        raise UnauthorizedError(
            f"Role '{actor.role.value}' may not '{rule.action.value}' this service"
        )
    _check_input(rule, data)

    target_type: AssigneeType | None = None
    if rule.requires == InputRequirement.ASSIGNEE:
        target_type = membership_service.resolve_assignee(
            db, service.organization_id, data.assignee_id, data.assignee_type
        )
        if active is not None and active.assignee_id == data.assignee_id:
            raise InvalidActionError("Service is already assigned to this assignee")
    if rule.action == ServiceAction.TAKE_BACK:
        if active is None:
            raise InvariantViolationError(f"Service {service.id} has no active assignment")
        if active.assigned_by_id == active.assignee_id:
            raise InvalidActionError("Assignee already holds the service they assigned")
        target_type = _resolve_delegator(db, service, active)

    now = clock()
    from_status = ServiceStatus(service.status)
    read_version = service.version
    log_context = build_log_context(
        user_id=str(actor.id),
        org_id=str(service.organization_id),
        service_id=str(service.id),
        action=rule.action.value,
    )

    try:
        _compare_and_set(db, service, rule, read_version, now)
        details = dict(extra_details or {})
        details.update(_apply_ledger(db, service, rule, actor, data, active, target_type, now))

        reason, notes = _split_text(rule.action, data)
        if rule.action == ServiceAction.REQUEST_DOCUMENTS:
            details["documents"] = list(data.documents)

        record = status_history_service.append(
            db,
            service,
            sequence=service.version,
            from_status=from_status,
            to_status=rule.to_status,
            action=rule.action.value,
            actor=actor,
            changed_at=now,
            reason=reason,
            notes=notes,
            details=details or None,
        )
        _check_postconditions(db, service, record)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(f"Service {log_context['service_id']} was changed concurrently") from exc

    db.refresh(service)
    db.refresh(record)
    logger.info(
        f"Service transition {from_status.value} -> {rule.to_status.value}",
        extra=log_context,
    )
    return TransitionResult(
        service=service,
        new_status=ServiceStatus(service.status),
        audit_record=record,
    )


def _compare_and_set(
    db: Session,
    service: Service,
    rule: ActionRule,
    read_version: int,
    now: datetime,
) -> None:
    """Write status and bump version only if nobody else did first."""
    values: dict[str, Any] = {
        "status": rule.to_status.value,
        "version": Service.version + 1,
        "updated_at": now,
    }
    if rule.action == ServiceAction.START_WORK and service.started_at is None:
        values["started_at"] = now
    if rule.action in (ServiceAction.APPROVE, ServiceAction.MARK_COMPLETE):
        values["completed_at"] = now

    result = db.execute(
        update(Service)
        .where(Service.id == service.id, Service.version == read_version)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"Service {service.id} changed since version {read_version}",
            expected=read_version,
        )
    db.refresh(service)


def _apply_ledger(
    db: Session,
    service: Service,
    rule: ActionRule,
    actor: Actor,
    data: TransitionInput,
    active: ServiceAssignment | None,
    target_type: AssigneeType | None,
    now: datetime,
) -> dict[str, Any]:
    """Ledger side effects. Returns ids for the history record's metadata."""
    action = rule.action
    reason = data.text if data.has_text() else None

    if action == ServiceAction.ASSIGN:
        new = assignment_service.assign(db, service, data.assignee_id, target_type, actor, now)
    elif action == ServiceAction.DELEGATE:
        new = assignment_service.delegate(
            db, service, active, data.assignee_id, target_type, actor, reason, now
        )
    elif action == ServiceAction.REASSIGN:
        new = assignment_service.reassign(
            db, service, active, data.assignee_id, target_type, actor, reason, now
        )
    elif action == ServiceAction.TAKE_BACK:
        new = assignment_service.take_back(
            db, service, active, target_type, actor, reason, now
        )
    elif action in (ServiceAction.APPROVE, ServiceAction.MARK_COMPLETE):
        completed = assignment_service.complete_active(db, service.id, now)
        return {"completed_assignment_id": str(completed.id)} if completed else {}
    elif action == ServiceAction.CANCEL:
        revoked = assignment_service.revoke_active(db, service.id, actor.id, reason, now)
        return {"revoked_assignment_id": str(revoked.id)} if revoked else {}
    else:
        return {}

    details: dict[str, Any] = {
        "assignment_id": str(new.id),
        "assignee_id": str(new.assignee_id),
        "assignee_type": new.assignee_type,
        "delegation_level": new.delegation_level,
    }
    if new.previous_assignment_id:
        details["previous_assignment_id"] = str(new.previous_assignment_id)
    return details


def _split_text(action: ServiceAction, data: TransitionInput) -> tuple[str | None, str | None]:
    """Route free text to the history reason or notes column."""
    if not data.has_text():
        return None, None
    if action in REASON_ACTIONS or action in OWNERSHIP_ACTIONS:
        return data.text, None
    return None, data.text


def _check_postconditions(db: Session, service: Service, record: ServiceStatusHistory) -> None:
    status = ServiceStatus(service.status)

    assignment_service.verify_ledger(db, service.id)
    active = assignment_service.get_active_assignment(db, service.id)
    if status in WORKING_STATUSES and active is None:
        raise InvariantViolationError(f"Service in {status.value} has no active assignment")
    if status not in WORKING_STATUSES and active is not None:
        raise InvariantViolationError(f"Service in {status.value} still has an active assignment")

    if has_reached_completion(status) and service.completed_at is None:
        raise InvariantViolationError(f"Service in {status.value} has no completed_at")
    if (
        not has_reached_completion(status)
        and status != ServiceStatus.CANCELLED
        and service.completed_at is not None
    ):
        raise InvariantViolationError(f"Service in {status.value} has completed_at set")

    if record.sequence != service.version:
        raise InvariantViolationError(
            f"History sequence {record.sequence} does not match version {service.version}"
        )


def _log_rejection(
    exc: WorkflowError,
    org_id: UUID,
    service_id: UUID,
    action: ServiceAction | str,
    actor: Actor,
) -> None:
    context = build_log_context(
        user_id=str(actor.id),
        org_id=str(org_id),
        service_id=str(service_id),
        action=action.value if isinstance(action, ServiceAction) else str(action),
    )
    if isinstance(exc, InvariantViolationError):
        logger.error("Service invariant violated", extra=context, exc_info=exc)
        return
    level = (
        logging.WARNING
        if isinstance(exc, (UnauthorizedError, ConflictError))
        else logging.INFO
    )
    logger.log(level, f"Service transition rejected: {exc.kind}", extra=context)
