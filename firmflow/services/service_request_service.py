"""
Client service requests and their conversion into services.

A request moves pending -> under_review -> converted/rejected, or is
cancelled by its client. Approval converts the request and creates the
Service in one transaction; a compare-and-set on service_requests.version
plus the unique services.service_request_id make a second approval fail
with ConflictError instead of creating a second service.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from firmflow.core.clock import utc_now
from firmflow.core.structured_logging import build_log_context
from firmflow.db.enums import (
    ROLES_CAN_REQUEST_SERVICES,
    ROLES_CAN_REVIEW_REQUESTS,
    HistoryAction,
    RequestAction,
    RequestStatus,
    Role,
    ServiceOrigin,
    ServiceStatus,
)
from firmflow.db.models import Service, ServiceRequest
from firmflow.schemas.auth import Actor
from firmflow.schemas.service_request import ServiceRequestCreate
from firmflow.services import membership_service, status_history_service
from firmflow.services.workflow_errors import (
    ConflictError,
    InvalidActionError,
    MissingInputError,
    NotFoundError,
    UnauthorizedError,
    WorkflowError,
)


logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = {RequestStatus.PENDING.value, RequestStatus.UNDER_REVIEW.value}


# =============================================================================
# Reads
# =============================================================================


def get_request(
    db: Session,
    org_id: UUID,
    request_id: UUID,
    actor: Actor | None = None,
) -> ServiceRequest:
    """Get a request. Clients only see their own."""
    request = db.execute(
        select(ServiceRequest).where(
            ServiceRequest.id == request_id,
            ServiceRequest.organization_id == org_id,
        )
    ).scalar_one_or_none()
    if not request:
        raise NotFoundError(f"Service request {request_id} not found")
    if actor is not None and actor.role == Role.CLIENT and request.client_id != actor.id:
        raise NotFoundError(f"Service request {request_id} not found")
    return request


def list_requests(
    db: Session,
    org_id: UUID,
    *,
    client_id: UUID | None = None,
    status: RequestStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[ServiceRequest]:
    query = select(ServiceRequest).where(ServiceRequest.organization_id == org_id)
    if client_id:
        query = query.where(ServiceRequest.client_id == client_id)
    if status:
        query = query.where(ServiceRequest.status == status.value)
    query = query.order_by(ServiceRequest.created_at.desc()).limit(limit).offset(offset)
    return list(db.execute(query).scalars().all())


def get_request_stats(db: Session, org_id: UUID, client_id: UUID | None = None) -> dict:
    """Count requests per status."""
    query = (
        select(ServiceRequest.status, func.count(ServiceRequest.id))
        .where(ServiceRequest.organization_id == org_id)
        .group_by(ServiceRequest.status)
    )
    if client_id:
        query = query.where(ServiceRequest.client_id == client_id)
    counts = {status: count for status, count in db.execute(query).all()}
    by_status = {s.value: counts.get(s.value, 0) for s in RequestStatus}
    return {"by_status": by_status, "total": sum(by_status.values())}


# =============================================================================
# Writes
# =============================================================================


def create_request(
    db: Session,
    org_id: UUID,
    actor: Actor,
    data: ServiceRequestCreate,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceRequest:
    """Create a PENDING request on behalf of the client actor."""
    if actor.role not in ROLES_CAN_REQUEST_SERVICES:
        raise UnauthorizedError("Only clients can request services")
    if not membership_service.get_client(db, org_id, actor.id):
        raise NotFoundError(f"Client {actor.id} not found")

    now = clock()
    request = ServiceRequest(
        organization_id=org_id,
        client_id=actor.id,
        service_type=data.service_type.value,
        title=data.title.strip(),
        description=data.description,
        urgency=data.urgency.value,
        preferred_due_date=data.preferred_due_date,
        financial_year=data.financial_year,
        assessment_year=data.assessment_year,
        status=RequestStatus.PENDING.value,
        version=1,
        attachments=[a.model_dump() for a in data.attachments] or None,
        created_at=now,
        updated_at=now,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(
        "Service request created",
        extra=build_log_context(
            user_id=str(actor.id), org_id=str(org_id), request_id=str(request.id)
        ),
    )
    return request


def _load_for_update(
    db: Session,
    org_id: UUID,
    request_id: UUID,
    actor: Actor,
    expected_version: int | None,
    action: RequestAction,
) -> ServiceRequest:
    request = get_request(db, org_id, request_id, actor)
    if expected_version is not None and expected_version != request.version:
        raise ConflictError(
            f"Service request {request_id} is at version {request.version}, "
            f"not {expected_version}",
            expected=expected_version,
            actual=request.version,
        )
    if request.status not in REVIEWABLE_STATUSES:
        raise InvalidActionError(f"Cannot {action.value} a request that is {request.status}")
    return request


def _compare_and_set(
    db: Session,
    request: ServiceRequest,
    new_status: RequestStatus,
    values: dict[str, Any],
) -> None:
    result = db.execute(
        update(ServiceRequest)
        .where(ServiceRequest.id == request.id, ServiceRequest.version == request.version)
        .values(status=new_status.value, version=ServiceRequest.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"Service request {request.id} changed since version {request.version}",
            expected=request.version,
        )


def _require_reviewer(actor: Actor, action: RequestAction) -> None:
    if actor.role not in ROLES_CAN_REVIEW_REQUESTS:
        raise UnauthorizedError(f"Role '{actor.role.value}' may not {action.value} requests")


def _finish(
    db: Session,
    request: ServiceRequest,
    actor: Actor,
    action: RequestAction,
) -> ServiceRequest:
    db.commit()
    db.refresh(request)
    logger.info(
        f"Service request {action.value}",
        extra=build_log_context(
            user_id=str(actor.id),
            org_id=str(request.organization_id),
            request_id=str(request.id),
            action=action.value,
        ),
    )
    return request


def _rejected(
    db: Session,
    exc: WorkflowError,
    org_id: UUID,
    request_id: UUID,
    actor: Actor,
    action: RequestAction,
) -> None:
    db.rollback()
    level = logging.WARNING if isinstance(exc, (UnauthorizedError, ConflictError)) else logging.INFO
    logger.log(
        level,
        f"Service request {action.value} rejected: {exc.kind}",
        extra=build_log_context(
            user_id=str(actor.id),
            org_id=str(org_id),
            request_id=str(request_id),
            action=action.value,
        ),
    )


def open_review(
    db: Session,
    org_id: UUID,
    request_id: UUID,
    reviewer: Actor,
    *,
    expected_version: int | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceRequest:
    """PENDING -> UNDER_REVIEW."""
    action = RequestAction.OPEN_REVIEW
    try:
        request = _load_for_update(db, org_id, request_id, reviewer, expected_version, action)
        if request.status != RequestStatus.PENDING.value:
            raise InvalidActionError(f"Request is already {request.status}")
        _require_reviewer(reviewer, action)
        now = clock()
        _compare_and_set(
            db,
            request,
            RequestStatus.UNDER_REVIEW,
            {
                "reviewed_by_id": reviewer.id,
                "reviewed_by_role": reviewer.role.value,
                "updated_at": now,
            },
        )
        return _finish(db, request, reviewer, action)
    except WorkflowError as exc:
        _rejected(db, exc, org_id, request_id, reviewer, action)
        raise


def approve(
    db: Session,
    org_id: UUID,
    request_id: UUID,
    reviewer: Actor,
    *,
    quoted_fee: Decimal | None = None,
    approval_notes: str | None = None,
    due_date: date | None = None,
    expected_version: int | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> tuple[ServiceRequest, Service]:
    """
    Approve a request and convert it into a PENDING service.

    Request update, service insert and the service's creation record
    commit together or not at all.

    Raises:
        ConflictError: another approval (or any other change) won the race
    """
    action = RequestAction.APPROVE
    try:
        request = _load_for_update(db, org_id, request_id, reviewer, expected_version, action)
        _require_reviewer(reviewer, action)
        now = clock()

        # Read before the compare-and-set; the instance is not refreshed until commit
        service = Service(
            organization_id=org_id,
            client_id=request.client_id,
            title=request.title,
            description=request.description,
            service_type=request.service_type,
            status=ServiceStatus.PENDING.value,
            version=1,
            due_date=due_date or request.preferred_due_date,
            fee_amount=quoted_fee,
            notes=approval_notes,
            financial_year=request.financial_year,
            assessment_year=request.assessment_year,
            origin=ServiceOrigin.CLIENT_REQUEST.value,
            service_request_id=request.id,
            created_by_user_id=reviewer.id,
            created_at=now,
            updated_at=now,
        )

        _compare_and_set(
            db,
            request,
            RequestStatus.CONVERTED,
            {
                "reviewed_by_id": reviewer.id,
                "reviewed_by_role": reviewer.role.value,
                "reviewed_at": now,
                "approval_notes": approval_notes,
                "quoted_fee": quoted_fee,
                "updated_at": now,
            },
        )
        try:
            db.add(service)
            db.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Service request {request_id} was already converted") from exc

        status_history_service.append(
            db,
            service,
            sequence=1,
            from_status=None,
            to_status=ServiceStatus.PENDING,
            action=HistoryAction.CREATE_FROM_REQUEST.value,
            actor=reviewer,
            changed_at=now,
            notes=approval_notes,
            details={"service_request_id": str(request.id)},
        )
        _finish(db, request, reviewer, action)
        db.refresh(service)
        return request, service
    except WorkflowError as exc:
        _rejected(db, exc, org_id, request_id, reviewer, action)
        raise


def reject(
    db: Session,
    org_id: UUID,
    request_id: UUID,
    reviewer: Actor,
    reason: str | None,
    *,
    expected_version: int | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceRequest:
    """Reject a request. A reason is required."""
    action = RequestAction.REJECT
    try:
        request = _load_for_update(db, org_id, request_id, reviewer, expected_version, action)
        _require_reviewer(reviewer, action)
        if not reason or not reason.strip():
            raise MissingInputError("Rejecting a request requires a reason")
        now = clock()
        _compare_and_set(
            db,
            request,
            RequestStatus.REJECTED,
            {
                "reviewed_by_id": reviewer.id,
                "reviewed_by_role": reviewer.role.value,
                "reviewed_at": now,
                "rejection_reason": reason.strip(),
                "updated_at": now,
            },
        )
        return _finish(db, request, reviewer, action)
    except WorkflowError as exc:
        _rejected(db, exc, org_id, request_id, reviewer, action)
        raise


def cancel(
    db: Session,
    org_id: UUID,
    request_id: UUID,
    actor: Actor,
    *,
    expected_version: int | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceRequest:
    """The owning client withdraws a pending or under-review request."""
    action = RequestAction.CANCEL
    try:
        request = _load_for_update(db, org_id, request_id, actor, expected_version, action)
        if actor.role != Role.CLIENT or request.client_id != actor.id:
            raise UnauthorizedError("Only the requesting client can cancel a request")
        _compare_and_set(db, request, RequestStatus.CANCELLED, {"updated_at": clock()})
        return _finish(db, request, actor, action)
    except WorkflowError as exc:
        _rejected(db, exc, org_id, request_id, actor, action)
        raise
