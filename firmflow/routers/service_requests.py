"""Client service request API endpoints."""

from typing import Callable
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from firmflow.core.deps import get_clock, get_current_session, get_db, require_csrf_header
from firmflow.db.enums import RequestStatus, Role
from firmflow.schemas.auth import UserSession
from firmflow.schemas.service import ServiceRead
from firmflow.schemas.service_request import (
    ServiceRequestApprove,
    ServiceRequestApproveResponse,
    ServiceRequestCreate,
    ServiceRequestRead,
    ServiceRequestReject,
    ServiceRequestReview,
    ServiceRequestStats,
)
from firmflow.services import service_request_service

router = APIRouter()


@router.post(
    "",
    response_model=ServiceRequestRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_request(
    data: ServiceRequestCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    """Client asks the firm for a new service."""
    return service_request_service.create_request(db, session.org_id, session.actor, data, clock)


@router.get("", response_model=list[ServiceRequestRead])
def list_requests(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    status_filter: RequestStatus | None = Query(None, alias="status"),
    client_id: UUID | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    if session.role == Role.CLIENT:
        client_id = session.user_id
    return service_request_service.list_requests(
        db,
        session.org_id,
        client_id=client_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=ServiceRequestStats)
def get_request_stats(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    client_id = session.user_id if session.role == Role.CLIENT else None
    return service_request_service.get_request_stats(db, session.org_id, client_id)


@router.get("/{request_id}", response_model=ServiceRequestRead)
def get_request(
    request_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return service_request_service.get_request(db, session.org_id, request_id, session.actor)


@router.post(
    "/{request_id}/review",
    response_model=ServiceRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def open_review(
    request_id: UUID,
    data: ServiceRequestReview | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    return service_request_service.open_review(
        db,
        session.org_id,
        request_id,
        session.actor,
        expected_version=data.expected_version if data else None,
        clock=clock,
    )


@router.post(
    "/{request_id}/approve",
    response_model=ServiceRequestApproveResponse,
    dependencies=[Depends(require_csrf_header)],
)
def approve_request(
    request_id: UUID,
    data: ServiceRequestApprove,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    """Approve and convert the request into a PENDING service."""
    request, service = service_request_service.approve(
        db,
        session.org_id,
        request_id,
        session.actor,
        quoted_fee=data.quoted_fee,
        approval_notes=data.approval_notes,
        due_date=data.due_date,
        expected_version=data.expected_version,
        clock=clock,
    )
    return ServiceRequestApproveResponse(
        request=ServiceRequestRead.model_validate(request),
        service=ServiceRead.model_validate(service),
    )


@router.post(
    "/{request_id}/reject",
    response_model=ServiceRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def reject_request(
    request_id: UUID,
    data: ServiceRequestReject,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    return service_request_service.reject(
        db,
        session.org_id,
        request_id,
        session.actor,
        data.reason,
        expected_version=data.expected_version,
        clock=clock,
    )


@router.post(
    "/{request_id}/cancel",
    response_model=ServiceRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_request(
    request_id: UUID,
    data: ServiceRequestReview | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    """Client withdraws their own request."""
    return service_request_service.cancel(
        db,
        session.org_id,
        request_id,
        session.actor,
        expected_version=data.expected_version if data else None,
        clock=clock,
    )
