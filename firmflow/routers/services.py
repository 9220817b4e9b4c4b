"""Service workflow API endpoints."""

from typing import Callable
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from firmflow.core.deps import get_clock, get_current_session, get_db, require_csrf_header
from firmflow.db.enums import Role, ServiceStatus
from firmflow.schemas.auth import UserSession
from firmflow.schemas.service import (
    AssignmentRead,
    AvailableActionRead,
    InvoiceEvent,
    ServiceCreate,
    ServiceRead,
    ServiceStats,
    ServiceTransitionRequest,
    StatusHistoryRead,
    TransitionResponse,
)
from firmflow.services import (
    assignment_service,
    service_service,
    service_transition_service,
    status_history_service,
)
from firmflow.services.workflow_errors import NotFoundError

router = APIRouter()


def _get_visible_service(db: Session, session: UserSession, service_id: UUID):
    """Clients only see services for themselves."""
    service = service_service.get_service(db, session.org_id, service_id)
    if session.role == Role.CLIENT and service.client_id != session.user_id:
        raise NotFoundError(f"Service {service_id} not found")
    return service


def _transition_response(result) -> TransitionResponse:
    return TransitionResponse(
        new_status=result["new_status"],
        service=ServiceRead.model_validate(result["service"]),
        audit_record=StatusHistoryRead.model_validate(result["audit_record"]),
    )


@router.post(
    "",
    response_model=ServiceRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_service(
    data: ServiceCreate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    """Create a firm-originated service (optionally assigning it)."""
    return service_service.create_service(db, session.org_id, session.actor, data, clock)


@router.get("", response_model=list[ServiceRead])
def list_services(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    status_filter: ServiceStatus | None = Query(None, alias="status"),
    client_id: UUID | None = None,
    assignee_id: UUID | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List services. Clients see only their own."""
    if session.role == Role.CLIENT:
        client_id = session.user_id
    return service_service.list_services(
        db,
        session.org_id,
        status=status_filter,
        client_id=client_id,
        assignee_id=assignee_id,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=ServiceStats)
def get_service_stats(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    client_id = session.user_id if session.role == Role.CLIENT else None
    return service_service.get_service_stats(db, session.org_id, client_id)


@router.get("/{service_id}", response_model=ServiceRead)
def get_service(
    service_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return _get_visible_service(db, session, service_id)


@router.get("/{service_id}/actions", response_model=list[AvailableActionRead])
def list_available_actions(
    service_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Actions the current user may attempt right now, with their input requirements."""
    _get_visible_service(db, session, service_id)
    rules = service_transition_service.available_actions(
        db, session.org_id, service_id, session.actor
    )
    return [
        AvailableActionRead(action=r.action, to_status=r.to_status, requires=r.requires.value)
        for r in rules
    ]


@router.post(
    "/{service_id}/transition",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def transition_service(
    service_id: UUID,
    data: ServiceTransitionRequest,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    """
    Attempt a workflow action.

    Errors: 400 invalid_action / missing_input, 403 unauthorized,
    404 not_found, 409 conflict, 500 invariant_violation.
    """
    result = service_transition_service.attempt(
        db,
        session.org_id,
        service_id,
        data.action,
        session.actor,
        data.input,
        expected_version=data.expected_version,
        clock=clock,
    )
    return _transition_response(result)


@router.post(
    "/{service_id}/invoice",
    response_model=TransitionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def record_invoice(
    service_id: UUID,
    data: InvoiceEvent,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
    clock: Callable = Depends(get_clock),
):
    """Record that an invoice was generated for a delivered service."""
    result = service_transition_service.record_invoice(
        db,
        session.org_id,
        service_id,
        session.actor,
        data.invoice_id,
        expected_version=data.expected_version,
        clock=clock,
    )
    return _transition_response(result)


@router.get("/{service_id}/history", response_model=list[StatusHistoryRead])
def get_service_history(
    service_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    _get_visible_service(db, session, service_id)
    return status_history_service.get_history(db, session.org_id, service_id)


@router.get("/{service_id}/assignments", response_model=list[AssignmentRead])
def list_service_assignments(
    service_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    _get_visible_service(db, session, service_id)
    return assignment_service.list_assignments(db, session.org_id, service_id)


@router.get(
    "/{service_id}/assignments/{assignment_id}/chain",
    response_model=list[AssignmentRead],
)
def get_assignment_chain(
    service_id: UUID,
    assignment_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Delegation chain from the initial assignment to this one."""
    _get_visible_service(db, session, service_id)
    assignment = assignment_service.get_assignment(db, session.org_id, assignment_id)
    if assignment.service_id != service_id:
        raise NotFoundError(f"Assignment {assignment_id} not found")
    return assignment_service.get_chain(db, assignment)
