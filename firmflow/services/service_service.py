"""Service catalogue - create, read and count services."""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from firmflow.core.clock import utc_now
from firmflow.core.status_definitions import ACTIVE_STATUSES, COMPLETED_OR_LATER
from firmflow.core.structured_logging import build_log_context
from firmflow.db.enums import (
    ROLES_CAN_MANAGE_ASSIGNMENTS,
    AssignmentStatus,
    HistoryAction,
    ServiceAction,
    ServiceStatus,
)
from firmflow.db.models import Service, ServiceAssignment
from firmflow.schemas.auth import Actor
from firmflow.schemas.service import ServiceCreate, TransitionInput
from firmflow.services import membership_service, status_history_service
from firmflow.services.workflow_errors import NotFoundError, UnauthorizedError


logger = logging.getLogger(__name__)


def create_service(
    db: Session,
    org_id: UUID,
    actor: Actor,
    data: ServiceCreate,
    clock: Callable[[], datetime] = utc_now,
) -> Service:
    """
    Create a firm-originated service in PENDING with its creation record.

    If assign_to_id is given the service is assigned straight away through
    the transition engine (a second, separate transaction).
    """
    if actor.role not in ROLES_CAN_MANAGE_ASSIGNMENTS:
        raise UnauthorizedError(f"Role '{actor.role.value}' may not create services")
    if not membership_service.get_client(db, org_id, data.client_id):
        raise NotFoundError(f"Client {data.client_id} not found")

    now = clock()
    service = Service(
        organization_id=org_id,
        client_id=data.client_id,
        title=data.title.strip(),
        description=data.description,
        service_type=data.service_type.value,
        status=ServiceStatus.PENDING.value,
        version=1,
        due_date=data.due_date,
        fee_amount=data.fee_amount,
        notes=data.notes,
        internal_notes=data.internal_notes,
        financial_year=data.financial_year,
        assessment_year=data.assessment_year,
        origin=data.origin.value,
        created_by_user_id=actor.id,
        created_at=now,
        updated_at=now,
    )
    db.add(service)
    db.flush()
    status_history_service.append(
        db,
        service,
        sequence=1,
        from_status=None,
        to_status=ServiceStatus.PENDING,
        action=HistoryAction.CREATE.value,
        actor=actor,
        changed_at=now,
        details={"origin": service.origin},
    )
    db.commit()
    db.refresh(service)
    logger.info(
        "Service created",
        extra=build_log_context(
            user_id=str(actor.id),
            org_id=str(org_id),
            service_id=str(service.id),
            action=HistoryAction.CREATE.value,
        ),
    )

    if data.assign_to_id:
        from firmflow.services import service_transition_service

        result = service_transition_service.attempt(
            db,
            org_id,
            service.id,
            ServiceAction.ASSIGN,
            actor,
            TransitionInput(assignee_id=data.assign_to_id, assignee_type=data.assign_to_type),
            clock=clock,
        )
        service = result["service"]
    return service


def get_service(db: Session, org_id: UUID, service_id: UUID) -> Service:
    service = db.execute(
        select(Service).where(Service.id == service_id, Service.organization_id == org_id)
    ).scalar_one_or_none()
    if not service:
        raise NotFoundError(f"Service {service_id} not found")
    return service


def list_services(
    db: Session,
    org_id: UUID,
    *,
    status: ServiceStatus | None = None,
    client_id: UUID | None = None,
    assignee_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Service]:
    """List services for an organization, newest first."""
    query = select(Service).where(Service.organization_id == org_id)
    if status:
        query = query.where(Service.status == status.value)
    if client_id:
        query = query.where(Service.client_id == client_id)
    if assignee_id:
        query = query.where(
            Service.id.in_(
                select(ServiceAssignment.service_id).where(
                    ServiceAssignment.assignee_id == assignee_id,
                    ServiceAssignment.status == AssignmentStatus.ACTIVE.value,
                )
            )
        )
    query = query.order_by(Service.created_at.desc()).limit(limit).offset(offset)
    return list(db.execute(query).scalars().all())


def get_service_stats(db: Session, org_id: UUID, client_id: UUID | None = None) -> dict:
    """
    Count services per status.

    active covers PENDING through CHANGES_REQUESTED, completed covers
    COMPLETED onwards, and total excludes CANCELLED.
    """
    query = (
        select(Service.status, func.count(Service.id))
        .where(Service.organization_id == org_id)
        .group_by(Service.status)
    )
    if client_id:
        query = query.where(Service.client_id == client_id)
    counts = {status: count for status, count in db.execute(query).all()}

    by_status = {s.value: counts.get(s.value, 0) for s in ServiceStatus}
    return {
        "by_status": by_status,
        "active": sum(by_status[s.value] for s in ACTIVE_STATUSES),
        "completed": sum(by_status[s.value] for s in COMPLETED_OR_LATER),
        "total": sum(
            count for status, count in by_status.items() if status != ServiceStatus.CANCELLED.value
        ),
    }
