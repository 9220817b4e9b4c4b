"""SQLAlchemy ORM models for services, assignments and status history."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    DDL,
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    event,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from firmflow.db.base import Base
from firmflow.db.enums import (
    DEFAULT_SERVICE_ORIGIN,
    DEFAULT_SERVICE_STATUS,
    AssignmentStatus,
    ServiceStatus,
)

if TYPE_CHECKING:
    from firmflow.db.models.service_requests import ServiceRequest


JSONType = JSON().with_variant(JSONB(), "postgresql")

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in ServiceStatus)


class Service(Base):
    """
    A trackable unit of professional work for a client.

    status/version are only written by the transition engine, through a
    compare-and-set on version.
    """

    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_services_status"),
        Index("idx_services_org_status", "organization_id", "status"),
        Index("idx_services_org_client", "organization_id", "client_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30),
        default=DEFAULT_SERVICE_STATUS.value,
        server_default=text(f"'{DEFAULT_SERVICE_STATUS.value}'"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    fee_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    financial_year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    assessment_year: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Provenance (immutable once set)
    origin: Mapped[str] = mapped_column(
        String(30),
        default=DEFAULT_SERVICE_ORIGIN.value,
        server_default=text(f"'{DEFAULT_SERVICE_ORIGIN.value}'"),
        nullable=False,
    )
    service_request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("service_requests.id", ondelete="RESTRICT"),
        unique=True,
        nullable=True,
    )

    created_by_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    assignments: Mapped[list["ServiceAssignment"]] = relationship(
        back_populates="service", order_by="ServiceAssignment.delegation_level"
    )
    status_history: Mapped[list["ServiceStatusHistory"]] = relationship(
        back_populates="service", order_by="ServiceStatusHistory.sequence"
    )
    service_request: Mapped["ServiceRequest | None"] = relationship(
        back_populates="converted_service"
    )

    @validates("origin", "service_request_id")
    def _validate_provenance(self, key: str, value: Any) -> Any:
        current = getattr(self, key)
        if current is not None and value != current:
            raise ValueError(f"Service {key} is immutable once set")
        return value


class ServiceAssignment(Base):
    """
    One assignment event in a service's ownership ledger.

    previous_assignment_id is a provenance back pointer only; it never
    cascades. delegation_level strictly increases along that chain.
    """

    __tablename__ = "service_assignments"
    __table_args__ = (
        Index("idx_service_assignments_service", "service_id", "delegation_level"),
        Index("idx_service_assignments_assignee", "organization_id", "assignee_id", "status"),
        # At most one ACTIVE assignment per service
        Index(
            "uq_service_assignments_active",
            "service_id",
            unique=True,
            postgresql_where=text(f"status = '{AssignmentStatus.ACTIVE.value}'"),
            sqlite_where=text(f"status = '{AssignmentStatus.ACTIVE.value}'"),
        ),
        CheckConstraint("delegation_level >= 0", name="ck_service_assignments_level"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id", ondelete="CASCADE"), nullable=False
    )

    assignee_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    assignee_type: Mapped[str] = mapped_column(String(30), nullable=False)
    assigned_by_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    assigned_by_role: Mapped[str] = mapped_column(String(50), nullable=False)

    delegation_level: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_assignment_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("service_assignments.id", ondelete="SET NULL"), nullable=True
    )
    delegation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignment_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AssignmentStatus.ACTIVE.value, nullable=False
    )

    assigned_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    revoked_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    revoked_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    service: Mapped["Service"] = relationship(back_populates="assignments")


class ServiceStatusHistory(Base):
    """
    Append-only audit record: one row per accepted transition.

    sequence is 1-based per service and equals the service version the
    transition produced. Rows are never updated or deleted; the ORM guard
    below and the database triggers created with the table enforce it.
    """

    __tablename__ = "service_status_history"
    __table_args__ = (
        UniqueConstraint("service_id", "sequence", name="uq_service_status_history_sequence"),
        Index("idx_service_status_history_org", "organization_id", "changed_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id"), nullable=False
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("services.id"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    changed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    changed_by_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(nullable=False)

    service: Mapped["Service"] = relationship(back_populates="status_history")


def _reject_history_mutation(mapper, connection, target) -> None:
    from firmflow.services.workflow_errors import InvariantViolationError

    raise InvariantViolationError(
        f"service_status_history is append-only (record {target.id})"
    )


event.listen(ServiceStatusHistory, "before_update", _reject_history_mutation)
event.listen(ServiceStatusHistory, "before_delete", _reject_history_mutation)


# Storage-level guard: the history table rejects UPDATE and DELETE.
_history_table = ServiceStatusHistory.__table__

for _op in ("UPDATE", "DELETE"):
    event.listen(
        _history_table,
        "after_create",
        DDL(
            f"CREATE TRIGGER service_status_history_no_{_op.lower()} "
            f"BEFORE {_op} ON service_status_history "
            "BEGIN SELECT RAISE(ABORT, 'service_status_history is append-only'); END"
        ).execute_if(dialect="sqlite"),
    )

event.listen(
    _history_table,
    "after_create",
    DDL(
        "CREATE OR REPLACE FUNCTION forbid_status_history_mutation() RETURNS trigger AS $$ "
        "BEGIN RAISE EXCEPTION 'service_status_history is append-only'; END; "
        "$$ LANGUAGE plpgsql"
    ).execute_if(dialect="postgresql"),
)
event.listen(
    _history_table,
    "after_create",
    DDL(
        "CREATE TRIGGER service_status_history_append_only "
        "BEFORE UPDATE OR DELETE ON service_status_history "
        "FOR EACH ROW EXECUTE FUNCTION forbid_status_history_mutation()"
    ).execute_if(dialect="postgresql"),
)
