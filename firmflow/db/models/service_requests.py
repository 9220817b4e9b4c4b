"""SQLAlchemy ORM models for client service requests."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from firmflow.db.base import Base
from firmflow.db.enums import DEFAULT_REQUEST_STATUS, DEFAULT_REQUEST_URGENCY
from firmflow.db.models.services import JSONType

if TYPE_CHECKING:
    from firmflow.db.models.services import Service


class ServiceRequest(Base):
    """
    A client-originated ask that pre-dates any Service.

    Approval converts it: exactly one Service points back through
    services.service_request_id (unique).
    """

    __tablename__ = "service_requests"
    __table_args__ = (
        Index("idx_service_requests_org_status", "organization_id", "status"),
        Index("idx_service_requests_client", "organization_id", "client_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False
    )
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    urgency: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_REQUEST_URGENCY.value,
        server_default=text(f"'{DEFAULT_REQUEST_URGENCY.value}'"),
        nullable=False,
    )
    preferred_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    financial_year: Mapped[str | None] = mapped_column(String(20), nullable=True)
    assessment_year: Mapped[str | None] = mapped_column(String(20), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_REQUEST_STATUS.value,
        server_default=text(f"'{DEFAULT_REQUEST_STATUS.value}'"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )

    # Review tracking
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reviewed_by_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    quoted_fee: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Attachment metadata only; file bytes live in external storage
    attachments: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    converted_service: Mapped["Service | None"] = relationship(
        back_populates="service_request", uselist=False
    )
