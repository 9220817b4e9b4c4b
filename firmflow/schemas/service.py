"""Service workflow schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from firmflow.db.enums import (
    AssigneeType,
    ServiceAction,
    ServiceOrigin,
    ServiceStatus,
    ServiceType,
)


class ServiceCreate(BaseModel):
    """Request to create a firm-originated service."""

    client_id: UUID
    service_type: ServiceType
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    origin: ServiceOrigin = ServiceOrigin.FIRM_CREATED
    due_date: date | None = None
    fee_amount: Decimal | None = Field(None, ge=0)
    notes: str | None = None
    internal_notes: str | None = None
    financial_year: str | None = Field(None, max_length=20)
    assessment_year: str | None = Field(None, max_length=20)
    assign_to_id: UUID | None = None
    assign_to_type: AssigneeType | None = None

    @field_validator("origin")
    @classmethod
    def origin_not_client_request(cls, value: ServiceOrigin) -> ServiceOrigin:
        if value == ServiceOrigin.CLIENT_REQUEST:
            raise ValueError("client_request services are created by approving a request")
        return value


class ServiceRead(BaseModel):
    """Service response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    client_id: UUID
    title: str
    description: str | None
    service_type: ServiceType
    status: ServiceStatus
    version: int
    due_date: date | None
    started_at: datetime | None
    completed_at: datetime | None
    fee_amount: Decimal | None
    notes: str | None
    financial_year: str | None
    assessment_year: str | None
    origin: ServiceOrigin
    service_request_id: UUID | None
    created_at: datetime | None
    updated_at: datetime | None


class TransitionInput(BaseModel):
    """
    Optional input carried by a workflow action.

    text holds the reason, feedback or notes depending on the action.
    assignee_* name the target of assign/delegate/reassign.
    """

    text: str | None = Field(None, max_length=2000)
    assignee_id: UUID | None = None
    assignee_type: AssigneeType | None = None
    documents: list[str] = Field(default_factory=list)

    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())


class ServiceTransitionRequest(BaseModel):
    """
    POST /services/{id}/transition body.

    Unknown action names are rejected by the engine as invalid_action.
    """

    action: str = Field(..., min_length=1, max_length=50)
    input: TransitionInput | None = None
    expected_version: int | None = Field(None, ge=1)


class InvoiceEvent(BaseModel):
    """External invoice-generated event."""

    invoice_id: str = Field(..., min_length=1, max_length=100)
    expected_version: int | None = Field(None, ge=1)


class AssignmentRead(BaseModel):
    """Assignment ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    service_id: UUID
    assignee_id: UUID
    assignee_type: AssigneeType
    assigned_by_id: UUID
    assigned_by_role: str
    delegation_level: int
    previous_assignment_id: UUID | None
    delegation_reason: str | None
    assignment_type: str
    status: str
    assigned_at: datetime
    completed_at: datetime | None
    revoked_at: datetime | None
    revoked_by_id: UUID | None
    revoked_reason: str | None


class StatusHistoryRead(BaseModel):
    """Status history entry response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    service_id: UUID
    sequence: int
    from_status: ServiceStatus | None
    to_status: ServiceStatus
    action: str
    changed_by_id: UUID | None
    changed_by_role: str | None
    reason: str | None
    notes: str | None
    details: dict[str, Any] | None = Field(None, serialization_alias="metadata")
    changed_at: datetime


class TransitionResponse(BaseModel):
    """Result of an accepted transition."""

    new_status: ServiceStatus
    service: ServiceRead
    audit_record: StatusHistoryRead


class AvailableActionRead(BaseModel):
    """An action the current actor may attempt right now."""

    action: ServiceAction
    to_status: ServiceStatus
    requires: str


class ServiceStats(BaseModel):
    """Service counts per status with rollups."""

    by_status: dict[str, int]
    active: int
    completed: int
    total: int
