"""Service request schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from firmflow.db.enums import RequestStatus, RequestUrgency, ServiceType
from firmflow.schemas.service import ServiceRead


class RequestAttachment(BaseModel):
    """Attachment metadata. Storage is handled outside this service."""

    file_name: str = Field(..., max_length=255)
    file_type: str = Field(..., max_length=100)
    file_size: int = Field(..., ge=0)
    storage_path: str = Field(..., max_length=500)


class ServiceRequestCreate(BaseModel):
    """Client request for a new service."""

    service_type: ServiceType
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    urgency: RequestUrgency = RequestUrgency.NORMAL
    preferred_due_date: date | None = None
    financial_year: str | None = Field(None, max_length=20)
    assessment_year: str | None = Field(None, max_length=20)
    attachments: list[RequestAttachment] = Field(default_factory=list)


class ServiceRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    client_id: UUID
    service_type: ServiceType
    title: str
    description: str | None
    urgency: RequestUrgency
    preferred_due_date: date | None
    financial_year: str | None
    assessment_year: str | None
    status: RequestStatus
    version: int
    reviewed_by_id: UUID | None
    reviewed_by_role: str | None
    reviewed_at: datetime | None
    rejection_reason: str | None
    approval_notes: str | None
    quoted_fee: Decimal | None
    attachments: list[RequestAttachment] | None
    created_at: datetime | None


class ServiceRequestReview(BaseModel):
    expected_version: int | None = Field(None, ge=1)


class ServiceRequestApprove(BaseModel):
    approval_notes: str | None = None
    quoted_fee: Decimal | None = Field(None, ge=0)
    due_date: date | None = None
    expected_version: int | None = Field(None, ge=1)


class ServiceRequestReject(BaseModel):
    reason: str | None = Field(None, max_length=2000)
    expected_version: int | None = Field(None, ge=1)


class ServiceRequestApproveResponse(BaseModel):
    request: ServiceRequestRead
    service: ServiceRead


class ServiceRequestStats(BaseModel):
    by_status: dict[str, int]
    total: int
