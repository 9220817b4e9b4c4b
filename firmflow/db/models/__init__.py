"""SQLAlchemy ORM models."""

from firmflow.db.models.auth import Membership, Organization, User
from firmflow.db.models.clients import Client
from firmflow.db.models.service_requests import ServiceRequest
from firmflow.db.models.services import Service, ServiceAssignment, ServiceStatusHistory

__all__ = [
    "Client",
    "Membership",
    "Organization",
    "Service",
    "ServiceAssignment",
    "ServiceRequest",
    "ServiceStatusHistory",
    "User",
]
