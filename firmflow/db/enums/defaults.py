"""Centralized defaults for enums."""

from firmflow.db.enums.requests import RequestStatus, RequestUrgency
from firmflow.db.enums.services import ServiceOrigin, ServiceStatus


DEFAULT_SERVICE_STATUS: ServiceStatus = ServiceStatus.PENDING
DEFAULT_SERVICE_ORIGIN: ServiceOrigin = ServiceOrigin.FIRM_CREATED
DEFAULT_REQUEST_STATUS: RequestStatus = RequestStatus.PENDING
DEFAULT_REQUEST_URGENCY: RequestUrgency = RequestUrgency.NORMAL
