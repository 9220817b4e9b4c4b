"""Enum definitions for application constants."""

from firmflow.db.enums.assignments import AssigneeType, AssignmentStatus, AssignmentType
from firmflow.db.enums.auth import Role
from firmflow.db.enums.defaults import (
    DEFAULT_REQUEST_STATUS,
    DEFAULT_REQUEST_URGENCY,
    DEFAULT_SERVICE_ORIGIN,
    DEFAULT_SERVICE_STATUS,
)
from firmflow.db.enums.permissions import (
    ASSIGNEE_TYPE_ROLES,
    ROLES_ADMIN,
    ROLES_CAN_MANAGE_ASSIGNMENTS,
    ROLES_CAN_REQUEST_SERVICES,
    ROLES_CAN_REVIEW_REQUESTS,
    ROLES_WORKER,
)
from firmflow.db.enums.requests import RequestAction, RequestStatus, RequestUrgency
from firmflow.db.enums.services import (
    HistoryAction,
    ServiceAction,
    ServiceOrigin,
    ServiceStatus,
    ServiceType,
    StatusPhase,
)

__all__ = [
    "ASSIGNEE_TYPE_ROLES",
    "AssigneeType",
    "AssignmentStatus",
    "AssignmentType",
    "DEFAULT_REQUEST_STATUS",
    "DEFAULT_REQUEST_URGENCY",
    "DEFAULT_SERVICE_ORIGIN",
    "DEFAULT_SERVICE_STATUS",
    "HistoryAction",
    "ROLES_ADMIN",
    "ROLES_CAN_MANAGE_ASSIGNMENTS",
    "ROLES_CAN_REQUEST_SERVICES",
    "ROLES_CAN_REVIEW_REQUESTS",
    "ROLES_WORKER",
    "RequestAction",
    "RequestStatus",
    "RequestUrgency",
    "Role",
    "ServiceAction",
    "ServiceOrigin",
    "ServiceStatus",
    "ServiceType",
    "StatusPhase",
]
