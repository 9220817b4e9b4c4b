"""Service request enums."""

from enum import Enum


class RequestStatus(str, Enum):
    """
    Client service request status.

    pending → under_review → converted / rejected; cancelled by the client
    while pending or under review. APPROVED exists for compatibility with
    stored data; approval converts in the same transaction.
    """

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    CONVERTED = "converted"


class RequestUrgency(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class RequestAction(str, Enum):
    """Actions on a service request."""

    OPEN_REVIEW = "open-review"
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"
