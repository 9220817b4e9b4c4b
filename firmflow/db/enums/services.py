"""Service lifecycle enums."""

from enum import Enum


class ServiceStatus(str, Enum):
    """
    Service workflow status.

    pending → assigned → in_progress ⇄ waiting_for_client / on_hold
    → under_review ⇄ changes_requested → completed → delivered
    → invoiced → closed. Any non-terminal status → cancelled.
    """

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    WAITING_FOR_CLIENT = "waiting_for_client"
    ON_HOLD = "on_hold"
    UNDER_REVIEW = "under_review"
    CHANGES_REQUESTED = "changes_requested"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    INVOICED = "invoiced"
    CLOSED = "closed"
    CANCELLED = "cancelled"

    @classmethod
    def has_value(cls, value: str) -> bool:
        return value in cls._value2member_map_


class StatusPhase(str, Enum):
    """Coarse grouping of statuses for boards and reports."""

    CREATION = "creation"
    ASSIGNMENT = "assignment"
    EXECUTION = "execution"
    REVIEW = "review"
    COMPLETION = "completion"
    BILLING = "billing"
    FINAL = "final"


class ServiceAction(str, Enum):
    """Workflow actions a caller can submit against a service."""

    ASSIGN = "assign"
    START_WORK = "start-work"
    DELEGATE = "delegate"
    REASSIGN = "reassign"
    TAKE_BACK = "take-back"
    REQUEST_DOCUMENTS = "request-documents"
    PUT_ON_HOLD = "put-on-hold"
    RESUME_WORK = "resume-work"
    SUBMIT_REVIEW = "submit-review"
    MARK_COMPLETE = "mark-complete"
    APPROVE = "approve"
    REQUEST_CHANGES = "request-changes"
    DELIVER = "deliver"
    INVOICE_GENERATED = "invoice-generated"  # External event, not user-submittable
    CLOSE = "close"
    CANCEL = "cancel"


class HistoryAction(str, Enum):
    """History actions that are not workflow transitions."""

    CREATE = "create"
    CREATE_FROM_REQUEST = "create-from-request"


class ServiceType(str, Enum):
    """Category of professional work."""

    ITR_FILING = "itr_filing"
    GST_REGISTRATION = "gst_registration"
    GST_RETURN = "gst_return"
    TDS_RETURN = "tds_return"
    TDS_COMPLIANCE = "tds_compliance"
    ROC_FILING = "roc_filing"
    AUDIT = "audit"
    BOOK_KEEPING = "book_keeping"
    PAYROLL = "payroll"
    CONSULTATION = "consultation"
    OTHER = "other"


class ServiceOrigin(str, Enum):
    """How the service was created."""

    CLIENT_REQUEST = "client_request"
    FIRM_CREATED = "firm_created"
    RECURRING = "recurring"
    COMPLIANCE = "compliance"
