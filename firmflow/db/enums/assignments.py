"""Assignment ledger enums."""

from enum import Enum


class AssigneeType(str, Enum):
    """Kinds of actor a service can be assigned to."""

    PROJECT_MANAGER = "project_manager"
    TEAM_MEMBER = "team_member"


class AssignmentType(str, Enum):
    """How an assignment came to exist."""

    INITIAL = "initial"
    DELEGATION = "delegation"
    RE_ASSIGNMENT = "re_assignment"
    TAKE_BACK = "take_back"


class AssignmentStatus(str, Enum):
    """
    Assignment lifecycle.

    At most one assignment per service is ACTIVE. DELEGATED and REVOKED
    assignments stay in the ledger for provenance.
    """

    ACTIVE = "active"
    DELEGATED = "delegated"
    COMPLETED = "completed"
    REVOKED = "revoked"
