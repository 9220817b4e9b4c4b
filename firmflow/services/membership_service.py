"""Membership service - organization membership lookups and assignee resolution."""

from uuid import UUID

from sqlalchemy.orm import Session

from firmflow.db.enums import ASSIGNEE_TYPE_ROLES, AssigneeType, Role
from firmflow.db.models import Client, Membership
from firmflow.services.workflow_errors import NotFoundError


def get_membership_for_org(db: Session, org_id: UUID, user_id: UUID) -> Membership | None:
    """Get membership scoped to an organization."""
    return (
        db.query(Membership)
        .filter(
            Membership.organization_id == org_id,
            Membership.user_id == user_id,
            Membership.is_active.is_(True),
        )
        .first()
    )


def get_client(db: Session, org_id: UUID, client_id: UUID) -> Client | None:
    return (
        db.query(Client)
        .filter(Client.id == client_id, Client.organization_id == org_id)
        .first()
    )


def assignee_type_for_role(role: Role | str) -> AssigneeType | None:
    """Map a membership role to the assignee type it can hold, if any."""
    for assignee_type, roles in ASSIGNEE_TYPE_ROLES.items():
        if Role(role) in roles:
            return assignee_type
    return None


def resolve_assignee(
    db: Session,
    org_id: UUID,
    assignee_id: UUID,
    assignee_type: AssigneeType | None = None,
) -> AssigneeType:
    """
    Confirm a user can hold an assignment of the given type in this org.

    When assignee_type is omitted it is inferred from the member's role.

    Raises:
        NotFoundError: not an active member, or the role does not match the type
    """
    membership = get_membership_for_org(db, org_id, assignee_id)
    if not membership or not Role.has_value(membership.role):
        raise NotFoundError(f"Assignee {assignee_id} not found")

    role = Role(membership.role)
    if assignee_type is None:
        inferred = assignee_type_for_role(role)
        if inferred is None:
            raise NotFoundError(f"Assignee {assignee_id} cannot hold assignments")
        return inferred

    if role not in ASSIGNEE_TYPE_ROLES[assignee_type]:
        raise NotFoundError(f"Assignee {assignee_id} is not a {assignee_type.value}")
    return assignee_type
