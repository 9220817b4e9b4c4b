"""User service - staff users, memberships and session revocation."""

from uuid import UUID

from sqlalchemy.orm import Session

from firmflow.core.clock import utc_now
from firmflow.db.enums import Role
from firmflow.db.models import Membership, User


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.lower()).first()


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def add_member(
    db: Session,
    org_id: UUID,
    email: str,
    display_name: str,
    role: Role,
) -> Membership:
    """
    Add a user to an organization, creating the user if needed.

    Raises:
        IntegrityError: If the user is already a member of the org
    """
    user = get_user_by_email(db, email)
    if not user:
        user = User(email=email.lower(), display_name=display_name, created_at=utc_now())
        db.add(user)
        db.flush()
    membership = Membership(user_id=user.id, organization_id=org_id, role=role.value)
    db.add(membership)
    db.commit()
    db.refresh(membership)
    return membership


def revoke_all_sessions(db: Session, user_id: UUID) -> bool:
    """
    Revoke all sessions for a user by bumping token_version.

    Existing tokens with old version will fail validation.

    Returns:
        True if user found and sessions revoked, False if user not found
    """
    user = get_user_by_id(db, user_id)
    if not user:
        return False

    user.token_version += 1
    db.commit()
    return True
