"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Callable, Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from firmflow.core.clock import utc_now
from firmflow.core.security import decode_session_token
from firmflow.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "firmflow_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Callable:
    """Clock used for workflow timestamps (overridden in tests)."""
    return utc_now


def _decode_cookie(request: Request) -> dict:
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return decode_session_token(token)
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Get full session context: user_id, org_id, role.

    This is the identity/role provider for every workflow call: the role
    comes from the membership row (or the client row), never from the token
    or request body alone.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: No membership or unknown role
    """
    # Import here to avoid circular imports
    from firmflow.db.enums import Role
    from firmflow.db.models import User
    from firmflow.schemas.auth import UserSession
    from firmflow.services import membership_service

    payload = _decode_cookie(request)
    try:
        subject_id = UUID(payload["sub"])
        org_id = UUID(payload["org_id"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    if payload.get("role") == Role.CLIENT.value:
        client = membership_service.get_client(db, org_id, subject_id)
        if not client:
            raise HTTPException(status_code=401, detail="Client not found")
        return UserSession(
            user_id=client.id,
            org_id=org_id,
            role=Role.CLIENT,
            display_name=client.name,
        )

    user = db.query(User).filter(User.id == subject_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")
    # Token version check (revocation support)
    if user.token_version != payload.get("token_version"):
        raise HTTPException(status_code=401, detail="Session revoked")

    membership = membership_service.get_membership_for_org(db, org_id, user.id)
    if not membership:
        raise HTTPException(status_code=403, detail="No organization membership")

    # Validate role is a known enum value - return 403 not 500
    if not Role.has_value(membership.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{membership.role}'. Contact administrator.",
        )

    return UserSession(
        user_id=user.id,
        org_id=membership.organization_id,
        role=Role(membership.role),
        display_name=user.display_name,
    )


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )
