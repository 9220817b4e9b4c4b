"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from firmflow.db.enums import Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id (or client_id for client sessions)
    org_id: UUID
    role: str
    token_version: int


class Actor(BaseModel):
    """
    Who is performing a workflow action.

    The role must come from the identity/role provider (membership lookup),
    never from request input.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    role: Role
    name: str | None = None


class UserSession(BaseModel):
    """
    Full session context for authenticated requests.

    This is returned by get_current_session dependency
    and contains all information needed for authorization.
    """
    user_id: UUID
    org_id: UUID
    role: Role  # Validated enum
    display_name: str

    @property
    def actor(self) -> Actor:
        return Actor(id=self.user_id, role=self.role, name=self.display_name)
