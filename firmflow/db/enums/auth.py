"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Firm roles with increasing privilege levels.

    - CLIENT: External client (requests services, withdraws requests)
    - TEAM_MEMBER: Does assigned work, submits it for review
    - PROJECT_MANAGER: Assigns, reviews, delivers and closes services
    - ADMIN: Firm admin (acts on any service in the firm)
    - SUPER_ADMIN: Firm owner
    """

    CLIENT = "client"
    TEAM_MEMBER = "team_member"
    PROJECT_MANAGER = "project_manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
