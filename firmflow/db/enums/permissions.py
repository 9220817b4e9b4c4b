"""Role sets used for workflow authorization."""

from firmflow.db.enums.assignments import AssigneeType
from firmflow.db.enums.auth import Role

# Roles that act on any service in their firm
ROLES_ADMIN = {Role.SUPER_ADMIN, Role.ADMIN}

# Roles that can assign, approve, deliver, close and cancel services
ROLES_CAN_MANAGE_ASSIGNMENTS = {Role.PROJECT_MANAGER, Role.ADMIN, Role.SUPER_ADMIN}

# Roles that do the work and submit it for review
ROLES_WORKER = {Role.TEAM_MEMBER}

# Roles that can review and convert client requests
ROLES_CAN_REVIEW_REQUESTS = ROLES_CAN_MANAGE_ASSIGNMENTS

# Roles that can create service requests
ROLES_CAN_REQUEST_SERVICES = {Role.CLIENT}

# Which membership role backs each assignee type
ASSIGNEE_TYPE_ROLES: dict[AssigneeType, set[Role]] = {
    AssigneeType.PROJECT_MANAGER: {Role.PROJECT_MANAGER},
    AssigneeType.TEAM_MEMBER: {Role.TEAM_MEMBER},
}
