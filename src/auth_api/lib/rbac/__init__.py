"""RBAC library: role catalogue and authorization decisions.

Public API:
    - RoleName / PermissionName: Predefined role and permission names
    - ROLE_PERMISSIONS: Permission bundle of each predefined role
    - PRIVILEGED_ROLES: Roles that may administer other users
    - Caller: Explicit identity passed to authorization-sensitive operations
    - is_authorized: Permission/role requirement check
    - ensure_can_act_on / ensure_allowed_update_fields / ensure_can_assign_role:
      Role-hierarchy rules for user administration
"""

from auth_api.lib.rbac.authorizer import (
    SELF_SERVICE_FIELDS,
    Caller,
    ensure_allowed_update_fields,
    ensure_can_act_on,
    ensure_can_assign_role,
    is_authorized,
    is_privileged_target,
)
from auth_api.lib.rbac.roles import (
    DEFAULT_ROLE,
    PERMISSION_DESCRIPTIONS,
    PRIVILEGED_ROLES,
    ROLE_DESCRIPTIONS,
    ROLE_PERMISSIONS,
    PermissionName,
    RoleName,
    is_valid_role,
)

__all__ = [
    "DEFAULT_ROLE",
    "PERMISSION_DESCRIPTIONS",
    "PRIVILEGED_ROLES",
    "ROLE_DESCRIPTIONS",
    "ROLE_PERMISSIONS",
    "SELF_SERVICE_FIELDS",
    "Caller",
    "PermissionName",
    "RoleName",
    "ensure_allowed_update_fields",
    "ensure_can_act_on",
    "ensure_can_assign_role",
    "is_authorized",
    "is_privileged_target",
    "is_valid_role",
]
