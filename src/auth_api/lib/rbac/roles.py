"""Predefined roles, permissions, and the permission bundle of each role."""

from enum import StrEnum


class RoleName(StrEnum):
    """Roles seeded at bootstrap."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    ACCOUNTANT = "ACCOUNTANT"
    SUPPORT = "SUPPORT"
    USER = "USER"


class PermissionName(StrEnum):
    """Permissions seeded at bootstrap."""

    READ_USERS = "READ_USERS"
    CREATE_USERS = "CREATE_USERS"
    UPDATE_USERS = "UPDATE_USERS"
    DELETE_USERS = "DELETE_USERS"
    MANAGE_FINANCES = "MANAGE_FINANCES"
    VIEW_REPORTS = "VIEW_REPORTS"
    MANAGE_TEAM = "MANAGE_TEAM"
    READ_OWN_DATA = "READ_OWN_DATA"
    UPDATE_OWN_DATA = "UPDATE_OWN_DATA"


# Roles that may administer other users
PRIVILEGED_ROLES: frozenset[str] = frozenset({RoleName.ADMIN.value, RoleName.MANAGER.value})

# Role given to self-registered accounts
DEFAULT_ROLE: str = RoleName.USER.value

PERMISSION_DESCRIPTIONS: dict[PermissionName, str] = {
    PermissionName.READ_USERS: "Can view users",
    PermissionName.CREATE_USERS: "Can create users",
    PermissionName.UPDATE_USERS: "Can update users",
    PermissionName.DELETE_USERS: "Can delete users",
    PermissionName.MANAGE_FINANCES: "Can manage finances",
    PermissionName.VIEW_REPORTS: "Can view financial reports",
    PermissionName.MANAGE_TEAM: "Can manage team members",
    PermissionName.READ_OWN_DATA: "Can read own data",
    PermissionName.UPDATE_OWN_DATA: "Can update own data",
}

ROLE_DESCRIPTIONS: dict[RoleName, str] = {
    RoleName.ADMIN: "Administrator with full access",
    RoleName.MANAGER: "Manager with team management rights",
    RoleName.ACCOUNTANT: "Accountant with financial access",
    RoleName.SUPPORT: "Support team member",
    RoleName.USER: "Regular user",
}

ROLE_PERMISSIONS: dict[RoleName, tuple[PermissionName, ...]] = {
    RoleName.ADMIN: tuple(PermissionName),
    RoleName.MANAGER: (
        PermissionName.READ_USERS,
        PermissionName.CREATE_USERS,
        PermissionName.MANAGE_TEAM,
        PermissionName.VIEW_REPORTS,
        PermissionName.READ_OWN_DATA,
        PermissionName.UPDATE_OWN_DATA,
    ),
    RoleName.ACCOUNTANT: (
        PermissionName.MANAGE_FINANCES,
        PermissionName.VIEW_REPORTS,
        PermissionName.READ_OWN_DATA,
        PermissionName.UPDATE_OWN_DATA,
    ),
    RoleName.SUPPORT: (
        PermissionName.READ_USERS,
        PermissionName.READ_OWN_DATA,
    ),
    RoleName.USER: (
        PermissionName.READ_OWN_DATA,
        PermissionName.UPDATE_OWN_DATA,
    ),
}


def is_valid_role(name: str) -> bool:
    """Return True if ``name`` is one of the predefined roles."""
    return name in {role.value for role in RoleName}
