"""RBAC decisions and role-hierarchy rules for user administration.

All functions are pure: the caller's identity and role set are passed in
explicitly and nothing is read from ambient request state.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from auth_api.core.errors import ForbiddenError
from auth_api.lib.rbac.roles import PRIVILEGED_ROLES, RoleName

if TYPE_CHECKING:
    from auth_api.models.user import User

# Fields a non-privileged user may change on their own account
SELF_SERVICE_FIELDS: frozenset[str] = frozenset({"username", "email"})


@dataclass(frozen=True)
class Caller:
    """Resolved identity of the user performing an operation."""

    id: uuid.UUID
    roles: frozenset[str]
    permissions: frozenset[str]

    @classmethod
    def from_user(cls, user: User) -> Caller:
        """Build a caller from a user with roles and permissions loaded."""
        return cls(
            id=user.id,
            roles=frozenset(user.role_names),
            permissions=frozenset(user.permission_names),
        )

    @property
    def is_admin(self) -> bool:
        return RoleName.ADMIN.value in self.roles

    @property
    def is_privileged(self) -> bool:
        return not self.roles.isdisjoint(PRIVILEGED_ROLES)


def is_authorized(
    caller: Caller,
    required_permissions: Iterable[str] = (),
    required_roles: Iterable[str] = (),
) -> bool:
    """Decide whether ``caller`` satisfies an operation's requirements.

    Within each kind of requirement the check is an OR: holding any one of
    the required permissions (or roles) is enough. The two kinds combine with
    AND, like a permission guard and a role guard stacked on one route: when
    both are given, the caller needs one of the permissions and one of the
    roles. No requirement at all means the operation is open to any
    authenticated caller.

    Args:
        caller: The acting user.
        required_permissions: Permission names, any of which grants access.
        required_roles: Role names, any of which grants access.

    Returns:
        True if access is granted.
    """
    permissions = frozenset(required_permissions)
    roles = frozenset(required_roles)
    if permissions and caller.permissions.isdisjoint(permissions):
        return False
    return not (roles and caller.roles.isdisjoint(roles))


def is_privileged_target(target_roles: Iterable[str]) -> bool:
    """Return True if the target holds ADMIN or MANAGER."""
    return not PRIVILEGED_ROLES.isdisjoint(target_roles)


def ensure_can_act_on(
    caller: Caller,
    target_id: uuid.UUID,
    target_roles: Iterable[str],
    action: str = "update",
) -> None:
    """Enforce the role hierarchy for update, delete, and role assignment.

    ADMIN may act on anyone. MANAGER may act on non-privileged users and on
    themself, but not on another ADMIN or MANAGER. Everyone else may only act
    on their own account.

    Raises:
        ForbiddenError: If the hierarchy does not allow the action.
    """
    if caller.is_admin:
        return
    is_self = caller.id == target_id
    if caller.is_privileged:
        if is_privileged_target(target_roles) and not is_self:
            msg = f"Managers cannot {action} other managers or admins"
            raise ForbiddenError(msg)
        return
    if not is_self:
        msg = f"You can only {action} your own account"
        raise ForbiddenError(msg)


def ensure_allowed_update_fields(caller: Caller, fields: Iterable[str]) -> None:
    """Reject an update from a non-privileged caller touching restricted fields.

    The whole request is rejected; disallowed fields are never silently dropped.

    Raises:
        ForbiddenError: If any field is outside the self-service subset.
    """
    if caller.is_privileged:
        return
    disallowed = sorted(set(fields) - SELF_SERVICE_FIELDS)
    if disallowed:
        msg = f"You can only update username and email (rejected: {', '.join(disallowed)})"
        raise ForbiddenError(msg)


def ensure_can_assign_role(caller: Caller, target_id: uuid.UUID, role_name: str) -> None:
    """Enforce the role-assignment rules.

    Only ADMIN may grant ADMIN or MANAGER, and a non-ADMIN may not assign
    any role to themself.

    Raises:
        ForbiddenError: If the assignment is not allowed.
    """
    if caller.is_admin:
        return
    if role_name in PRIVILEGED_ROLES:
        msg = "Only administrators can assign ADMIN or MANAGER roles"
        raise ForbiddenError(msg)
    if caller.id == target_id:
        msg = "You cannot assign roles to yourself"
        raise ForbiddenError(msg)
