"""User lookup and administration.

Every authorization-sensitive operation takes the acting ``Caller``
explicitly and applies the role hierarchy before touching the target.
"""

import uuid
from collections.abc import Iterable
from typing import Any

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings
from auth_api.core.errors import ConflictError, DuplicateRoleError, ForbiddenError, NotFoundError
from auth_api.core.logging import redact_email
from auth_api.core.security import check_password_policy, hash_password
from auth_api.lib.email_validation import BaseEmailValidator
from auth_api.lib.rbac import (
    DEFAULT_ROLE,
    Caller,
    PermissionName,
    ensure_allowed_update_fields,
    ensure_can_act_on,
    ensure_can_assign_role,
    is_authorized,
)
from auth_api.models.base import utcnow
from auth_api.models.login_attempt import LoginAttempt
from auth_api.models.role import Role
from auth_api.models.token import EmailVerificationToken, PasswordResetToken, RefreshToken
from auth_api.models.user import User
from auth_api.services.email_validation_service import check_signup_email
from auth_api.services.rbac_service import get_role_by_name


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    """Look up a user by email (case-insensitive), roles and permissions loaded."""
    result = await session.execute(
        select(User).where(User.email == normalize_email(email)).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    return await session.get(User, user_id, populate_existing=True)


async def _ensure_unique(
    session: AsyncSession,
    *,
    username: str | None = None,
    email: str | None = None,
    exclude_id: uuid.UUID | None = None,
) -> None:
    """Raise ConflictError if ``username`` or ``email`` belongs to another user."""
    if username is not None:
        stmt = select(User.id).where(User.username == username)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await session.execute(stmt)).first() is not None:
            msg = "Username already exists"
            raise ConflictError(msg)
    if email is not None:
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await session.execute(stmt)).first() is not None:
            msg = "Email already exists"
            raise ConflictError(msg)


async def _resolve_roles(session: AsyncSession, role_names: Iterable[str]) -> list[Role]:
    roles: list[Role] = []
    for name in dict.fromkeys(role_names):
        role = await get_role_by_name(session, name)
        if role is None:
            if name == DEFAULT_ROLE:
                # Default role is optional until the catalogue is seeded
                continue
            msg = f"Role {name} not found"
            raise NotFoundError(msg)
        roles.append(role)
    return roles


async def create_account(
    session: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    settings: Settings,
    role_names: Iterable[str] = (DEFAULT_ROLE,),
    is_email_verified: bool = False,
    user_id: uuid.UUID | None = None,
    validator: BaseEmailValidator | None = None,
) -> User:
    """Validate and persist a new account.

    Shared by self-service registration and administrator-created users.

    Args:
        session: The database session.
        username: Unique username.
        email: Unique email address (stored lower-cased).
        password: Plaintext password; hashed with bcrypt.
        settings: Application settings.
        role_names: Roles to assign. A missing default role is skipped.
        is_email_verified: Create the account as already verified.
        user_id: Optional pre-allocated id.
        validator: Email quality provider override.

    Returns:
        The created User.

    Raises:
        InvalidInputError: If the password or email fails validation.
        ConflictError: If the username or email is taken.
        NotFoundError: If a requested (non-default) role does not exist.
    """
    check_password_policy(password)
    email = normalize_email(email)
    await check_signup_email(email, settings, validator)
    await _ensure_unique(session, username=username, email=email)
    roles = await _resolve_roles(session, role_names)

    user = User(
        id=user_id or uuid.uuid4(),
        username=username,
        email=email,
        hashed_password=hash_password(password, settings.bcrypt_rounds),
        is_email_verified=is_email_verified,
        email_verified_at=utcnow() if is_email_verified else None,
        roles=roles,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        msg = "Username or email already exists"
        raise ConflictError(msg) from e
    logger.info(f"Created user {user.id} ({redact_email(email)})")
    return user


async def create_user(
    session: AsyncSession,
    caller: Caller,
    *,
    username: str,
    email: str,
    password: str,
    settings: Settings,
    role_names: Iterable[str] = (),
    is_email_verified: bool = False,
) -> User:
    """Create a user on behalf of ``caller`` (requires CREATE_USERS).

    Raises:
        ForbiddenError: If the caller lacks CREATE_USERS or may not grant a
            requested role.
    """
    if not is_authorized(caller, required_permissions=[PermissionName.CREATE_USERS.value]):
        raise ForbiddenError
    requested = list(role_names) or [DEFAULT_ROLE]
    user_id = uuid.uuid4()
    for name in requested:
        ensure_can_assign_role(caller, user_id, name)
    return await create_account(
        session,
        username=username,
        email=email,
        password=password,
        settings=settings,
        role_names=requested,
        is_email_verified=is_email_verified,
        user_id=user_id,
    )


async def list_users(
    session: AsyncSession,
    caller: Caller,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[User], int]:
    """List users with pagination (requires READ_USERS).

    Returns:
        Tuple of (users list, total count).
    """
    if not is_authorized(caller, required_permissions=[PermissionName.READ_USERS.value]):
        raise ForbiddenError
    return await page_users(session, page, page_size)


async def page_users(session: AsyncSession, page: int = 1, page_size: int = 20) -> tuple[list[User], int]:
    """One page of users ordered by creation time, with the total count."""
    total = (await session.execute(select(func.count(User.id)))).scalar_one()
    offset = (page - 1) * page_size
    result = await session.execute(
        select(User).order_by(User.created_at, User.username).offset(offset).limit(page_size)
    )
    return list(result.scalars().all()), total


async def get_user(session: AsyncSession, caller: Caller, user_id: uuid.UUID) -> User:
    """Fetch one user. Callers may read themselves; reading others needs a
    privileged role or READ_USERS.

    Raises:
        ForbiddenError: If the caller may not view this user.
        NotFoundError: If the user does not exist.
    """
    if caller.id != user_id and not (
        caller.is_privileged or is_authorized(caller, required_permissions=[PermissionName.READ_USERS.value])
    ):
        msg = "You can only view your own profile"
        raise ForbiddenError(msg)
    user = await get_user_by_id(session, user_id)
    if user is None:
        msg = f"User with ID {user_id} not found"
        raise NotFoundError(msg)
    return user


async def update_user(
    session: AsyncSession,
    caller: Caller,
    user_id: uuid.UUID,
    updates: dict[str, Any],
    settings: Settings,
) -> User:
    """Apply a partial update to a user.

    Args:
        session: The database session.
        caller: The acting user.
        user_id: Target user.
        updates: Field names to new values; only keys present are applied.
        settings: Application settings.

    Returns:
        The updated User.

    Raises:
        NotFoundError: If the target does not exist.
        ForbiddenError: If the hierarchy or the self-service field rule
            rejects the update.
        ConflictError: If the new username or email is taken.
        InvalidInputError: If a new password fails the policy.
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        msg = f"User with ID {user_id} not found"
        raise NotFoundError(msg)

    ensure_can_act_on(caller, user.id, user.role_names, action="update")
    ensure_allowed_update_fields(caller, updates.keys())

    username = updates.get("username")
    email = normalize_email(updates["email"]) if updates.get("email") else None
    await _ensure_unique(
        session,
        username=username if username and username != user.username else None,
        email=email if email and email != user.email else None,
        exclude_id=user.id,
    )

    if username:
        user.username = username
    if email:
        user.email = email
    if updates.get("password"):
        check_password_policy(updates["password"])
        user.hashed_password = hash_password(updates["password"], settings.bcrypt_rounds)
    if updates.get("is_email_verified") is not None:
        user.is_email_verified = bool(updates["is_email_verified"])
        user.email_verified_at = utcnow() if user.is_email_verified else None

    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        msg = "Username or email already exists"
        raise ConflictError(msg) from e
    return user


async def delete_user(session: AsyncSession, caller: Caller, user_id: uuid.UUID) -> None:
    """Hard-delete a user together with their tokens and login attempts.

    ADMIN and MANAGER callers may delete, as may holders of DELETE_USERS;
    the role hierarchy then decides which targets they may remove.

    Raises:
        ForbiddenError: If the caller may not delete users or the hierarchy
            forbids this target.
        NotFoundError: If the user does not exist.
    """
    if not (caller.is_privileged or is_authorized(caller, required_permissions=[PermissionName.DELETE_USERS.value])):
        raise ForbiddenError
    user = await get_user_by_id(session, user_id)
    if user is None:
        msg = f"User with ID {user_id} not found"
        raise NotFoundError(msg)
    ensure_can_act_on(caller, user.id, user.role_names, action="delete")

    for model in (RefreshToken, EmailVerificationToken, PasswordResetToken, LoginAttempt):
        await session.execute(delete(model).where(model.user_id == user_id))
    await session.delete(user)
    await session.commit()
    logger.info(f"User {user_id} deleted by {caller.id}")


async def assign_role(session: AsyncSession, caller: Caller, user_id: uuid.UUID, role_name: str) -> User:
    """Grant ``role_name`` to a user.

    Raises:
        NotFoundError: If the user or role does not exist.
        ForbiddenError: If the caller may not grant this role to this user.
        DuplicateRoleError: If the user already holds the role.
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        msg = f"User with ID {user_id} not found"
        raise NotFoundError(msg)
    role = await get_role_by_name(session, role_name)
    if role is None:
        msg = f"Role {role_name} not found"
        raise NotFoundError(msg)

    ensure_can_assign_role(caller, user.id, role.name)
    ensure_can_act_on(caller, user.id, user.role_names, action="assign roles to")
    return await grant_role(session, user, role)


async def grant_role(session: AsyncSession, user: User, role: Role) -> User:
    """Add ``role`` to ``user`` without authorization checks.

    Raises:
        DuplicateRoleError: If the user already holds the role.
    """
    if role.name in user.role_names:
        msg = f"User already has the {role.name} role"
        raise DuplicateRoleError(msg)
    user.roles.append(role)
    await session.commit()
    return user
