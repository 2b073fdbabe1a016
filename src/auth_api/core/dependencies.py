"""FastAPI dependency injection for database sessions, auth, and access control.

Provides get_async_session, get_current_user, the explicit ``Caller`` for
service calls, and permission/role requirement factories built on the RBAC
authorizer.
"""

import uuid
from collections.abc import AsyncGenerator, Callable
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings, get_settings
from auth_api.core.database import get_session_factory
from auth_api.core.errors import InvalidTokenError
from auth_api.lib.mailer import MailDispatcher, get_mailer
from auth_api.lib.rbac import Caller, is_authorized
from auth_api.models.user import User
from auth_api.services.token_service import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login")


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


def get_mail_dispatcher(settings: Annotated[Settings, Depends(get_settings)]) -> MailDispatcher:
    """Mail dispatcher built from settings."""
    return get_mailer(settings)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> User:
    """Verify the bearer access token and return the authenticated user.

    Args:
        token: The JWT bearer token.
        session: The database session.
        settings: Application settings.

    Returns:
        The authenticated User with roles and permissions loaded.

    Raises:
        HTTPException: If the token is invalid, is not an access token, or
            the user no longer exists.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token, settings)
        user_id = uuid.UUID(payload["sub"])
    except (InvalidTokenError, ValueError) as exc:
        raise credentials_exception from exc

    user = await session.get(User, user_id)
    if user is None:
        raise credentials_exception
    return user


def get_caller(current_user: Annotated[User, Depends(get_current_user)]) -> Caller:
    """Identity of the authenticated user, passed explicitly to services."""
    return Caller.from_user(current_user)


def require_permission(*permissions: str) -> Callable[..., Any]:
    """Factory that creates a dependency requiring any of ``permissions``.

    Args:
        *permissions: Permission names, any one of which grants access.

    Returns:
        A FastAPI dependency returning the authorized Caller.
    """

    async def permission_checker(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
        if not is_authorized(caller, required_permissions=permissions):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of permissions: {', '.join(permissions)}",
            )
        return caller

    return permission_checker


def require_role(*roles: str) -> Callable[..., Any]:
    """Factory that creates a dependency requiring any of ``roles``.

    Args:
        *roles: Allowed role names (e.g., "ADMIN").

    Returns:
        A FastAPI dependency returning the authorized Caller.
    """

    async def role_checker(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
        if not is_authorized(caller, required_roles=roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires one of roles: {', '.join(roles)}",
            )
        return caller

    return role_checker
