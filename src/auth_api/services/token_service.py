"""Token service: access/refresh pair issuance and refresh-token rotation.

Access tokens are stateless. Refresh tokens are persisted so that each one
can be redeemed exactly once; rotation revokes the presented token with a
conditional UPDATE and issues the new pair in the same transaction.
"""

import uuid
from datetime import timedelta

import jwt
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings
from auth_api.core.errors import InvalidTokenError
from auth_api.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    create_access_token,
    create_refresh_token,
    decode_token,
    parse_expiration,
)
from auth_api.models.base import utcnow
from auth_api.models.token import RefreshToken
from auth_api.models.user import User
from auth_api.schemas.auth import TokenPair


def _mint_pair(session: AsyncSession, user: User, settings: Settings) -> TokenPair:
    """Sign a new pair and stage the refresh token row (no commit)."""
    access_seconds = parse_expiration(settings.jwt_access_expiration)
    refresh_seconds = parse_expiration(settings.jwt_refresh_expiration)

    access_token = create_access_token(
        subject=str(user.id),
        secret_key=settings.jwt_access_secret,
        email=user.email,
        username=user.username,
        roles=user.role_names,
        permissions=user.permission_names,
        algorithm=settings.jwt_algorithm,
        expires_seconds=access_seconds,
    )
    refresh_token = create_refresh_token(
        subject=str(user.id),
        secret_key=settings.jwt_refresh_secret,
        algorithm=settings.jwt_algorithm,
        expires_seconds=refresh_seconds,
    )
    session.add(
        RefreshToken(
            token=refresh_token,
            user_id=user.id,
            expires_at=utcnow() + timedelta(seconds=refresh_seconds),
        )
    )
    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=access_seconds,
    )


async def issue_tokens(session: AsyncSession, user: User, settings: Settings) -> TokenPair:
    """Issue an access/refresh pair for ``user`` and persist the refresh token.

    Args:
        session: The database session.
        user: User with roles and permissions loaded.
        settings: Application settings.

    Returns:
        The new token pair.
    """
    pair = _mint_pair(session, user, settings)
    await session.commit()
    return pair


async def refresh_tokens(session: AsyncSession, presented: str, settings: Settings) -> TokenPair:
    """Rotate a refresh token: revoke it and issue a fresh pair.

    The presented token is revoked with ``UPDATE ... WHERE is_revoked = false
    AND expires_at > now``; exactly one affected row is required, so among
    concurrent callers presenting the same token at most one succeeds.

    Args:
        session: The database session.
        presented: The refresh token string from the client.
        settings: Application settings.

    Returns:
        New token pair.

    Raises:
        InvalidTokenError: If the token fails verification, is not a refresh
            token, or has already been revoked, rotated, or expired.
    """
    try:
        payload = decode_token(presented, settings.jwt_refresh_secret, settings.jwt_algorithm)
    except jwt.PyJWTError as e:
        msg = "Invalid refresh token"
        raise InvalidTokenError(msg) from e

    if payload.get("type") != REFRESH_TOKEN_TYPE:
        msg = "Invalid refresh token"
        raise InvalidTokenError(msg)

    result = await session.execute(
        update(RefreshToken)
        .where(
            RefreshToken.token == presented,
            RefreshToken.is_revoked.is_(False),
            RefreshToken.expires_at > utcnow(),
        )
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        logger.warning(f"Refresh token rejected for subject {payload.get('sub')}: revoked, unknown, or expired")
        msg = "Invalid refresh token"
        raise InvalidTokenError(msg)

    owner = await session.execute(select(RefreshToken.user_id).where(RefreshToken.token == presented))
    user = await session.get(User, owner.scalar_one(), populate_existing=True)
    if user is None:
        await session.rollback()
        msg = "Invalid refresh token"
        raise InvalidTokenError(msg)

    pair = _mint_pair(session, user, settings)
    await session.commit()
    return pair


def decode_access_token(token: str, settings: Settings) -> dict:
    """Verify an access token's signature and expiry and return its claims.

    Args:
        token: Bearer token from the client.
        settings: Application settings.

    Returns:
        Decoded payload.

    Raises:
        InvalidTokenError: If verification fails or the token is not an
            access token (e.g. a refresh token presented as a bearer token).
    """
    try:
        payload = decode_token(token, settings.jwt_access_secret, settings.jwt_algorithm)
    except jwt.PyJWTError as e:
        raise InvalidTokenError from e
    if payload.get("type") != ACCESS_TOKEN_TYPE or payload.get("sub") is None:
        raise InvalidTokenError
    return payload


async def revoke_user_tokens(session: AsyncSession, user_id: uuid.UUID) -> int:
    """Revoke every active refresh token of a user (no commit).

    Returns:
        Number of tokens revoked.
    """
    result = await session.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
