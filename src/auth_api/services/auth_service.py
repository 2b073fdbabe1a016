"""Authentication service.

Handles registration, credential verification with lockout, password
changes, and the authenticated user's profile.
"""

import uuid

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings
from auth_api.core.errors import (
    AccountLockedError,
    EmailNotVerifiedError,
    InvalidCredentialsError,
    NotFoundError,
)
from auth_api.core.logging import redact_email
from auth_api.core.security import check_password_policy, hash_password, verify_password
from auth_api.lib.email_validation import BaseEmailValidator
from auth_api.lib.mailer import MailDispatcher
from auth_api.models.user import User
from auth_api.schemas.auth import ProfileResponse, TokenPair
from auth_api.services import lockout_service, token_service, verification_service
from auth_api.services.user_service import create_account, get_user_by_email, get_user_by_id

PASSWORD_CHANGED_MESSAGE = "Password changed successfully"


async def register(
    session: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    settings: Settings,
    mailer: MailDispatcher,
    validator: BaseEmailValidator | None = None,
) -> User:
    """Create a self-service account with the default role and send the verification email.

    Args:
        session: The database session.
        username: Desired username.
        email: Email address.
        password: Plaintext password.
        settings: Application settings.
        mailer: Dispatcher for the verification email.
        validator: Email quality provider override.

    Returns:
        The created, unverified User.

    Raises:
        ConflictError: If the username or email is taken.
        InvalidInputError: If the password or email fails validation.
    """
    user = await create_account(
        session,
        username=username,
        email=email,
        password=password,
        settings=settings,
        validator=validator,
    )
    await verification_service.send_verification_email(session, user.id, settings, mailer)
    return user


async def login(
    session: AsyncSession,
    email: str,
    password: str,
    ip_address: str,
    settings: Settings,
    mailer: MailDispatcher | None = None,
) -> TokenPair:
    """Authenticate by email and password and issue a token pair.

    Order of checks: account exists, not locked (an expired lock is cleared
    first), password matches, email verified.

    Args:
        session: The database session.
        email: Login email.
        password: Plaintext password.
        ip_address: Client address, recorded with the attempt.
        settings: Application settings.
        mailer: Dispatcher for the lock alert.

    Returns:
        Access and refresh tokens.

    Raises:
        InvalidCredentialsError: Unknown email or wrong password. A wrong
            password carries ``remaining_attempts``.
        AccountLockedError: The account is locked; nothing is recorded.
        EmailNotVerifiedError: The password is correct but the email is not
            verified.
    """
    user = await get_user_by_email(session, email)
    if user is None:
        logger.info(f"Login failed for unknown address {redact_email(email)}")
        raise InvalidCredentialsError

    status = await lockout_service.check_account_status(session, user.id, settings)
    if status.is_locked:
        raise AccountLockedError(status.locked_until)

    if not verify_password(password, user.hashed_password):
        attempt = await lockout_service.record_failed_attempt(session, user.id, ip_address, settings, mailer)
        raise InvalidCredentialsError(remaining_attempts=attempt.remaining_attempts)

    if not user.is_email_verified:
        raise EmailNotVerifiedError

    await lockout_service.record_successful_attempt(session, user.id, ip_address)
    return await token_service.issue_tokens(session, user, settings)


async def change_password(
    session: AsyncSession,
    user_id: uuid.UUID,
    current_password: str,
    new_password: str,
    settings: Settings,
) -> str:
    """Replace a user's password after checking the current one.

    Outstanding refresh tokens are revoked.

    Raises:
        NotFoundError: If the user does not exist.
        InvalidCredentialsError: If ``current_password`` is wrong.
        InvalidInputError: If the new password fails the policy.
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    if not verify_password(current_password, user.hashed_password):
        msg = "Current password is incorrect"
        raise InvalidCredentialsError(msg)
    check_password_policy(new_password)

    user.hashed_password = hash_password(new_password, settings.bcrypt_rounds)
    await token_service.revoke_user_tokens(session, user.id)
    await session.commit()
    return PASSWORD_CHANGED_MESSAGE


def build_profile(user: User) -> ProfileResponse:
    """The authenticated user's profile with flattened permissions."""
    return ProfileResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        is_email_verified=user.is_email_verified,
        roles=user.role_names,
        permissions=user.permission_names,
    )
