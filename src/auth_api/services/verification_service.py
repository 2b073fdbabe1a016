"""Email verification and password reset via single-use tokens.

Tokens are random hex strings stored with an expiry. Redemption flips
``is_used`` with a conditional UPDATE and applies its effect in the same
transaction, so a token can be redeemed at most once even under concurrent
requests.
"""

import uuid
from datetime import timedelta

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings
from auth_api.core.errors import AlreadyVerifiedError, InvalidTokenError, NotFoundError
from auth_api.core.logging import redact_email
from auth_api.core.security import check_password_policy, generate_secure_token, hash_password
from auth_api.lib.mailer import MailDispatcher
from auth_api.models.base import utcnow
from auth_api.models.token import EmailVerificationToken, PasswordResetToken
from auth_api.models.user import User
from auth_api.services import notification_service
from auth_api.services.token_service import revoke_user_tokens
from auth_api.services.user_service import get_user_by_email, get_user_by_id

RESET_REQUESTED_MESSAGE = "If the email exists, a password reset link has been sent"
VERIFICATION_RESENT_MESSAGE = "If the email exists, a verification link has been sent"
EMAIL_VERIFIED_MESSAGE = "Email verified successfully"
PASSWORD_RESET_MESSAGE = "Password has been reset successfully"


async def _consume_token(
    session: AsyncSession,
    model: type[EmailVerificationToken | PasswordResetToken],
    token: str,
) -> uuid.UUID:
    """Mark a single-use token used and return its owner.

    Raises:
        InvalidTokenError: If the token is unknown, used, or expired.
    """
    result = await session.execute(
        update(model)
        .where(model.token == token, model.is_used.is_(False), model.expires_at > utcnow())
        .values(is_used=True)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise InvalidTokenError
    owner = await session.execute(select(model.user_id).where(model.token == token))
    return owner.scalar_one()


async def _create_verification_token(session: AsyncSession, user: User, settings: Settings) -> str:
    token = generate_secure_token(settings.token_bytes)
    session.add(
        EmailVerificationToken(
            token=token,
            user_id=user.id,
            expires_at=utcnow() + timedelta(hours=settings.email_verification_hours),
        )
    )
    await session.commit()
    return token


async def send_verification_email(
    session: AsyncSession,
    user_id: uuid.UUID,
    settings: Settings,
    mailer: MailDispatcher,
) -> None:
    """Create a verification token for a user and queue the link email.

    Args:
        session: The database session.
        user_id: User to verify.
        settings: Application settings (token size and lifetime).
        mailer: Dispatcher for the verification email.

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    token = await _create_verification_token(session, user, settings)
    notification_service.send_verification(mailer, user.email, token)


async def verify_email(session: AsyncSession, token: str) -> User:
    """Redeem a verification token and mark the owner's email verified.

    Raises:
        InvalidTokenError: If the token is unknown, used, or expired.
    """
    user_id = await _consume_token(session, EmailVerificationToken, token)
    user = await get_user_by_id(session, user_id)
    if user is None:
        await session.rollback()
        raise InvalidTokenError
    user.is_email_verified = True
    user.email_verified_at = utcnow()
    await session.commit()
    logger.info(f"Email verified for user {user.id}")
    return user


async def resend_verification(
    session: AsyncSession,
    email: str,
    settings: Settings,
    mailer: MailDispatcher,
) -> str:
    """Issue a fresh verification token. Earlier tokens stay valid until used or expired.

    Returns:
        A message that does not reveal whether the address is registered.

    Raises:
        AlreadyVerifiedError: If the account is already verified.
    """
    user = await get_user_by_email(session, email)
    if user is None:
        return VERIFICATION_RESENT_MESSAGE
    if user.is_email_verified:
        raise AlreadyVerifiedError
    token = await _create_verification_token(session, user, settings)
    notification_service.send_verification(mailer, user.email, token)
    return VERIFICATION_RESENT_MESSAGE


async def forgot_password(
    session: AsyncSession,
    email: str,
    settings: Settings,
    mailer: MailDispatcher,
) -> str:
    """Start a password reset.

    Returns:
        The same message whether or not the address is registered.
    """
    user = await get_user_by_email(session, email)
    if user is None:
        logger.info(f"Password reset requested for unknown address {redact_email(email)}")
        return RESET_REQUESTED_MESSAGE

    token = generate_secure_token(settings.token_bytes)
    session.add(
        PasswordResetToken(
            token=token,
            user_id=user.id,
            expires_at=utcnow() + timedelta(minutes=settings.password_reset_minutes),
        )
    )
    await session.commit()
    notification_service.send_password_reset(mailer, user.email, token)
    return RESET_REQUESTED_MESSAGE


async def reset_password(session: AsyncSession, token: str, new_password: str, settings: Settings) -> str:
    """Redeem a reset token and replace the owner's password.

    Outstanding refresh tokens of the user are revoked in the same
    transaction.

    Raises:
        InvalidInputError: If the new password fails the policy.
        InvalidTokenError: If the token is unknown, used, or expired.
    """
    check_password_policy(new_password)
    user_id = await _consume_token(session, PasswordResetToken, token)
    user = await get_user_by_id(session, user_id)
    if user is None:
        await session.rollback()
        raise InvalidTokenError
    user.hashed_password = hash_password(new_password, settings.bcrypt_rounds)
    await revoke_user_tokens(session, user.id)
    await session.commit()
    logger.info(f"Password reset for user {user.id}")
    return PASSWORD_RESET_MESSAGE
