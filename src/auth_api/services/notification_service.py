"""Mail notifications for auth events.

Mail is fire-and-forget: each send is submitted to the background task
runner and the caller returns without waiting for delivery. A failed
delivery is logged, never raised, so it cannot undo a state change that has
already committed.
"""

import uuid
from collections.abc import Awaitable
from datetime import datetime

from loguru import logger

from auth_api.core.background import task_runner
from auth_api.core.logging import redact_email
from auth_api.lib.mailer import MailDispatcher


async def _deliver(kind: str, email: str, send: Awaitable[None]) -> bool:
    try:
        await send
    except Exception as e:
        logger.error(f"Failed to send {kind} email to {redact_email(email)}: {e}")
        return False
    return True


def send_verification(mailer: MailDispatcher, email: str, token: str) -> str:
    """Queue an email verification link. Returns the background job id."""
    return task_runner.submit_task(
        _deliver("verification", email, mailer.send_verification_email(email, token)),
        "verification email",
    )


def send_password_reset(mailer: MailDispatcher, email: str, token: str) -> str:
    """Queue a password reset link. Returns the background job id."""
    return task_runner.submit_task(
        _deliver("password reset", email, mailer.send_password_reset_email(email, token)),
        "password reset email",
    )


def account_locked(
    mailer: MailDispatcher | None,
    *,
    user_id: uuid.UUID,
    email: str,
    username: str,
    ip_address: str,
    duration_minutes: int,
    locked_until: datetime,
) -> str | None:
    """Handle the account-locked event: log it and queue an alert to the owner.

    Args:
        mailer: Dispatcher for the alert, or None to only log.
        user_id: Locked account.
        email: Recipient address.
        username: Name used in the greeting.
        ip_address: Address of the attempt that triggered the lock.
        duration_minutes: Lock duration.
        locked_until: When the lock expires.

    Returns:
        The background job id of the alert, or None when no mailer is set.
    """
    logger.warning(
        f"Account {user_id} locked until {locked_until.isoformat()} after failed login from {ip_address}"
    )
    if mailer is None:
        return None
    return task_runner.submit_task(
        _deliver(
            "account locked",
            email,
            mailer.send_account_locked_email(email, username, duration_minutes, ip_address),
        ),
        "account locked email",
    )


def account_unlocked(user_id: uuid.UUID) -> None:
    """Handle the account-unlocked event."""
    logger.info(f"Account {user_id} has been unlocked")
