"""Account lockout: failed-attempt counting, timed locks, and login history.

States are Active and Locked. A lock is set when the consecutive failure
count reaches ``max_login_attempts`` and clears either through an explicit
unlock or lazily the next time the status is checked after ``locked_until``.
Counter changes are atomic row updates, so concurrent failures cannot lose
increments or lock the account twice.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import ColumnElement, and_, not_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings
from auth_api.lib.mailer import MailDispatcher
from auth_api.models.base import as_utc, utcnow
from auth_api.models.login_attempt import LoginAttempt
from auth_api.models.user import User
from auth_api.services import notification_service

DEFAULT_HISTORY_LIMIT = 10


@dataclass(frozen=True)
class LoginAttemptResult:
    """Lockout state after recording or checking an attempt."""

    is_locked: bool
    remaining_attempts: int
    locked_until: datetime | None = None
    should_notify: bool = False


async def _lock_user_row(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await session.execute(
        select(User).where(User.id == user_id).with_for_update().execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _lock_active(user: User, now: datetime) -> bool:
    if not user.is_locked:
        return False
    return user.locked_until is None or as_utc(user.locked_until) > now


def _active_lock(now: datetime) -> ColumnElement[bool]:
    """SQL form of an unexpired lock."""
    return and_(User.is_locked.is_(True), or_(User.locked_until.is_(None), User.locked_until > now))


async def record_failed_attempt(
    session: AsyncSession,
    user_id: uuid.UUID,
    ip_address: str,
    settings: Settings,
    mailer: MailDispatcher | None = None,
) -> LoginAttemptResult:
    """Record a failed login and lock the account at the threshold.

    The counter is incremented by a single UPDATE that skips an actively
    locked row, so concurrent failures serialize on the row and exactly one
    of them performs the lock transition. The lock alert is queued only
    after the transaction commits and is delivered in the background; a mail
    failure does not affect the lock.

    Args:
        session: The database session.
        user_id: Account whose password check failed.
        ip_address: Client address of the attempt.
        settings: Application settings (threshold and lock duration).
        mailer: Dispatcher for the lock alert.

    Returns:
        The resulting lockout state. A missing user reports an unlocked
        account with the full attempt budget and writes nothing.
    """
    max_attempts = settings.max_login_attempts
    now = utcnow()
    counted = await session.execute(
        update(User)
        .where(User.id == user_id, not_(_active_lock(now)))
        .values(failed_login_attempts=User.failed_login_attempts + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    user = await _lock_user_row(session, user_id)
    if user is None:
        await session.rollback()
        return LoginAttemptResult(is_locked=False, remaining_attempts=max_attempts)

    if counted.rowcount != 1:
        # Locked by a concurrent attempt while this one was verifying the password
        await session.commit()
        return LoginAttemptResult(is_locked=True, remaining_attempts=0, locked_until=user.locked_until)

    session.add(LoginAttempt(user_id=user.id, ip_address=ip_address, successful=False))

    if user.failed_login_attempts >= max_attempts:
        user.is_locked = True
        user.locked_until = now + timedelta(minutes=settings.lockout_duration_minutes)
        result = LoginAttemptResult(
            is_locked=True,
            remaining_attempts=0,
            locked_until=user.locked_until,
            should_notify=True,
        )
    else:
        result = LoginAttemptResult(
            is_locked=False,
            remaining_attempts=max(0, max_attempts - user.failed_login_attempts),
        )

    email, username = user.email, user.username
    await session.commit()

    if result.should_notify and result.locked_until is not None:
        notification_service.account_locked(
            mailer,
            user_id=user_id,
            email=email,
            username=username,
            ip_address=ip_address,
            duration_minutes=settings.lockout_duration_minutes,
            locked_until=result.locked_until,
        )
    return result


async def record_successful_attempt(session: AsyncSession, user_id: uuid.UUID, ip_address: str) -> None:
    """Record a successful login and clear the failure counter and any lock."""
    user = await _lock_user_row(session, user_id)
    if user is None:
        return
    session.add(LoginAttempt(user_id=user.id, ip_address=ip_address, successful=True))
    user.failed_login_attempts = 0
    user.is_locked = False
    user.locked_until = None
    await session.commit()


async def check_account_status(
    session: AsyncSession,
    user_id: uuid.UUID,
    settings: Settings,
) -> LoginAttemptResult:
    """Report whether an account is locked, clearing an expired lock.

    Args:
        session: The database session.
        user_id: Account to check.
        settings: Application settings.

    Returns:
        Current lockout state. Only an expired lock causes a write.
    """
    max_attempts = settings.max_login_attempts
    user = await session.get(User, user_id, populate_existing=True)
    if user is None:
        return LoginAttemptResult(is_locked=False, remaining_attempts=max_attempts)

    if user.is_locked:
        if _lock_active(user, utcnow()):
            return LoginAttemptResult(is_locked=True, remaining_attempts=0, locked_until=user.locked_until)
        await unlock_account(session, user_id)
        return LoginAttemptResult(is_locked=False, remaining_attempts=max_attempts)

    return LoginAttemptResult(
        is_locked=False,
        remaining_attempts=max(0, max_attempts - user.failed_login_attempts),
    )


async def unlock_account(session: AsyncSession, user_id: uuid.UUID) -> None:
    """Clear the failure counter and lock. Idempotent; always emits the unlock event."""
    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(failed_login_attempts=0, is_locked=False, locked_until=None, updated_at=utcnow())
    )
    await session.commit()
    notification_service.account_unlocked(user_id)


async def get_login_history(
    session: AsyncSession,
    user_id: uuid.UUID,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[LoginAttempt]:
    """Return a user's most recent login attempts, newest first."""
    result = await session.execute(
        select(LoginAttempt)
        .where(LoginAttempt.user_id == user_id)
        .order_by(LoginAttempt.attempted_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
