"""Domain error taxonomy.

Services raise these; the API layer maps each kind to a stable HTTP status and
machine-readable ``code``.
"""

from datetime import UTC, datetime


class AuthError(Exception):
    """Base class for errors surfaced to callers as distinct, stable kinds."""

    status_code: int = 400
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password (deliberately indistinguishable)."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials"

    def __init__(self, message: str | None = None, *, remaining_attempts: int | None = None) -> None:
        self.remaining_attempts = remaining_attempts
        super().__init__(message)


class EmailNotVerifiedError(AuthError):
    status_code = 403
    code = "email_not_verified"
    default_message = "Please verify your email before logging in"


class AccountLockedError(AuthError):
    """Login refused because the account is locked until ``locked_until``."""

    status_code = 423
    code = "account_locked"
    default_message = "Account is temporarily locked due to repeated failed login attempts"

    def __init__(self, locked_until: datetime | None, message: str | None = None) -> None:
        self.locked_until = locked_until
        super().__init__(message)

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds until the lock expires (never negative)."""
        if self.locked_until is None:
            return 0
        locked_until = self.locked_until
        if locked_until.tzinfo is None:
            locked_until = locked_until.replace(tzinfo=UTC)
        remaining = (locked_until - datetime.now(UTC)).total_seconds()
        return max(0, int(remaining))


class InvalidTokenError(AuthError):
    """Refresh, verification, or reset token is invalid, expired, revoked, or already used."""

    status_code = 401
    code = "invalid_token"
    default_message = "Invalid or expired token"


class NotFoundError(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ConflictError(AuthError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class DuplicateRoleError(ConflictError):
    code = "duplicate_role"
    default_message = "User already has this role"


class AlreadyVerifiedError(ConflictError):
    code = "already_verified"
    default_message = "Email already verified"


class ForbiddenError(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action"


class InvalidInputError(AuthError):
    """Malformed input or a password that does not meet the policy."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"
