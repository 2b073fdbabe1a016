"""Email quality checks for signup, with a basic-format fallback.

When the configured provider cannot answer, the address is checked with a
plain format pattern instead and the result says so.
"""

import re

from loguru import logger

from auth_api.core.config import Settings
from auth_api.core.errors import InvalidInputError
from auth_api.core.logging import redact_email
from auth_api.lib.email_validation import (
    BaseEmailValidator,
    EmailValidationProviderError,
    EmailValidationResult,
    get_configured_validator,
)

_BASIC_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
FALLBACK_REASON = "Provider unavailable, basic validation only"


def basic_validate(email: str) -> EmailValidationResult:
    """Format-only check used when no provider is available."""
    return EmailValidationResult(valid=bool(_BASIC_EMAIL_RE.match(email)), reason=FALLBACK_REASON)


async def validate_email_quality(validator: BaseEmailValidator, email: str) -> EmailValidationResult:
    """Run ``validator`` and fall back to the basic check if it fails.

    Args:
        validator: Configured email validation provider.
        email: Address to check.

    Returns:
        The provider's result, or the basic-format result on provider failure.
    """
    try:
        return await validator.validate(email)
    except EmailValidationProviderError as e:
        logger.warning(f"Email validation provider {e.provider_name} failed for {redact_email(email)}: {e.message}")
        return basic_validate(email)


def should_block(result: EmailValidationResult) -> bool:
    """An address is blocked when it is invalid or disposable."""
    return not result.valid or bool(result.is_disposable)


def get_suggestion(result: EmailValidationResult) -> str | None:
    """Return the provider's typo correction, if any."""
    return result.suggestion or None


async def check_signup_email(
    email: str,
    settings: Settings,
    validator: BaseEmailValidator | None = None,
) -> EmailValidationResult | None:
    """Reject a signup address that fails the quality check.

    Does nothing when email validation is disabled.

    Args:
        email: Address being registered.
        settings: Application settings.
        validator: Provider to use; defaults to the one in settings.

    Returns:
        The validation result, or None when validation is disabled.

    Raises:
        InvalidInputError: If the address should be blocked or the provider
            suggests a correction.
    """
    if not settings.email_validation_enabled:
        return None

    result = await validate_email_quality(validator or get_configured_validator(settings), email)
    if should_block(result):
        raise InvalidInputError(result.reason or "Invalid email address")

    suggestion = get_suggestion(result)
    if suggestion:
        msg = f"Did you mean: {suggestion}?"
        raise InvalidInputError(msg)
    return result
