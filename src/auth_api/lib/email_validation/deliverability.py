"""Local email validator: syntax, DNS deliverability, and disposable domains.

Uses the ``email-validator`` package, which resolves MX/A records for the
domain. Lookups are blocking, so they run in a worker thread.
"""

import asyncio

from email_validator import EmailNotValidError, EmailUndeliverableError, validate_email
from loguru import logger

from auth_api.lib.email_validation.base import (
    BaseEmailValidator,
    EmailValidationProviderError,
    EmailValidationResult,
)

DISPOSABLE_DOMAINS: frozenset[str] = frozenset(
    {
        "10minutemail.com",
        "discard.email",
        "dispostable.com",
        "guerrillamail.com",
        "mailinator.com",
        "maildrop.cc",
        "sharklasers.com",
        "temp-mail.org",
        "tempmail.com",
        "throwawaymail.com",
        "trashmail.com",
        "yopmail.com",
    }
)

VALID_SCORE = 80


class DeliverabilityValidator(BaseEmailValidator):
    """Validator backed by ``email-validator`` plus a disposable-domain list."""

    def __init__(
        self,
        check_deliverability: bool = True,
        timeout: float = 10.0,
        disposable_domains: frozenset[str] = DISPOSABLE_DOMAINS,
    ) -> None:
        self._check_deliverability = check_deliverability
        self._timeout = timeout
        self._disposable_domains = disposable_domains

    @property
    def provider_name(self) -> str:
        return "deliverability"

    async def validate(self, email: str) -> EmailValidationResult:
        """Validate syntax and, optionally, that the domain accepts mail.

        Args:
            email: Address to check.

        Returns:
            EmailValidationResult for the address.

        Raises:
            EmailValidationProviderError: On unexpected resolver failures.
        """
        try:
            info = await asyncio.to_thread(
                validate_email,
                email,
                check_deliverability=self._check_deliverability,
                timeout=self._timeout,
            )
        except EmailUndeliverableError as e:
            return EmailValidationResult(valid=False, reason=str(e), is_disposable=False, score=0)
        except EmailNotValidError as e:
            return EmailValidationResult(valid=False, reason=str(e), score=0)
        except Exception as e:
            logger.exception("Deliverability validator unexpected error")
            raise EmailValidationProviderError("deliverability", f"Unexpected error: {e}") from e

        domain = info.ascii_domain.lower()
        if domain in self._disposable_domains:
            return EmailValidationResult(
                valid=False,
                reason="Disposable email addresses are not allowed",
                is_disposable=True,
                score=0,
            )
        return EmailValidationResult(valid=True, is_disposable=False, score=VALID_SCORE)
