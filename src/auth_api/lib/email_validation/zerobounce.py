"""ZeroBounce email validation provider.

Uses the ZeroBounce v2 validate endpoint (https://www.zerobounce.net/docs/)
to classify an address as valid, invalid, catch-all, and so on.
"""

import httpx
from loguru import logger

from auth_api.lib.email_validation.base import (
    BaseEmailValidator,
    EmailValidationProviderError,
    EmailValidationResult,
)

ZEROBOUNCE_API_URL = "https://api.zerobounce.net/v2"
DEFAULT_TIMEOUT = 10.0

# status -> (valid, reason, score)
_STATUS_MAP: dict[str, tuple[bool, str, int]] = {
    "valid": (True, "Email is valid", 100),
    "invalid": (False, "Email address is invalid", 0),
    "catch-all": (True, "Domain accepts all emails (catch-all)", 70),
    "catch_all": (True, "Domain accepts all emails (catch-all)", 70),
    "unknown": (True, "Cannot verify email", 50),
    "spamtrap": (False, "Email is a spam trap", 0),
    "abuse": (False, "Email is associated with abuse", 0),
    "do_not_mail": (False, "Email should not be mailed", 0),
}
_UNKNOWN_STATUS: tuple[bool, str, int] = (False, "Unknown status", 0)


class ZeroBounceValidator(BaseEmailValidator):
    """ZeroBounce email validation provider. Requires an API key."""

    def __init__(
        self,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        api_url: str = ZEROBOUNCE_API_URL,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._api_url = api_url.rstrip("/")

    @property
    def provider_name(self) -> str:
        return "zerobounce"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def validate(self, email: str) -> EmailValidationResult:
        """Validate an address with the ZeroBounce API.

        Args:
            email: Address to check.

        Returns:
            EmailValidationResult mapped from the provider's status.

        Raises:
            EmailValidationProviderError: If the API key is missing or the
                request fails.
        """
        if not self.is_configured:
            raise EmailValidationProviderError("zerobounce", "API key is not configured")

        params = {"api_key": self._api_key, "email": email, "ip_address": ""}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(f"{self._api_url}/validate", params=params)
                response.raise_for_status()

            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("ZeroBounce validation timeout")
            raise EmailValidationProviderError("zerobounce", "Validation request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"ZeroBounce HTTP error {e.response.status_code}")
            raise EmailValidationProviderError(
                "zerobounce",
                f"Provider returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.ConnectError as e:
            logger.warning("ZeroBounce connection error")
            raise EmailValidationProviderError("zerobounce", "Connection to validation provider failed") from e
        except Exception as e:
            logger.exception("ZeroBounce unexpected error")
            raise EmailValidationProviderError("zerobounce", f"Unexpected error: {e}") from e

        return self._parse_response(data)

    def _parse_response(self, data: dict) -> EmailValidationResult:
        """Map a ZeroBounce response body to an EmailValidationResult.

        Args:
            data: Raw JSON response.

        Returns:
            EmailValidationResult for the address.

        Raises:
            EmailValidationProviderError: If the response carries an error.
        """
        if "error" in data and "status" not in data:
            raise EmailValidationProviderError("zerobounce", str(data["error"]))

        status = str(data.get("status", "")).lower()
        sub_status = str(data.get("sub_status", "") or "").lower()
        valid, reason, score = _STATUS_MAP.get(status, _UNKNOWN_STATUS)

        return EmailValidationResult(
            valid=valid,
            reason=reason,
            suggestion=data.get("did_you_mean") or None,
            is_disposable=sub_status == "disposable",
            is_catch_all=status in ("catch-all", "catch_all") or sub_status == "catch_all",
            score=score,
        )
