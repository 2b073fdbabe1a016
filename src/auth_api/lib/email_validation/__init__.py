"""Email validation library: pluggable email quality providers.

Public API:
    - BaseEmailValidator: Abstract provider interface
    - EmailValidationResult: Result dataclass
    - EmailValidationProviderError: Provider failure
    - DeliverabilityValidator: Local syntax/DNS/disposable-domain provider
    - ZeroBounceValidator: ZeroBounce API provider
    - get_email_validator: Provider factory/registry
    - get_configured_validator: Build the provider selected in settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from loguru import logger

from auth_api.lib.email_validation.base import (
    BaseEmailValidator,
    EmailValidationProviderError,
    EmailValidationResult,
)
from auth_api.lib.email_validation.deliverability import DeliverabilityValidator
from auth_api.lib.email_validation.zerobounce import ZeroBounceValidator

if TYPE_CHECKING:
    from auth_api.core.config import Settings

DEFAULT_PROVIDER = "deliverability"

# Provider registry
_PROVIDERS: dict[str, type[BaseEmailValidator]] = {
    "deliverability": DeliverabilityValidator,
    "zerobounce": ZeroBounceValidator,
}


def get_available_providers() -> list[str]:
    """Return the names of all registered email validation providers."""
    return sorted(_PROVIDERS.keys())


def get_email_validator(provider: str = DEFAULT_PROVIDER, **kwargs: Any) -> BaseEmailValidator:
    """Get an email validator instance by provider name.

    An unknown name selects the default provider instead of failing.

    Args:
        provider: Provider name (e.g., "zerobounce").
        **kwargs: Arguments forwarded to the provider constructor.

    Returns:
        An instance of the requested (or default) provider.
    """
    cls = _PROVIDERS.get(provider.lower())
    if cls is None:
        available = ", ".join(get_available_providers())
        logger.warning(
            f"Unknown email validation provider {provider!r} (available: {available}), using {DEFAULT_PROVIDER!r}"
        )
        return DeliverabilityValidator(**kwargs)
    return cls(**kwargs)


def get_configured_validator(settings: Settings) -> BaseEmailValidator:
    """Build the validator selected by ``email_validation_provider``.

    Args:
        settings: Application settings.

    Returns:
        A provider instance configured from settings.
    """
    name = settings.email_validation_provider.lower()
    if name == "zerobounce":
        return ZeroBounceValidator(
            api_key=settings.zerobounce_api_key or "",
            timeout=settings.email_validation_timeout,
            api_url=settings.zerobounce_api_url,
        )
    return get_email_validator(name, timeout=settings.email_validation_timeout)


__all__ = [
    "DEFAULT_PROVIDER",
    "BaseEmailValidator",
    "DeliverabilityValidator",
    "EmailValidationProviderError",
    "EmailValidationResult",
    "ZeroBounceValidator",
    "get_available_providers",
    "get_configured_validator",
    "get_email_validator",
]
