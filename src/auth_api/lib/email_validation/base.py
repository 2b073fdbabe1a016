"""Abstract email validator interface for pluggable provider support."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class EmailValidationResult:
    """Outcome of an email quality check."""

    valid: bool
    reason: str | None = None
    suggestion: str | None = None
    is_disposable: bool | None = None
    is_catch_all: bool | None = None
    score: int | None = None

    def __post_init__(self) -> None:
        if self.score is not None and not (0 <= self.score <= 100):
            msg = f"score must be between 0 and 100, got {self.score}"
            raise ValueError(msg)


class EmailValidationProviderError(Exception):
    """Raised when a validation provider cannot produce an answer.

    Distinguishes provider failures (timeout, HTTP error, missing API key)
    from a successful response saying the address is invalid.

    Args:
        provider_name: Name of the failing provider.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the provider.
    """

    def __init__(self, provider_name: str, message: str, status_code: int | None = None) -> None:
        self.provider_name = provider_name
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider_name}: {message}")


class BaseEmailValidator(ABC):
    """Abstract email validator. All providers must implement this."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique name identifying this provider."""

    @property
    def is_configured(self) -> bool:
        """Whether this provider has all required configuration (e.g., API keys)."""
        return True

    @abstractmethod
    async def validate(self, email: str) -> EmailValidationResult:
        """Check the quality of a single email address.

        Args:
            email: Address to check.

        Returns:
            EmailValidationResult describing the address.

        Raises:
            EmailValidationProviderError: If the provider could not answer.
        """
