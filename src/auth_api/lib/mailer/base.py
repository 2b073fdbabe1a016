"""Mail dispatcher interface."""

from typing import Protocol, runtime_checkable


class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the mail server."""


@runtime_checkable
class MailDispatcher(Protocol):
    """Outbound transactional mail used by the auth flows."""

    async def send_verification_email(self, email: str, token: str) -> None: ...

    async def send_password_reset_email(self, email: str, token: str) -> None: ...

    async def send_account_locked_email(
        self,
        email: str,
        username: str,
        duration_minutes: int,
        ip_address: str,
    ) -> None: ...
