"""Mailer library: transactional email for the auth flows.

Public API:
    - MailDispatcher: Protocol implemented by every mailer
    - MailDeliveryError: Raised when delivery fails
    - SmtpMailer: SMTP implementation
    - get_mailer: Build the SMTP mailer from settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from auth_api.lib.mailer.base import MailDeliveryError, MailDispatcher
from auth_api.lib.mailer.smtp import SmtpMailer

if TYPE_CHECKING:
    from auth_api.core.config import Settings


def get_mailer(settings: Settings) -> SmtpMailer:
    """Build an SMTP mailer from application settings.

    Args:
        settings: Application settings.

    Returns:
        A configured SmtpMailer.
    """
    return SmtpMailer(
        host=settings.mail_host,
        port=settings.mail_port,
        from_email=settings.mail_from,
        from_name=settings.mail_from_name,
        app_api_url=settings.app_api_url,
        user=settings.mail_user,
        password=settings.mail_password,
        use_tls=settings.mail_use_tls,
        timeout=settings.mail_timeout,
        verification_hours=settings.email_verification_hours,
        reset_minutes=settings.password_reset_minutes,
    )


__all__ = [
    "MailDeliveryError",
    "MailDispatcher",
    "SmtpMailer",
    "get_mailer",
]
