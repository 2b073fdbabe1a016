"""SMTP mail dispatcher.

Builds the verification, password reset, and lockout alert messages and
delivers them with :mod:`smtplib`. SMTP calls block, so delivery runs in a
worker thread.
"""

import asyncio
import smtplib
import ssl
from datetime import UTC, datetime, timedelta
from email.message import EmailMessage
from email.utils import formataddr
from html import escape

from loguru import logger

from auth_api.core.logging import redact_email
from auth_api.lib.mailer.base import MailDeliveryError

_BUTTON_STYLE = (
    "display: inline-block; padding: 12px 24px; background-color: #6366f1; "
    "color: white; text-decoration: none; border-radius: 6px; margin: 20px 0;"
)


class SmtpMailer:
    """Mail dispatcher that talks to an SMTP server.

    Args:
        host: SMTP server host.
        port: SMTP server port.
        from_email: Envelope and header sender address.
        from_name: Display name for the sender.
        app_api_url: Public base URL used to build verification and reset links.
        user: Optional SMTP username.
        password: Optional SMTP password.
        use_tls: Upgrade the connection with STARTTLS.
        timeout: Socket timeout in seconds.
        verification_hours: Verification link lifetime shown to the recipient.
        reset_minutes: Reset link lifetime shown to the recipient.
    """

    def __init__(
        self,
        host: str,
        port: int,
        from_email: str,
        from_name: str,
        app_api_url: str,
        user: str = "",
        password: str = "",
        use_tls: bool = False,
        timeout: float = 30.0,
        verification_hours: int = 1,
        reset_minutes: int = 20,
    ) -> None:
        self.host = host
        self.port = port
        self.from_email = from_email
        self.from_name = from_name
        self.app_api_url = app_api_url.rstrip("/")
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.verification_hours = verification_hours
        self.reset_minutes = reset_minutes

    def verification_url(self, token: str) -> str:
        return f"{self.app_api_url}/auth/verify-email/{token}"

    def reset_url(self, token: str) -> str:
        return f"{self.app_api_url}/auth/reset-password/{token}"

    async def send_verification_email(self, email: str, token: str) -> None:
        url = self.verification_url(token)
        hours = self.verification_hours
        unit = "hour" if hours == 1 else "hours"
        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h1 style="color: #333;">Welcome!</h1>
          <p>Please verify your email address by clicking the button below:</p>
          <a href="{url}" style="{_BUTTON_STYLE}">Verify Email</a>
          <p>Or copy this link: <a href="{url}">{url}</a></p>
          <p style="color: #666; font-size: 14px;">This link will expire in {hours} {unit}.</p>
          <p style="color: #666; font-size: 14px;">If you didn't create an account, please ignore this email.</p>
        </div>
        """
        text = f"Please verify your email address by opening this link:\n{url}\n"
        await self.send(email, "Verify your email address", html, text)

    async def send_password_reset_email(self, email: str, token: str) -> None:
        url = self.reset_url(token)
        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h1 style="color: #333;">Password Reset</h1>
          <p>You requested to reset your password. Click the button below:</p>
          <a href="{url}" style="{_BUTTON_STYLE}">Reset Password</a>
          <p>Or copy this link: <a href="{url}">{url}</a></p>
          <p style="color: #666; font-size: 14px;">This link will expire in {self.reset_minutes} minutes.</p>
          <p style="color: #666; font-size: 14px;">If you didn't request this, please ignore this email.</p>
        </div>
        """
        text = f"Reset your password by opening this link:\n{url}\n"
        await self.send(email, "Password Reset Request", html, text)

    async def send_account_locked_email(
        self,
        email: str,
        username: str,
        duration_minutes: int,
        ip_address: str,
    ) -> None:
        unlock_at = datetime.now(UTC) + timedelta(minutes=duration_minutes)
        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2 style="color: #d32f2f;">Account Temporarily Locked</h2>
          <p>Hello {escape(username)},</p>
          <p>Your account has been temporarily locked due to multiple failed login attempts.</p>
          <h3>Details:</h3>
          <ul>
            <li><strong>IP Address:</strong> {escape(ip_address)}</li>
            <li><strong>Lock Duration:</strong> {duration_minutes} minutes</li>
            <li><strong>Unlock Time:</strong> {unlock_at:%Y-%m-%d %H:%M} UTC</li>
          </ul>
          <p><strong>If this wasn't you:</strong> Please contact support immediately.</p>
          <p>Your account will automatically unlock in {duration_minutes} minutes.</p>
          <p style="color: #666; font-size: 14px;">Best regards,<br>Security Team</p>
        </div>
        """
        text = (
            f"Hello {username},\n\nYour account has been locked for {duration_minutes} minutes "
            f"after multiple failed login attempts from {ip_address}.\n"
        )
        await self.send(email, "Security Alert: Account Locked", html, text)

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        """Deliver one message.

        Raises:
            MailDeliveryError: If the SMTP exchange fails.
        """
        message = self._build_message(to_email, subject, html_body, text_body)
        await asyncio.to_thread(self._deliver, message)
        logger.info(f"Sent '{subject}' to {redact_email(to_email)}")

    def _build_message(self, to_email: str, subject: str, html_body: str, text_body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.from_name, self.from_email))
        message["To"] = to_email
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, ssl.SSLError, OSError) as e:
            msg = f"SMTP delivery to {self.host}:{self.port} failed: {type(e).__name__}: {e}"
            raise MailDeliveryError(msg) from e
