"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string (e.g. postgresql+asyncpg://...)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # JWT
    jwt_access_secret: str = Field(
        min_length=32,
        description="Secret key for signing access tokens (minimum 32 characters)",
    )
    jwt_refresh_secret: str = Field(
        min_length=32,
        description="Secret key for signing refresh tokens (minimum 32 characters)",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_expiration: str = Field(
        default="15m",
        description="Access token lifetime as <number><s|m|h|d>",
    )
    jwt_refresh_expiration: str = Field(
        default="7d",
        description="Refresh token lifetime as <number><s|m|h|d>",
    )

    @model_validator(mode="after")
    def validate_independent_secrets(self) -> "Settings":
        if self.jwt_access_secret == self.jwt_refresh_secret:
            msg = "jwt_access_secret and jwt_refresh_secret must be different"
            raise ValueError(msg)
        return self

    # Security
    bcrypt_rounds: int = Field(
        default=10,
        description="bcrypt cost factor for password hashing",
        ge=4,
        le=31,
    )
    token_bytes: int = Field(
        default=32,
        description="Random bytes in email verification and password reset tokens",
        ge=16,
    )
    email_verification_hours: int = Field(
        default=1,
        description="Email verification token lifetime in hours",
        gt=0,
    )
    password_reset_minutes: int = Field(
        default=20,
        description="Password reset token lifetime in minutes",
        gt=0,
    )
    max_login_attempts: int = Field(
        default=5,
        description="Consecutive failed logins before the account is locked",
        gt=0,
    )
    lockout_duration_minutes: int = Field(
        default=30,
        description="How long a locked account stays locked",
        gt=0,
    )

    # Email validation
    email_validation_enabled: bool = Field(
        default=False,
        description="Check email quality with the configured provider on signup",
    )
    email_validation_provider: str = Field(
        default="deliverability",
        description="Email validation provider name (deliverability, zerobounce)",
    )
    zerobounce_api_key: str | None = Field(
        default=None,
        description="ZeroBounce API key",
    )
    zerobounce_api_url: str = Field(
        default="https://api.zerobounce.net/v2",
        description="ZeroBounce API base URL",
    )
    email_validation_timeout: float = Field(
        default=10.0,
        description="Email validation provider timeout in seconds",
        gt=0,
    )

    # Mail
    mail_host: str = Field(default="localhost", description="SMTP host")
    mail_port: int = Field(default=1025, description="SMTP port", gt=0)
    mail_user: str = Field(default="", description="SMTP username")
    mail_password: str = Field(default="", description="SMTP password")
    mail_from: str = Field(default="noreply@example.com", description="Sender address")
    mail_from_name: str = Field(default="Auth API", description="Sender display name")
    mail_use_tls: bool = Field(default=False, description="Upgrade the SMTP connection with STARTTLS")
    mail_timeout: float = Field(default=30.0, description="SMTP timeout in seconds", gt=0)

    # Links embedded in emails
    app_api_url: str = Field(
        default="http://localhost:8000/api/v1",
        description="Public base URL of this API, used in verification and reset links",
    )
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Frontend base URL",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )

    # Environment
    environment: str = Field(
        default="production",
        description="Deployment environment name (e.g. production, dev, staging)",
    )

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )
    throttle_ttl_seconds: int = Field(
        default=60,
        description="Length of the sliding request-throttling window in seconds",
        gt=0,
    )
    throttle_limit: int = Field(
        default=200,
        description="Maximum API requests per window per IP address",
        gt=0,
    )
    auth_throttle_limit: int = Field(
        default=20,
        description="Maximum requests per window per IP address to each credential endpoint "
        "(login, register, password reset, resend verification)",
        gt=0,
    )
    trusted_proxy_headers: str = Field(
        default="X-Forwarded-For,X-Real-IP",
        description="Comma-separated list of HTTP headers to check for real client IP, in priority order",
    )

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        """Parse trusted proxy headers string into a list."""
        if not self.trusted_proxy_headers.strip():
            return []
        return [h.strip() for h in self.trusted_proxy_headers.split(",") if h.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
