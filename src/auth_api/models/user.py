"""User model for authentication, lockout state, and role-based access control."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auth_api.models.base import Base, TimestampMixin, UUIDMixin
from auth_api.models.role import Role, user_roles


class User(Base, UUIDMixin, TimestampMixin):
    """Account holder with credentials, verification and lockout state, and roles."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    email_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    roles: Mapped[list[Role]] = relationship(
        secondary=user_roles,
        lazy="selectin",
        order_by=Role.name,
    )

    @property
    def role_names(self) -> list[str]:
        """Names of the roles assigned to this user."""
        return [role.name for role in self.roles]

    @property
    def permission_names(self) -> list[str]:
        """Permission names granted by all roles, de-duplicated in first-seen order."""
        return list(dict.fromkeys(perm.name for role in self.roles for perm in role.permissions))
