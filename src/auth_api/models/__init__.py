"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from auth_api.models.login_attempt import LoginAttempt
from auth_api.models.role import Permission, Role, role_permissions, user_roles
from auth_api.models.token import EmailVerificationToken, PasswordResetToken, RefreshToken
from auth_api.models.user import User

__all__ = [
    "EmailVerificationToken",
    "LoginAttempt",
    "PasswordResetToken",
    "Permission",
    "RefreshToken",
    "Role",
    "User",
    "role_permissions",
    "user_roles",
]
