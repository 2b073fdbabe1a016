"""User administration Pydantic v2 schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from auth_api.schemas.common import PaginationMeta


class UserCreateRequest(BaseModel):
    """Request to create a new user on behalf of an administrator."""

    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    roles: list[str] = Field(default_factory=list, description="Role names to assign; defaults to USER")
    is_email_verified: bool = False


class UserUpdateRequest(BaseModel):
    """Request to partially update an existing user (all fields optional).

    Only fields that are explicitly set are applied. Callers without an
    administrative role may only send ``username`` and ``email``.
    """

    username: str | None = Field(default=None, min_length=3, max_length=50)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=128)
    is_email_verified: bool | None = None


class UserResponse(BaseModel):
    """User information response."""

    id: UUID
    username: str
    email: str
    is_email_verified: bool
    email_verified_at: datetime | None = None
    is_locked: bool
    locked_until: datetime | None = None
    failed_login_attempts: int
    roles: list[str] = Field(validation_alias="role_names")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class PaginatedUserResponse(BaseModel):
    """Paginated list of users."""

    items: list[UserResponse]
    pagination: PaginationMeta
