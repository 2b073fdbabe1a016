"""User administration API endpoints.

POST /users, GET /users, GET /users/{id}, PATCH /users/{id},
DELETE /users/{id}, POST /users/{id}/roles/{role}, POST /users/{id}/unlock.
"""

import math
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings, get_settings
from auth_api.core.dependencies import (
    get_async_session,
    get_caller,
    get_mail_dispatcher,
    require_permission,
    require_role,
)
from auth_api.core.errors import NotFoundError
from auth_api.lib.mailer import MailDispatcher
from auth_api.lib.rbac import Caller, PermissionName, RoleName
from auth_api.schemas.common import MessageResponse, PaginationMeta, PaginationParams
from auth_api.schemas.user import PaginatedUserResponse, UserCreateRequest, UserResponse, UserUpdateRequest
from auth_api.services import lockout_service, user_service, verification_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    request: UserCreateRequest,
    caller: Annotated[Caller, Depends(require_permission(PermissionName.CREATE_USERS.value))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[MailDispatcher, Depends(get_mail_dispatcher)],
) -> UserResponse:
    """Create a user (requires CREATE_USERS). Unverified users are sent a verification email."""
    user = await user_service.create_user(
        session,
        caller,
        username=request.username,
        email=request.email,
        password=request.password,
        settings=settings,
        role_names=request.roles,
        is_email_verified=request.is_email_verified,
    )
    if not user.is_email_verified:
        await verification_service.send_verification_email(session, user.id, settings, mailer)
    return UserResponse.model_validate(user)


@router.get("", response_model=PaginatedUserResponse)
async def list_users(
    caller: Annotated[Caller, Depends(require_permission(PermissionName.READ_USERS.value))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    pagination: Annotated[PaginationParams, Depends()],
) -> PaginatedUserResponse:
    """List users (requires READ_USERS)."""
    users, total = await user_service.list_users(session, caller, pagination.page, pagination.page_size)
    return PaginatedUserResponse(
        items=[UserResponse.model_validate(u) for u in users],
        pagination=PaginationMeta(
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=max(1, math.ceil(total / pagination.page_size)),
        ),
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: uuid.UUID,
    caller: Annotated[Caller, Depends(get_caller)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> UserResponse:
    """Get a user by ID (own profile, privileged role, or READ_USERS)."""
    user = await user_service.get_user(session, caller, user_id)
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    request: UserUpdateRequest,
    caller: Annotated[Caller, Depends(get_caller)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UserResponse:
    """Partially update a user, subject to the role hierarchy."""
    updates = request.model_dump(exclude_unset=True)
    user = await user_service.update_user(session, caller, user_id, updates, settings)
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: uuid.UUID,
    caller: Annotated[Caller, Depends(get_caller)],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Delete a user and everything they own (ADMIN, MANAGER, or DELETE_USERS)."""
    await user_service.delete_user(session, caller, user_id)
    return MessageResponse(message=f"User with ID {user_id} successfully deleted")


@router.post("/{user_id}/roles/{role_name}", response_model=UserResponse)
async def assign_role(
    user_id: uuid.UUID,
    role_name: str,
    caller: Annotated[Caller, Depends(require_role(RoleName.ADMIN.value))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> UserResponse:
    """Grant a role to a user (ADMIN only)."""
    user = await user_service.assign_role(session, caller, user_id, role_name.upper())
    return UserResponse.model_validate(user)


@router.post("/{user_id}/unlock", response_model=MessageResponse)
async def unlock_user(
    user_id: uuid.UUID,
    _caller: Annotated[Caller, Depends(require_role(RoleName.ADMIN.value))],
    session: Annotated[AsyncSession, Depends(get_async_session)],
) -> MessageResponse:
    """Clear a user's lockout and failed-attempt counter (ADMIN only)."""
    if await user_service.get_user_by_id(session, user_id) is None:
        msg = f"User with ID {user_id} not found"
        raise NotFoundError(msg)
    await lockout_service.unlock_account(session, user_id)
    return MessageResponse(message="Account unlocked")
