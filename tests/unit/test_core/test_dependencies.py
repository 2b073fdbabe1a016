"""Tests for FastAPI dependency injection module."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from auth_api.core.config import Settings
from auth_api.core.dependencies import get_caller, get_current_user, require_permission, require_role
from auth_api.core.security import create_access_token, create_refresh_token
from auth_api.lib.rbac import Caller


def _caller(roles: set[str], permissions: set[str]) -> Caller:
    return Caller(id=uuid.uuid4(), roles=frozenset(roles), permissions=frozenset(permissions))


def _access_token(settings: Settings, subject: str) -> str:
    return create_access_token(
        subject,
        settings.jwt_access_secret,
        email="a@example.com",
        username="alice",
        roles=["USER"],
        permissions=["READ_OWN_DATA"],
    )


class TestRequirePermission:
    """Tests for require_permission factory."""

    async def test_holder_passes(self) -> None:
        checker = require_permission("READ_USERS")
        caller = _caller({"SUPPORT"}, {"READ_USERS", "READ_OWN_DATA"})
        assert await checker(caller=caller) is caller

    async def test_any_of_several(self) -> None:
        checker = require_permission("DELETE_USERS", "READ_USERS")
        caller = _caller({"SUPPORT"}, {"READ_USERS"})
        assert await checker(caller=caller) is caller

    async def test_missing_permission_raises_403(self) -> None:
        checker = require_permission("CREATE_USERS")
        with pytest.raises(HTTPException) as exc_info:
            await checker(caller=_caller({"USER"}, {"READ_OWN_DATA"}))
        assert exc_info.value.status_code == 403
        assert "CREATE_USERS" in str(exc_info.value.detail)


class TestRequireRole:
    """Tests for require_role factory."""

    async def test_admin_role_passes(self) -> None:
        caller = _caller({"ADMIN"}, set())
        assert await require_role("ADMIN")(caller=caller) is caller

    async def test_insufficient_role_raises_403(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await require_role("ADMIN")(caller=_caller({"MANAGER"}, {"READ_USERS"}))
        assert exc_info.value.status_code == 403
        assert "ADMIN" in str(exc_info.value.detail)


class TestGetCurrentUser:
    """Tests for bearer token resolution."""

    async def test_valid_token_returns_user(self, settings: Settings) -> None:
        user_id = uuid.uuid4()
        user = MagicMock()
        session = AsyncMock()
        session.get.return_value = user

        result = await get_current_user(_access_token(settings, str(user_id)), session, settings)

        assert result is user
        assert session.get.await_args.args[1] == user_id

    async def test_refresh_token_rejected(self, settings: Settings) -> None:
        """A refresh token cannot be used as a bearer token, even signed with the access secret."""
        token = create_refresh_token(str(uuid.uuid4()), settings.jwt_access_secret)
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(token, AsyncMock(), settings)
        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    async def test_garbage_token_rejected(self, settings: Settings) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("not-a-jwt", AsyncMock(), settings)
        assert exc_info.value.status_code == 401

    async def test_non_uuid_subject_rejected(self, settings: Settings) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_access_token(settings, "alice"), AsyncMock(), settings)
        assert exc_info.value.status_code == 401

    async def test_deleted_user_rejected(self, settings: Settings) -> None:
        session = AsyncMock()
        session.get.return_value = None
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(_access_token(settings, str(uuid.uuid4())), session, settings)
        assert exc_info.value.status_code == 401


class TestGetCaller:
    def test_builds_caller_from_user(self) -> None:
        user = MagicMock()
        user.id = uuid.uuid4()
        user.role_names = ["MANAGER"]
        user.permission_names = ["READ_USERS", "CREATE_USERS"]

        caller = get_caller(user)

        assert caller.id == user.id
        assert caller.roles == frozenset({"MANAGER"})
        assert caller.permissions == frozenset({"READ_USERS", "CREATE_USERS"})
        assert caller.is_privileged
        assert not caller.is_admin
