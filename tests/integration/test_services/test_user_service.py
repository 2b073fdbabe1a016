"""Integration tests for user administration and the role hierarchy."""

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.core.config import Settings
from auth_api.core.errors import ConflictError, DuplicateRoleError, ForbiddenError, InvalidInputError, NotFoundError
from auth_api.core.security import verify_password
from auth_api.lib.rbac import Caller
from auth_api.models.login_attempt import LoginAttempt
from auth_api.models.token import RefreshToken
from auth_api.models.user import User
from auth_api.services import user_service
from auth_api.services.lockout_service import record_successful_attempt
from auth_api.services.token_service import issue_tokens

pytestmark = pytest.mark.integration


class TestCreateUser:
    async def test_requires_create_users(self, seeded_session: AsyncSession, settings: Settings, regular_user) -> None:
        with pytest.raises(ForbiddenError):
            await user_service.create_user(
                seeded_session,
                Caller.from_user(regular_user),
                username="newbie",
                email="newbie@example.com",
                password="long-enough-pw",
                settings=settings,
            )

    async def test_manager_creates_default_role(
        self, seeded_session: AsyncSession, settings: Settings, manager_user
    ) -> None:
        user = await user_service.create_user(
            seeded_session,
            Caller.from_user(manager_user),
            username="newbie",
            email="Newbie@Example.com",
            password="long-enough-pw",
            settings=settings,
        )
        assert user.role_names == ["USER"]
        assert user.email == "newbie@example.com"
        assert not user.is_email_verified

    async def test_manager_cannot_grant_privileged_role(
        self, seeded_session: AsyncSession, settings: Settings, manager_user
    ) -> None:
        with pytest.raises(ForbiddenError, match="Only administrators"):
            await user_service.create_user(
                seeded_session,
                Caller.from_user(manager_user),
                username="boss",
                email="boss@example.com",
                password="long-enough-pw",
                settings=settings,
                role_names=["MANAGER"],
            )

    async def test_admin_creates_manager(self, seeded_session: AsyncSession, settings: Settings, admin_user) -> None:
        user = await user_service.create_user(
            seeded_session,
            Caller.from_user(admin_user),
            username="boss",
            email="boss@example.com",
            password="long-enough-pw",
            settings=settings,
            role_names=["MANAGER", "ACCOUNTANT"],
            is_email_verified=True,
        )
        assert set(user.role_names) == {"ACCOUNTANT", "MANAGER"}
        assert user.is_email_verified

    async def test_unknown_role(self, seeded_session: AsyncSession, settings: Settings, admin_user) -> None:
        with pytest.raises(NotFoundError, match="Role AUDITOR not found"):
            await user_service.create_user(
                seeded_session,
                Caller.from_user(admin_user),
                username="boss",
                email="boss@example.com",
                password="long-enough-pw",
                settings=settings,
                role_names=["AUDITOR"],
            )

    async def test_duplicate_username(self, seeded_session: AsyncSession, settings: Settings, admin_user) -> None:
        with pytest.raises(ConflictError, match="Username already exists"):
            await user_service.create_user(
                seeded_session,
                Caller.from_user(admin_user),
                username="admin",
                email="other@example.com",
                password="long-enough-pw",
                settings=settings,
            )

    async def test_duplicate_email_case_insensitive(
        self, seeded_session: AsyncSession, settings: Settings, admin_user
    ) -> None:
        with pytest.raises(ConflictError, match="Email already exists"):
            await user_service.create_user(
                seeded_session,
                Caller.from_user(admin_user),
                username="other",
                email="ADMIN@example.com",
                password="long-enough-pw",
                settings=settings,
            )

    async def test_short_password(self, seeded_session: AsyncSession, settings: Settings, admin_user) -> None:
        with pytest.raises(InvalidInputError):
            await user_service.create_user(
                seeded_session,
                Caller.from_user(admin_user),
                username="other",
                email="other@example.com",
                password="short",
                settings=settings,
            )


class TestListUsers:
    async def test_requires_read_users(self, seeded_session: AsyncSession, regular_user) -> None:
        with pytest.raises(ForbiddenError):
            await user_service.list_users(seeded_session, Caller.from_user(regular_user))

    async def test_paginates(self, seeded_session: AsyncSession, admin_user, manager_user, regular_user) -> None:
        caller = Caller.from_user(admin_user)

        first, total = await user_service.list_users(seeded_session, caller, page=1, page_size=2)
        second, _ = await user_service.list_users(seeded_session, caller, page=2, page_size=2)

        assert total == 3
        assert len(first) == 2
        assert len(second) == 1
        assert {u.username for u in first + second} == {"admin", "manager", "regular"}

    async def test_support_may_list(self, seeded_session: AsyncSession, user_factory) -> None:
        support = await user_factory("helper", "SUPPORT")
        users, total = await user_service.list_users(seeded_session, Caller.from_user(support))
        assert total == len(users) == 1


class TestGetUser:
    async def test_self(self, seeded_session: AsyncSession, regular_user) -> None:
        user = await user_service.get_user(seeded_session, Caller.from_user(regular_user), regular_user.id)
        assert user.username == "regular"

    async def test_other_forbidden_for_regular_user(
        self, seeded_session: AsyncSession, regular_user, manager_user
    ) -> None:
        with pytest.raises(ForbiddenError, match="You can only view your own profile"):
            await user_service.get_user(seeded_session, Caller.from_user(regular_user), manager_user.id)

    async def test_privileged_reads_anyone(self, seeded_session: AsyncSession, manager_user, admin_user) -> None:
        user = await user_service.get_user(seeded_session, Caller.from_user(manager_user), admin_user.id)
        assert user.id == admin_user.id

    async def test_missing(self, seeded_session: AsyncSession, admin_user) -> None:
        missing = uuid.uuid4()
        with pytest.raises(NotFoundError, match=f"User with ID {missing} not found"):
            await user_service.get_user(seeded_session, Caller.from_user(admin_user), missing)


class TestUpdateUser:
    """Partial updates under the role hierarchy."""

    async def test_self_service_fields(self, seeded_session: AsyncSession, settings: Settings, regular_user) -> None:
        user = await user_service.update_user(
            seeded_session,
            Caller.from_user(regular_user),
            regular_user.id,
            {"username": "renamed", "email": "Renamed@Example.com"},
            settings,
        )
        assert (user.username, user.email) == ("renamed", "renamed@example.com")

    async def test_self_service_rejects_other_fields(
        self, seeded_session: AsyncSession, settings: Settings, regular_user
    ) -> None:
        with pytest.raises(ForbiddenError, match="rejected: is_email_verified"):
            await user_service.update_user(
                seeded_session,
                Caller.from_user(regular_user),
                regular_user.id,
                {"username": "renamed", "is_email_verified": False},
                settings,
            )

    async def test_regular_user_cannot_update_others(
        self, seeded_session: AsyncSession, settings: Settings, regular_user, manager_user
    ) -> None:
        with pytest.raises(ForbiddenError, match="You can only update your own account"):
            await user_service.update_user(
                seeded_session, Caller.from_user(regular_user), manager_user.id, {"username": "x"}, settings
            )

    async def test_manager_updates_regular_user(
        self, seeded_session: AsyncSession, settings: Settings, manager_user, regular_user
    ) -> None:
        user = await user_service.update_user(
            seeded_session,
            Caller.from_user(manager_user),
            regular_user.id,
            {"password": "a-new-password", "is_email_verified": False},
            settings,
        )
        assert verify_password("a-new-password", user.hashed_password)
        assert not user.is_email_verified
        assert user.email_verified_at is None

    async def test_manager_cannot_update_admin(
        self, seeded_session: AsyncSession, settings: Settings, manager_user, admin_user
    ) -> None:
        with pytest.raises(ForbiddenError, match="Managers cannot update"):
            await user_service.update_user(
                seeded_session, Caller.from_user(manager_user), admin_user.id, {"username": "x"}, settings
            )

    async def test_admin_updates_manager(
        self, seeded_session: AsyncSession, settings: Settings, admin_user, manager_user
    ) -> None:
        user = await user_service.update_user(
            seeded_session, Caller.from_user(admin_user), manager_user.id, {"username": "lead"}, settings
        )
        assert user.username == "lead"

    async def test_email_taken(
        self, seeded_session: AsyncSession, settings: Settings, regular_user, manager_user
    ) -> None:
        with pytest.raises(ConflictError, match="Email already exists"):
            await user_service.update_user(
                seeded_session,
                Caller.from_user(regular_user),
                regular_user.id,
                {"email": manager_user.email},
                settings,
            )

    async def test_unchanged_values_are_not_conflicts(
        self, seeded_session: AsyncSession, settings: Settings, regular_user
    ) -> None:
        user = await user_service.update_user(
            seeded_session,
            Caller.from_user(regular_user),
            regular_user.id,
            {"username": "regular", "email": "regular@example.com"},
            settings,
        )
        assert user.username == "regular"

    async def test_weak_password(self, seeded_session: AsyncSession, settings: Settings, admin_user, regular_user) -> None:
        with pytest.raises(InvalidInputError):
            await user_service.update_user(
                seeded_session, Caller.from_user(admin_user), regular_user.id, {"password": "short"}, settings
            )

    async def test_missing(self, seeded_session: AsyncSession, settings: Settings, admin_user) -> None:
        with pytest.raises(NotFoundError):
            await user_service.update_user(
                seeded_session, Caller.from_user(admin_user), uuid.uuid4(), {"username": "x"}, settings
            )


class TestDeleteUser:
    async def test_removes_user_and_dependents(
        self, seeded_session: AsyncSession, settings: Settings, admin_user, regular_user
    ) -> None:
        target_id = regular_user.id
        await issue_tokens(seeded_session, regular_user, settings)
        await record_successful_attempt(seeded_session, target_id, "10.0.0.1")

        await user_service.delete_user(seeded_session, Caller.from_user(admin_user), target_id)

        assert await user_service.get_user_by_id(seeded_session, target_id) is None
        for model in (RefreshToken, LoginAttempt):
            count = await seeded_session.execute(
                select(func.count()).select_from(model).where(model.user_id == target_id)
            )
            assert count.scalar_one() == 0

    async def test_manager_deletes_regular_user(
        self, seeded_session: AsyncSession, manager_user, regular_user
    ) -> None:
        target_id = regular_user.id
        await user_service.delete_user(seeded_session, Caller.from_user(manager_user), target_id)
        assert await user_service.get_user_by_id(seeded_session, target_id) is None

    async def test_manager_cannot_delete_admin(self, seeded_session: AsyncSession, manager_user, admin_user) -> None:
        with pytest.raises(ForbiddenError, match="Managers cannot delete"):
            await user_service.delete_user(seeded_session, Caller.from_user(manager_user), admin_user.id)

    async def test_regular_user_cannot_delete(
        self, seeded_session: AsyncSession, regular_user, manager_user
    ) -> None:
        with pytest.raises(ForbiddenError):
            await user_service.delete_user(seeded_session, Caller.from_user(regular_user), manager_user.id)

    async def test_missing(self, seeded_session: AsyncSession, admin_user) -> None:
        with pytest.raises(NotFoundError):
            await user_service.delete_user(seeded_session, Caller.from_user(admin_user), uuid.uuid4())

    async def test_roles_survive_user_deletion(
        self, seeded_session: AsyncSession, admin_user, regular_user
    ) -> None:
        await user_service.delete_user(seeded_session, Caller.from_user(admin_user), regular_user.id)
        remaining = await seeded_session.execute(select(func.count(User.id)))
        assert remaining.scalar_one() == 1
        assert await user_service.get_role_by_name(seeded_session, "USER") is not None


class TestAssignRole:
    """Role grants under the hierarchy."""

    async def test_manager_grants_non_privileged_role(
        self, seeded_session: AsyncSession, manager_user, regular_user
    ) -> None:
        user = await user_service.assign_role(
            seeded_session, Caller.from_user(manager_user), regular_user.id, "SUPPORT"
        )
        assert set(user.role_names) == {"SUPPORT", "USER"}
        assert "READ_USERS" in user.permission_names

    async def test_manager_cannot_grant_manager(
        self, seeded_session: AsyncSession, manager_user, regular_user
    ) -> None:
        with pytest.raises(ForbiddenError, match="Only administrators"):
            await user_service.assign_role(seeded_session, Caller.from_user(manager_user), regular_user.id, "MANAGER")

    async def test_manager_cannot_grant_to_self(self, seeded_session: AsyncSession, manager_user) -> None:
        with pytest.raises(ForbiddenError, match="yourself"):
            await user_service.assign_role(seeded_session, Caller.from_user(manager_user), manager_user.id, "SUPPORT")

    async def test_manager_cannot_grant_to_admin(
        self, seeded_session: AsyncSession, manager_user, admin_user
    ) -> None:
        with pytest.raises(ForbiddenError, match="Managers cannot"):
            await user_service.assign_role(seeded_session, Caller.from_user(manager_user), admin_user.id, "SUPPORT")

    async def test_admin_grants_admin(self, seeded_session: AsyncSession, admin_user, regular_user) -> None:
        user = await user_service.assign_role(seeded_session, Caller.from_user(admin_user), regular_user.id, "ADMIN")
        assert "ADMIN" in user.role_names

    async def test_duplicate(self, seeded_session: AsyncSession, admin_user, regular_user) -> None:
        with pytest.raises(DuplicateRoleError, match="User already has the USER role"):
            await user_service.assign_role(seeded_session, Caller.from_user(admin_user), regular_user.id, "USER")

    async def test_unknown_role(self, seeded_session: AsyncSession, admin_user, regular_user) -> None:
        with pytest.raises(NotFoundError, match="Role AUDITOR not found"):
            await user_service.assign_role(seeded_session, Caller.from_user(admin_user), regular_user.id, "AUDITOR")

    async def test_unknown_user(self, seeded_session: AsyncSession, admin_user) -> None:
        with pytest.raises(NotFoundError):
            await user_service.assign_role(seeded_session, Caller.from_user(admin_user), uuid.uuid4(), "SUPPORT")
