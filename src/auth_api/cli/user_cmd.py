"""User management CLI commands.

These run with operator privileges: no caller identity is involved, so the
role hierarchy does not apply.
"""

import asyncio
import uuid

import typer

user_app = typer.Typer()


def _init_database() -> None:
    from auth_api.core.config import get_settings
    from auth_api.core.database import init_engine

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)


def _role_names(names: list[str]) -> list[str]:
    """Upper-case role names, exiting on any that is not a predefined role."""
    from auth_api.lib.rbac import RoleName, is_valid_role

    upper = [name.upper() for name in names]
    unknown = [name for name in upper if not is_valid_role(name)]
    if unknown:
        choices = ", ".join(role.value for role in RoleName)
        typer.echo(f"Error: unknown role(s) {', '.join(unknown)} (choose from {choices})", err=True)
        raise typer.Exit(code=1)
    return upper


@user_app.command("create")
def create_user(
    username: str = typer.Option(..., prompt=True, help="Username"),
    email: str = typer.Option(..., prompt=True, help="Email address"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True, help="Password"),
    role: list[str] = typer.Option(["USER"], "--role", "-r", help="Role to assign (repeatable)"),
    verified: bool = typer.Option(True, "--verified/--unverified", help="Mark the email as already verified"),
    if_not_exists: bool = typer.Option(
        False,
        "--if-not-exists",
        help="Exit successfully if user already exists (idempotent mode)",
    ),
) -> None:
    """Create a new user."""
    roles = _role_names(role)
    asyncio.run(_create_user(username, email, password, roles, verified=verified, if_not_exists=if_not_exists))


async def _create_user(
    username: str,
    email: str,
    password: str,
    roles: list[str],
    *,
    verified: bool = True,
    if_not_exists: bool = False,
) -> None:
    """Async implementation of user creation."""
    from auth_api.core.config import get_settings
    from auth_api.core.database import dispose_engine, session_scope
    from auth_api.core.errors import AuthError, ConflictError
    from auth_api.services.user_service import create_account

    settings = get_settings()
    _init_database()

    try:
        async with session_scope() as session:
            user = await create_account(
                session,
                username=username,
                email=email,
                password=password,
                settings=settings,
                role_names=roles,
                is_email_verified=verified,
            )
            typer.echo(f"User '{user.username}' created with roles: {', '.join(user.role_names) or '-'}")
    except ConflictError as e:
        if if_not_exists:
            typer.echo(f"User '{username}' already exists, skipping (--if-not-exists)")
            return
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    except AuthError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        await dispose_engine()


@user_app.command("list")
def list_users(
    page: int = typer.Option(1, "--page", min=1, help="Page number"),
    page_size: int = typer.Option(50, "--page-size", min=1, max=500, help="Users per page"),
) -> None:
    """List users."""
    asyncio.run(_list_users(page, page_size))


async def _list_users(page: int, page_size: int) -> None:
    """Async implementation of user listing."""
    from auth_api.core.database import dispose_engine, session_scope
    from auth_api.services.user_service import page_users

    _init_database()

    try:
        async with session_scope() as session:
            users, total = await page_users(session, page, page_size)
            typer.echo(f"{'Username':<20} {'Email':<30} {'Roles':<20} {'Verified':<9} {'Locked':<7}")
            typer.echo("-" * 90)
            for user in users:
                roles = ",".join(user.role_names) or "-"
                typer.echo(
                    f"{user.username:<20} {user.email:<30} {roles:<20} "
                    f"{user.is_email_verified!s:<9} {user.is_locked!s:<7}"
                )
            typer.echo(f"\nTotal: {total}")
    finally:
        await dispose_engine()


@user_app.command("unlock")
def unlock_user(
    email: str = typer.Argument(..., help="Email of the account to unlock"),
) -> None:
    """Clear an account's lockout and failed-attempt counter."""
    asyncio.run(_unlock_user(email))


async def _unlock_user(email: str) -> None:
    from auth_api.core.database import dispose_engine, session_scope
    from auth_api.services.lockout_service import unlock_account
    from auth_api.services.user_service import get_user_by_email

    _init_database()

    try:
        async with session_scope() as session:
            user = await get_user_by_email(session, email)
            if user is None:
                typer.echo(f"Error: no user with email {email}", err=True)
                raise typer.Exit(code=1)
            user_id: uuid.UUID = user.id
            await unlock_account(session, user_id)
            typer.echo(f"Account '{user.username}' unlocked")
    finally:
        await dispose_engine()


@user_app.command("assign-role")
def assign_role(
    email: str = typer.Argument(..., help="Email of the account"),
    role: str = typer.Argument(..., help="Role name (e.g. MANAGER)"),
) -> None:
    """Grant a role to a user."""
    asyncio.run(_assign_role(email, _role_names([role])[0]))


async def _assign_role(email: str, role_name: str) -> None:
    from auth_api.core.database import dispose_engine, session_scope
    from auth_api.core.errors import DuplicateRoleError
    from auth_api.services.rbac_service import get_role_by_name
    from auth_api.services.user_service import get_user_by_email, grant_role

    _init_database()

    try:
        async with session_scope() as session:
            user = await get_user_by_email(session, email)
            if user is None:
                typer.echo(f"Error: no user with email {email}", err=True)
                raise typer.Exit(code=1)
            role = await get_role_by_name(session, role_name)
            if role is None:
                typer.echo(f"Error: role {role_name} not found (run 'auth-api seed' first)", err=True)
                raise typer.Exit(code=1)
            try:
                await grant_role(session, user, role)
            except DuplicateRoleError as e:
                typer.echo(f"Error: {e.message}", err=True)
                raise typer.Exit(code=1) from e
            typer.echo(f"Role {role_name} assigned to '{user.username}'")
    finally:
        await dispose_engine()
