"""Seed the predefined roles and permissions."""

import asyncio

import typer


def seed() -> None:
    """Create the predefined permissions and roles that are missing (idempotent)."""
    asyncio.run(_seed())


async def _seed() -> None:
    from auth_api.core.config import get_settings
    from auth_api.core.database import dispose_engine, init_engine, session_scope
    from auth_api.services.rbac_service import seed_rbac

    settings = get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)

    try:
        async with session_scope() as session:
            report = await seed_rbac(session)
    finally:
        await dispose_engine()

    if not report.permissions_created and not report.roles_created:
        typer.echo("RBAC catalogue already up to date")
        return
    if report.permissions_created:
        typer.echo(f"Created permissions: {', '.join(report.permissions_created)}")
    if report.roles_created:
        typer.echo(f"Created roles: {', '.join(report.roles_created)}")
