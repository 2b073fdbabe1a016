"""RBAC persistence: seeding the role catalogue and role lookups."""

from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth_api.lib.rbac import PERMISSION_DESCRIPTIONS, ROLE_DESCRIPTIONS, ROLE_PERMISSIONS
from auth_api.models.role import Permission, Role


@dataclass
class SeedReport:
    """Names created by a seed run; empty lists mean everything already existed."""

    permissions_created: list[str] = field(default_factory=list)
    roles_created: list[str] = field(default_factory=list)


async def seed_rbac(session: AsyncSession) -> SeedReport:
    """Create the predefined permissions and roles that do not exist yet.

    Existing rows, including their permission bundles, are left untouched,
    so the seed can be run repeatedly.

    Args:
        session: The database session.

    Returns:
        What was created.
    """
    report = SeedReport()

    existing_perms = {p.name: p for p in (await session.execute(select(Permission))).scalars().all()}
    for name, description in PERMISSION_DESCRIPTIONS.items():
        if name.value not in existing_perms:
            permission = Permission(name=name.value, description=description)
            session.add(permission)
            existing_perms[name.value] = permission
            report.permissions_created.append(name.value)

    existing_roles = {r.name for r in (await session.execute(select(Role))).scalars().all()}
    for role_name, description in ROLE_DESCRIPTIONS.items():
        if role_name.value in existing_roles:
            continue
        role = Role(name=role_name.value, description=description)
        role.permissions = [existing_perms[p.value] for p in ROLE_PERMISSIONS[role_name]]
        session.add(role)
        report.roles_created.append(role_name.value)

    await session.commit()
    logger.info(
        f"RBAC seed: {len(report.permissions_created)} permissions, {len(report.roles_created)} roles created"
    )
    return report


async def get_role_by_name(session: AsyncSession, name: str) -> Role | None:
    """Look up a role by name (permissions eagerly loaded)."""
    result = await session.execute(select(Role).where(Role.name == name))
    return result.scalar_one_or_none()

