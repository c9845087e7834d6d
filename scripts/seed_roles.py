"""
Seed script to populate default roles, the first admin user and a service type.

Run this script after database initialization to create:
- Default roles with one (capability, scope) pair per module
- An initial super admin user
- A default service type

Usage:
    uv run python -m scripts.seed_roles admin@example.com
"""
import asyncio
import sys
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.catalog import AccessScope, CapabilityLevel, Module
from app.features.permissions.engine import ModulePermission
from app.features.permissions.models import Role
from app.features.service_types.models import ServiceType
from app.features.users.auth import create_access_token
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

VIEW, UPDATE, ALL = CapabilityLevel.VIEW, CapabilityLevel.UPDATE, CapabilityLevel.ALL
NONE, PARTIAL = AccessScope.NONE, AccessScope.PARTIAL


def _uniform(capability: CapabilityLevel, scope: AccessScope) -> dict[Module, ModulePermission]:
    return {module: ModulePermission(capability, scope) for module in Module}


DEFAULT_ROLES = {
    "super_admin": {
        "description": "Super administrator with full system access",
        "is_external": False,
        "permissions": _uniform(ALL, AccessScope.ALL),
    },
    "manager": {
        "description": "Manager with partial access to portfolios and properties",
        "is_external": False,
        "permissions": {
            **_uniform(VIEW, NONE),
            Module.PORTFOLIO: ModulePermission(UPDATE, PARTIAL),
            Module.PROPERTY: ModulePermission(UPDATE, PARTIAL),
            Module.BANK_DETAILS: ModulePermission(VIEW, PARTIAL),
            Module.AUDIT: ModulePermission(VIEW, AccessScope.ALL),
        },
    },
    "viewer": {
        "description": "Viewer with read-only access to assigned resources",
        "is_external": True,
        "permissions": {
            **_uniform(VIEW, NONE),
            Module.PORTFOLIO: ModulePermission(VIEW, PARTIAL),
            Module.PROPERTY: ModulePermission(VIEW, PARTIAL),
        },
    },
}

DEFAULT_SERVICE_TYPES = ["Hotel Management"]


async def seed_roles(db: AsyncSession) -> dict[str, Role]:
    """
    Create default roles.

    Returns:
        Dictionary mapping role names to Role objects
    """
    log.info("Creating default roles...")
    roles = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        existing = await db.scalar(select(Role).where(Role.name == role_name))
        if existing:
            log.debug(f"Role '{role_name}' already exists, skipping")
            roles[role_name] = existing
            continue

        role = Role(
            name=role_name,
            description=role_config["description"],
            is_external=role_config["is_external"],
            permissions=[],
        )
        role.set_permissions(role_config["permissions"])
        db.add(role)
        roles[role_name] = role
        log.info(f"Created role '{role_name}'")

    await db.commit()
    return roles


async def seed_admin(db: AsyncSession, email: str, role: Role) -> User:
    """Create the first super admin unless a user with `email` exists."""
    user = await db.scalar(select(User).where(User.email == email))
    if user:
        log.debug(f"User '{email}' already exists, skipping")
        return user
    user = User(email=email, name="Admin User", role_id=role.id)
    db.add(user)
    await db.commit()
    log.info(f"Created admin user '{email}'")
    return user


async def seed_service_types(db: AsyncSession) -> None:
    for order, type_name in enumerate(DEFAULT_SERVICE_TYPES):
        if await db.scalar(select(ServiceType).where(ServiceType.type == type_name)):
            continue
        db.add(ServiceType(type=type_name, order=order))
        log.info(f"Created service type '{type_name}'")
    await db.commit()


async def main(admin_email: str):
    """Main function to seed roles and the first admin."""
    log.info("Starting role seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            roles = await seed_roles(db)
            admin = await seed_admin(db, admin_email, roles["super_admin"])
            await seed_service_types(db)

            log.info("Role seeding completed successfully!")
            log.info("")
            log.info("Default roles created:")
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {role_config['description']}")
            log.info("")
            log.info(f"Admin token for {admin.email}: {create_access_token(admin.id)}")

        except Exception as e:
            log.error(f"Error seeding roles: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "admin@example.com"))
