"""
Seed script to populate system roles and the module catalog.

Run this script after database initialization to create:
- The five system roles (not bound to any school)
- One catalog row per module key

Usage:
    uv run python -m scripts.seed_access
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.modules.models import Module
from app.features.permissions.catalog import ModuleKey, RoleName
from app.features.permissions.models import Role
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_ROLES = {
    RoleName.SUPERADMIN: ("Super Administrator", "Operates all schools"),
    RoleName.SCHOOL_ADMIN: ("School Administrator", "Administers one school"),
    RoleName.TEACHER: ("Teacher", "Teaches students of one school"),
    RoleName.PARENT: ("Parent", "Guardian of one or more students"),
    RoleName.STUDENT: ("Student", "Enrolled student"),
}


DEFAULT_MODULES = [
    # (key, name, description)
    (ModuleKey.STUDENTS, "Students", "Student personal and academic information"),
    (ModuleKey.PROJECTIONS, "Projections", "Academic projections"),
    (ModuleKey.PACES, "PACEs", "PACE catalog"),
    (ModuleKey.MONTHLY_ASSIGNMENTS, "Monthly Assignments", "Monthly assignments and grades"),
    (ModuleKey.REPORT_CARDS, "Report Cards", "Report cards per quarter"),
    (ModuleKey.GROUPS, "Groups", "Teacher-student assignments per school year"),
    (ModuleKey.TEACHERS, "Teachers", "Teacher management"),
    (ModuleKey.SCHOOL_ADMIN, "School Administration", "School info and school years"),
    (ModuleKey.USERS, "Users", "System users"),
    (ModuleKey.SCHOOLS, "Schools", "School management"),
    (ModuleKey.CONFIGURATION, "Configuration", "Platform configuration"),
    (ModuleKey.BILLING, "Billing", "Tuition and billing"),
]


async def seed_roles(db: AsyncSession) -> dict[str, Role]:
    """
    Create the system roles.

    Returns:
        Dictionary mapping role names to Role objects
    """
    log.info("Creating system roles...")
    roles_map = {}

    for role_name, (display_name, description) in DEFAULT_ROLES.items():
        stmt = select(Role).where(Role.name == role_name.value, Role.school_id.is_(None))
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Role '{role_name.value}' already exists, skipping")
            roles_map[role_name.value] = existing
            continue

        role = Role(name=role_name.value, display_name=display_name, description=description)
        db.add(role)
        roles_map[role_name.value] = role
        log.info(f"Created role: {role_name.value}")

    await db.commit()
    return roles_map


async def seed_modules(db: AsyncSession) -> dict[str, Module]:
    """
    Create the module catalog.

    Returns:
        Dictionary mapping module keys to Module objects
    """
    log.info("Creating module catalog...")
    modules_map = {}

    for display_order, (key, name, description) in enumerate(DEFAULT_MODULES, start=1):
        stmt = select(Module).where(Module.key == key.value)
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Module '{key.value}' already exists, skipping")
            modules_map[key.value] = existing
            continue

        module = Module(key=key.value, name=name, description=description, display_order=display_order)
        db.add(module)
        modules_map[key.value] = module
        log.info(f"Created module: {key.value}")

    await db.commit()
    log.info(f"Module catalog has {len(modules_map)} modules")
    return modules_map


async def main():
    """Main function to seed roles and modules."""
    log.info("Starting access seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            await seed_roles(db)
            await seed_modules(db)
            log.info("Access seeding completed successfully!")
        except Exception as e:
            log.error(f"Error seeding access data: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
