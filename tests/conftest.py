"""
Pytest configuration and fixtures.

Each test gets its own SQLite file with the schema created, the system roles
and module catalog seeded, and one school. Factories create users and
students on top of that.
"""

import os

# Set test environment before importing app modules
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["LOG_LEVEL"] = "DEBUG"

from types import SimpleNamespace
from typing import AsyncGenerator, Iterable, Optional

import jwt
import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import build_engine, init_db
from app.features.modules.cache import ModuleMetadataCache
from app.features.modules.lifecycle import ModuleLifecycleManager
from app.features.permissions.access import AccessControlEngine
from app.features.permissions.directory import SqlDirectory
from app.features.permissions.profile import AccessProfileBuilder
from app.features.schools.models import School, Student
from app.features.users.models import User, user_roles, user_students
from scripts.seed_access import seed_modules, seed_roles


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture
async def engine(tmp_path):
    """Async engine on a throwaway SQLite file with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded(db: AsyncSession) -> SimpleNamespace:
    """System roles and module catalog."""
    roles = await seed_roles(db)
    modules = await seed_modules(db)
    return SimpleNamespace(roles=roles, modules=modules)


@pytest.fixture
async def school(db: AsyncSession, seeded) -> School:
    school = School(name="Test School")
    db.add(school)
    await db.commit()
    return school


@pytest.fixture
async def other_school(db: AsyncSession, seeded) -> School:
    school = School(name="Other School")
    db.add(school)
    await db.commit()
    return school


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture
def make_user(db: AsyncSession, seeded, school: School):
    """Create a user holding the given system roles."""
    counter = {"n": 0}

    async def _make(
        *role_names: str,
        linked_student_ids: Iterable[str] = (),
        school_id: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            school_id=school_id or school.id,
            is_active=is_active,
        )
        db.add(user)
        await db.flush()
        for role_name in role_names:
            await db.execute(
                insert(user_roles).values(user_id=user.id, role_id=seeded.roles[role_name].id)
            )
        for student_id in linked_student_ids:
            await db.execute(
                insert(user_students).values(user_id=user.id, student_id=student_id)
            )
        await db.commit()
        return user

    return _make


@pytest.fixture
def make_student(db: AsyncSession, school: School):
    """Create a student row, optionally owned by a login account."""
    async def _make(first_name: str = "Ana", user_id: Optional[str] = None) -> Student:
        student = Student(school_id=school.id, first_name=first_name, last_name="Test", user_id=user_id)
        db.add(student)
        await db.commit()
        return student

    return _make


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def directory(db: AsyncSession) -> SqlDirectory:
    return SqlDirectory(db)


@pytest.fixture
def access(directory: SqlDirectory) -> AccessControlEngine:
    return AccessControlEngine(directory)


@pytest.fixture
def module_cache() -> ModuleMetadataCache:
    return ModuleMetadataCache(max_size=32, ttl=60)


@pytest.fixture
def profiles(directory: SqlDirectory, module_cache: ModuleMetadataCache) -> AccessProfileBuilder:
    return AccessProfileBuilder(directory, cache=module_cache)


@pytest.fixture
def lifecycle(directory: SqlDirectory) -> ModuleLifecycleManager:
    return ModuleLifecycleManager(directory)


@pytest.fixture
def enable(lifecycle: ModuleLifecycleManager, seeded, school: School, db: AsyncSession):
    """Enable modules by key for the test school, in order."""
    async def _enable(*module_keys: str, school_id: Optional[str] = None) -> None:
        for key in module_keys:
            await lifecycle.enable_module(school_id or school.id, seeded.modules[key].id)
        await db.commit()

    return _enable


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, "test-secret", algorithm="HS256")


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user.id)}"}

    return _headers
