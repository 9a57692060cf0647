"""
Data access used by the access-control core.

The engine, profile builder and module lifecycle manager only talk to the
`Directory` protocol. `SqlDirectory` is the SQLAlchemy implementation bound
to one AsyncSession; every call runs inside that session's transaction.

Reads select plain columns rather than ORM entities so that rows written
through the upsert statements are never shadowed by stale objects in the
session identity map.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import generate_ulid
from app.features.modules.models import Module, SchoolModule
from app.features.permissions.catalog import RoleName
from app.features.permissions.models import Role, RoleModuleGrant
from app.features.schools.models import School, Student
from app.features.users.models import User, user_roles, user_students
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Records
# ============================================================================

@dataclass(frozen=True)
class RoleRecord:
    id: str
    name: str
    display_name: str = ""

    @property
    def role_name(self) -> Optional[RoleName]:
        return RoleName.parse(self.name)


@dataclass(frozen=True)
class UserContext:
    """Everything a decision needs about the caller. Rebuilt per request."""
    user_id: str
    school_id: str
    roles: tuple[RoleRecord, ...] = ()
    linked_student_ids: frozenset[str] = field(default_factory=frozenset)
    own_student_id: Optional[str] = None

    @property
    def role_ids(self) -> list[str]:
        return [role.id for role in self.roles]

    @property
    def is_superadmin(self) -> bool:
        return any(role.role_name is RoleName.SUPERADMIN for role in self.roles)


@dataclass(frozen=True)
class ModuleRecord:
    id: str
    key: str
    name: str
    description: Optional[str] = None
    display_order: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class ActivationRecord:
    school_id: str
    module_id: str
    is_active: bool


@dataclass(frozen=True)
class GrantRecord:
    role_id: str
    school_id: str
    module_id: str


class Directory(Protocol):
    async def get_user_context(self, user_id: str) -> Optional[UserContext]: ...

    async def get_module_by_key(self, key: str) -> Optional[ModuleRecord]: ...

    async def get_module_by_id(self, module_id: str) -> Optional[ModuleRecord]: ...

    async def list_modules(
        self, keys: Optional[Iterable[str]] = None, active_only: bool = False
    ) -> list[ModuleRecord]: ...

    async def get_school_module_activation(
        self, school_id: str, module_id: str
    ) -> Optional[ActivationRecord]: ...

    async def list_school_module_activations(
        self, school_id: str, module_ids: Iterable[str]
    ) -> list[ActivationRecord]: ...

    async def list_role_module_grants(
        self, school_id: str, module_ids: Iterable[str], role_ids: Iterable[str]
    ) -> list[GrantRecord]: ...

    async def upsert_school_module_activation(
        self, school_id: str, module_id: str, is_active: bool
    ) -> None: ...

    async def upsert_role_module_grant(self, role_id: str, school_id: str, module_id: str) -> None: ...

    async def find_system_role_by_name(self, name: str) -> Optional[RoleRecord]: ...

    async def existing_module_ids(self, module_ids: Iterable[str]) -> set[str]: ...

    async def lock_school(self, school_id: str) -> None: ...


# ============================================================================
# SQLAlchemy implementation
# ============================================================================

_MODULE_COLUMNS = (
    Module.id,
    Module.key,
    Module.name,
    Module.description,
    Module.display_order,
    Module.is_active,
)


def _module_record(row) -> ModuleRecord:
    return ModuleRecord(
        id=row.id,
        key=row.key,
        name=row.name,
        description=row.description,
        display_order=row.display_order,
        is_active=row.is_active,
    )


class SqlDirectory:
    """Directory backed by the application database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self, model):
        """Dialect insert supporting ON CONFLICT (SQLite and PostgreSQL)."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}")

    async def get_user_context(self, user_id: str) -> Optional[UserContext]:
        result = await self.db.execute(
            select(User.id, User.school_id, User.is_active).where(User.id == user_id)
        )
        user = result.first()
        if user is None or not user.is_active:
            return None

        # Catalog permissions are keyed on system role names only
        result = await self.db.execute(
            select(Role.id, Role.name, Role.display_name)
            .join(user_roles, user_roles.c.role_id == Role.id)
            .where(user_roles.c.user_id == user_id, Role.school_id.is_(None))
            .order_by(Role.name)
        )
        roles = tuple(
            RoleRecord(id=row.id, name=row.name, display_name=row.display_name)
            for row in result.all()
        )

        result = await self.db.execute(
            select(user_students.c.student_id).where(user_students.c.user_id == user_id)
        )
        linked = frozenset(result.scalars().all())

        result = await self.db.execute(select(Student.id).where(Student.user_id == user_id))
        own_student_id = result.scalars().first()

        return UserContext(
            user_id=user.id,
            school_id=user.school_id,
            roles=roles,
            linked_student_ids=linked,
            own_student_id=own_student_id,
        )

    async def get_module_by_key(self, key: str) -> Optional[ModuleRecord]:
        result = await self.db.execute(select(*_MODULE_COLUMNS).where(Module.key == key))
        row = result.first()
        return _module_record(row) if row is not None else None

    async def get_module_by_id(self, module_id: str) -> Optional[ModuleRecord]:
        result = await self.db.execute(select(*_MODULE_COLUMNS).where(Module.id == module_id))
        row = result.first()
        return _module_record(row) if row is not None else None

    async def list_modules(
        self, keys: Optional[Iterable[str]] = None, active_only: bool = False
    ) -> list[ModuleRecord]:
        stmt = select(*_MODULE_COLUMNS)
        if keys is not None:
            keys = list(keys)
            if not keys:
                return []
            stmt = stmt.where(Module.key.in_(keys))
        if active_only:
            stmt = stmt.where(Module.is_active == True)  # noqa: E712
        stmt = stmt.order_by(Module.display_order, Module.key)
        result = await self.db.execute(stmt)
        return [_module_record(row) for row in result.all()]

    async def existing_module_ids(self, module_ids: Iterable[str]) -> set[str]:
        module_ids = list(module_ids)
        if not module_ids:
            return set()
        result = await self.db.execute(select(Module.id).where(Module.id.in_(module_ids)))
        return set(result.scalars().all())

    async def get_school_module_activation(
        self, school_id: str, module_id: str
    ) -> Optional[ActivationRecord]:
        stmt = select(SchoolModule.is_active).where(
            SchoolModule.school_id == school_id,
            SchoolModule.module_id == module_id,
        )
        result = await self.db.execute(stmt)
        is_active = result.scalar_one_or_none()
        if is_active is None:
            return None
        return ActivationRecord(school_id=school_id, module_id=module_id, is_active=is_active)

    async def list_school_module_activations(
        self, school_id: str, module_ids: Iterable[str]
    ) -> list[ActivationRecord]:
        module_ids = list(module_ids)
        if not module_ids:
            return []
        result = await self.db.execute(
            select(SchoolModule.module_id, SchoolModule.is_active).where(
                SchoolModule.school_id == school_id,
                SchoolModule.module_id.in_(module_ids),
            )
        )
        return [
            ActivationRecord(school_id=school_id, module_id=row.module_id, is_active=row.is_active)
            for row in result.all()
        ]

    async def list_role_module_grants(
        self, school_id: str, module_ids: Iterable[str], role_ids: Iterable[str]
    ) -> list[GrantRecord]:
        module_ids = list(module_ids)
        role_ids = list(role_ids)
        if not module_ids or not role_ids:
            return []
        result = await self.db.execute(
            select(RoleModuleGrant.role_id, RoleModuleGrant.module_id).where(
                RoleModuleGrant.school_id == school_id,
                RoleModuleGrant.module_id.in_(module_ids),
                RoleModuleGrant.role_id.in_(role_ids),
            )
        )
        return [
            GrantRecord(role_id=row.role_id, school_id=school_id, module_id=row.module_id)
            for row in result.all()
        ]

    async def upsert_school_module_activation(
        self, school_id: str, module_id: str, is_active: bool
    ) -> None:
        stmt = self._insert(SchoolModule).values(
            id=generate_ulid(),
            school_id=school_id,
            module_id=module_id,
            is_active=is_active,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["school_id", "module_id"],
            set_={"is_active": is_active, "updated_at": func.now()},
        )
        await self.db.execute(stmt)
        log.debug(f"Activation school={school_id} module={module_id} set to {is_active}")

    async def upsert_role_module_grant(self, role_id: str, school_id: str, module_id: str) -> None:
        stmt = self._insert(RoleModuleGrant).values(
            id=generate_ulid(),
            role_id=role_id,
            school_id=school_id,
            module_id=module_id,
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=["role_id", "school_id", "module_id"],
        )
        await self.db.execute(stmt)

    async def find_system_role_by_name(self, name: str) -> Optional[RoleRecord]:
        result = await self.db.execute(
            select(Role.id, Role.name, Role.display_name).where(
                Role.name == name,
                Role.school_id.is_(None),
            )
        )
        row = result.first()
        if row is None:
            return None
        return RoleRecord(id=row.id, name=row.name, display_name=row.display_name)

    async def lock_school(self, school_id: str) -> None:
        """
        Lock the school row until the transaction ends.

        Module lifecycle changes for one school take this lock before reading
        any activation, so a dependency toggle and a dependent toggle run one
        after the other even when the activation rows do not exist yet.
        SQLite ignores FOR UPDATE.
        """
        await self.db.execute(
            select(School.id).where(School.id == school_id).with_for_update()
        )
