"""
Static permission catalog.

Maps every permission key to the module it belongs to and the scope it is
checked at, and every system role to the permission keys it is entitled to.
The tables are built once at import time and exposed read-only.

Scopes:
- global: role entitlement only (cross-school operations)
- school: role entitlement + module active for the school + role granted the module
- own:    as school, plus the resource must belong to the caller
"""
import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional


class Scope(str, enum.Enum):
    GLOBAL = "global"
    SCHOOL = "school"
    OWN = "own"


class RoleName(str, enum.Enum):
    SUPERADMIN = "SUPERADMIN"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    TEACHER = "TEACHER"
    PARENT = "PARENT"
    STUDENT = "STUDENT"

    @classmethod
    def parse(cls, name: str) -> Optional["RoleName"]:
        try:
            return cls(name)
        except ValueError:
            return None


class ModuleKey(str, enum.Enum):
    """Every licensable module. Catalog rows in the modules table use these keys."""
    STUDENTS = "students"
    PROJECTIONS = "projections"
    PACES = "paces"
    MONTHLY_ASSIGNMENTS = "monthlyAssignments"
    REPORT_CARDS = "reportCards"
    GROUPS = "groups"
    TEACHERS = "teachers"
    SCHOOL_ADMIN = "school_admin"
    SCHOOLS = "schools"
    USERS = "users"
    CONFIGURATION = "configuration"
    BILLING = "billing"

    @classmethod
    def parse(cls, key: str) -> Optional["ModuleKey"]:
        try:
            return cls(key)
        except ValueError:
            return None


@dataclass(frozen=True)
class PermissionDefinition:
    key: str
    module: ModuleKey
    scope: Scope

    @property
    def action(self) -> str:
        """Action segment of the key, e.g. "readOwn" for "students.readOwn"."""
        return self.key.rsplit(".", 1)[-1]


def _define(module: ModuleKey, scope: Scope, *keys: str) -> list[PermissionDefinition]:
    return [PermissionDefinition(key, module, scope) for key in keys]


PERMISSION_DEFINITIONS: tuple[PermissionDefinition, ...] = tuple(
    # Students - personal and academic information
    _define(ModuleKey.STUDENTS, Scope.SCHOOL,
            "students.read", "students.create", "students.update", "students.delete")
    + _define(ModuleKey.STUDENTS, Scope.OWN, "students.readOwn")
    # Projections - academic projections
    + _define(ModuleKey.PROJECTIONS, Scope.SCHOOL,
              "projections.read", "projections.create", "projections.update", "projections.delete")
    + _define(ModuleKey.PROJECTIONS, Scope.OWN, "projections.readOwn")
    # PACE catalog (read-only)
    + _define(ModuleKey.PACES, Scope.SCHOOL, "paces.read")
    + _define(ModuleKey.MONTHLY_ASSIGNMENTS, Scope.SCHOOL,
              "monthlyAssignment.read", "monthlyAssignment.create",
              "monthlyAssignment.update", "monthlyAssignment.delete")
    + _define(ModuleKey.REPORT_CARDS, Scope.SCHOOL,
              "reportCards.read", "reportCards.create", "reportCards.update")
    + _define(ModuleKey.REPORT_CARDS, Scope.OWN, "reportCards.readOwn")
    # Groups - teacher-student assignments per school year
    + _define(ModuleKey.GROUPS, Scope.SCHOOL,
              "groups.read", "groups.create", "groups.update", "groups.delete")
    + _define(ModuleKey.TEACHERS, Scope.SCHOOL,
              "teachers.read", "teachers.create", "teachers.update", "teachers.delete")
    # School settings: info, years
    + _define(ModuleKey.SCHOOL_ADMIN, Scope.SCHOOL,
              "schoolInfo.read", "schoolInfo.update",
              "schoolYear.read", "schoolYear.create", "schoolYear.update", "schoolYear.delete")
    + _define(ModuleKey.USERS, Scope.SCHOOL,
              "users.read", "users.create", "users.update", "users.delete")
    # Cross-school management
    + _define(ModuleKey.SCHOOLS, Scope.GLOBAL,
              "schools.read", "schools.create", "schools.update", "schools.delete")
    + _define(ModuleKey.CONFIGURATION, Scope.GLOBAL,
              "configuration.read", "configuration.update")
    + _define(ModuleKey.BILLING, Scope.SCHOOL,
              "billing.read", "billing.create", "billing.update")
)


_SCHOOL_ADMIN_PERMISSIONS = (
    "students.read", "students.create", "students.update", "students.delete",
    "projections.read", "projections.create", "projections.update", "projections.delete",
    "paces.read",
    "monthlyAssignment.read", "monthlyAssignment.create",
    "monthlyAssignment.update", "monthlyAssignment.delete",
    "reportCards.read", "reportCards.create", "reportCards.update",
    "groups.read", "groups.create", "groups.update", "groups.delete",
    "teachers.read", "teachers.create", "teachers.update", "teachers.delete",
    "schoolInfo.read", "schoolInfo.update",
    "schoolYear.read", "schoolYear.create", "schoolYear.update", "schoolYear.delete",
    # Non-teacher users of the school
    "users.read", "users.create",
    # Own school only, read-only
    "schools.read",
    "billing.read", "billing.create", "billing.update",
)

_TEACHER_PERMISSIONS = (
    # No create/delete on students
    "students.read", "students.update",
    "projections.read", "projections.create", "projections.update", "projections.delete",
    "paces.read",
    "monthlyAssignment.read", "monthlyAssignment.create",
    "monthlyAssignment.update", "monthlyAssignment.delete",
    "reportCards.read",
    "groups.read",
    "schoolInfo.read", "schoolYear.read",
)

_PARENT_PERMISSIONS = (
    "students.readOwn",
    "projections.readOwn",
    "reportCards.readOwn",
    "paces.read",
)

_STUDENT_PERMISSIONS = (
    "students.readOwn",
    "projections.readOwn",
    "reportCards.readOwn",
)

ROLE_PERMISSIONS: Mapping[RoleName, tuple[str, ...]] = MappingProxyType({
    RoleName.SUPERADMIN: tuple(d.key for d in PERMISSION_DEFINITIONS),
    RoleName.SCHOOL_ADMIN: _SCHOOL_ADMIN_PERMISSIONS,
    RoleName.TEACHER: _TEACHER_PERMISSIONS,
    RoleName.PARENT: _PARENT_PERMISSIONS,
    RoleName.STUDENT: _STUDENT_PERMISSIONS,
})

# Operator view shown to SUPERADMIN in access profiles
SUPERADMIN_PROFILE_MODULES: frozenset[ModuleKey] = frozenset({
    ModuleKey.USERS,
    ModuleKey.SCHOOLS,
    ModuleKey.CONFIGURATION,
})


class PermissionCatalog:
    """
    Read-only lookup over permission definitions and role entitlements.

    Role lists may only reference defined keys; a typo fails at construction
    instead of silently denying at request time.
    """

    def __init__(
        self,
        definitions: Iterable[PermissionDefinition],
        role_permissions: Mapping[RoleName, Iterable[str]],
        superadmin_profile_modules: Iterable[ModuleKey] = (),
    ):
        by_key: dict[str, PermissionDefinition] = {}
        for definition in definitions:
            if definition.key in by_key:
                raise ValueError(f"Duplicate permission key: {definition.key}")
            by_key[definition.key] = definition
        self._definitions = MappingProxyType(by_key)

        role_lists: dict[RoleName, tuple[str, ...]] = {}
        role_sets: dict[RoleName, frozenset[str]] = {}
        for role, keys in role_permissions.items():
            keys = tuple(dict.fromkeys(keys))
            unknown = [key for key in keys if key not in by_key]
            if unknown:
                raise ValueError(f"Role {role.value} references unknown permissions: {unknown}")
            role_lists[role] = keys
            role_sets[role] = frozenset(keys)
        self._role_lists = MappingProxyType(role_lists)
        self._role_sets = MappingProxyType(role_sets)
        self._superadmin_profile_modules = frozenset(superadmin_profile_modules)

    def lookup(self, key: str) -> Optional[PermissionDefinition]:
        return self._definitions.get(key)

    def permissions_for_role(self, role: RoleName | str) -> tuple[str, ...]:
        """Permission keys the role is entitled to; unknown roles get none."""
        parsed = role if isinstance(role, RoleName) else RoleName.parse(role)
        if parsed is None:
            return ()
        return self._role_lists.get(parsed, ())

    def role_has_permission(self, role: RoleName | str, key: str) -> bool:
        parsed = role if isinstance(role, RoleName) else RoleName.parse(role)
        if parsed is None:
            return False
        return key in self._role_sets.get(parsed, frozenset())

    def keys(self) -> tuple[str, ...]:
        return tuple(self._definitions)

    def definitions(self) -> tuple[PermissionDefinition, ...]:
        return tuple(self._definitions.values())

    def modules(self) -> frozenset[ModuleKey]:
        return frozenset(d.module for d in self._definitions.values())

    @property
    def superadmin_profile_modules(self) -> frozenset[ModuleKey]:
        return self._superadmin_profile_modules


CATALOG = PermissionCatalog(PERMISSION_DEFINITIONS, ROLE_PERMISSIONS, SUPERADMIN_PROFILE_MODULES)
