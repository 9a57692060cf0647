"""
Module dependency graph and default role grants.

A module may only be enabled for a school once every module it depends on is
active there, and may not be disabled while a module depending on it is
still active. The adjacency map is validated once at import time.
"""
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from app.core.exceptions import ModuleDependencyCycle
from app.features.permissions.catalog import ModuleKey, RoleName


MODULE_DEPENDENCIES: Mapping[ModuleKey, frozenset[ModuleKey]] = MappingProxyType({
    ModuleKey.STUDENTS: frozenset(),
    ModuleKey.PROJECTIONS: frozenset(),
    ModuleKey.PACES: frozenset(),
    ModuleKey.MONTHLY_ASSIGNMENTS: frozenset({ModuleKey.PROJECTIONS}),
    ModuleKey.REPORT_CARDS: frozenset({ModuleKey.PROJECTIONS}),
    ModuleKey.GROUPS: frozenset(),
    ModuleKey.TEACHERS: frozenset(),
    ModuleKey.SCHOOL_ADMIN: frozenset(),
    ModuleKey.SCHOOLS: frozenset(),
    ModuleKey.USERS: frozenset(),
    ModuleKey.CONFIGURATION: frozenset(),
    ModuleKey.BILLING: frozenset(),
})

_ALL_SCHOOL_ROLES = (RoleName.SCHOOL_ADMIN, RoleName.TEACHER, RoleName.PARENT, RoleName.STUDENT)
_STAFF_ROLES = (RoleName.SCHOOL_ADMIN, RoleName.TEACHER)

# Roles granted a module when it is enabled for a school
DEFAULT_MODULE_ROLES: Mapping[ModuleKey, tuple[RoleName, ...]] = MappingProxyType({
    ModuleKey.STUDENTS: _ALL_SCHOOL_ROLES,
    ModuleKey.PROJECTIONS: _ALL_SCHOOL_ROLES,
    ModuleKey.PACES: _ALL_SCHOOL_ROLES,
    ModuleKey.MONTHLY_ASSIGNMENTS: _STAFF_ROLES,
    ModuleKey.REPORT_CARDS: _ALL_SCHOOL_ROLES,
    ModuleKey.GROUPS: _STAFF_ROLES,
    ModuleKey.TEACHERS: (RoleName.SCHOOL_ADMIN,),
    ModuleKey.SCHOOL_ADMIN: _STAFF_ROLES,
    ModuleKey.SCHOOLS: (RoleName.SUPERADMIN,),
    ModuleKey.USERS: (RoleName.SUPERADMIN,),
    ModuleKey.CONFIGURATION: (RoleName.SUPERADMIN,),
    ModuleKey.BILLING: (RoleName.SCHOOL_ADMIN,),
})

FALLBACK_MODULE_ROLES: tuple[RoleName, ...] = (RoleName.SCHOOL_ADMIN,)


class ModuleDependencyGraph:
    """
    Read-only module -> required modules map.

    Keys are plain strings so rows in the modules table whose key is not a
    ModuleKey still resolve (to no dependencies).
    """

    def __init__(self, dependencies: Mapping[ModuleKey, Iterable[ModuleKey]]):
        adjacency = {
            str(module.value): tuple(sorted(dep.value for dep in deps))
            for module, deps in dependencies.items()
        }
        for module, deps in adjacency.items():
            for dep in deps:
                if dep not in adjacency:
                    raise ValueError(f"Module '{module}' depends on unknown module '{dep}'")
        self._adjacency = MappingProxyType(adjacency)
        self._check_acyclic()

    def _check_acyclic(self) -> None:
        # Iterative DFS; GRAY nodes are on the current path
        white, gray, black = 0, 1, 2
        state = dict.fromkeys(self._adjacency, white)
        for start in self._adjacency:
            if state[start] != white:
                continue
            path = [start]
            stack = [iter(self._adjacency[start])]
            state[start] = gray
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    state[path.pop()] = black
                    stack.pop()
                    continue
                if state[nxt] == gray:
                    cycle = path[path.index(nxt):] + [nxt]
                    raise ModuleDependencyCycle(cycle)
                if state[nxt] == white:
                    state[nxt] = gray
                    path.append(nxt)
                    stack.append(iter(self._adjacency[nxt]))

    def dependencies_of(self, module_key: str) -> tuple[str, ...]:
        return self._adjacency.get(module_key, ())

    def dependents_of(self, module_key: str) -> tuple[str, ...]:
        """Modules that list module_key as a direct dependency."""
        return tuple(sorted(
            module for module, deps in self._adjacency.items() if module_key in deps
        ))

    def modules(self) -> tuple[str, ...]:
        return tuple(self._adjacency)


def default_roles_for(module_key: str) -> tuple[RoleName, ...]:
    parsed: Optional[ModuleKey] = ModuleKey.parse(module_key)
    if parsed is None:
        return FALLBACK_MODULE_ROLES
    return DEFAULT_MODULE_ROLES.get(parsed, FALLBACK_MODULE_ROLES)


DEPENDENCY_GRAPH = ModuleDependencyGraph(MODULE_DEPENDENCIES)
