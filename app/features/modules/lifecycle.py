"""
Enable and disable modules for a school.

Enabling checks every dependency before writing anything, then activates the
module and seeds role grants for the module's default roles. Disabling
refuses while any dependent module is still active, then flips the
activation off and leaves grants in place so a later enable needs no
re-seeding.

Both operations run in the directory's session transaction and lock the
school row (PostgreSQL) before the check phase, so a concurrent toggle of a
dependency and its dependent in the same school cannot interleave.
"""
from dataclasses import dataclass
from typing import Optional

from app.core.exceptions import (
    DependencyNotEnabled,
    DependencyNotFound,
    DependentModuleEnabled,
    ModuleNotFound,
)
from app.features.modules.cache import ModuleMetadataCache
from app.features.modules.graph import DEPENDENCY_GRAPH, ModuleDependencyGraph, default_roles_for
from app.features.permissions.directory import Directory, ModuleRecord
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class SchoolModuleStatus:
    id: str
    key: str
    name: str
    description: Optional[str]
    display_order: int
    is_enabled: bool


class ModuleLifecycleManager:
    def __init__(
        self,
        directory: Directory,
        graph: ModuleDependencyGraph = DEPENDENCY_GRAPH,
        cache: Optional[ModuleMetadataCache] = None,
    ):
        self.directory = directory
        self.graph = graph
        self.cache = cache

    async def _get_module(self, module_id: str) -> ModuleRecord:
        module = await self.directory.get_module_by_id(module_id)
        if module is None:
            raise ModuleNotFound(module_id)
        if self.cache is not None:
            # Refresh the cached metadata with what was just read
            self.cache.put_many([module])
        return module

    async def enable_module(self, school_id: str, module_id: str) -> ModuleRecord:
        """
        Activate a module for a school.

        Raises:
            ModuleNotFound: no module with this id
            DependencyNotFound: a dependency has no catalog row
            DependencyNotEnabled: a dependency is not active for the school
        """
        module = await self._get_module(module_id)
        await self.directory.lock_school(school_id)

        for dependency_key in self.graph.dependencies_of(module.key):
            dependency = await self.directory.get_module_by_key(dependency_key)
            if dependency is None:
                raise DependencyNotFound(module.key, dependency_key)
            activation = await self.directory.get_school_module_activation(school_id, dependency.id)
            if activation is None or not activation.is_active:
                log.warning(
                    f"Refusing to enable {module.key} for school {school_id}: "
                    f"dependency {dependency_key} is not enabled"
                )
                raise DependencyNotEnabled(module.key, dependency_key)

        await self.directory.upsert_school_module_activation(school_id, module.id, True)

        granted = []
        for role_name in default_roles_for(module.key):
            role = await self.directory.find_system_role_by_name(role_name.value)
            if role is None:
                log.debug(f"System role {role_name.value} does not exist, no grant for {module.key}")
                continue
            await self.directory.upsert_role_module_grant(role.id, school_id, module.id)
            granted.append(role.name)

        log.info(f"Enabled module {module.key} for school {school_id}, granted to {granted}")
        return module

    async def disable_module(self, school_id: str, module_id: str) -> ModuleRecord:
        """
        Deactivate a module for a school. Role grants are kept.

        Raises:
            ModuleNotFound: no module with this id
            DependentModuleEnabled: a module depending on this one is still active
        """
        module = await self._get_module(module_id)
        await self.directory.lock_school(school_id)

        # The catalog is small, scan all of it for dependents
        for candidate in await self.directory.list_modules():
            if module.key not in self.graph.dependencies_of(candidate.key):
                continue
            activation = await self.directory.get_school_module_activation(school_id, candidate.id)
            if activation is not None and activation.is_active:
                log.warning(
                    f"Refusing to disable {module.key} for school {school_id}: "
                    f"dependent {candidate.key} is enabled"
                )
                raise DependentModuleEnabled(module.key, candidate.key)

        await self.directory.upsert_school_module_activation(school_id, module.id, False)
        log.info(f"Disabled module {module.key} for school {school_id}")
        return module

    async def list_school_modules(self, school_id: str) -> list[SchoolModuleStatus]:
        """All active catalog modules, flagged with the school's activation."""
        modules = await self.directory.list_modules(active_only=True)
        activations = await self.directory.list_school_module_activations(
            school_id, [m.id for m in modules]
        )
        enabled = {a.module_id for a in activations if a.is_active}
        return [
            SchoolModuleStatus(
                id=m.id,
                key=m.key,
                name=m.name,
                description=m.description,
                display_order=m.display_order,
                is_enabled=m.id in enabled,
            )
            for m in modules
        ]
