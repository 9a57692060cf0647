"""
Bulk "what can this user do" computation.

Answers the same question as AccessControlEngine.check() for every permission
of the user's roles at once, with a fixed number of queries: one for module
rows (served from the metadata cache when warm), one for the school's
activations and one for the role grants.

SUPERADMIN is authorized for everything by check(), but its profile is an
operator view restricted to SUPERADMIN_PROFILE_MODULES.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional

from app.features.modules.cache import ModuleMetadataCache
from app.features.permissions.catalog import CATALOG, PermissionCatalog, PermissionDefinition, RoleName, Scope
from app.features.permissions.directory import Directory, ModuleRecord, RoleRecord
from app.utils import get_logger


log = get_logger(__name__)


@dataclass
class ModuleAccess:
    id: str
    key: str
    name: str
    description: Optional[str]
    display_order: int
    actions: list[str] = field(default_factory=list)


@dataclass
class AccessProfile:
    permissions: list[str] = field(default_factory=list)
    module_actions: dict[str, list[str]] = field(default_factory=dict)
    modules: list[ModuleAccess] = field(default_factory=list)


class AccessProfileBuilder:
    def __init__(
        self,
        directory: Directory,
        catalog: PermissionCatalog = CATALOG,
        cache: Optional[ModuleMetadataCache] = None,
    ):
        self.directory = directory
        self.catalog = catalog
        self.cache = cache

    def _entitlements(self, role: RoleRecord) -> list[PermissionDefinition]:
        definitions = [self.catalog.lookup(key) for key in self.catalog.permissions_for_role(role.name)]
        definitions = [d for d in definitions if d is not None]
        if role.role_name is RoleName.SUPERADMIN:
            allowed = self.catalog.superadmin_profile_modules
            definitions = [d for d in definitions if d.module in allowed]
        return definitions

    async def _load_modules(self, keys: set[str]) -> dict[str, ModuleRecord]:
        if self.cache is None:
            return {m.key: m for m in await self.directory.list_modules(keys=sorted(keys))}
        found, missing = self.cache.get_many(sorted(keys))
        if found:
            # Catalog rows deleted and re-seeded since caching get new ids
            live_ids = await self.directory.existing_module_ids(m.id for m in found.values())
            for key in [k for k, m in found.items() if m.id not in live_ids]:
                log.info(f"Cached module {key!r} no longer exists, reloading")
                self.cache.invalidate(key)
                del found[key]
                missing.append(key)
        if missing:
            loaded = await self.directory.list_modules(keys=missing)
            self.cache.put_many(loaded)
            found.update({m.key: m for m in loaded})
        return found

    async def build_profile(self, user_id: str) -> AccessProfile:
        context = await self.directory.get_user_context(user_id)
        if context is None or not context.roles:
            return AccessProfile()

        entitlements = [(role, self._entitlements(role)) for role in context.roles]
        module_keys = {d.module.value for _, definitions in entitlements for d in definitions}
        modules = await self._load_modules(module_keys)
        module_ids = [m.id for m in modules.values()]

        granted: dict[str, set[str]] = defaultdict(set)
        if context.is_superadmin:
            active_ids = set(module_ids)
            for role in context.roles:
                granted[role.id] = set(module_ids)
        else:
            activations = await self.directory.list_school_module_activations(context.school_id, module_ids)
            active_ids = {a.module_id for a in activations if a.is_active}
            grants = await self.directory.list_role_module_grants(
                context.school_id, module_ids, context.role_ids
            )
            for grant in grants:
                granted[grant.role_id].add(grant.module_id)

        permissions: set[str] = set()
        module_actions: dict[str, list[str]] = {}
        for role, definitions in entitlements:
            for definition in definitions:
                if definition.scope is not Scope.GLOBAL:
                    module = modules.get(definition.module.value)
                    if module is None or module.id not in active_ids or module.id not in granted[role.id]:
                        continue
                permissions.add(definition.key)
                actions = module_actions.setdefault(definition.module.value, [])
                if definition.action not in actions:
                    actions.append(definition.action)

        for actions in module_actions.values():
            actions.sort()

        accessible = [
            ModuleAccess(
                id=modules[key].id,
                key=key,
                name=modules[key].name,
                description=modules[key].description,
                display_order=modules[key].display_order,
                actions=list(actions),
            )
            for key, actions in module_actions.items()
            if key in modules
        ]
        accessible.sort(key=lambda m: (m.display_order, m.key))

        log.debug(f"Built profile for user {user_id}: {len(permissions)} permissions, {len(accessible)} modules")
        return AccessProfile(
            permissions=sorted(permissions),
            module_actions=dict(sorted(module_actions.items())),
            modules=accessible,
        )
