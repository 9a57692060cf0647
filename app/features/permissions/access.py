"""
Per-call permission decisions.

A decision reconciles three things: the static role -> permission catalog,
whether the permission's module is active for the caller's school (and
granted to the caller's role there), and for own-scope permissions whether
the resource belongs to the caller.
"""
from typing import Iterable, Optional

from app.core.exceptions import PermissionDenied
from app.features.permissions.catalog import CATALOG, PermissionCatalog, PermissionDefinition, RoleName, Scope
from app.features.permissions.directory import Directory, RoleRecord, UserContext
from app.utils import get_logger


log = get_logger(__name__)


class AccessControlEngine:
    """
    Usage:
        engine = AccessControlEngine(SqlDirectory(db))
        if await engine.check(user_id, "students.read"):
            ...
        await engine.enforce(user_id, "students.readOwn", resource_owner_id=student_id)
    """

    def __init__(self, directory: Directory, catalog: PermissionCatalog = CATALOG):
        self.directory = directory
        self.catalog = catalog

    async def check(
        self,
        user_id: str,
        permission_key: str,
        resource_owner_id: Optional[str] = None,
    ) -> bool:
        """
        Return True if the user may use the permission.

        Unknown permissions, unknown users, users without roles and missing
        modules all yield False. Database errors propagate.
        """
        definition = self.catalog.lookup(permission_key)
        if definition is None:
            log.warning(f"Unknown permission {permission_key!r} requested by user {user_id}")
            return False

        context = await self.directory.get_user_context(user_id)
        if context is None:
            log.debug(f"User {user_id} not found or inactive - denied {permission_key}")
            return False
        if not context.roles:
            log.debug(f"User {user_id} has no roles - denied {permission_key}")
            return False

        if context.is_superadmin:
            return True

        entitled = [
            role for role in context.roles
            if self.catalog.role_has_permission(role.name, permission_key)
        ]

        if definition.scope is Scope.GLOBAL:
            # Cross-school operations are gated by role only
            return bool(entitled)

        if not entitled:
            log.debug(f"User {user_id} has no role entitled to {permission_key}")
            return False

        return await self._check_in_school(context, definition, entitled, resource_owner_id)

    async def _check_in_school(
        self,
        context: UserContext,
        definition: PermissionDefinition,
        entitled: list[RoleRecord],
        resource_owner_id: Optional[str],
    ) -> bool:
        module = await self.directory.get_module_by_key(definition.module.value)
        if module is None:
            log.warning(f"Module {definition.module.value!r} of {definition.key} is not in the catalog")
            return False

        activation = await self.directory.get_school_module_activation(context.school_id, module.id)
        if activation is None or not activation.is_active:
            log.debug(f"Module {module.key} inactive for school {context.school_id} - denied {definition.key}")
            return False

        grants = await self.directory.list_role_module_grants(
            context.school_id, [module.id], [role.id for role in entitled]
        )
        granted_role_ids = {grant.role_id for grant in grants}

        for role in entitled:
            if role.id not in granted_role_ids:
                continue
            if self._satisfies_scope(role, definition, context, resource_owner_id):
                log.debug(f"User {context.user_id} granted {definition.key} via role {role.name}")
                return True

        log.debug(f"User {context.user_id} denied {definition.key} in school {context.school_id}")
        return False

    @staticmethod
    def _satisfies_scope(
        role: RoleRecord,
        definition: PermissionDefinition,
        context: UserContext,
        resource_owner_id: Optional[str],
    ) -> bool:
        if definition.scope is Scope.SCHOOL:
            return True
        # Own scope without an owner id: the caller is listing its own records
        if resource_owner_id is None:
            return True
        role_name = role.role_name
        if role_name is RoleName.PARENT:
            return resource_owner_id in context.linked_student_ids
        if role_name is RoleName.STUDENT:
            return context.own_student_id is not None and resource_owner_id == context.own_student_id
        return False

    async def check_any(self, user_id: str, permission_keys: Iterable[str]) -> bool:
        for key in permission_keys:
            if await self.check(user_id, key):
                return True
        return False

    async def check_all(self, user_id: str, permission_keys: Iterable[str]) -> bool:
        for key in permission_keys:
            if not await self.check(user_id, key):
                return False
        return True

    async def enforce(
        self,
        user_id: str,
        permission_key: str,
        resource_owner_id: Optional[str] = None,
    ) -> None:
        """Raise PermissionDenied unless check() allows the permission."""
        if not await self.check(user_id, permission_key, resource_owner_id):
            raise PermissionDenied(permission_key)

    async def get_user_roles(self, user_id: str) -> list[RoleRecord]:
        context = await self.directory.get_user_context(user_id)
        if context is None:
            return []
        return list(context.roles)
