"""
FastAPI dependencies wiring the access-control core into routes.

Implements:
- Per-request Directory / engine / profile builder construction
- Route guards (require_permission and friends)
- Audit logging helper
"""
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.exceptions import PermissionDenied
from app.features.modules.cache import ModuleMetadataCache
from app.features.permissions.access import AccessControlEngine
from app.features.permissions.directory import SqlDirectory
from app.features.permissions.models import AuditLog
from app.features.permissions.profile import AccessProfileBuilder
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


class ModuleCacheHolder:
    """Process-wide module metadata cache."""

    _instance: Optional[ModuleMetadataCache] = None

    @classmethod
    def get_cache(cls) -> ModuleMetadataCache:
        if cls._instance is None:
            cls._instance = ModuleMetadataCache()
        return cls._instance


def get_module_cache() -> ModuleMetadataCache:
    return ModuleCacheHolder.get_cache()


def get_directory(db: Annotated[AsyncSession, Depends(get_db)]) -> SqlDirectory:
    return SqlDirectory(db)


def get_access_engine(
    directory: Annotated[SqlDirectory, Depends(get_directory)]
) -> AccessControlEngine:
    return AccessControlEngine(directory)


def get_profile_builder(
    directory: Annotated[SqlDirectory, Depends(get_directory)],
    cache: Annotated[ModuleMetadataCache, Depends(get_module_cache)],
) -> AccessProfileBuilder:
    return AccessProfileBuilder(directory, cache=cache)


# ============================================================================
# Route guards
# ============================================================================

def _owner_id(request: Request, owner_param: Optional[str]) -> Optional[str]:
    if owner_param is None:
        return None
    return request.path_params.get(owner_param) or request.query_params.get(owner_param)


def require_permission(permission_key: str, owner_param: Optional[str] = None):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.get("/students/{student_id}")
        async def get_student(
            user: User = Depends(require_permission("students.readOwn", owner_param="student_id"))
        ):
            ...

    Args:
        permission_key: Catalog key, e.g. "students.read"
        owner_param: Path or query parameter holding the resource owner id
            for own-scope permissions

    Raises:
        PermissionDenied: rendered as 403 by the application error handler
    """
    async def permission_dependency(
        request: Request,
        engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        await engine.enforce(current_user.id, permission_key, _owner_id(request, owner_param))
        return current_user

    return permission_dependency


def require_any_permission(*permission_keys: str):
    """FastAPI dependency requiring at least one of the permissions."""
    async def permission_dependency(
        engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not await engine.check_any(current_user.id, permission_keys):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: requires one of {list(permission_keys)}"
            )
        return current_user

    return permission_dependency


def require_all_permissions(*permission_keys: str):
    """FastAPI dependency requiring every one of the permissions."""
    async def permission_dependency(
        engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        for key in permission_keys:
            if not await engine.check(current_user.id, key):
                raise PermissionDenied(key)
        return current_user

    return permission_dependency


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    school_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> AuditLog:
    """
    Add an audit log entry to the current transaction.

    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "enable", "disable")
        resource_type: Type of resource (e.g., "module")
        resource_id: ID of the resource
        school_id: School context
        details: Additional details
        ip_address: Client IP address
        user_agent: Client user agent
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        school_id=school_id,
        details=details,
        ip_address=ip_address,
        user_agent=user_agent
    )

    db.add(audit_log)
    await db.flush()

    log.info(
        f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id} school={school_id}"
    )

    return audit_log
