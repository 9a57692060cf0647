"""
Permission API routes.

Lets a client ask what the caller may do, one permission at a time or as a
whole access profile.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.access import AccessControlEngine
from app.features.permissions.dependencies import (
    get_access_engine,
    get_profile_builder,
    require_permission,
)
from app.features.permissions.models import AuditLog
from app.features.permissions.profile import AccessProfileBuilder
from app.features.permissions.schemas import (
    AccessProfileResponse,
    AuditLogResponse,
    PermissionCheckRequest,
    PermissionCheckResponse,
)
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter()


@router.get("/me", response_model=AccessProfileResponse)
async def get_my_permissions(
    current_user: Annotated[User, Depends(get_current_user)],
    builder: Annotated[AccessProfileBuilder, Depends(get_profile_builder)],
):
    """Get the caller's access profile."""
    return await builder.build_profile(current_user.id)


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    body: PermissionCheckRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
):
    """Check whether the caller has a permission."""
    allowed = await engine.check(current_user.id, body.permission, body.resource_owner_id)
    return PermissionCheckResponse(permission=body.permission, allowed=allowed)


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission("configuration.read"))],
    school_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
):
    """List access-control audit log entries, newest first."""
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc())
    if school_id:
        stmt = stmt.where(AuditLog.school_id == school_id)
    result = await db.execute(stmt.offset(skip).limit(limit))
    return result.scalars().all()
