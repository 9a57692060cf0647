"""
Module API routes.

Lists modules and turns them on or off per school. Enabling and disabling
is restricted to holders of configuration.update.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.modules.dependencies import get_lifecycle_manager, get_school_by_id
from app.features.modules.lifecycle import ModuleLifecycleManager
from app.features.modules.schemas import ModuleLifecycleResponse, ModuleResponse, SchoolModuleResponse
from app.features.permissions.access import AccessControlEngine
from app.features.permissions.dependencies import (
    create_audit_log,
    get_access_engine,
    get_directory,
    get_profile_builder,
    require_permission,
)
from app.features.permissions.directory import SqlDirectory
from app.features.permissions.profile import AccessProfileBuilder
from app.features.permissions.schemas import ModuleAccessResponse
from app.features.schools.models import School
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter()


@router.get("", response_model=List[ModuleResponse])
async def list_modules(
    _current_user: Annotated[User, Depends(get_current_user)],
    directory: Annotated[SqlDirectory, Depends(get_directory)],
):
    """List the active module catalog in display order."""
    return await directory.list_modules(active_only=True)


@router.get("/me", response_model=List[ModuleAccessResponse])
async def get_my_modules(
    current_user: Annotated[User, Depends(get_current_user)],
    builder: Annotated[AccessProfileBuilder, Depends(get_profile_builder)],
):
    """Modules accessible to the caller, with the actions allowed in each."""
    profile = await builder.build_profile(current_user.id)
    return profile.modules


@router.get("/schools/{school_id}", response_model=List[SchoolModuleResponse])
async def list_school_modules(
    school: Annotated[School, Depends(get_school_by_id)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[ModuleLifecycleManager, Depends(get_lifecycle_manager)],
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
):
    """List catalog modules with their activation for a school."""
    if current_user.school_id != school.id:
        # Other schools' module lists are an operator concern
        await engine.enforce(current_user.id, "configuration.read")
    return await manager.list_school_modules(school.id)


async def _change_module_state(
    enable: bool,
    request: Request,
    school: School,
    module_id: str,
    current_user: User,
    manager: ModuleLifecycleManager,
    db: AsyncSession,
) -> ModuleLifecycleResponse:
    if enable:
        module = await manager.enable_module(school.id, module_id)
    else:
        module = await manager.disable_module(school.id, module_id)

    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="enable" if enable else "disable",
        resource_type="module",
        resource_id=module.id,
        school_id=school.id,
        details={"module_key": module.key},
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    return ModuleLifecycleResponse(
        school_id=school.id,
        module_id=module.id,
        module_key=module.key,
        is_enabled=enable,
    )


@router.post("/schools/{school_id}/{module_id}/enable", response_model=ModuleLifecycleResponse)
async def enable_school_module(
    module_id: str,
    request: Request,
    school: Annotated[School, Depends(get_school_by_id)],
    current_user: Annotated[User, Depends(require_permission("configuration.update"))],
    manager: Annotated[ModuleLifecycleManager, Depends(get_lifecycle_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Enable a module for a school (dependencies must be enabled first)."""
    return await _change_module_state(True, request, school, module_id, current_user, manager, db)


@router.post("/schools/{school_id}/{module_id}/disable", response_model=ModuleLifecycleResponse)
async def disable_school_module(
    module_id: str,
    request: Request,
    school: Annotated[School, Depends(get_school_by_id)],
    current_user: Annotated[User, Depends(require_permission("configuration.update"))],
    manager: Annotated[ModuleLifecycleManager, Depends(get_lifecycle_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Disable a module for a school (dependent modules must be disabled first)."""
    return await _change_module_state(False, request, school, module_id, current_user, manager, db)
