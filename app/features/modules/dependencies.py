"""
Module-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.modules.cache import ModuleMetadataCache
from app.features.modules.lifecycle import ModuleLifecycleManager
from app.features.permissions.dependencies import get_directory, get_module_cache
from app.features.permissions.directory import SqlDirectory
from app.features.schools.models import School


def get_lifecycle_manager(
    directory: Annotated[SqlDirectory, Depends(get_directory)],
    cache: Annotated[ModuleMetadataCache, Depends(get_module_cache)],
) -> ModuleLifecycleManager:
    return ModuleLifecycleManager(directory, cache=cache)


async def get_school_by_id(
    school_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> School:
    """
    Get school by ID or raise 404.
    """
    result = await db.execute(select(School).where(School.id == school_id))
    school = result.scalar_one_or_none()

    if school is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )

    return school
