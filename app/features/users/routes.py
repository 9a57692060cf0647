"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends

from app.features.permissions.access import AccessControlEngine
from app.features.permissions.dependencies import get_access_engine
from app.features.users.models import User
from app.features.users.schemas import UserResponse, RoleResponse
from app.features.users.dependencies import get_current_user


router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)],
    engine: Annotated[AccessControlEngine, Depends(get_access_engine)],
):
    """Get current authenticated user with their roles."""
    roles = await engine.get_user_roles(user.id)
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        school_id=user.school_id,
        is_active=user.is_active,
        last_login_at=user.last_login_at,
        roles=[RoleResponse.model_validate(role) for role in roles],
    )
