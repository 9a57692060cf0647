"""
Pydantic schemas for user-related responses.
"""
from datetime import datetime
from pydantic import BaseModel


class RoleResponse(BaseModel):
    id: str
    name: str
    display_name: str

    model_config = {"from_attributes": True}


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: str
    email: str
    name: str
    school_id: str
    is_active: bool
    last_login_at: datetime | None = None
    roles: list[RoleResponse] = []

    model_config = {"from_attributes": True}
