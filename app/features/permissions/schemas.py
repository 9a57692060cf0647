"""
Pydantic schemas for permission checks and access profiles.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """Schema for checking if the caller has a permission."""
    permission: str = Field(..., min_length=1, max_length=100, description="Permission key, e.g. 'students.read'")
    resource_owner_id: Optional[str] = Field(None, description="Owner of the resource for own-scope permissions")


class PermissionCheckResponse(BaseModel):
    permission: str
    allowed: bool


# ============================================================================
# Access Profile Schemas
# ============================================================================

class ModuleAccessResponse(BaseModel):
    id: str
    key: str
    name: str
    description: Optional[str] = None
    display_order: int
    actions: List[str] = []

    model_config = ConfigDict(from_attributes=True)


class AccessProfileResponse(BaseModel):
    """Everything the caller can do, sorted and deduplicated."""
    permissions: List[str] = []
    module_actions: Dict[str, List[str]] = {}
    modules: List[ModuleAccessResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    school_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
