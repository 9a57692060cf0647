"""
Pydantic schemas for module management.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ModuleResponse(BaseModel):
    """A module in the catalog."""
    id: str
    key: str
    name: str
    description: Optional[str] = None
    display_order: int

    model_config = ConfigDict(from_attributes=True)


class SchoolModuleResponse(BaseModel):
    """A catalog module and whether it is enabled for the school."""
    id: str
    key: str
    name: str
    description: Optional[str] = None
    display_order: int
    is_enabled: bool

    model_config = ConfigDict(from_attributes=True)


class ModuleLifecycleResponse(BaseModel):
    school_id: str
    module_id: str
    module_key: str
    is_enabled: bool
