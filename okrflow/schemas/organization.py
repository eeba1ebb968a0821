from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class UserResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    role: str
    department: Optional[str] = None
    is_active: bool
    is_primary_approver: bool = False

    model_config = ConfigDict(from_attributes=True)


class RoleResponse(BaseModel):
    key: str
    label: str
    builtin: bool = False

    model_config = ConfigDict(from_attributes=True)


class RoleCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=64)
    label: str = Field(..., min_length=1, max_length=128)


class DesignationResponse(BaseModel):
    id: int
    department: str
    role: str
    user_id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
