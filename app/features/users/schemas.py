"""
Pydantic schemas for user-related responses.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserResponse(BaseModel):
    """Schema for user responses."""
    id: str
    email: EmailStr
    first_name: str = Field(..., serialization_alias="firstName")
    last_name: str = Field(..., serialization_alias="lastName")
    organization_id: str = Field(..., serialization_alias="organizationId")
    is_active: bool = Field(..., serialization_alias="isActive")
    created_at: datetime = Field(..., serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True)


class PrincipalProfile(BaseModel):
    """The caller's identity with effective roles and permissions."""
    user_id: str = Field(..., serialization_alias="userId")
    email: Optional[str] = None
    organization_id: str = Field(..., serialization_alias="organizationId")
    roles: List[str]
    permissions: List[str]
    expires_at: Optional[datetime] = Field(None, serialization_alias="expiresAt")
