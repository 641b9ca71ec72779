"""
Pydantic schemas for task requests and responses.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.tasks.models import TaskStatus, DEFAULT_CATEGORY


class TaskCreate(BaseModel):
    """Schema for creating a task."""
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.TODO
    category: str = Field(DEFAULT_CATEGORY, min_length=1, max_length=100)

    @field_validator("title", "description", "category")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class TaskUpdate(BaseModel):
    """Schema for updating a task. At least one field must be provided."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)

    def provided_fields(self) -> dict:
        """Fields the client actually sent with a non-null value."""
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


class TaskFilters(BaseModel):
    status: Optional[TaskStatus] = None
    category: Optional[str] = None


class TaskResponse(BaseModel):
    """Schema for task responses."""
    id: str
    title: str
    description: str
    status: TaskStatus
    category: str
    organization_id: str = Field(..., serialization_alias="organizationId")
    created_by: str = Field(..., serialization_alias="createdBy")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)


class DeleteResponse(BaseModel):
    success: bool
