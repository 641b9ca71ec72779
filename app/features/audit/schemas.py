"""
Pydantic schemas for audit log responses.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    """Audit entry as returned by the API."""
    id: str
    action: str
    user_id: str = Field(..., serialization_alias="userId")
    organization_id: Optional[str] = Field(None, serialization_alias="organizationId")
    resource: str
    resource_id: str = Field(..., serialization_alias="resourceId")
    timestamp: datetime
    changes: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)
