"""
Audit log API routes.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import InvalidRequest
from app.features.audit.models import AuditAction, AuditResource
from app.features.audit.schemas import AuditLogResponse
from app.features.audit.service import AuditRecorder
from app.features.permissions.dependencies import get_effective_principal
from app.features.permissions.engine import ensure_authorized, ensure_member, ensure_roles
from app.features.permissions.principal import Principal
from app.features.permissions.roles import Permission, Role
from app.features.users.dependencies import get_claimed_organization_id, get_current_principal


router = APIRouter()


@router.get("", response_model=List[AuditLogResponse])
async def list_organization_audit_logs(
    principal: Annotated[Principal, Depends(get_current_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource: Optional[AuditResource] = None,
    action: Optional[AuditAction] = None,
    user_id: Annotated[Optional[str], Query(alias="userId")] = None,
):
    """Audit entries for the caller's organization, newest first."""
    ensure_member(principal, organization_id)

    recorder = AuditRecorder(db)
    return await recorder.query(organization_id, user_id=user_id, resource=resource, action=action)


@router.get("/resources/{resource}/{resource_id}", response_model=List[AuditLogResponse])
async def get_resource_history(
    resource: AuditResource,
    resource_id: str,
    principal: Annotated[Principal, Depends(get_effective_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """History of one resource. Entries recorded in other organizations are left out."""
    if not resource_id.strip():
        raise InvalidRequest("Resource ID is required")

    ensure_authorized(principal, organization_id, Permission.VIEW_AUDIT_LOG)

    recorder = AuditRecorder(db)
    entries = await recorder.query_by_resource(resource, resource_id)
    return [entry for entry in entries if entry.organization_id == organization_id]


@router.get("/users/{user_id}", response_model=List[AuditLogResponse])
async def get_user_history(
    user_id: str,
    principal: Annotated[Principal, Depends(get_effective_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Everything a user did, across organizations.

    This read is not tenant-scoped, so it is restricted to OWNERs holding
    VIEW_AUDIT_LOG.
    """
    if not user_id.strip():
        raise InvalidRequest("User ID is required")

    ensure_authorized(principal, organization_id, Permission.VIEW_AUDIT_LOG)
    ensure_roles(principal, organization_id, [Role.OWNER])

    recorder = AuditRecorder(db)
    return await recorder.query_by_user(user_id)
