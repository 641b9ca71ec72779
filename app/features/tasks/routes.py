"""
Task API routes.

Every route requires a bearer token. Authorization happens inside
TaskService so the required permission is visible at each call.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.dependencies import Pagination, get_pagination
from app.features.audit.schemas import AuditLogResponse
from app.features.permissions.principal import Principal
from app.features.tasks.models import TaskStatus
from app.features.tasks.schemas import (
    TaskCreate,
    TaskUpdate,
    TaskFilters,
    TaskResponse,
    DeleteResponse,
)
from app.features.tasks.service import TaskService
from app.features.users.dependencies import get_claimed_organization_id, get_current_principal


router = APIRouter()


async def get_task_service(db: Annotated[AsyncSession, Depends(get_db)]) -> TaskService:
    return TaskService(db)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    service: Annotated[TaskService, Depends(get_task_service)],
):
    """Create a task (CREATE_TASK)."""
    return await service.create_task(principal, organization_id, task_data)


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    principal: Annotated[Principal, Depends(get_current_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    service: Annotated[TaskService, Depends(get_task_service)],
    task_status: Annotated[Optional[TaskStatus], Query(alias="status")] = None,
    category: Optional[str] = None,
):
    """List the organization's tasks (READ_TASK), optionally filtered by status and category."""
    filters = TaskFilters(status=task_status, category=category)
    return await service.list_tasks(principal, organization_id, filters)


# Declared before /{task_id} so "audit-log" is not taken for a task id
@router.get("/audit-log", response_model=List[AuditLogResponse])
async def list_audit_log(
    response: Response,
    principal: Annotated[Principal, Depends(get_current_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    service: Annotated[TaskService, Depends(get_task_service)],
    pagination: Annotated[Pagination, Depends(get_pagination)],
):
    """Page through the audit log (OWNER or ADMIN). Total count is in X-Total-Count."""
    entries, total = await service.list_audit_logs(
        principal, organization_id, pagination.limit, pagination.offset
    )
    response.headers["X-Total-Count"] = str(total)
    return entries


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    service: Annotated[TaskService, Depends(get_task_service)],
):
    """Get one task (READ_TASK). Recorded in the audit log."""
    return await service.get_task(principal, organization_id, task_id)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    task_update: TaskUpdate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    service: Annotated[TaskService, Depends(get_task_service)],
):
    """
    Update a task (UPDATE_TASK).

    The creator may always update; otherwise ADMIN or OWNER is required.
    """
    return await service.update_task(principal, organization_id, task_id, task_update)


@router.delete("/{task_id}", response_model=DeleteResponse)
async def delete_task(
    task_id: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    organization_id: Annotated[str, Depends(get_claimed_organization_id)],
    service: Annotated[TaskService, Depends(get_task_service)],
):
    """
    Delete a task (DELETE_TASK).

    The creator may always delete; otherwise OWNER is required.
    """
    await service.delete_task(principal, organization_id, task_id)
    return DeleteResponse(success=True)
