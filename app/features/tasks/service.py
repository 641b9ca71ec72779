"""
Task operations with authorization and auditing.

Every operation follows the same order:

1. validate input (no store access)
2. resolve the principal's effective roles/permissions
3. organization membership + permission check
4. fetch the task (404 if absent)
5. resource organization + ownership check
6. mutate, write the audit entry, commit both together
"""
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidRequest, ResourceNotFound
from app.features.audit.models import AuditAction, AuditLog, AuditResource
from app.features.audit.service import AuditRecorder, diff_changes, snapshot
from app.features.permissions.engine import Operation, ensure_authorized, ensure_roles
from app.features.permissions.principal import LayeredPermissionResolver, Principal
from app.features.permissions.roles import Permission, Role
from app.features.tasks.models import Task, AUDITED_FIELDS
from app.features.tasks.schemas import TaskCreate, TaskFilters, TaskUpdate
from app.utils import get_logger


log = get_logger(__name__)

AUDIT_LOG_ROLES = (Role.OWNER, Role.ADMIN)


def _require_id(task_id: str) -> None:
    if not task_id or not task_id.strip():
        raise InvalidRequest("Task ID is required")


class TaskService:
    """
    Args:
        db: Database session; the service commits its own units of work
        permissions: Resolves effective roles/permissions for a principal
        recorder: Audit recorder writing into the same session
    """

    def __init__(
        self,
        db: AsyncSession,
        permissions: Optional[LayeredPermissionResolver] = None,
        recorder: Optional[AuditRecorder] = None,
    ):
        self.db = db
        self.permissions = permissions or LayeredPermissionResolver.for_session(db)
        self.recorder = recorder or AuditRecorder(db)

    async def create_task(self, principal: Principal, organization_id: str, data: TaskCreate) -> Task:
        actor = await self.permissions.effective_principal(principal)
        ensure_authorized(actor, organization_id, Permission.CREATE_TASK)

        task = Task(
            title=data.title,
            description=data.description,
            status=data.status.value,
            category=data.category,
            organization_id=organization_id,
            created_by=actor.user_id,
        )
        self.db.add(task)
        await self.db.flush()

        await self.recorder.record(
            AuditAction.CREATE,
            actor.user_id,
            organization_id,
            AuditResource.TASK,
            task.id,
            snapshot(task, AUDITED_FIELDS),
        )
        await self._commit(task)
        log.info("Task %s created by user %s in org %s", task.id, actor.user_id, organization_id)
        return task

    async def list_tasks(
        self,
        principal: Principal,
        organization_id: str,
        filters: Optional[TaskFilters] = None,
    ) -> List[Task]:
        """Tasks in the organization, newest first. Collection reads are not audited."""
        actor = await self.permissions.effective_principal(principal)
        ensure_authorized(actor, organization_id, Permission.READ_TASK)

        stmt = select(Task).where(Task.organization_id == organization_id)
        if filters is not None:
            if filters.status is not None:
                stmt = stmt.where(Task.status == filters.status.value)
            if filters.category:
                stmt = stmt.where(Task.category == filters.category)

        result = await self.db.execute(stmt.order_by(Task.created_at.desc(), Task.id.desc()))
        return list(result.scalars().all())

    async def get_task(self, principal: Principal, organization_id: str, task_id: str) -> Task:
        _require_id(task_id)
        actor = await self.permissions.effective_principal(principal)
        ensure_authorized(actor, organization_id, Permission.READ_TASK)

        task = await self._get_or_404(task_id)
        ensure_authorized(actor, organization_id, Permission.READ_TASK, task, Operation.READ)

        await self.recorder.record(
            AuditAction.READ,
            actor.user_id,
            organization_id,
            AuditResource.TASK,
            task.id,
        )
        await self.db.commit()
        return task

    async def update_task(
        self,
        principal: Principal,
        organization_id: str,
        task_id: str,
        data: TaskUpdate,
    ) -> Task:
        _require_id(task_id)
        fields = data.provided_fields()
        if not fields:
            raise InvalidRequest("At least one field must be provided for update")

        actor = await self.permissions.effective_principal(principal)
        ensure_authorized(actor, organization_id, Permission.UPDATE_TASK)

        task = await self._get_or_404(task_id)
        ensure_authorized(actor, organization_id, Permission.UPDATE_TASK, task, Operation.UPDATE)

        changes = diff_changes(snapshot(task, list(fields)), fields)
        for field, change in changes.items():
            setattr(task, field, change["new"])
        await self.db.flush()

        await self.recorder.record(
            AuditAction.UPDATE,
            actor.user_id,
            organization_id,
            AuditResource.TASK,
            task.id,
            changes,
        )
        await self._commit(task)
        log.info("Task %s updated by user %s: %s", task.id, actor.user_id, sorted(changes))
        return task

    async def delete_task(self, principal: Principal, organization_id: str, task_id: str) -> None:
        _require_id(task_id)
        actor = await self.permissions.effective_principal(principal)
        ensure_authorized(actor, organization_id, Permission.DELETE_TASK)

        task = await self._get_or_404(task_id)
        ensure_authorized(actor, organization_id, Permission.DELETE_TASK, task, Operation.DELETE)

        deleted = snapshot(task, AUDITED_FIELDS)
        await self.db.delete(task)
        await self.db.flush()

        await self.recorder.record(
            AuditAction.DELETE,
            actor.user_id,
            organization_id,
            AuditResource.TASK,
            task_id,
            {"deletedTask": deleted},
        )
        await self.db.commit()
        log.info("Task %s deleted by user %s", task_id, actor.user_id)

    async def list_audit_logs(
        self,
        principal: Principal,
        organization_id: str,
        limit: int,
        offset: int,
    ) -> Tuple[List[AuditLog], int]:
        """
        Global page of audit entries for OWNERs and ADMINs.

        Returns:
            (entries, total entry count)
        """
        actor = await self.permissions.effective_principal(principal)
        ensure_roles(actor, organization_id, AUDIT_LOG_ROLES)

        entries = await self.recorder.query_paginated(limit, offset)
        total = await self.recorder.count()
        return entries, total

    async def _get_or_404(self, task_id: str) -> Task:
        task = await self.db.get(Task, task_id)
        if task is None:
            raise ResourceNotFound(f"Task with ID {task_id} not found")
        return task

    async def _commit(self, task: Task) -> None:
        await self.db.commit()
        # created_at/updated_at are set by the database
        await self.db.refresh(task)
