"""
Audit recorder: append-only writes and filtered, ordered reads.

All reads return newest first. Entries with identical timestamps come back
in no particular order.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.audit.models import AuditLog, AuditAction, AuditResource
from app.utils import get_logger


log = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def diff_changes(before: Mapping[str, Any], after: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Per-field ``{"old": ..., "new": ...}`` for every field in ``after`` whose
    value differs from ``before``. Unchanged fields are left out.
    """
    changes: Dict[str, Dict[str, Any]] = {}
    for field, new in after.items():
        old = before.get(field)
        if _enum_value(old) != _enum_value(new):
            changes[field] = {"old": _enum_value(old), "new": _enum_value(new)}
    return changes


class AuditRecorder:
    """
    Writes and queries audit entries.

    ``record`` adds and flushes an entry in the caller's session; committing
    is the caller's unit of work, so a business mutation and its audit entry
    land in the same transaction.

    Args:
        db: Database session
        clock: Source of server-side timestamps
    """

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def record(
        self,
        action: AuditAction,
        user_id: str,
        organization_id: Optional[str],
        resource: AuditResource,
        resource_id: str,
        changes: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Append one audit entry.

        Returns:
            The persisted AuditLog

        Raises:
            Whatever the session raises; a failed audit write is never swallowed
        """
        entry = AuditLog(
            action=AuditAction(action).value,
            user_id=user_id,
            organization_id=organization_id,
            resource=AuditResource(resource).value,
            resource_id=resource_id,
            timestamp=self.clock(),
            changes=changes,
        )
        self.db.add(entry)
        await self.db.flush()

        log.info(
            "Audit: user=%s action=%s resource=%s:%s org=%s",
            user_id, entry.action, entry.resource, resource_id, organization_id,
        )
        return entry

    async def query(
        self,
        organization_id: str,
        user_id: Optional[str] = None,
        resource: Optional[AuditResource] = None,
        action: Optional[AuditAction] = None,
    ) -> List[AuditLog]:
        """
        Entries for exactly one organization, optionally narrowed by actor,
        resource type and action (all filters ANDed).
        """
        stmt = select(AuditLog).where(AuditLog.organization_id == organization_id)

        if user_id:
            stmt = stmt.where(AuditLog.user_id == user_id)
        if resource:
            stmt = stmt.where(AuditLog.resource == _enum_value(resource))
        if action:
            stmt = stmt.where(AuditLog.action == _enum_value(action))

        return await self._fetch(stmt)

    async def query_by_resource(self, resource: AuditResource, resource_id: str) -> List[AuditLog]:
        """History of a single resource."""
        stmt = select(AuditLog).where(
            AuditLog.resource == _enum_value(resource),
            AuditLog.resource_id == resource_id,
        )
        return await self._fetch(stmt)

    async def query_by_user(self, user_id: str) -> List[AuditLog]:
        """
        Everything a user did, across all organizations.

        Not organization-scoped: callers must check the principal is
        privileged enough to see other tenants' entries.
        """
        return await self._fetch(select(AuditLog).where(AuditLog.user_id == user_id))

    async def query_paginated(self, limit: int, offset: int = 0) -> List[AuditLog]:
        """
        Global page of entries. ``limit`` must already be clamped by the
        caller.
        """
        stmt = select(AuditLog).offset(offset).limit(limit)
        return await self._fetch(stmt)

    async def count(self, organization_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(AuditLog)
        if organization_id:
            stmt = stmt.where(AuditLog.organization_id == organization_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def _fetch(self, stmt) -> List[AuditLog]:
        result = await self.db.execute(stmt.order_by(AuditLog.timestamp.desc()))
        return list(result.scalars().all())


def snapshot(obj: Any, fields: Sequence[str]) -> Dict[str, Any]:
    """Plain-value copy of ``fields`` from ``obj`` for audit payloads."""
    return {field: _enum_value(getattr(obj, field)) for field in fields}
