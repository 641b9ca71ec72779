"""
Audit log model.

Entries are append-only: once flushed, the ORM refuses to update or delete
them.
"""
import enum
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import String, DateTime, JSON, event
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, generate_ulid


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditResource(str, enum.Enum):
    TASK = "Task"
    USER = "User"
    ORGANIZATION = "Organization"


class AuditLogImmutableError(Exception):
    """Raised when code tries to modify or delete a persisted audit entry."""


class AuditLog(Base):
    """
    One authorized action: who did what to which resource, and when.

    ``timestamp`` is assigned by the recorder, never by the caller.
    ``changes`` holds the created snapshot for CREATE, per-field
    ``{old, new}`` pairs for UPDATE, and the deleted snapshot for DELETE.
    """
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    action: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    # Actor. Not a foreign key: entries outlive the users they mention.
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    organization_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    resource: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    resource_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    changes: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, "
            f"resource={self.resource}:{self.resource_id})>"
        )


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} cannot be deleted")
