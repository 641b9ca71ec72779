"""
Organization model.

Organizations are the tenant boundary: tasks, role assignments and audit
entries all carry an organization id.
"""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Organization(Base, TimestampMixin):
    """
    Organization model representing a tenant.

    Users belong to one primary organization; role assignments are made per
    organization.
    """
    __tablename__ = "organizations"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Owning user. Plain column rather than a foreign key: users reference
    # organizations, and organizations exist before their first user.
    owner_id: Mapped[str | None] = mapped_column(String(26), nullable=True)

    users: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        back_populates="organization",
        foreign_keys="User.organization_id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r})>"
