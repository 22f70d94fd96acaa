"""ORM models for tables inside every tenant database.

These mirror the tenant migration set. The business CRUD layer
(announcements, users) builds on them; provisioning itself only writes
the first admin user.
"""

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import TenantSchemaBase, TimestampMixin


class TenantUserModel(TenantSchemaBase, TimestampMixin):
    """ORM model for the per-tenant users table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<TenantUserModel(id={self.id}, email={self.email}, role={self.role})>"


class AnnouncementModel(TenantSchemaBase, TimestampMixin):
    """ORM model for the per-tenant announcements table."""

    __tablename__ = "announcements"
    __table_args__ = (
        Index("ix_announcements_user_id_status", "user_id", "status"),
        Index("ix_announcements_status_created_at", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="draft", index=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
