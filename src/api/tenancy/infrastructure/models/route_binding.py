"""SQLAlchemy ORM model for the route_bindings table."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from infrastructure.database.models import Base, TimestampMixin


class RouteBindingModel(Base, TimestampMixin):
    """ORM model for route_bindings table.

    ``binding_key`` is the primary key, so a key can be bound to at most
    one tenant. Bindings cascade when their tenant row is deleted.
    """

    __tablename__ = "route_bindings"

    binding_key: Mapped[str] = mapped_column(String(63), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(
        String(40),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    tenant = relationship("TenantModel", back_populates="bindings")

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<RouteBindingModel(binding_key={self.binding_key}, "
            f"tenant_id={self.tenant_id})>"
        )
