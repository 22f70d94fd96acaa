"""Tenant aggregate for the tenancy context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from tenancy.domain.exceptions import InvalidStatusTransitionError
from tenancy.domain.value_objects import TenantId, TenantStatus

_ALLOWED_TRANSITIONS: dict[TenantStatus, frozenset[TenantStatus]] = {
    TenantStatus.PROVISIONING: frozenset(
        {TenantStatus.ACTIVE, TenantStatus.DELETED}
    ),
    TenantStatus.ACTIVE: frozenset({TenantStatus.SUSPENDED, TenantStatus.DELETED}),
    TenantStatus.SUSPENDED: frozenset({TenantStatus.ACTIVE, TenantStatus.DELETED}),
    TenantStatus.DELETED: frozenset(),
}


@dataclass
class Tenant:
    """Tenant aggregate representing one isolated customer organization.

    Each tenant owns exactly one physical database whose name is derived
    from ``id``. The registry is the only writer of tenant records.

    Business rules:
    - ``id`` never changes after creation
    - ``contact_email`` is globally unique (enforced by the registry)
    - status only moves along the lifecycle in ``_ALLOWED_TRANSITIONS``;
      re-applying the current status is a no-op so resumed runs are safe
    """

    id: TenantId
    display_name: str
    contact_email: str
    status: TenantStatus = TenantStatus.PROVISIONING
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(
        cls,
        tenant_id: TenantId,
        display_name: str,
        contact_email: str,
    ) -> Tenant:
        """Factory method for a new tenant in ``provisioning`` status.

        Args:
            tenant_id: Stable identifier (slug or generated)
            display_name: Human-readable organization name
            contact_email: Organization contact address

        Returns:
            A new Tenant aggregate
        """
        display_name = display_name.strip()
        if not display_name:
            raise ValueError("display_name must not be empty")

        return cls(
            id=tenant_id,
            display_name=display_name,
            contact_email=contact_email.strip().lower(),
            status=TenantStatus.PROVISIONING,
        )

    def database_key(self) -> str:
        """Key the provisioner derives the physical database name from."""
        return self.id.value

    @property
    def is_routable(self) -> bool:
        """Whether ordinary request traffic may be routed to this tenant."""
        return self.status == TenantStatus.ACTIVE

    def mark_active(self) -> None:
        """Move to ``active``. Only call once the database is migrated."""
        self._transition(TenantStatus.ACTIVE)

    def suspend(self) -> None:
        """Move to ``suspended``; the tenant stops being routable."""
        self._transition(TenantStatus.SUSPENDED)

    def mark_deleted(self) -> None:
        """Move to the terminal ``deleted`` status."""
        self._transition(TenantStatus.DELETED)

    def _transition(self, target: TenantStatus) -> None:
        if self.status == target:
            return
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransitionError(
                tenant_id=self.id.value,
                current=self.status.value,
                target=target.value,
            )
        self.status = target
