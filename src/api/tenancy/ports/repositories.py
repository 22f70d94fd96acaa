"""Repository protocols (ports) for the tenancy bounded context."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tenancy.domain.aggregates import RouteBinding, Tenant
from tenancy.domain.value_objects import BindingKey, TenantId


@runtime_checkable
class ITenantRegistry(Protocol):
    """Durable record of known tenants and their route bindings.

    Lives in the central database. Uniqueness of tenant ids, contact emails
    and binding keys is enforced by storage constraints, not by
    check-then-insert.
    """

    async def register(self, tenant: Tenant) -> TenantId:
        """Insert a new tenant with status ``provisioning``.

        Raises:
            DuplicateIdentityError: If the id or contact email is taken
        """
        ...

    async def bind(self, tenant_id: TenantId, binding_key: BindingKey) -> None:
        """Bind a routing key to a tenant. Re-binding to the same tenant is a no-op.

        Raises:
            BindingConflictError: If the key is bound to a different tenant
            TenantNotFoundError: If the tenant does not exist
        """
        ...

    async def mark_active(self, tenant_id: TenantId) -> None:
        """Flip status to ``active``.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        ...

    async def mark_deleted(self, tenant_id: TenantId) -> None:
        """Flip status to ``deleted``.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        ...

    async def resolve(self, binding_key: BindingKey) -> Tenant | None:
        """Return the tenant bound to ``binding_key`` (any status), or None."""
        ...

    async def get_by_id(self, tenant_id: TenantId) -> Tenant | None:
        """Return the tenant with this id, or None."""
        ...

    async def list_all(self) -> list[Tenant]:
        """Return every tenant record, any status."""
        ...

    async def list_bindings(self, tenant_id: TenantId) -> list[RouteBinding]:
        """Return the bindings owned by a tenant."""
        ...

    async def remove(self, tenant_id: TenantId) -> bool:
        """Delete the tenant and all of its bindings.

        Returns:
            True if a record was deleted, False if it was already absent
        """
        ...
