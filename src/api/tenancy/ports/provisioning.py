"""Provisioning and routing protocols (ports) for the tenancy context."""

from __future__ import annotations

from typing import (
    AsyncContextManager,
    Awaitable,
    Callable,
    Protocol,
    TypeVar,
    runtime_checkable,
)

from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.value_objects import (
    AdminPrincipal,
    PhysicalDatabaseName,
    TenantId,
)

T = TypeVar("T")


class HasPhysicalDatabase(Protocol):
    """Anything the connection router can bind a scope to.

    Implemented by the Tenant aggregate and by the per-request
    TenantContext, so a resolved request never needs a second registry
    lookup to open its scope.
    """

    def database_key(self) -> str:
        """Stable key (the tenant id) the physical database name derives from."""
        ...


@runtime_checkable
class IDatabaseProvisioner(Protocol):
    """Creates, migrates and destroys tenant physical databases."""

    def physical_name(self, tenant_id: TenantId) -> PhysicalDatabaseName:
        """Deterministically compute ``prefix + sanitize(tenant_id)``."""
        ...

    async def create(self, tenant_id: TenantId) -> PhysicalDatabaseName:
        """Create the database if absent, then verify it exists in the catalog.

        Raises:
            ProvisioningFailedError: If creation errors or verification fails
        """
        ...

    async def exists(self, name: PhysicalDatabaseName) -> bool:
        """Whether the catalog lists this database."""
        ...

    async def migrate(self, name: PhysicalDatabaseName) -> None:
        """Apply every pending tenant migration, in order.

        Raises:
            MigrationFailedError: On the first failing step; earlier steps stay applied
        """
        ...

    async def current_revision(self, name: PhysicalDatabaseName) -> str | None:
        """Schema revision the database is at (None when unmigrated)."""
        ...

    def head_revision(self) -> str | None:
        """Latest revision of the tenant migration set."""
        ...

    async def drop(self, name: PhysicalDatabaseName) -> None:
        """Destroy the database. No error if it is already absent."""
        ...


@runtime_checkable
class IConnectionRouter(Protocol):
    """Binds data access to one tenant's physical database per unit of work."""

    def session(self, tenant: HasPhysicalDatabase) -> AsyncContextManager[AsyncSession]:
        """Open a session bound to the tenant's database.

        The session is closed and its connection returned on every exit path.

        Raises:
            UnresolvedTenantError: If the physical database does not exist
            ConnectionUnavailableError: If no connection can be produced
        """
        ...

    async def with_tenant(
        self,
        tenant: HasPhysicalDatabase,
        fn: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run ``fn`` with a session bound to the tenant's database."""
        ...

    async def release(self, name: PhysicalDatabaseName) -> None:
        """Dispose pooled connections to a database (before dropping it)."""
        ...

    async def close(self) -> None:
        """Dispose every tenant engine."""
        ...


@runtime_checkable
class IProvisioningLock(Protocol):
    """Mutual exclusion for provisioning runs of the same tenant id."""

    def hold(self, tenant_id: TenantId) -> AsyncContextManager[None]:
        """Hold the lock for the duration of the block.

        Raises:
            AlreadyProvisioningError: If another run holds it
        """
        ...


@runtime_checkable
class IAdminSeeder(Protocol):
    """Creates the initial admin principal inside a tenant database."""

    async def seed(self, session: AsyncSession, admin: AdminPrincipal) -> bool:
        """Create the admin unless a user with that email already exists.

        Returns:
            True if created, False if it already existed
        """
        ...
