"""Tenant administration service for the tenancy bounded context.

Handles read access to tenant records, deprovisioning, and bringing every
active tenant database to the head of the tenant migration set.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.application.observability import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)
from tenancy.domain.aggregates import RouteBinding, Tenant
from tenancy.domain.value_objects import TenantId, TenantStatus
from tenancy.ports.exceptions import TenantNotFoundError
from tenancy.ports.provisioning import (
    IConnectionRouter,
    IDatabaseProvisioner,
    IProvisioningLock,
)
from tenancy.ports.repositories import ITenantRegistry


@dataclass(frozen=True)
class TenantDetails:
    """A tenant record with its bindings and physical database name."""

    tenant: Tenant
    bindings: list[RouteBinding]
    physical_name: str


@dataclass(frozen=True)
class MigrationOutcome:
    """Result of migrating one tenant database."""

    tenant_id: str
    physical_name: str
    revision: str | None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class TenantService:
    """Application service for tenant administration."""

    def __init__(
        self,
        registry: ITenantRegistry,
        session: AsyncSession,
        provisioner: IDatabaseProvisioner,
        router: IConnectionRouter,
        lock: IProvisioningLock,
        probe: TenantServiceProbe | None = None,
    ):
        """Initialize TenantService with dependencies.

        Args:
            registry: Tenant registry bound to ``session``
            session: Central database session for transaction management
            provisioner: Names, migrates and drops tenant databases
            router: Releases pooled connections before a drop
            lock: Keeps deprovisioning away from a running provisioning
            probe: Optional domain probe for observability
        """
        self._registry = registry
        self._session = session
        self._provisioner = provisioner
        self._router = router
        self._lock = lock
        self._probe = probe or DefaultTenantServiceProbe()

    async def list_tenants(self) -> list[Tenant]:
        """List every tenant record, whatever its status."""
        async with self._session.begin():
            tenants = await self._registry.list_all()

        self._probe.tenants_listed(len(tenants))
        return tenants

    async def get_tenant(self, tenant_id: TenantId) -> TenantDetails:
        """Fetch a tenant for status checks, including ``provisioning`` ones.

        Raises:
            TenantNotFoundError: If no such tenant exists
        """
        async with self._session.begin():
            tenant = await self._registry.get_by_id(tenant_id)
            if tenant is None:
                self._probe.tenant_not_found(tenant_id.value)
                raise TenantNotFoundError(tenant_id.value)
            bindings = await self._registry.list_bindings(tenant_id)

        self._probe.tenant_retrieved(tenant_id.value)
        return TenantDetails(
            tenant=tenant,
            bindings=bindings,
            physical_name=self._provisioner.physical_name(tenant_id).value,
        )

    async def deprovision(self, tenant_id: TenantId) -> None:
        """Remove a tenant and destroy its database.

        Order: mark deleted (stops routing), release pooled connections,
        drop the database, remove the record. A retry after a partial
        failure picks up where the previous attempt stopped.

        Raises:
            TenantNotFoundError: If no such tenant exists
            AlreadyProvisioningError: If a provisioning run holds the tenant
            ProvisioningFailedError: If the database could not be dropped
        """
        async with self._lock.hold(tenant_id):
            async with self._session.begin():
                if await self._registry.get_by_id(tenant_id) is None:
                    self._probe.tenant_not_found(tenant_id.value)
                    raise TenantNotFoundError(tenant_id.value)
                await self._registry.mark_deleted(tenant_id)

            name = self._provisioner.physical_name(tenant_id)
            await self._router.release(name)
            await self._provisioner.drop(name)

            async with self._session.begin():
                await self._registry.remove(tenant_id)

        self._probe.tenant_deprovisioned(tenant_id.value, name.value)

    async def migrate_all(self) -> list[MigrationOutcome]:
        """Bring every active tenant database to head.

        A failing tenant is reported and skipped; the others still run.
        """
        async with self._session.begin():
            tenants = [
                tenant
                for tenant in await self._registry.list_all()
                if tenant.status == TenantStatus.ACTIVE
            ]

        outcomes: list[MigrationOutcome] = []
        for tenant in tenants:
            name = self._provisioner.physical_name(tenant.id)
            try:
                await self._provisioner.migrate(name)
                revision = await self._provisioner.current_revision(name)
            except Exception as e:
                self._probe.tenant_migration_failed(tenant.id.value, name.value, e)
                outcomes.append(
                    MigrationOutcome(
                        tenant_id=tenant.id.value,
                        physical_name=name.value,
                        revision=None,
                        error=str(e),
                    )
                )
                continue

            self._probe.tenant_migrated(tenant.id.value, name.value, revision)
            outcomes.append(
                MigrationOutcome(
                    tenant_id=tenant.id.value,
                    physical_name=name.value,
                    revision=revision,
                )
            )

        return outcomes
