"""Tenant-scoped user queries.

Every call goes through the connection router, so the query can only see
the database of the tenant it was given.
"""

from __future__ import annotations

from tenancy.ports.provisioning import HasPhysicalDatabase, IConnectionRouter
from tenancy.ports.tenant_users import ITenantUserDirectory, TenantUserRecord


class TenantUserService:
    """Application service for reading a tenant's users."""

    def __init__(self, router: IConnectionRouter, directory: ITenantUserDirectory):
        self._router = router
        self._directory = directory

    async def list_users(self, tenant: HasPhysicalDatabase) -> list[TenantUserRecord]:
        """List users stored in the tenant's own database.

        Raises:
            UnresolvedTenantError: If the tenant's database does not exist
            ConnectionUnavailableError: If no connection could be acquired
        """
        return await self._router.with_tenant(tenant, self._directory.list_users)
