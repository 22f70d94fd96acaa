"""Ports (interfaces) for the tenancy bounded context.

Ports define the contracts for the registry, provisioner, connection router
and their collaborators without specifying implementation details.
"""

from tenancy.ports.provisioning import (
    HasPhysicalDatabase,
    IAdminSeeder,
    IConnectionRouter,
    IDatabaseProvisioner,
    IProvisioningLock,
)
from tenancy.ports.repositories import ITenantRegistry
from tenancy.ports.tenant_users import ITenantUserDirectory, TenantUserRecord

__all__ = [
    "HasPhysicalDatabase",
    "IAdminSeeder",
    "IConnectionRouter",
    "IDatabaseProvisioner",
    "IProvisioningLock",
    "ITenantRegistry",
    "ITenantUserDirectory",
    "TenantUserRecord",
]
