"""Application service dependencies for the tenancy context."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import get_write_session
from infrastructure.settings import (
    ProvisioningSettings,
    RoutingSettings,
    get_provisioning_settings,
    get_routing_settings,
)
from tenancy.application.observability import (
    DefaultProvisioningProbe,
    DefaultTenantServiceProbe,
    ProvisioningProbe,
    TenantServiceProbe,
)
from tenancy.application.services import (
    ProvisioningOrchestrator,
    TenantService,
    TenantUserService,
)
from tenancy.dependencies.provisioning import (
    get_admin_seeder,
    get_connection_router,
    get_database_provisioner,
    get_provisioning_lock,
)
from tenancy.dependencies.registry import get_tenant_registry
from tenancy.infrastructure.admin_seeder import AdminSeeder
from tenancy.infrastructure.connection_router import TenantConnectionRouter
from tenancy.infrastructure.database_provisioner import PostgresDatabaseProvisioner
from tenancy.infrastructure.provisioning_lock import PostgresAdvisoryLock
from tenancy.infrastructure.tenant_registry import TenantRegistry
from tenancy.infrastructure.tenant_user_directory import TenantUserDirectory


def get_provisioning_probe() -> ProvisioningProbe:
    """Get ProvisioningProbe instance."""
    return DefaultProvisioningProbe()


def get_tenant_service_probe() -> TenantServiceProbe:
    """Get TenantServiceProbe instance."""
    return DefaultTenantServiceProbe()


def get_provisioning_orchestrator(
    registry: Annotated[TenantRegistry, Depends(get_tenant_registry)],
    session: Annotated[AsyncSession, Depends(get_write_session)],
    provisioner: Annotated[
        PostgresDatabaseProvisioner, Depends(get_database_provisioner)
    ],
    router: Annotated[TenantConnectionRouter, Depends(get_connection_router)],
    lock: Annotated[PostgresAdvisoryLock, Depends(get_provisioning_lock)],
    seeder: Annotated[AdminSeeder, Depends(get_admin_seeder)],
    settings: Annotated[ProvisioningSettings, Depends(get_provisioning_settings)],
    probe: Annotated[ProvisioningProbe, Depends(get_provisioning_probe)],
    routing: Annotated[RoutingSettings, Depends(get_routing_settings)],
) -> ProvisioningOrchestrator:
    """Get a ProvisioningOrchestrator for one request.

    Args:
        registry: Tenant registry (shares session via FastAPI dependency caching)
        session: Central database session for per-step transactions
        provisioner: Physical database provisioner
        router: Tenant connection router
        lock: Provisioning lock
        seeder: Admin principal seeder
        settings: Provisioning settings
        probe: Orchestrator probe for observability
        routing: Routing settings; reserved labels cannot be provisioned
    """
    return ProvisioningOrchestrator(
        registry=registry,
        session=session,
        provisioner=provisioner,
        router=router,
        lock=lock,
        seeder=seeder,
        settings=settings,
        probe=probe,
        reserved_labels=routing.reserved_labels,
    )


def get_tenant_service(
    registry: Annotated[TenantRegistry, Depends(get_tenant_registry)],
    session: Annotated[AsyncSession, Depends(get_write_session)],
    provisioner: Annotated[
        PostgresDatabaseProvisioner, Depends(get_database_provisioner)
    ],
    router: Annotated[TenantConnectionRouter, Depends(get_connection_router)],
    lock: Annotated[PostgresAdvisoryLock, Depends(get_provisioning_lock)],
    probe: Annotated[TenantServiceProbe, Depends(get_tenant_service_probe)],
) -> TenantService:
    """Get TenantService instance."""
    return TenantService(
        registry=registry,
        session=session,
        provisioner=provisioner,
        router=router,
        lock=lock,
        probe=probe,
    )


def get_tenant_user_service(
    router: Annotated[TenantConnectionRouter, Depends(get_connection_router)],
) -> TenantUserService:
    """Get TenantUserService instance."""
    return TenantUserService(router=router, directory=TenantUserDirectory())
