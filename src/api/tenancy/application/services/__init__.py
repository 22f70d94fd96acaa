"""Application services for the tenancy bounded context.

Application services orchestrate aggregates, the registry, and the
provisioning infrastructure to fulfill use cases.
"""

from tenancy.application.services.provisioning_orchestrator import (
    ProvisioningOrchestrator,
    ProvisioningRequest,
    ProvisioningResult,
    ProvisioningStep,
)
from tenancy.application.services.tenant_resolver import TenantLabel, TenantResolver
from tenancy.application.services.tenant_service import (
    MigrationOutcome,
    TenantDetails,
    TenantService,
)
from tenancy.application.services.tenant_user_service import TenantUserService

__all__ = [
    "MigrationOutcome",
    "ProvisioningOrchestrator",
    "ProvisioningRequest",
    "ProvisioningResult",
    "ProvisioningStep",
    "TenantDetails",
    "TenantLabel",
    "TenantResolver",
    "TenantService",
    "TenantUserService",
]
