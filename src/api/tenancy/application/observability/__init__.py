"""Domain-Oriented Observability for the tenancy application layer."""

from tenancy.application.observability.orchestrator_probe import (
    DefaultProvisioningProbe,
    ProvisioningProbe,
)
from tenancy.application.observability.resolver_probe import (
    DefaultTenantResolverProbe,
    TenantResolverProbe,
)
from tenancy.application.observability.tenant_service_probe import (
    DefaultTenantServiceProbe,
    TenantServiceProbe,
)

__all__ = [
    "ProvisioningProbe",
    "DefaultProvisioningProbe",
    "TenantResolverProbe",
    "DefaultTenantResolverProbe",
    "TenantServiceProbe",
    "DefaultTenantServiceProbe",
]
