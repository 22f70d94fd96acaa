"""Domain-Oriented Observability for tenancy infrastructure."""

from tenancy.infrastructure.observability.provisioner_probe import (
    DefaultProvisionerProbe,
    ProvisionerProbe,
)
from tenancy.infrastructure.observability.registry_probe import (
    DefaultTenantRegistryProbe,
    TenantRegistryProbe,
)

__all__ = [
    "DefaultProvisionerProbe",
    "DefaultTenantRegistryProbe",
    "ProvisionerProbe",
    "TenantRegistryProbe",
]
