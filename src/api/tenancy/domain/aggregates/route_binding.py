"""Route binding: maps a subdomain or path segment to a tenant."""

from __future__ import annotations

from dataclasses import dataclass

from tenancy.domain.value_objects import BindingKey, TenantId


@dataclass(frozen=True)
class RouteBinding:
    """One routing key bound to one tenant.

    A binding key is bound to at most one tenant at a time; a tenant may
    own any number of bindings.
    """

    binding_key: BindingKey
    tenant_id: TenantId
