"""Tenant context value object for resolved tenant identification.

This module contains the pure value object that represents a resolved
tenant context. It is framework-agnostic and contains no business logic,
making it safe for the shared kernel.

The actual resolution logic (path segment or subdomain extraction,
registry lookup) lives in the tenancy bounded context.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TenantContext:
    """Resolved tenant context for the current request.

    Carries everything the connection router needs, so a tenant-scoped
    handler can open its database scope without a second registry lookup.

    Attributes:
        tenant_id: The active tenant's identifier.
        binding_key: The label the request was routed by.
        source: How the tenant was resolved: 'path' for the leading path
            segment, 'subdomain' for the Host header.
    """

    tenant_id: str
    binding_key: str
    source: str

    def database_key(self) -> str:
        """Key the physical database name derives from."""
        return self.tenant_id
