"""Tenant context FastAPI dependency.

Resolves the tenant of an inbound request from its leading path segment
(``/acme/api/users``) or, failing that, from the Host subdomain
(``acme.example.com``), and short-circuits the request when it cannot.

Usage in FastAPI routes:
    @router.get("/api/users")
    async def example(
        tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    ):
        # tenant.tenant_id is an active tenant
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from infrastructure.settings import RoutingSettings, get_routing_settings
from shared_kernel.middleware.observability import DefaultTenantContextProbe
from shared_kernel.middleware.observability.tenant_context_probe import (
    TenantContextProbe,
)
from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.services import TenantResolver
from tenancy.dependencies.registry import get_read_tenant_registry
from tenancy.infrastructure.tenant_registry import TenantRegistry
from tenancy.ports.exceptions import AmbiguousRequestError, TenantNotFoundError


def get_tenant_context_probe() -> TenantContextProbe:
    """Get TenantContextProbe instance."""
    return DefaultTenantContextProbe()


def get_tenant_resolver(
    registry: Annotated[TenantRegistry, Depends(get_read_tenant_registry)],
    settings: Annotated[RoutingSettings, Depends(get_routing_settings)],
) -> TenantResolver:
    """Get a TenantResolver backed by the read session."""
    return TenantResolver(registry=registry, settings=settings)


async def get_tenant_context(
    request: Request,
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
    probe: Annotated[TenantContextProbe, Depends(get_tenant_context_probe)],
) -> TenantContext:
    """Resolve the active tenant for the current request.

    Returns:
        TenantContext for an active tenant

    Raises:
        HTTPException 400: If the request names no tenant
        HTTPException 404: If the tenant is unknown or not active
    """
    try:
        label = resolver.identify(
            request.url.path,
            host=request.headers.get("host"),
        )
        tenant = await resolver.resolve_label(label)
    except AmbiguousRequestError as e:
        probe.tenant_context_rejected(status.HTTP_400_BAD_REQUEST, str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except TenantNotFoundError as e:
        probe.tenant_context_rejected(status.HTTP_404_NOT_FOUND, str(e))
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    probe.tenant_context_resolved(
        tenant_id=tenant.id.value,
        binding_key=label.binding_key.value,
        source=label.source,
    )
    return TenantContext(
        tenant_id=tenant.id.value,
        binding_key=label.binding_key.value,
        source=label.source,
    )
