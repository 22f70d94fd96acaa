"""Tenant-scoped HTTP routes.

The tenant is resolved before the handler runs, from the leading path
segment (``/acme/api/users``) or the Host subdomain (``/api/users`` on
``acme.example.com``). Handlers reach tenant storage only through the
connection router.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from shared_kernel.middleware.tenant_context import TenantContext
from tenancy.application.services import TenantUserService
from tenancy.dependencies.services import get_tenant_user_service
from tenancy.dependencies.tenant_context import get_tenant_context
from tenancy.ports.exceptions import (
    ConnectionUnavailableError,
    UnresolvedTenantError,
)
from tenancy.presentation.scoped.models import TenantUserResponse

router = APIRouter(tags=["tenant-scoped"])


async def _list_users(
    tenant: TenantContext,
    service: TenantUserService,
) -> list[TenantUserResponse]:
    try:
        users = await service.list_users(tenant)
    except (UnresolvedTenantError, ConnectionUnavailableError) as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
    return [TenantUserResponse.from_record(user) for user in users]


@router.get("/{tenant_key}/api/users")
async def list_users_by_path(
    tenant_key: str,
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    service: Annotated[TenantUserService, Depends(get_tenant_user_service)],
) -> list[TenantUserResponse]:
    """List the users of the tenant named by the leading path segment.

    Raises:
        HTTPException: 400 if the request names no tenant
        HTTPException: 404 if the tenant is unknown or not active
        HTTPException: 503 if the tenant database cannot be reached
    """
    return await _list_users(tenant, service)


@router.get("/api/users")
async def list_users_by_host(
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    service: Annotated[TenantUserService, Depends(get_tenant_user_service)],
) -> list[TenantUserResponse]:
    """List the users of the tenant named by the Host subdomain.

    Raises:
        HTTPException: 400 if the host carries no tenant subdomain
        HTTPException: 404 if the tenant is unknown or not active
        HTTPException: 503 if the tenant database cannot be reached
    """
    return await _list_users(tenant, service)
