"""HTTP routes for tenant provisioning and administration."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from tenancy.application.services import (
    ProvisioningOrchestrator,
    ProvisioningRequest,
    TenantService,
)
from tenancy.dependencies.services import (
    get_provisioning_orchestrator,
    get_tenant_service,
)
from tenancy.domain.value_objects import AdminPrincipal, TenantId
from tenancy.ports.exceptions import (
    AlreadyProvisioningError,
    BindingConflictError,
    ConnectionUnavailableError,
    DuplicateIdentityError,
    ProvisioningFailedError,
    TenantNotFoundError,
)
from tenancy.presentation.tenants.models import (
    CreateTenantRequest,
    MigrationOutcomeResponse,
    ProvisioningFailureResponse,
    TenantCreatedResponse,
    TenantDetailResponse,
    TenantResponse,
)

router = APIRouter(
    prefix="/tenants",
    tags=["tenants"],
)


def _parse_tenant_id(tenant_id: str) -> TenantId:
    try:
        return TenantId.from_string(tenant_id)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid tenant ID format: {e}",
        ) from e


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_409_CONFLICT: {"description": "Identity or domain in use"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {
            "model": ProvisioningFailureResponse,
            "description": "Provisioning failed and was rolled back",
        },
    },
)
async def create_tenant(
    request: CreateTenantRequest,
    orchestrator: Annotated[
        ProvisioningOrchestrator, Depends(get_provisioning_orchestrator)
    ],
) -> TenantCreatedResponse:
    """Provision a tenant: record, bind, create database, migrate, seed admin.

    The call returns only after the tenant is active, or after every
    completed step has been compensated.

    Args:
        request: Company, domain and initial admin details
        orchestrator: Provisioning orchestrator

    Returns:
        TenantCreatedResponse with the tenant id and physical database name

    Raises:
        HTTPException: 400 if the admin principal is required but missing,
            or the domain is a reserved label
        HTTPException: 409 if the id, email or domain is taken, or the
            tenant is being provisioned right now
        HTTPException: 503 if the central or tenant database is unreachable
    """
    admin = None
    if request.has_admin:
        admin = AdminPrincipal(
            name=request.admin_name,
            email=request.admin_email,
            password=request.admin_password,
        )

    provisioning_request = ProvisioningRequest(
        company_name=request.company_name,
        company_email=request.company_email,
        domain=request.domain,
        admin=admin,
        tenant_id=(
            TenantId.from_string(request.tenant_id) if request.tenant_id else None
        ),
    )

    try:
        result = await orchestrator.run(provisioning_request)
        return TenantCreatedResponse.from_result(result)

    except (
        DuplicateIdentityError,
        BindingConflictError,
        AlreadyProvisioningError,
    ) as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except ConnectionUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
    except ProvisioningFailedError as e:
        body = ProvisioningFailureResponse.from_error(e)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(by_alias=True),
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.get("")
async def list_tenants(
    service: Annotated[TenantService, Depends(get_tenant_service)],
) -> list[TenantResponse]:
    """List every tenant record, whatever its status.

    Args:
        service: Tenant service

    Returns:
        List of TenantResponse objects
    """
    tenants = await service.list_tenants()
    return [TenantResponse.from_domain(tenant) for tenant in tenants]


@router.post("/migrations")
async def migrate_tenants(
    service: Annotated[TenantService, Depends(get_tenant_service)],
) -> list[MigrationOutcomeResponse]:
    """Bring every active tenant database to the latest schema revision.

    Failures are reported per tenant; they do not abort the others.
    """
    outcomes = await service.migrate_all()
    return [MigrationOutcomeResponse.from_outcome(outcome) for outcome in outcomes]


@router.get("/{tenant_id}")
async def get_tenant(
    tenant_id: str,
    service: Annotated[TenantService, Depends(get_tenant_service)],
) -> TenantDetailResponse:
    """Get a tenant by ID, including tenants still provisioning.

    Args:
        tenant_id: Tenant ID
        service: Tenant service

    Returns:
        TenantDetailResponse with status, bindings and database name

    Raises:
        HTTPException: 400 if tenant ID is invalid
        HTTPException: 404 if tenant not found
    """
    tenant_id_obj = _parse_tenant_id(tenant_id)

    try:
        details = await service.get_tenant(tenant_id_obj)
    except TenantNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tenant {tenant_id} not found",
        )

    return TenantDetailResponse.from_details(details)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tenant(
    tenant_id: str,
    service: Annotated[TenantService, Depends(get_tenant_service)],
) -> Response:
    """Deprovision a tenant and drop its database.

    Args:
        tenant_id: Tenant ID
        service: Tenant service

    Returns:
        204 No Content on success

    Raises:
        HTTPException: 400 if tenant ID is invalid
        HTTPException: 404 if tenant not found
        HTTPException: 409 if the tenant is being provisioned
        HTTPException: 500 if the database could not be dropped
    """
    tenant_id_obj = _parse_tenant_id(tenant_id)

    try:
        await service.deprovision(tenant_id_obj)
    except TenantNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tenant {tenant_id} not found",
        )
    except AlreadyProvisioningError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except ProvisioningFailedError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.reason,
        )

    return Response(status_code=status.HTTP_204_NO_CONTENT)
