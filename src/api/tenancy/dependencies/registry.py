"""Tenant registry dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import get_read_session, get_write_session
from tenancy.infrastructure.tenant_registry import TenantRegistry


def get_tenant_registry(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> TenantRegistry:
    """Get a TenantRegistry bound to the request's write session.

    Shares the session with services through FastAPI dependency caching.
    """
    return TenantRegistry(session=session)


def get_read_tenant_registry(
    session: Annotated[AsyncSession, Depends(get_read_session)],
) -> TenantRegistry:
    """Get a TenantRegistry for per-request tenant lookups."""
    return TenantRegistry(session=session)
