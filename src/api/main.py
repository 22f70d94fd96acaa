"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import (
    close_database_connections,
    get_read_session,
)
from infrastructure.logging import configure_logging
from infrastructure.observability import DefaultStartupProbe
from infrastructure.settings import get_provisioning_settings, get_settings
from infrastructure.version import __version__
from tenancy.dependencies.provisioning import close_tenant_connections
from tenancy.presentation import scoped_router, tenants_router


@asynccontextmanager
async def tenancy_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Logging configuration
    - Tenant engine cache and central engine disposal on shutdown
    """
    settings = get_settings()
    configure_logging(debug=settings.debug)
    probe = DefaultStartupProbe()
    probe.application_started(
        version=__version__,
        database_prefix=get_provisioning_settings().database_prefix,
    )

    yield

    probe.application_stopping()
    # Tenant engines first; they are never reused once the app stops
    for step, close in (
        ("tenant_connections", close_tenant_connections),
        ("central_connections", close_database_connections),
    ):
        try:
            await close()
        except (SQLAlchemyError, OSError) as e:
            probe.shutdown_step_failed(step, e)


app = FastAPI(
    title="Tenancy API",
    description="Database-per-tenant provisioning and request routing",
    version=__version__,
    lifespan=tenancy_lifespan,
)

# Tenant administration routes
app.include_router(tenants_router)

# Tenant-scoped routes (path and subdomain forms)
app.include_router(scoped_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/health/db")
async def health_db(
    session: Annotated[AsyncSession, Depends(get_read_session)],
) -> dict:
    """Check the central registry database connection."""
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "ok", "connected": True}
    except (SQLAlchemyError, OSError) as e:
        return {
            "status": "error",
            "connected": False,
            "error": str(e),
        }
