"""HTTP presentation layer for the tenancy bounded context."""

from tenancy.presentation.scoped.routes import router as scoped_router
from tenancy.presentation.tenants.routes import router as tenants_router

__all__ = ["scoped_router", "tenants_router"]
