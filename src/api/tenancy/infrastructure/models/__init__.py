"""SQLAlchemy ORM models for the tenancy context.

Central registry models use ``Base``; models under ``tenant_schema`` use
``TenantSchemaBase`` and only ever exist inside tenant databases.
"""

from tenancy.infrastructure.models.route_binding import RouteBindingModel
from tenancy.infrastructure.models.tenant import TenantModel
from tenancy.infrastructure.models.tenant_schema import (
    AnnouncementModel,
    TenantUserModel,
)

__all__ = [
    "AnnouncementModel",
    "RouteBindingModel",
    "TenantModel",
    "TenantUserModel",
]
