"""Domain aggregates for the tenancy context."""

from tenancy.domain.aggregates.route_binding import RouteBinding
from tenancy.domain.aggregates.tenant import Tenant

__all__ = [
    "RouteBinding",
    "Tenant",
]
