"""Pydantic models for tenant-scoped API responses."""

from __future__ import annotations

from pydantic import BaseModel, Field

from tenancy.ports.tenant_users import TenantUserRecord


class TenantUserResponse(BaseModel):
    """A user of the resolved tenant."""

    id: int = Field(..., description="User ID within the tenant database")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address")
    role: str = Field(..., description="Role within the tenant")

    @classmethod
    def from_record(cls, record: TenantUserRecord) -> TenantUserResponse:
        """Convert a TenantUserRecord to API response."""
        return cls(
            id=record.id,
            name=record.name,
            email=record.email,
            role=record.role,
        )
