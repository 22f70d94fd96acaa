"""Pydantic models for tenant API requests and responses.

Field names are camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

from datetime import datetime
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from tenancy.application.services import (
    MigrationOutcome,
    ProvisioningResult,
    TenantDetails,
)
from tenancy.domain.aggregates import Tenant
from tenancy.domain.value_objects import BindingKey, TenantId
from tenancy.ports.exceptions import ProvisioningFailedError

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_PASSWORD_LENGTH = 8
# bcrypt rejects secrets longer than 72 bytes
MAX_PASSWORD_BYTES = 72


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _validate_email(value: str) -> str:
    value = value.strip().lower()
    if not _EMAIL_PATTERN.match(value):
        raise ValueError("must be a valid email address")
    return value


class CreateTenantRequest(_CamelModel):
    """Request model for provisioning a tenant."""

    company_name: str = Field(
        ..., description="Tenant display name", min_length=1, max_length=255
    )
    company_email: str = Field(
        ..., description="Tenant contact email", max_length=255
    )
    domain: str = Field(
        ..., description="Subdomain or path segment used for routing", max_length=63
    )
    admin_name: str | None = Field(default=None, min_length=1, max_length=255)
    admin_email: str | None = Field(default=None, max_length=255)
    admin_password: str | None = Field(default=None, min_length=MIN_PASSWORD_LENGTH)
    admin_password_confirmation: str | None = Field(default=None)
    tenant_id: str | None = Field(
        default=None,
        description="Explicit tenant id; derived from the domain when omitted",
    )

    @field_validator("company_email")
    @classmethod
    def validate_company_email(cls, value: str) -> str:
        """Normalize and check the contact email."""
        return _validate_email(value)

    @field_validator("admin_email")
    @classmethod
    def validate_admin_email(cls, value: str | None) -> str | None:
        """Normalize and check the admin email."""
        return None if value is None else _validate_email(value)

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, value: str) -> str:
        """The domain must be usable as a binding key."""
        return BindingKey.from_string(value).value

    @field_validator("admin_password")
    @classmethod
    def validate_admin_password(cls, value: str | None) -> str | None:
        """The password must fit bcrypt once UTF-8 encoded."""
        if value is not None and len(value.encode()) > MAX_PASSWORD_BYTES:
            raise ValueError(
                f"must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded"
            )
        return value

    @field_validator("tenant_id")
    @classmethod
    def validate_tenant_id(cls, value: str | None) -> str | None:
        """An explicit tenant id must be valid."""
        return None if value is None else TenantId.from_string(value).value

    @model_validator(mode="after")
    def validate_admin(self) -> CreateTenantRequest:
        """Admin fields come as a set; the confirmation must match."""
        fields = (self.admin_name, self.admin_email, self.admin_password)
        if any(f is not None for f in fields) and not all(
            f is not None for f in fields
        ):
            raise ValueError(
                "adminName, adminEmail and adminPassword must be given together"
            )
        if (
            self.admin_password_confirmation is not None
            and self.admin_password_confirmation != self.admin_password
        ):
            raise ValueError("adminPasswordConfirmation does not match adminPassword")
        return self

    @property
    def has_admin(self) -> bool:
        return self.admin_email is not None


class TenantCreatedResponse(_CamelModel):
    """Response model for a successfully provisioned tenant."""

    tenant_id: str
    physical_database_name: str
    domain: str
    status: str
    schema_revision: str | None = None
    admin_seeded: bool = False
    resumed: bool = False

    @classmethod
    def from_result(cls, result: ProvisioningResult) -> TenantCreatedResponse:
        """Convert an orchestrator result to an API response."""
        return cls(
            tenant_id=result.tenant.id.value,
            physical_database_name=result.physical_name.value,
            domain=result.binding_key.value,
            status=result.tenant.status.value,
            schema_revision=result.schema_revision,
            admin_seeded=result.admin_seeded,
            resumed=result.resumed,
        )


class ProvisioningFailureResponse(_CamelModel):
    """Response body for a provisioning run that failed and was rolled back."""

    error: str
    step: str | None = None
    tenant_id: str | None = None
    physical_database_name: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_error(cls, error: ProvisioningFailedError) -> ProvisioningFailureResponse:
        """Convert a ProvisioningFailedError to a response body."""
        return cls(
            error=error.reason,
            step=error.step,
            tenant_id=error.tenant_id,
            physical_database_name=error.physical_name,
            warnings=error.rollback_warnings,
        )


class TenantResponse(_CamelModel):
    """Response model for a tenant record."""

    id: str
    display_name: str
    contact_email: str
    status: str
    created_at: datetime

    @classmethod
    def from_domain(cls, tenant: Tenant) -> TenantResponse:
        """Convert domain Tenant aggregate to API response."""
        return cls(
            id=tenant.id.value,
            display_name=tenant.display_name,
            contact_email=tenant.contact_email,
            status=tenant.status.value,
            created_at=tenant.created_at,
        )


class TenantDetailResponse(TenantResponse):
    """Tenant record with routing and storage details."""

    bindings: list[str]
    physical_database_name: str

    @classmethod
    def from_details(cls, details: TenantDetails) -> TenantDetailResponse:
        """Convert TenantDetails to API response."""
        base = TenantResponse.from_domain(details.tenant)
        return cls(
            **base.model_dump(),
            bindings=[b.binding_key.value for b in details.bindings],
            physical_database_name=details.physical_name,
        )


class MigrationOutcomeResponse(_CamelModel):
    """Result of migrating one tenant database."""

    tenant_id: str
    physical_database_name: str
    revision: str | None = None
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: MigrationOutcome) -> MigrationOutcomeResponse:
        """Convert a MigrationOutcome to API response."""
        return cls(
            tenant_id=outcome.tenant_id,
            physical_database_name=outcome.physical_name,
            revision=outcome.revision,
            error=outcome.error,
        )
